from pathlib import Path

import pytest

from timetable_sync.config import HOUR_SECONDS, load_settings
from timetable_sync.infrastructure.parsing.corrections import UnknownKindPolicy

ENV_VARS = (
    "TIMETABLE_URL",
    "CORRECTIONS_URL",
    "TIMETABLE_INTERVAL_SECONDS",
    "TIMETABLE_WEEKDAY",
    "CORRECTIONS_INTERVAL_SECONDS",
    "CYCLE_TIMEOUT_SECONDS",
    "HTTP_TIMEOUT_SECONDS",
    "UNKNOWN_KIND_POLICY",
    "DEACTIVATE_ON_CANCEL",
    "SNAPSHOT_DIR",
    "LOG_LEVEL",
    "LOG_FILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path: Path):
    settings = load_settings(tmp_path / "absent.env")

    assert settings.timetable_interval == HOUR_SECONDS
    assert settings.timetable_weekday == 5
    assert settings.corrections_interval == 600
    assert settings.unknown_kind_policy is UnknownKindPolicy.DROP
    assert settings.deactivate_on_cancel is True
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("TIMETABLE_URL", " https://docs.google.com/spreadsheets/d/a/edit ")
    monkeypatch.setenv("CORRECTIONS_INTERVAL_SECONDS", "60")
    monkeypatch.setenv("TIMETABLE_WEEKDAY", "0")
    monkeypatch.setenv("UNKNOWN_KIND_POLICY", "AS_REPLACEMENT")
    monkeypatch.setenv("DEACTIVATE_ON_CANCEL", "no")
    monkeypatch.setenv("SNAPSHOT_DIR", str(tmp_path / "snaps"))
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = load_settings(tmp_path / "absent.env")

    assert settings.timetable_url == "https://docs.google.com/spreadsheets/d/a/edit"
    assert settings.corrections_interval == 60
    assert settings.timetable_weekday == 0
    assert settings.unknown_kind_policy is UnknownKindPolicy.AS_REPLACEMENT
    assert settings.deactivate_on_cancel is False
    assert settings.snapshot_dir == tmp_path / "snaps"
    assert settings.log_level == "DEBUG"


def test_invalid_values_fall_back(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("CORRECTIONS_INTERVAL_SECONDS", "often")
    monkeypatch.setenv("CYCLE_TIMEOUT_SECONDS", "-5")
    monkeypatch.setenv("TIMETABLE_WEEKDAY", "9")
    monkeypatch.setenv("UNKNOWN_KIND_POLICY", "guess")

    settings = load_settings(tmp_path / "absent.env")

    assert settings.corrections_interval == 600
    assert settings.cycle_timeout == 120
    assert settings.timetable_weekday == 5
    assert settings.unknown_kind_policy is UnknownKindPolicy.DROP

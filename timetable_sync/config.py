"""Central configuration for the timetable sync package."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from timetable_sync.infrastructure.parsing.corrections import UnknownKindPolicy

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
SNAPSHOT_DIR = DATA_DIR / "snapshots"

HOUR_SECONDS = 60 * 60


@dataclass(slots=True, frozen=True)
class Settings:
    timetable_url: str = ""
    corrections_url: str = ""
    timetable_interval: float = HOUR_SECONDS
    timetable_weekday: int = 5
    corrections_interval: float = 600
    cycle_timeout: float = 120
    http_timeout: float = 30
    unknown_kind_policy: UnknownKindPolicy = UnknownKindPolicy.DROP
    deactivate_on_cancel: bool = True
    snapshot_dir: Path = SNAPSHOT_DIR
    log_level: str = "INFO"
    log_file: str | None = None


def _number(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, falling back to %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("%s must be positive, falling back to %s", name, default)
        return default
    return value


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _weekday(default: int) -> int:
    raw = os.getenv("TIMETABLE_WEEKDAY", "").strip()
    if not raw:
        return default
    if raw.isdigit() and 0 <= int(raw) <= 6:
        return int(raw)
    logger.warning("Invalid TIMETABLE_WEEKDAY=%r, falling back to %d", raw, default)
    return default


def _policy(default: UnknownKindPolicy) -> UnknownKindPolicy:
    raw = os.getenv("UNKNOWN_KIND_POLICY", "").strip().lower()
    if not raw:
        return default
    try:
        return UnknownKindPolicy(raw)
    except ValueError:
        logger.warning("Invalid UNKNOWN_KIND_POLICY=%r, falling back to %s", raw, default.value)
        return default


def load_settings(env_file: str | Path | None = None) -> Settings:
    load_dotenv(env_file)
    defaults = Settings()
    settings = Settings(
        timetable_url=os.getenv("TIMETABLE_URL", "").strip(),
        corrections_url=os.getenv("CORRECTIONS_URL", "").strip(),
        timetable_interval=_number("TIMETABLE_INTERVAL_SECONDS", defaults.timetable_interval),
        timetable_weekday=_weekday(defaults.timetable_weekday),
        corrections_interval=_number("CORRECTIONS_INTERVAL_SECONDS", defaults.corrections_interval),
        cycle_timeout=_number("CYCLE_TIMEOUT_SECONDS", defaults.cycle_timeout),
        http_timeout=_number("HTTP_TIMEOUT_SECONDS", defaults.http_timeout),
        unknown_kind_policy=_policy(defaults.unknown_kind_policy),
        deactivate_on_cancel=_flag("DEACTIVATE_ON_CANCEL", defaults.deactivate_on_cancel),
        snapshot_dir=Path(os.getenv("SNAPSHOT_DIR") or defaults.snapshot_dir),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).strip().upper() or defaults.log_level,
        log_file=os.getenv("LOG_FILE") or None,
    )
    if not settings.timetable_url:
        logger.warning("TIMETABLE_URL is not set")
    if not settings.corrections_url:
        logger.warning("CORRECTIONS_URL is not set")
    return settings

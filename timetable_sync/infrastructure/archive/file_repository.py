"""Filesystem repository archiving parsed timetable snapshots."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Any

from timetable_sync.domain.errors import StorageError
from timetable_sync.domain.models import Lesson, ScheduleSnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_FILE = "snapshot.json"
MANIFEST_FILE = "manifest.json"


def _normalize_snapshot_id(snapshot_id: str) -> str:
    sanitized = re.sub(r"[^0-9A-Za-z_-]+", "", snapshot_id.strip())
    return sanitized or "snapshot"


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _lesson_to_dict(lesson: Lesson) -> dict[str, Any]:
    data = asdict(lesson)
    data["date"] = _iso(lesson.date)
    return data


def _lesson_from_dict(data: dict[str, Any]) -> Lesson:
    raw_date = data.get("date")
    return Lesson(
        group=data["group"],
        subject=data["subject"],
        teacher=data.get("teacher", ""),
        classroom=data.get("classroom", ""),
        day_of_week=data.get("day_of_week", ""),
        number=int(data.get("number", 0)),
        start=data.get("start", ""),
        end=data.get("end", ""),
        date=date.fromisoformat(raw_date) if raw_date else None,
    )


class FileSystemSnapshotRepository:
    """One directory per snapshot: ``snapshot.json`` with the lessons, ``manifest.json`` with the metadata."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def save_snapshot(self, snapshot: ScheduleSnapshot) -> None:
        run_dir = self._root / _normalize_snapshot_id(snapshot.snapshot_id)
        try:
            run_dir.mkdir(parents=True, exist_ok=True)
            (run_dir / SNAPSHOT_FILE).write_text(
                json.dumps([_lesson_to_dict(lesson) for lesson in snapshot.lessons], ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            (run_dir / MANIFEST_FILE).write_text(
                json.dumps(self._manifest(snapshot), ensure_ascii=False, indent=2), encoding="utf-8"
            )
        except OSError as exc:
            raise StorageError(f"cannot write snapshot {snapshot.snapshot_id}: {exc}") from exc
        logger.info("Archived snapshot %s (%d lessons) in %s", snapshot.snapshot_id, snapshot.lesson_count, run_dir)

    def get_active_snapshot(self) -> ScheduleSnapshot | None:
        manifests = [m for m in self._read_manifests() if m.get("is_active")]
        if not manifests:
            return None
        latest = max(manifests, key=lambda m: m["created_at"])
        return self._load(latest)

    def _read_manifests(self) -> list[dict[str, Any]]:
        if not self._root.is_dir():
            return []
        manifests: list[dict[str, Any]] = []
        for path in sorted(self._root.glob(f"*/{MANIFEST_FILE}")):
            try:
                manifests.append(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Ignoring unreadable manifest %s: %s", path, exc)
        return manifests

    def _load(self, manifest: dict[str, Any]) -> ScheduleSnapshot:
        run_dir = self._root / _normalize_snapshot_id(manifest["snapshot_id"])
        try:
            lessons = json.loads((run_dir / SNAPSHOT_FILE).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"cannot read snapshot {manifest['snapshot_id']}: {exc}") from exc
        return ScheduleSnapshot(
            snapshot_id=manifest["snapshot_id"],
            name=manifest.get("name", ""),
            period_start=date.fromisoformat(manifest["period_start"]) if manifest.get("period_start") else None,
            period_end=date.fromisoformat(manifest["period_end"]) if manifest.get("period_end") else None,
            lessons=[_lesson_from_dict(item) for item in lessons],
            source_url=manifest.get("source_url", ""),
            source_hash=manifest.get("source_hash", ""),
            created_at=datetime.fromisoformat(manifest["created_at"]),
            is_active=bool(manifest.get("is_active")),
        )

    @staticmethod
    def _manifest(snapshot: ScheduleSnapshot) -> dict[str, object]:
        return {
            "snapshot_id": snapshot.snapshot_id,
            "name": snapshot.name,
            "period_start": _iso(snapshot.period_start),
            "period_end": _iso(snapshot.period_end),
            "source_url": snapshot.source_url,
            "source_hash": snapshot.source_hash,
            "created_at": snapshot.created_at.isoformat(),
            "is_active": snapshot.is_active,
            "lessons": snapshot.lesson_count,
        }

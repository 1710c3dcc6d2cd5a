"""Domain models for the timetable sync pipeline.

These dataclasses capture the canonical schema for parsed lessons,
corrections and the materialized current-schedule view.
"""
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Sequence


class ChangeKind(str, Enum):
    REPLACEMENT = "replacement"
    CANCELLATION = "cancellation"
    ADDITION = "addition"


class Provenance(str, Enum):
    FROM_TIMETABLE = "from-timetable"
    FROM_CORRECTION = "from-correction"


@dataclass(frozen=True)
class Lesson:
    """One class slot for one group, as read from the weekly timetable."""

    group: str
    subject: str
    teacher: str
    classroom: str
    day_of_week: str
    number: int
    start: str = ""
    end: str = ""
    date: date | None = None

    @property
    def has_time(self) -> bool:
        return bool(self.start and self.end)


@dataclass(frozen=True)
class Change:
    """One correction row: replacement, cancellation or addition."""

    group: str
    date: date
    start: str
    subject: str
    kind: ChangeKind
    end: str = ""
    teacher: str = ""
    classroom: str = ""
    original_subject: str = ""

    def canonical(self) -> str:
        """Fixed field order, ISO date, enum value; equal content gives equal text."""
        payload = [
            self.group,
            self.date.isoformat(),
            self.start,
            self.end,
            self.subject,
            self.teacher,
            self.classroom,
            self.kind.value,
            self.original_subject,
        ]
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))

    @property
    def change_id(self) -> str:
        return hashlib.sha256(self.canonical().encode("utf-8")).hexdigest()[:32]

    def key(self) -> tuple[str, date, str]:
        return (self.group, self.date, self.start)


@dataclass
class CurrentScheduleEntry:
    """Row of the materialized schedule view; natural key is (group, date, start)."""

    entry_id: str
    group: str
    date: date
    start: str
    end: str
    subject: str
    teacher: str
    classroom: str
    provenance: Provenance
    provenance_ref: str
    is_active: bool = True

    def key(self) -> tuple[str, date, str]:
        return (self.group, self.date, self.start)


@dataclass(frozen=True)
class ScheduleSnapshot:
    snapshot_id: str
    name: str
    period_start: date | None
    period_end: date | None
    lessons: Sequence[Lesson]
    source_url: str
    source_hash: str
    created_at: datetime
    is_active: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "lessons", tuple(self.lessons))

    @property
    def lesson_count(self) -> int:
        return len(self.lessons)

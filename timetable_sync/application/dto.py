"""Application-level DTOs for ingestion cycles."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from timetable_sync.domain.errors import CycleAborted
from timetable_sync.domain.fingerprint import ChangeSetFingerprint
from timetable_sync.domain.models import Change, Lesson, ScheduleSnapshot
from timetable_sync.domain.results import MergeReport, ParseReport


@dataclass
class CycleContext:
    """Deadline and stop signal for one ingestion cycle, checked between stages."""

    name: str
    deadline: float
    stop_event: threading.Event = field(default_factory=threading.Event)
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def start(
        cls,
        name: str,
        timeout: float,
        stop_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> "CycleContext":
        return cls(name=name, deadline=clock() + timeout, stop_event=stop_event or threading.Event(), clock=clock)

    @classmethod
    def unbounded(cls, name: str = "manual") -> "CycleContext":
        return cls(name=name, deadline=float("inf"))

    def checkpoint(self, stage: str) -> None:
        if self.stop_event.is_set():
            raise CycleAborted(f"{self.name} cycle stopped after {stage}")
        if self.clock() > self.deadline:
            raise CycleAborted(f"{self.name} cycle exceeded its deadline after {stage}")


@dataclass(frozen=True)
class TimetableIngestResult:
    report: ParseReport[Lesson]
    snapshot: ScheduleSnapshot | None
    merge: MergeReport | None
    unchanged: bool = False


@dataclass(frozen=True)
class CorrectionsIngestResult:
    report: ParseReport[Change]
    fingerprint: ChangeSetFingerprint
    merge: MergeReport | None
    unchanged: bool = False
    notified: int = 0

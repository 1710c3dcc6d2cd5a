"""Application services orchestrating timetable and corrections ingestion."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Sequence

from timetable_sync.application.dto import CorrectionsIngestResult, CycleContext, TimetableIngestResult
from timetable_sync.domain.fingerprint import FingerprintGate, fingerprint_changes
from timetable_sync.domain.models import Change, Lesson, ScheduleSnapshot
from timetable_sync.domain.repositories import (
    ChangeLogRepository,
    GridFetcher,
    NotificationSink,
    SnapshotRepository,
)
from timetable_sync.domain.results import MergeReport
from timetable_sync.domain.services import MergeEngine
from timetable_sync.infrastructure.parsing.corrections import CorrectionParser
from timetable_sync.infrastructure.parsing.timetable import TimetableParser
from timetable_sync.infrastructure.parsing.utils import grid_hash
from timetable_sync.infrastructure.storage.memory import InMemoryChangeLog

logger = logging.getLogger(__name__)


def build_snapshot(
    lessons: Sequence[Lesson],
    source_url: str,
    source_hash: str,
    created_at: datetime,
    snapshot_id: str | None = None,
) -> ScheduleSnapshot:
    dates = sorted({lesson.date for lesson in lessons if lesson.date is not None})
    period_start = dates[0] if dates else None
    period_end = dates[-1] if dates else None
    label = (period_start or created_at.date()).strftime("%d.%m.%Y")
    return ScheduleSnapshot(
        snapshot_id=snapshot_id or uuid.uuid4().hex,
        name=f"Расписание с {label}",
        period_start=period_start,
        period_end=period_end,
        lessons=lessons,
        source_url=source_url,
        source_hash=source_hash,
        created_at=created_at,
    )


@dataclass(slots=True)
class TimetableIngestContext:
    fetcher: GridFetcher
    snapshot_repository: SnapshotRepository
    merge_engine: MergeEngine
    notifier: NotificationSink
    parser: TimetableParser = field(default_factory=TimetableParser)
    clock: Callable[[], datetime] = datetime.now


class IngestTimetableUseCase:
    """fetch -> parse -> snapshot -> materialize -> notify."""

    def __init__(self, context: TimetableIngestContext) -> None:
        self._context = context

    def execute(self, source_url: str, cycle: CycleContext | None = None) -> TimetableIngestResult:
        cycle = cycle or CycleContext.unbounded("timetable")
        ctx = self._context

        grid = ctx.fetcher.fetch_grid(source_url)
        cycle.checkpoint("fetch")
        report = ctx.parser.parse(grid)
        cycle.checkpoint("parse")

        source_hash = grid_hash(grid)
        previous = ctx.snapshot_repository.get_active_snapshot()
        if previous is not None and previous.source_hash == source_hash:
            logger.info("Timetable at %s unchanged since snapshot %s", source_url, previous.snapshot_id)
            return TimetableIngestResult(report=report, snapshot=previous, merge=None, unchanged=True)

        snapshot = build_snapshot(report.records, source_url, source_hash, ctx.clock())
        if previous is not None:
            ctx.snapshot_repository.save_snapshot(replace(previous, is_active=False))
        ctx.snapshot_repository.save_snapshot(snapshot)
        logger.info("Saved snapshot %s with %d lessons", snapshot.snapshot_id, snapshot.lesson_count)

        merge = ctx.merge_engine.materialize_snapshot(snapshot)
        try:
            ctx.notifier.notify_new_timetable(snapshot)
        except Exception:
            logger.warning("New-timetable notification for %s failed", snapshot.snapshot_id, exc_info=True)
        return TimetableIngestResult(report=report, snapshot=snapshot, merge=merge)


@dataclass(slots=True)
class CorrectionsIngestContext:
    fetcher: GridFetcher
    merge_engine: MergeEngine
    notifier: NotificationSink
    gate: FingerprintGate = field(default_factory=FingerprintGate)
    parser: CorrectionParser = field(default_factory=CorrectionParser)
    change_log: ChangeLogRepository = field(default_factory=InMemoryChangeLog)


class IngestCorrectionsUseCase:
    """fetch -> parse -> fingerprint gate -> merge -> journal -> notify."""

    def __init__(self, context: CorrectionsIngestContext) -> None:
        self._context = context

    def execute(self, source_url: str, cycle: CycleContext | None = None) -> CorrectionsIngestResult:
        cycle = cycle or CycleContext.unbounded("corrections")
        ctx = self._context

        grid = ctx.fetcher.fetch_grid(source_url)
        cycle.checkpoint("fetch")
        report = ctx.parser.parse(grid)
        cycle.checkpoint("parse")

        fingerprint = fingerprint_changes(report.records)
        if not ctx.gate.is_new(fingerprint):
            logger.info("No new corrections (fingerprint %s)", fingerprint.digest[:12])
            return CorrectionsIngestResult(report=report, fingerprint=fingerprint, merge=None, unchanged=True)

        logger.info("Corrections changed: %d records, fingerprint %s", fingerprint.size, fingerprint.digest[:12])
        merge = ctx.merge_engine.apply(report.records)
        journaled = self._journal(report.records, merge)
        if merge.failed:
            # Leaving the gate open makes the next cycle retry the failed corrections.
            logger.warning("%d corrections failed to apply; they will be retried next cycle", merge.failed)
        else:
            ctx.gate.record(fingerprint)

        notified = self._notify(journaled)
        return CorrectionsIngestResult(
            report=report, fingerprint=fingerprint, merge=merge, notified=notified
        )

    def _journal(self, changes: Sequence[Change], merge: MergeReport) -> list[Change]:
        """Record applied changes; return the ones seen for the first time."""
        applied = {outcome.change_id for outcome in merge.outcomes if outcome.ok}
        return [change for change in changes if change.change_id in applied and self._context.change_log.record(change)]

    def _notify(self, changes: Sequence[Change]) -> int:
        notified = 0
        for change in changes:
            try:
                self._context.notifier.notify_change(change)
            except Exception:
                logger.warning("Notification for change %s failed", change.change_id, exc_info=True)
                continue
            notified += 1
        return notified

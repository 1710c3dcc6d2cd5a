"""Domain services: the merge engine and the read side of the schedule view."""
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Sequence

from .errors import StorageError
from .models import Change, ChangeKind, CurrentScheduleEntry, Lesson, Provenance, ScheduleSnapshot
from .repositories import ChangeLogRepository, CurrentScheduleRepository
from .results import ApplyOutcome, MergeReport

logger = logging.getLogger(__name__)


def _new_entry_id() -> str:
    return uuid.uuid4().hex


class MergeEngine:
    """Upserts corrections and snapshots into the current-schedule view.

    Each call runs in one transaction. A storage failure on one record is
    logged and counted; the remaining records are still applied and the
    transaction commits what succeeded.
    """

    def __init__(
        self,
        repository: CurrentScheduleRepository,
        deactivate_on_cancel: bool = True,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._repository = repository
        self._deactivate_on_cancel = deactivate_on_cancel
        self._new_id = id_factory or _new_entry_id

    def apply(self, changes: Sequence[Change]) -> MergeReport:
        report = MergeReport()
        with self._repository.transaction() as tx:
            for change in changes:
                try:
                    action = self._apply_change(tx, change)
                except StorageError as exc:
                    logger.warning("Failed to apply change %s for %s: %s", change.change_id, change.key(), exc)
                    report.outcomes.append(ApplyOutcome(change.change_id, change.key(), "failed", str(exc)))
                    continue
                report.outcomes.append(ApplyOutcome(change.change_id, change.key(), action))
        logger.info("Applied %d of %d changes (%d failed)", report.applied, len(changes), report.failed)
        return report

    def _apply_change(self, tx: Any, change: Change) -> str:
        cancels = change.kind is ChangeKind.CANCELLATION and self._deactivate_on_cancel
        existing = self._repository.find_by_key(tx, change.group, change.date, change.start)
        if existing is not None:
            updated = replace(
                existing,
                subject=change.subject,
                teacher=change.teacher,
                classroom=change.classroom,
                provenance=Provenance.FROM_CORRECTION,
                provenance_ref=change.change_id,
            )
            if cancels:
                updated.is_active = False
            self._repository.update(tx, updated)
            return "deactivated" if cancels and existing.is_active else "updated"

        entry = CurrentScheduleEntry(
            entry_id=self._new_id(),
            group=change.group,
            date=change.date,
            start=change.start,
            end=change.end,
            subject=change.subject,
            teacher=change.teacher,
            classroom=change.classroom,
            provenance=Provenance.FROM_CORRECTION,
            provenance_ref=change.change_id,
            is_active=not cancels,
        )
        self._repository.insert(tx, entry)
        return "inserted"

    def materialize_snapshot(self, snapshot: ScheduleSnapshot) -> MergeReport:
        """Replace the timetable-sourced part of the view with ``snapshot``.

        Entries last written by a correction are left alone. Timetable entries
        the new snapshot no longer mentions are flagged inactive.
        """
        report = MergeReport()
        seen: set[tuple[str, date, str]] = set()
        undated = 0
        with self._repository.transaction() as tx:
            for lesson in snapshot.lessons:
                if lesson.date is None or not lesson.start:
                    undated += 1
                    continue
                key = (lesson.group, lesson.date, lesson.start)
                if key in seen:
                    logger.warning("Snapshot %s repeats slot %s; keeping the first", snapshot.snapshot_id, key)
                    continue
                seen.add(key)
                try:
                    action = self._apply_lesson(tx, lesson, lesson.date, snapshot.snapshot_id)
                except StorageError as exc:
                    logger.warning("Failed to materialize %s: %s", key, exc)
                    report.outcomes.append(ApplyOutcome(snapshot.snapshot_id, key, "failed", str(exc)))
                    continue
                report.outcomes.append(ApplyOutcome(snapshot.snapshot_id, key, action))

            stale = [
                entry
                for entry in self._repository.iter_entries(tx)
                if entry.provenance is Provenance.FROM_TIMETABLE and entry.is_active and entry.key() not in seen
            ]
            for entry in stale:
                try:
                    self._repository.update(tx, replace(entry, is_active=False))
                except StorageError as exc:
                    logger.warning("Failed to deactivate %s: %s", entry.key(), exc)
                    report.outcomes.append(ApplyOutcome(entry.provenance_ref, entry.key(), "failed", str(exc)))
                    continue
                report.outcomes.append(ApplyOutcome(entry.provenance_ref, entry.key(), "deactivated"))

        if undated:
            logger.info("Snapshot %s: %d lessons without date or time were not materialized", snapshot.snapshot_id, undated)
        logger.info(
            "Materialized snapshot %s: %d inserted, %d updated, %d deactivated, %d failed",
            snapshot.snapshot_id,
            report.inserted,
            report.updated,
            report.deactivated,
            report.failed,
        )
        return report

    def _apply_lesson(self, tx: Any, lesson: Lesson, on: date, snapshot_id: str) -> str:
        existing = self._repository.find_by_key(tx, lesson.group, on, lesson.start)
        if existing is None:
            self._repository.insert(
                tx,
                CurrentScheduleEntry(
                    entry_id=self._new_id(),
                    group=lesson.group,
                    date=on,
                    start=lesson.start,
                    end=lesson.end,
                    subject=lesson.subject,
                    teacher=lesson.teacher,
                    classroom=lesson.classroom,
                    provenance=Provenance.FROM_TIMETABLE,
                    provenance_ref=snapshot_id,
                ),
            )
            return "inserted"
        if existing.provenance is Provenance.FROM_CORRECTION:
            return "kept"
        self._repository.update(
            tx,
            replace(
                existing,
                end=lesson.end,
                subject=lesson.subject,
                teacher=lesson.teacher,
                classroom=lesson.classroom,
                provenance_ref=snapshot_id,
                is_active=True,
            ),
        )
        return "updated"


class ScheduleQueryService:
    def __init__(
        self, repository: CurrentScheduleRepository, change_log: ChangeLogRepository | None = None
    ) -> None:
        self._repository = repository
        self._change_log = change_log

    def schedule_for(self, group: str, on: date, include_inactive: bool = False) -> list[CurrentScheduleEntry]:
        entries = self._repository.list_entries(group=group, on=on, include_inactive=include_inactive)
        return sorted(entries, key=lambda entry: entry.start)

    def groups(self) -> list[str]:
        return sorted({entry.group for entry in self._repository.list_entries(include_inactive=True)})

    def changes_for(self, group: str, on: date) -> list[Change]:
        """Corrections journaled for ``group`` on ``on``, ordered by start time."""
        if self._change_log is None:
            return []
        return sorted(self._change_log.changes_for(group, on), key=lambda change: change.start)

    def correction_behind(self, entry: CurrentScheduleEntry) -> Change | None:
        if self._change_log is None or entry.provenance is not Provenance.FROM_CORRECTION:
            return None
        return self._change_log.get(entry.provenance_ref)

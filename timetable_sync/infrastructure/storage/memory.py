"""In-process storage for the current-schedule view, schedule snapshots and the change journal."""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Iterable, Iterator, Sequence

from timetable_sync.domain.errors import StorageError
from timetable_sync.domain.models import Change, CurrentScheduleEntry, ScheduleSnapshot

logger = logging.getLogger(__name__)

Key = tuple[str, date, str]


class InMemoryTransaction:
    """Staged copy of the table; becomes visible only when the owning block exits cleanly."""

    def __init__(self, rows: dict[Key, CurrentScheduleEntry]) -> None:
        self.rows = {key: replace(entry) for key, entry in rows.items()}


class InMemoryCurrentScheduleRepository:
    def __init__(self, entries: Iterable[CurrentScheduleEntry] = ()) -> None:
        self._lock = threading.RLock()
        self._rows: dict[Key, CurrentScheduleEntry] = {entry.key(): replace(entry) for entry in entries}

    @contextmanager
    def transaction(self) -> Iterator[InMemoryTransaction]:
        with self._lock:
            tx = InMemoryTransaction(self._rows)
            yield tx
            self._rows = tx.rows
            logger.debug("Committed transaction, %d rows in view", len(self._rows))

    def find_by_key(self, tx: InMemoryTransaction, group: str, on: date, start: str) -> CurrentScheduleEntry | None:
        entry = tx.rows.get((group, on, start))
        return replace(entry) if entry is not None else None

    def insert(self, tx: InMemoryTransaction, entry: CurrentScheduleEntry) -> None:
        if entry.key() in tx.rows:
            raise StorageError(f"duplicate key {entry.key()}")
        tx.rows[entry.key()] = replace(entry)

    def update(self, tx: InMemoryTransaction, entry: CurrentScheduleEntry) -> None:
        current = tx.rows.get(entry.key())
        if current is None:
            raise StorageError(f"no entry at {entry.key()}")
        if current.entry_id != entry.entry_id:
            raise StorageError(f"entry id mismatch at {entry.key()}")
        tx.rows[entry.key()] = replace(entry)

    def iter_entries(self, tx: InMemoryTransaction) -> Iterable[CurrentScheduleEntry]:
        return [replace(entry) for entry in tx.rows.values()]

    def list_entries(
        self, group: str | None = None, on: date | None = None, include_inactive: bool = False
    ) -> Sequence[CurrentScheduleEntry]:
        with self._lock:
            rows = list(self._rows.values())
        return [
            replace(entry)
            for entry in rows
            if (group is None or entry.group == group)
            and (on is None or entry.date == on)
            and (include_inactive or entry.is_active)
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)


class InMemorySnapshotRepository:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshots: dict[str, ScheduleSnapshot] = {}

    def save_snapshot(self, snapshot: ScheduleSnapshot) -> None:
        with self._lock:
            self._snapshots[snapshot.snapshot_id] = snapshot

    def get_active_snapshot(self) -> ScheduleSnapshot | None:
        with self._lock:
            active = [s for s in self._snapshots.values() if s.is_active]
        if not active:
            return None
        return max(active, key=lambda s: s.created_at)


class InMemoryChangeLog:
    """Applied corrections keyed by change id, in the order they were first recorded."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._changes: dict[str, Change] = {}

    def record(self, change: Change) -> bool:
        with self._lock:
            if change.change_id in self._changes:
                return False
            self._changes[change.change_id] = change
        logger.debug("Journaled change %s for %s", change.change_id, change.key())
        return True

    def get(self, change_id: str) -> Change | None:
        with self._lock:
            return self._changes.get(change_id)

    def changes_for(self, group: str, on: date) -> Sequence[Change]:
        with self._lock:
            changes = list(self._changes.values())
        return [change for change in changes if change.group == group and change.date == on]

    def __len__(self) -> int:
        with self._lock:
            return len(self._changes)

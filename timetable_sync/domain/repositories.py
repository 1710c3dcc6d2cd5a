"""Collaborator interfaces anchoring the domain layer."""
from __future__ import annotations

from datetime import date
from typing import Any, ContextManager, Iterable, Protocol, Sequence

from .models import Change, CurrentScheduleEntry, ScheduleSnapshot

Grid = list[list[str]]


class GridFetcher(Protocol):
    """Returns the raw text cells of one spreadsheet export."""

    def fetch_grid(self, source_url: str) -> Grid:
        ...


class CurrentScheduleRepository(Protocol):
    """Storage of the materialized view; writes happen inside a transaction handle."""

    def transaction(self) -> ContextManager[Any]:
        ...

    def find_by_key(self, tx: Any, group: str, on: date, start: str) -> CurrentScheduleEntry | None:
        ...

    def insert(self, tx: Any, entry: CurrentScheduleEntry) -> None:
        ...

    def update(self, tx: Any, entry: CurrentScheduleEntry) -> None:
        ...

    def iter_entries(self, tx: Any) -> Iterable[CurrentScheduleEntry]:
        ...

    def list_entries(
        self, group: str | None = None, on: date | None = None, include_inactive: bool = False
    ) -> Sequence[CurrentScheduleEntry]:
        ...


class SnapshotRepository(Protocol):
    def save_snapshot(self, snapshot: ScheduleSnapshot) -> None:
        ...

    def get_active_snapshot(self) -> ScheduleSnapshot | None:
        ...


class ChangeLogRepository(Protocol):
    """Journal of applied corrections, so a provenance reference can be resolved back to its Change."""

    def record(self, change: Change) -> bool:
        """Store ``change``; return False when its id is already journaled."""
        ...

    def get(self, change_id: str) -> Change | None:
        ...

    def changes_for(self, group: str, on: date) -> Sequence[Change]:
        ...


class NotificationSink(Protocol):
    """Best-effort delivery; callers log failures and carry on."""

    def notify_change(self, change: Change) -> None:
        ...

    def notify_new_timetable(self, snapshot: ScheduleSnapshot) -> None:
        ...

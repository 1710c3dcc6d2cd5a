"""Domain-level batch reports for parsing and merging."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Iterable, TypeVar

T = TypeVar("T")


class OutcomeStatus(str, Enum):
    ACCEPTED = "accepted"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class RowOutcome(Generic[T]):
    """What happened to one input row (or one group block of a timetable row)."""

    status: OutcomeStatus
    row_index: int
    value: T | None = None
    reason: str = ""
    group: str | None = None

    @classmethod
    def accepted(cls, row_index: int, value: T, group: str | None = None) -> "RowOutcome[T]":
        return cls(status=OutcomeStatus.ACCEPTED, row_index=row_index, value=value, group=group)

    @classmethod
    def skipped(cls, row_index: int, reason: str, group: str | None = None) -> "RowOutcome[T]":
        return cls(status=OutcomeStatus.SKIPPED, row_index=row_index, reason=reason, group=group)

    @property
    def is_accepted(self) -> bool:
        return self.status is OutcomeStatus.ACCEPTED


@dataclass
class ParseReport(Generic[T]):
    outcomes: list[RowOutcome[T]] = field(default_factory=list)

    def accept(self, row_index: int, value: T, group: str | None = None) -> None:
        self.outcomes.append(RowOutcome.accepted(row_index, value, group))

    def skip(self, row_index: int, reason: str, group: str | None = None) -> None:
        self.outcomes.append(RowOutcome.skipped(row_index, reason, group))

    @property
    def records(self) -> list[T]:
        return [o.value for o in self.outcomes if o.is_accepted and o.value is not None]

    @property
    def skipped(self) -> list[RowOutcome[T]]:
        return [o for o in self.outcomes if not o.is_accepted]

    def has_skips(self) -> bool:
        return any(not o.is_accepted for o in self.outcomes)

    def skip_reasons(self) -> list[str]:
        return [o.reason for o in self.skipped]


@dataclass(frozen=True)
class ApplyOutcome:
    change_id: str
    key: tuple
    action: str
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


@dataclass
class MergeReport:
    outcomes: list[ApplyOutcome] = field(default_factory=list)

    @property
    def applied(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    def count(self, action: str) -> int:
        return sum(1 for o in self.outcomes if o.ok and o.action == action)

    @property
    def inserted(self) -> int:
        return self.count("inserted")

    @property
    def updated(self) -> int:
        return self.count("updated")

    @property
    def deactivated(self) -> int:
        return self.count("deactivated")

    def iter_failures(self) -> Iterable[ApplyOutcome]:
        return (o for o in self.outcomes if not o.ok)

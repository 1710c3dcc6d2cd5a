"""Exception hierarchy shared by every layer of the sync pipeline."""
from __future__ import annotations

from typing import Sequence


class TimetableSyncError(Exception):
    """Base class for errors the orchestrator knows how to survive."""


class LayoutError(TimetableSyncError, ValueError):
    """A spreadsheet export does not have the structure the parser expects."""


class MissingColumnsError(LayoutError):
    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        super().__init__(f"missing required columns: {', '.join(self.missing)}")


class FetchError(TimetableSyncError):
    """Raw cells could not be obtained from the source."""


class StorageError(TimetableSyncError):
    """A single persistence operation failed."""


class CycleAborted(TimetableSyncError):
    """The running cycle hit its deadline or a stop was requested."""

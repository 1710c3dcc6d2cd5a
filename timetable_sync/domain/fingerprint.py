"""Content digest over a set of corrections."""
from __future__ import annotations

import hashlib
import threading
from dataclasses import dataclass
from typing import Iterable

from .models import Change


@dataclass(frozen=True)
class ChangeSetFingerprint:
    """Opaque digest; equal values mean the correction sets are operationally identical."""

    digest: str
    size: int

    def __str__(self) -> str:
        return self.digest


def fingerprint_changes(changes: Iterable[Change]) -> ChangeSetFingerprint:
    # Sorting the canonical lines makes the digest depend on the multiset, not the order.
    lines = sorted(change.canonical() for change in changes)
    hasher = hashlib.sha256()
    for line in lines:
        hasher.update(line.encode("utf-8"))
        hasher.update(b"\n")
    return ChangeSetFingerprint(digest=hasher.hexdigest(), size=len(lines))


class FingerprintGate:
    """Remembers the last committed fingerprint for one orchestrator."""

    def __init__(self, initial: ChangeSetFingerprint | None = None) -> None:
        self._lock = threading.Lock()
        self._last = initial

    @property
    def last(self) -> ChangeSetFingerprint | None:
        with self._lock:
            return self._last

    def is_new(self, fingerprint: ChangeSetFingerprint) -> bool:
        with self._lock:
            return self._last is None or self._last.digest != fingerprint.digest

    def record(self, fingerprint: ChangeSetFingerprint) -> None:
        with self._lock:
            self._last = fingerprint

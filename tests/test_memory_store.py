from datetime import date

import pytest

from timetable_sync.domain.errors import StorageError
from timetable_sync.domain.models import Change, ChangeKind, CurrentScheduleEntry, Provenance
from timetable_sync.infrastructure.storage.memory import InMemoryChangeLog, InMemoryCurrentScheduleRepository


def make_entry(entry_id="e1", start="08:15") -> CurrentScheduleEntry:
    return CurrentScheduleEntry(
        entry_id=entry_id,
        group="G1",
        date=date(2025, 6, 23),
        start=start,
        end="09:00",
        subject="Math",
        teacher="Smith",
        classroom="101",
        provenance=Provenance.FROM_TIMETABLE,
        provenance_ref="snap-1",
    )


def test_transaction_commits_on_clean_exit():
    repo = InMemoryCurrentScheduleRepository()

    with repo.transaction() as tx:
        repo.insert(tx, make_entry())
        assert len(repo) == 0

    assert len(repo) == 1


def test_transaction_rolls_back_on_error():
    repo = InMemoryCurrentScheduleRepository([make_entry()])

    with pytest.raises(RuntimeError):
        with repo.transaction() as tx:
            repo.insert(tx, make_entry("e2", start="09:00"))
            raise RuntimeError("boom")

    assert [e.entry_id for e in repo.list_entries()] == ["e1"]


def test_duplicate_key_and_missing_update_raise():
    repo = InMemoryCurrentScheduleRepository([make_entry()])

    with repo.transaction() as tx:
        with pytest.raises(StorageError):
            repo.insert(tx, make_entry("e2"))
        with pytest.raises(StorageError):
            repo.update(tx, make_entry("e3", start="10:40"))
        with pytest.raises(StorageError):
            repo.update(tx, make_entry("other-id"))


def test_returned_entries_are_copies():
    repo = InMemoryCurrentScheduleRepository([make_entry()])

    entry = repo.list_entries()[0]
    entry.subject = "Changed"

    assert repo.list_entries()[0].subject == "Math"


def test_change_log_keeps_first_copy_of_each_change():
    log = InMemoryChangeLog()
    change = Change(group="G1", date=date(2025, 6, 23), start="08:15", subject="Math", kind=ChangeKind.CANCELLATION)

    assert log.record(change)
    assert not log.record(change)
    assert len(log) == 1
    assert log.get(change.change_id) == change
    assert log.changes_for("G1", date(2025, 6, 23)) == [change]
    assert log.changes_for("G1", date(2025, 6, 24)) == []

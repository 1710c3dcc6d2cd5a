from datetime import date, datetime
from itertools import count

import pytest

from timetable_sync.domain.errors import StorageError
from timetable_sync.domain.models import Change, ChangeKind, Lesson, Provenance, ScheduleSnapshot
from timetable_sync.domain.services import MergeEngine, ScheduleQueryService
from timetable_sync.infrastructure.storage.memory import InMemoryCurrentScheduleRepository

DAY = date(2025, 6, 23)


def make_change(kind=ChangeKind.REPLACEMENT, subject="Physics", group="G1", start="08:15") -> Change:
    return Change(group=group, date=DAY, start=start, end="09:00", subject=subject, kind=kind, teacher="Jones", classroom="102")


def make_lesson(subject="Math", group="G1", number=1, start="08:15", end="09:00") -> Lesson:
    return Lesson(
        group=group,
        subject=subject,
        teacher="Smith",
        classroom="101",
        day_of_week="Понедельник",
        number=number,
        start=start,
        end=end,
        date=DAY,
    )


def make_snapshot(lessons, snapshot_id="snap-1") -> ScheduleSnapshot:
    return ScheduleSnapshot(
        snapshot_id=snapshot_id,
        name="Расписание с 23.06.2025",
        period_start=DAY,
        period_end=DAY,
        lessons=lessons,
        source_url="test",
        source_hash=snapshot_id,
        created_at=datetime(2025, 6, 21, 12, 0),
    )


@pytest.fixture
def repo() -> InMemoryCurrentScheduleRepository:
    return InMemoryCurrentScheduleRepository()


@pytest.fixture
def engine(repo) -> MergeEngine:
    ids = count(1)
    return MergeEngine(repo, id_factory=lambda: f"e{next(ids)}")


def test_insert_then_update_same_slot(engine, repo):
    first = engine.apply([make_change(subject="Physics")])
    second = engine.apply([make_change(subject="Chemistry")])

    assert first.inserted == 1
    assert second.updated == 1
    assert len(repo) == 1
    entry = repo.list_entries()[0]
    assert entry.subject == "Chemistry"
    assert entry.entry_id == "e1"
    assert entry.provenance is Provenance.FROM_CORRECTION
    assert entry.provenance_ref == make_change(subject="Chemistry").change_id


def test_applying_same_changes_twice_is_idempotent(engine, repo):
    changes = [make_change(), make_change(group="G2"), make_change(kind=ChangeKind.ADDITION, start="10:40")]

    engine.apply(changes)
    before = sorted((e.key(), e.subject, e.is_active, e.provenance_ref) for e in repo.list_entries(include_inactive=True))
    engine.apply(changes)
    after = sorted((e.key(), e.subject, e.is_active, e.provenance_ref) for e in repo.list_entries(include_inactive=True))

    assert before == after
    assert len(repo) == 3


def test_cancellation_deactivates_timetable_lesson(engine, repo):
    engine.materialize_snapshot(make_snapshot([make_lesson()]))

    report = engine.apply([make_change(kind=ChangeKind.CANCELLATION, subject="Math")])

    assert report.deactivated == 1
    query = ScheduleQueryService(repo)
    assert query.schedule_for("G1", DAY) == []
    assert [e.is_active for e in query.schedule_for("G1", DAY, include_inactive=True)] == [False]


def test_cancellation_can_be_kept_active(repo):
    engine = MergeEngine(repo, deactivate_on_cancel=False)

    engine.apply([make_change(kind=ChangeKind.CANCELLATION)])

    assert repo.list_entries()[0].is_active


def test_cancellation_of_unknown_slot_inserts_inactive(engine, repo):
    report = engine.apply([make_change(kind=ChangeKind.CANCELLATION)])

    assert report.inserted == 1
    assert repo.list_entries() == []
    assert len(repo.list_entries(include_inactive=True)) == 1


class FlakyRepository(InMemoryCurrentScheduleRepository):
    def insert(self, tx, entry):
        if entry.group == "BROKEN":
            raise StorageError("disk full")
        super().insert(tx, entry)


def test_storage_failure_does_not_stop_remaining_changes():
    repo = FlakyRepository()
    engine = MergeEngine(repo)

    report = engine.apply([make_change(group="G1"), make_change(group="BROKEN"), make_change(group="G2")])

    assert report.applied == 2
    assert report.failed == 1
    assert [failure.key[0] for failure in report.iter_failures()] == ["BROKEN"]
    assert {e.group for e in repo.list_entries()} == {"G1", "G2"}


def test_materialize_respects_corrections_and_retires_stale_lessons(engine, repo):
    engine.materialize_snapshot(make_snapshot([make_lesson(), make_lesson(subject="Art", number=2, start="09:00", end="09:45")]))
    engine.apply([make_change(subject="Physics")])

    report = engine.materialize_snapshot(
        make_snapshot([make_lesson(subject="Math v2"), make_lesson(subject="Music", number=3, start="09:55", end="10:40")], "snap-2")
    )

    assert report.count("kept") == 1
    assert report.inserted == 1
    assert report.deactivated == 1
    active = {e.start: e.subject for e in ScheduleQueryService(repo).schedule_for("G1", DAY)}
    assert active == {"08:15": "Physics", "09:55": "Music"}


def test_materialize_skips_lessons_without_date_or_time(engine, repo):
    undated = Lesson(group="G1", subject="Math", teacher="", classroom="", day_of_week="", number=1)

    report = engine.materialize_snapshot(make_snapshot([undated]))

    assert report.outcomes == []
    assert len(repo) == 0


def test_query_groups(engine, repo):
    engine.apply([make_change(group="G2"), make_change(group="G1")])

    assert ScheduleQueryService(repo).groups() == ["G1", "G2"]

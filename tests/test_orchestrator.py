from datetime import datetime

import pytest

from timetable_sync.application.orchestrator import CORRECTIONS_JOB, TIMETABLE_JOB, IngestionOrchestrator
from timetable_sync.config import Settings
from timetable_sync.domain.errors import CycleAborted, FetchError

SATURDAY = datetime(2025, 6, 28, 9, 0)
MONDAY = datetime(2025, 6, 23, 9, 0)


class FakeUseCase:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def execute(self, source_url, cycle=None):
        self.calls.append(source_url)
        if self.error is not None:
            raise self.error
        return "ok"


def make_orchestrator(now=SATURDAY, timetable=None, corrections=None):
    settings = Settings(timetable_url="tt", corrections_url="corr", timetable_weekday=5)
    return IngestionOrchestrator(
        settings,
        timetable or FakeUseCase(),
        corrections or FakeUseCase(),
        clock=lambda: now,
    )


def test_timetable_due_only_on_configured_weekday():
    orchestrator = make_orchestrator()

    assert orchestrator.timetable_due(SATURDAY)
    assert not orchestrator.timetable_due(MONDAY)


def test_timetable_runs_once_per_day():
    timetable = FakeUseCase()
    orchestrator = make_orchestrator(timetable=timetable)

    assert orchestrator.run_timetable_cycle() == "ok"
    assert orchestrator.run_timetable_cycle() is None
    assert timetable.calls == ["tt"]


def test_forced_timetable_run_ignores_weekday():
    timetable = FakeUseCase()
    orchestrator = make_orchestrator(now=MONDAY, timetable=timetable)

    assert orchestrator.run_timetable_cycle() is None
    assert orchestrator.run_timetable_cycle(force=True) == "ok"
    assert timetable.calls == ["tt"]


@pytest.mark.parametrize("error", [FetchError("offline"), CycleAborted("deadline")])
def test_cycle_errors_are_contained(error):
    timetable = FakeUseCase(error)
    orchestrator = make_orchestrator(timetable=timetable, corrections=FakeUseCase(error))

    assert orchestrator.run_corrections_cycle() is None
    assert orchestrator.run_timetable_cycle() is None
    # A failed run does not count as today's ingestion.
    assert orchestrator.timetable_due(SATURDAY)


def test_schedule_jobs_registers_all_jobs():
    orchestrator = make_orchestrator()

    orchestrator.schedule_jobs()

    ids = {job.id for job in orchestrator.scheduler.get_jobs()}
    assert ids == {TIMETABLE_JOB, f"{TIMETABLE_JOB}-startup", CORRECTIONS_JOB}
    assert not orchestrator.scheduler.running


def test_stop_prevents_new_cycles():
    corrections = FakeUseCase()
    orchestrator = make_orchestrator(corrections=corrections)

    orchestrator.stop()

    assert orchestrator.stopped
    assert orchestrator.wait(0)
    assert orchestrator.run_corrections_cycle() is None
    assert corrections.calls == []

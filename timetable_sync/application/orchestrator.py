"""Periodic driver for the two ingestion pipelines."""
from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timedelta
from typing import Callable, TypeVar

from apscheduler.schedulers.background import BackgroundScheduler

from timetable_sync.application.dto import CorrectionsIngestResult, CycleContext, TimetableIngestResult
from timetable_sync.application.use_cases import IngestCorrectionsUseCase, IngestTimetableUseCase
from timetable_sync.config import Settings
from timetable_sync.domain.errors import CycleAborted, TimetableSyncError

logger = logging.getLogger(__name__)

R = TypeVar("R")

TIMETABLE_JOB = "timetable"
CORRECTIONS_JOB = "corrections"


class IngestionOrchestrator:
    """Runs timetable and corrections cycles on independent APScheduler jobs.

    Both jobs fire once at start-up. The timetable job then wakes up every
    ``timetable_interval`` seconds but only ingests on ``timetable_weekday``,
    at most once per day. Jobs use ``max_instances=1`` so a slow cycle never
    overlaps the next one, and each cycle carries its own deadline.
    """

    def __init__(
        self,
        settings: Settings,
        timetable: IngestTimetableUseCase,
        corrections: IngestCorrectionsUseCase,
        scheduler: BackgroundScheduler | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings
        self._timetable = timetable
        self._corrections = corrections
        self._scheduler = scheduler or BackgroundScheduler()
        self._clock = clock
        self._stop = threading.Event()
        self._last_timetable_day: date | None = None

    @property
    def scheduler(self) -> BackgroundScheduler:
        return self._scheduler

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def timetable_due(self, now: datetime) -> bool:
        if now.weekday() != self._settings.timetable_weekday:
            return False
        return self._last_timetable_day != now.date()

    def run_timetable_cycle(self, force: bool = False) -> TimetableIngestResult | None:
        now = self._clock()
        if not force and not self.timetable_due(now):
            logger.debug("Timetable ingestion not due at %s", now.isoformat(timespec="minutes"))
            return None
        result = self._guarded(
            TIMETABLE_JOB, lambda cycle: self._timetable.execute(self._settings.timetable_url, cycle)
        )
        if result is not None:
            self._last_timetable_day = now.date()
        return result

    def run_corrections_cycle(self) -> CorrectionsIngestResult | None:
        return self._guarded(
            CORRECTIONS_JOB, lambda cycle: self._corrections.execute(self._settings.corrections_url, cycle)
        )

    def _guarded(self, name: str, work: Callable[[CycleContext], R]) -> R | None:
        if self._stop.is_set():
            logger.info("Stop requested, %s cycle not started", name)
            return None
        cycle = CycleContext.start(name, self._settings.cycle_timeout, self._stop)
        logger.info("Starting %s cycle", name)
        try:
            return work(cycle)
        except CycleAborted as exc:
            logger.warning("%s", exc)
        except TimetableSyncError as exc:
            logger.error("%s cycle failed: %s", name, exc)
        return None

    def schedule_jobs(self) -> None:
        now = self._clock()
        self._scheduler.add_job(
            self.run_timetable_cycle,
            trigger="date",
            run_date=now,
            kwargs={"force": True},
            id=f"{TIMETABLE_JOB}-startup",
            misfire_grace_time=None,
        )
        self._scheduler.add_job(
            self.run_timetable_cycle,
            trigger="interval",
            seconds=self._settings.timetable_interval,
            next_run_time=now + timedelta(seconds=self._settings.timetable_interval),
            id=TIMETABLE_JOB,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.add_job(
            self.run_corrections_cycle,
            trigger="interval",
            seconds=self._settings.corrections_interval,
            next_run_time=now,
            id=CORRECTIONS_JOB,
            max_instances=1,
            coalesce=True,
        )

    def start(self) -> None:
        self.schedule_jobs()
        self._scheduler.start()
        logger.info(
            "Ingestion started: timetable check every %ss (weekday %d), corrections every %ss",
            self._settings.timetable_interval,
            self._settings.timetable_weekday,
            self._settings.corrections_interval,
        )

    def stop(self, wait: bool = True) -> None:
        """Stop spawning cycles; in-flight cycles finish or abort at their next checkpoint."""
        self._stop.set()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        logger.info("Ingestion stopped")

    def wait(self, timeout: float | None = None) -> bool:
        return self._stop.wait(timeout)

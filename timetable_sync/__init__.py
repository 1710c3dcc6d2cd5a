"""Timetable ingestion, change detection and merge pipeline."""
from timetable_sync.application.orchestrator import IngestionOrchestrator
from timetable_sync.application.use_cases import IngestCorrectionsUseCase, IngestTimetableUseCase
from timetable_sync.domain.fingerprint import fingerprint_changes
from timetable_sync.domain.services import MergeEngine
from timetable_sync.infrastructure.parsing.corrections import CorrectionParser
from timetable_sync.infrastructure.parsing.timetable import TimetableParser

__all__ = [
    "IngestionOrchestrator",
    "IngestCorrectionsUseCase",
    "IngestTimetableUseCase",
    "MergeEngine",
    "CorrectionParser",
    "TimetableParser",
    "fingerprint_changes",
]

"""Command-line entrypoint for timetable ingestion."""
from __future__ import annotations

import argparse
import sys
from datetime import date
from typing import Sequence

from timetable_sync.application.dto import CycleContext
from timetable_sync.application.orchestrator import IngestionOrchestrator
from timetable_sync.application.use_cases import (
    CorrectionsIngestContext,
    IngestCorrectionsUseCase,
    IngestTimetableUseCase,
    TimetableIngestContext,
)
from timetable_sync.config import Settings, load_settings
from timetable_sync.domain.errors import TimetableSyncError
from timetable_sync.domain.fingerprint import fingerprint_changes
from timetable_sync.domain.repositories import GridFetcher
from timetable_sync.domain.services import MergeEngine, ScheduleQueryService
from timetable_sync.infrastructure.archive.file_repository import FileSystemSnapshotRepository
from timetable_sync.infrastructure.fetching.gsheet import GoogleSheetFetcher
from timetable_sync.infrastructure.fetching.router import SourceRouter
from timetable_sync.infrastructure.fetching.workbook import WorkbookGridFetcher
from timetable_sync.infrastructure.notifications.log_sink import LoggingNotificationSink, format_change_message
from timetable_sync.infrastructure.parsing.corrections import CorrectionParser, UnknownKindPolicy
from timetable_sync.infrastructure.parsing.timetable import TimetableParser
from timetable_sync.infrastructure.storage.memory import (
    InMemoryChangeLog,
    InMemoryCurrentScheduleRepository,
    InMemorySnapshotRepository,
)
from timetable_sync.log_config import setup_logging
from timetable_sync.presentation.schedule_report import entries_to_rows, render_csv, render_text, skips_to_rows


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="timetable-sync", description="Ingest timetable and correction exports")
    parser.add_argument("--log-level", type=str, default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    p_timetable = sub.add_parser("parse-timetable", help="Parse a wide-format timetable export")
    p_timetable.add_argument("source", type=str, help="Path to .xlsx/.xls/.csv export")
    p_timetable.add_argument("--sheet", type=str, default=None, help="Preferred sheet name")

    p_corrections = sub.add_parser("parse-corrections", help="Parse a corrections table export")
    p_corrections.add_argument("source", type=str, help="Path to .xlsx/.xls/.csv export")
    p_corrections.add_argument("--lenient", action="store_true", help="Treat unknown change kinds as replacements")

    p_fingerprint = sub.add_parser("fingerprint", help="Print the fingerprint of a corrections export")
    p_fingerprint.add_argument("source", type=str, help="Path to .xlsx/.xls/.csv export")

    p_apply = sub.add_parser("apply", help="Merge a timetable and its corrections and print one group's day")
    p_apply.add_argument("timetable", type=str, help="Path to the timetable export")
    p_apply.add_argument("corrections", type=str, help="Path to the corrections export")
    p_apply.add_argument("--group", type=str, required=True, help="Group name, e.g. 'АТ 22-11'")
    p_apply.add_argument("--date", type=date.fromisoformat, required=True, help="Date (YYYY-MM-DD)")
    p_apply.add_argument("--csv", action="store_true", help="Print CSV instead of text")

    sub.add_parser("run", help="Run the periodic ingestion service")
    return parser.parse_args(argv)


def _cmd_parse_timetable(args: argparse.Namespace) -> int:
    grid = WorkbookGridFetcher(args.sheet).fetch_grid(args.source)
    report = TimetableParser().parse(grid)
    for lesson in report.records:
        when = lesson.date.isoformat() if lesson.date else lesson.day_of_week
        print(f"{lesson.group} | {when} | {lesson.start}-{lesson.end} | {lesson.subject} | {lesson.teacher} | {lesson.classroom}")
    print(f"\nLessons: {len(report.records)}  Skipped: {len(report.skipped)}")
    _print_skips(report.skipped)
    return 0


def _cmd_parse_corrections(args: argparse.Namespace) -> int:
    policy = UnknownKindPolicy.AS_REPLACEMENT if args.lenient else UnknownKindPolicy.DROP
    grid = WorkbookGridFetcher().fetch_grid(args.source)
    report = CorrectionParser(policy).parse(grid)
    for change in report.records:
        print(f"{change.group} | {change.date.isoformat()} {change.start} | {change.kind.value} | {change.subject}")
    print(f"\nChanges: {len(report.records)}  Skipped: {len(report.skipped)}")
    _print_skips(report.skipped)
    return 0


def _cmd_fingerprint(args: argparse.Namespace) -> int:
    grid = WorkbookGridFetcher().fetch_grid(args.source)
    fingerprint = fingerprint_changes(CorrectionParser().parse(grid).records)
    print(f"{fingerprint.digest}  ({fingerprint.size} changes)")
    return 0


def _cmd_apply(args: argparse.Namespace, settings: Settings) -> int:
    on = args.date
    fetcher = WorkbookGridFetcher()
    store = InMemoryCurrentScheduleRepository()
    change_log = InMemoryChangeLog()
    engine = MergeEngine(store, deactivate_on_cancel=settings.deactivate_on_cancel)
    notifier = LoggingNotificationSink()

    IngestTimetableUseCase(
        TimetableIngestContext(
            fetcher=fetcher,
            snapshot_repository=InMemorySnapshotRepository(),
            merge_engine=engine,
            notifier=notifier,
        )
    ).execute(args.timetable, CycleContext.unbounded())
    result = IngestCorrectionsUseCase(
        CorrectionsIngestContext(
            fetcher=fetcher,
            merge_engine=engine,
            notifier=notifier,
            parser=CorrectionParser(settings.unknown_kind_policy),
            change_log=change_log,
        )
    ).execute(args.corrections, CycleContext.unbounded())

    query = ScheduleQueryService(store, change_log)
    entries = query.schedule_for(args.group, on, include_inactive=True)
    if args.csv:
        sys.stdout.write(render_csv(entries_to_rows(entries)).decode("utf-8"))
    else:
        print(f"{args.group}, {on.strftime('%d.%m.%Y')}")
        print(render_text(entries))
        changes = query.changes_for(args.group, on)
        if changes:
            print("\nCorrections:")
            for change in changes:
                title, body = format_change_message(change)
                print(f"- {title}: {body}")
    if result.merge is not None and result.merge.failed:
        print(f"\n{result.merge.failed} corrections could not be applied")
    return 0


def build_orchestrator(settings: Settings, fetcher: GridFetcher | None = None) -> IngestionOrchestrator:
    fetcher = fetcher or SourceRouter(GoogleSheetFetcher(timeout=settings.http_timeout), WorkbookGridFetcher())
    engine = MergeEngine(InMemoryCurrentScheduleRepository(), deactivate_on_cancel=settings.deactivate_on_cancel)
    notifier = LoggingNotificationSink()
    snapshots = FileSystemSnapshotRepository(settings.snapshot_dir)
    active = snapshots.get_active_snapshot()
    if active is not None:
        # The view lives in memory; rebuild it from the archived snapshot.
        engine.materialize_snapshot(active)
    timetable = IngestTimetableUseCase(
        TimetableIngestContext(
            fetcher=fetcher,
            snapshot_repository=snapshots,
            merge_engine=engine,
            notifier=notifier,
        )
    )
    corrections = IngestCorrectionsUseCase(
        CorrectionsIngestContext(
            fetcher=fetcher,
            merge_engine=engine,
            notifier=notifier,
            parser=CorrectionParser(settings.unknown_kind_policy),
        )
    )
    return IngestionOrchestrator(settings, timetable, corrections)


def _cmd_run(settings: Settings) -> int:
    if not settings.timetable_url or not settings.corrections_url:
        print("TIMETABLE_URL and CORRECTIONS_URL must be set.")
        return 1
    orchestrator = build_orchestrator(settings)
    orchestrator.start()
    try:
        while not orchestrator.wait(1.0):
            pass
    except KeyboardInterrupt:
        print("Stopping...")
    finally:
        orchestrator.stop()
    return 0


def _print_skips(skipped: Sequence) -> None:
    for row in skips_to_rows(skipped):
        group = f" [{row['group']}]" if row["group"] else ""
        print(f"- row {row['row']}{group}: {row['reason']}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    settings = load_settings()
    setup_logging(args.log_level or settings.log_level, settings.log_file)

    try:
        if args.command == "parse-timetable":
            return _cmd_parse_timetable(args)
        if args.command == "parse-corrections":
            return _cmd_parse_corrections(args)
        if args.command == "fingerprint":
            return _cmd_fingerprint(args)
        if args.command == "apply":
            return _cmd_apply(args, settings)
        if args.command == "run":
            return _cmd_run(settings)
    except TimetableSyncError as exc:
        print(f"Error: {exc}")
        return 1
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

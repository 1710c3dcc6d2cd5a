"""Corrections-table parser producing canonical Change records.

Column names drift between revisions of the source sheet, so header cells are
matched by substring against a rule table instead of by equality.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Mapping, Sequence

from timetable_sync.domain.errors import LayoutError, MissingColumnsError
from timetable_sync.domain.models import Change, ChangeKind
from timetable_sync.domain.results import ParseReport
from timetable_sync.infrastructure.parsing.utils import DATE_FORMATS, cell, normalize_time, parse_date

logger = logging.getLogger(__name__)


class ColumnRole(str, Enum):
    GROUP = "group"
    DATE = "date"
    TIME_START = "time_start"
    TIME_END = "time_end"
    ORIGINAL_SUBJECT = "original_subject"
    SUBJECT = "subject"
    TEACHER = "teacher"
    CLASSROOM = "classroom"
    CHANGE_KIND = "change_kind"


# Order matters: a column claimed by an earlier role is not offered to later
# ones, so "Оригинальный предмет" is taken before "Предмет" can match it.
COLUMN_RULES: tuple[tuple[ColumnRole, tuple[str, ...]], ...] = (
    (ColumnRole.ORIGINAL_SUBJECT, ("оригинал", "исходн", "вместо", "original")),
    (ColumnRole.CHANGE_KIND, ("тип", "вид изменен", "kind", "type")),
    (ColumnRole.GROUP, ("групп", "group")),
    (ColumnRole.DATE, ("дата", "date")),
    (ColumnRole.TIME_START, ("начал", "время с", "start", "from")),
    (ColumnRole.TIME_END, ("оконч", "конец", "время по", "end", "until")),
    (ColumnRole.SUBJECT, ("предмет", "дисциплин", "subject")),
    (ColumnRole.TEACHER, ("преподав", "учител", "teacher")),
    (ColumnRole.CLASSROOM, ("аудит", "кабинет", "ауд", "room")),
)

REQUIRED_ROLES = (ColumnRole.GROUP, ColumnRole.DATE, ColumnRole.TIME_START, ColumnRole.SUBJECT)

CHANGE_KIND_VOCABULARY: Mapping[str, ChangeKind] = {
    "замена": ChangeKind.REPLACEMENT,
    "замещение": ChangeKind.REPLACEMENT,
    "перенос": ChangeKind.REPLACEMENT,
    "replacement": ChangeKind.REPLACEMENT,
    "replace": ChangeKind.REPLACEMENT,
    "substitution": ChangeKind.REPLACEMENT,
    "отмена": ChangeKind.CANCELLATION,
    "отменено": ChangeKind.CANCELLATION,
    "отменена": ChangeKind.CANCELLATION,
    "cancellation": ChangeKind.CANCELLATION,
    "cancelled": ChangeKind.CANCELLATION,
    "canceled": ChangeKind.CANCELLATION,
    "cancel": ChangeKind.CANCELLATION,
    "добавление": ChangeKind.ADDITION,
    "добавлено": ChangeKind.ADDITION,
    "дополнительно": ChangeKind.ADDITION,
    "addition": ChangeKind.ADDITION,
    "added": ChangeKind.ADDITION,
    "add": ChangeKind.ADDITION,
    "extra": ChangeKind.ADDITION,
}


class UnknownKindPolicy(str, Enum):
    DROP = "drop"
    AS_REPLACEMENT = "as_replacement"


def resolve_columns(header: Sequence[str]) -> dict[ColumnRole, int]:
    """Map each semantic role to the first unclaimed header column that mentions it."""
    names = [cell(header, i).lower() for i in range(len(header))]
    claimed: set[int] = set()
    columns: dict[ColumnRole, int] = {}
    for role, needles in COLUMN_RULES:
        for index, name in enumerate(names):
            if index in claimed or not name:
                continue
            if any(needle in name for needle in needles):
                columns[role] = index
                claimed.add(index)
                break
    missing = [role.value for role in REQUIRED_ROLES if role not in columns]
    if missing:
        raise MissingColumnsError(missing)
    return columns


def map_change_kind(text: str) -> ChangeKind | None:
    return CHANGE_KIND_VOCABULARY.get(" ".join(text.lower().split()))


class CorrectionParser:
    def __init__(self, unknown_kind: UnknownKindPolicy = UnknownKindPolicy.DROP) -> None:
        self._unknown_kind = unknown_kind

    def parse(self, grid: Sequence[Sequence[str]]) -> ParseReport[Change]:
        if not grid:
            raise LayoutError("corrections table is empty")
        columns = resolve_columns(grid[0])
        widest = max(columns.values())
        if ColumnRole.CHANGE_KIND not in columns:
            logger.warning("No change-kind column in corrections header; treating every row as a replacement")

        report: ParseReport[Change] = ParseReport()
        for row_index in range(1, len(grid)):
            row = grid[row_index]
            if len(row) <= widest:
                logger.warning("Row %d: %d cells do not reach column %d; skipped", row_index, len(row), widest)
                report.skip(row_index, f"short row: {len(row)} cells, need {widest + 1}")
                continue
            self._parse_row(row_index, row, columns, report)

        logger.info("Parsed %d changes (%d rows skipped)", len(report.records), len(report.skipped))
        return report

    def _parse_row(
        self,
        row_index: int,
        row: Sequence[str],
        columns: Mapping[ColumnRole, int],
        report: ParseReport[Change],
    ) -> None:
        def value(role: ColumnRole) -> str:
            index = columns.get(role)
            return cell(row, index) if index is not None else ""

        group = value(ColumnRole.GROUP)
        subject = value(ColumnRole.SUBJECT)
        if not group or not subject:
            logger.warning("Row %d: empty group or subject; skipped", row_index)
            report.skip(row_index, "empty group or subject")
            return

        raw_date = value(ColumnRole.DATE)
        change_date = parse_date(raw_date, DATE_FORMATS)
        if change_date is None:
            logger.warning("Row %d: date %r matches none of %s; skipped", row_index, raw_date, DATE_FORMATS)
            report.skip(row_index, f"unparseable date: {raw_date!r}")
            return

        kind = self._change_kind(row_index, value(ColumnRole.CHANGE_KIND), ColumnRole.CHANGE_KIND in columns)
        if kind is None:
            report.skip(row_index, f"unknown change kind: {value(ColumnRole.CHANGE_KIND)!r}")
            return

        report.accept(
            row_index,
            Change(
                group=group,
                date=change_date,
                start=self._time(row_index, value(ColumnRole.TIME_START)),
                end=self._time(row_index, value(ColumnRole.TIME_END)),
                subject=subject,
                teacher=value(ColumnRole.TEACHER),
                classroom=value(ColumnRole.CLASSROOM),
                kind=kind,
                original_subject=value(ColumnRole.ORIGINAL_SUBJECT) if kind is ChangeKind.REPLACEMENT else "",
            ),
            group=group,
        )

    def _change_kind(self, row_index: int, text: str, column_present: bool) -> ChangeKind | None:
        if not column_present:
            return ChangeKind.REPLACEMENT
        kind = map_change_kind(text)
        if kind is not None:
            return kind
        if self._unknown_kind is UnknownKindPolicy.AS_REPLACEMENT:
            logger.warning("Row %d: unknown change kind %r, defaulting to replacement", row_index, text)
            return ChangeKind.REPLACEMENT
        logger.warning("Row %d: unknown change kind %r; skipped", row_index, text)
        return None

    @staticmethod
    def _time(row_index: int, text: str) -> str:
        if not text:
            return ""
        normalized = normalize_time(text)
        if normalized is None:
            logger.warning("Row %d: time %r is not HH:MM, kept as is", row_index, text)
            return text
        return normalized


def parse_corrections(
    grid: Sequence[Sequence[str]], unknown_kind: UnknownKindPolicy = UnknownKindPolicy.DROP
) -> ParseReport[Change]:
    return CorrectionParser(unknown_kind).parse(grid)

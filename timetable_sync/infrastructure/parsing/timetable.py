"""Wide-format weekly timetable parser producing canonical Lesson records.

Layout of the export (0-based rows):

    0   metadata
    1   "Группы - ...", then one group name per column from column 1
    2-3 spacer
    4   per-group header: subject, lesson type, teacher, room
    5+  "День - <weekday>, <DD.MM.YYYY>" markers interleaved with lesson rows
        (lesson ordinal, then 4 cells per group)
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from timetable_sync.domain.bells import canonical_weekday, lesson_times, weekday_name
from timetable_sync.domain.errors import LayoutError
from timetable_sync.domain.models import Lesson
from timetable_sync.domain.results import ParseReport
from timetable_sync.infrastructure.parsing.utils import cell, clean_cell, parse_date, parse_ordinal

logger = logging.getLogger(__name__)

COLUMNS_PER_GROUP = 4
SUBJECT_SLOT = 0
TEACHER_SLOT = 2
ROOM_SLOT = 3

GROUPS_ROW = 1
HEADER_ROW = 4
FIRST_BODY_ROW = 5
MIN_ROWS = 5

MARKER_DATE_FORMAT = "%d.%m.%Y"

_DAY_MARKER_RE = re.compile(r"день\s*[-–—]\s*(?P<rest>.*)$", re.IGNORECASE)


@dataclass(frozen=True)
class DayMarker:
    weekday: str | None
    date: date | None


def parse_day_marker(text: str) -> DayMarker | None:
    """Return the marker carried by ``text`` or None when the row is not a day marker."""
    match = _DAY_MARKER_RE.search(clean_cell(text))
    if match is None:
        return None
    weekday_text, _, date_text = match.group("rest").partition(",")
    marker_date = parse_date(date_text, (MARKER_DATE_FORMAT,))
    if date_text.strip() and marker_date is None:
        logger.warning("Unparseable date %r in day marker %r", date_text.strip(), text)
    weekday = canonical_weekday(weekday_text) if weekday_text.strip() else None
    if weekday is None and marker_date is not None:
        weekday = weekday_name(marker_date.weekday())
    return DayMarker(weekday=weekday, date=marker_date)


def _is_blank(row: Sequence[str]) -> bool:
    return all(not clean_cell(value) for value in row)


class TimetableParser:
    def parse(self, grid: Sequence[Sequence[str]]) -> ParseReport[Lesson]:
        groups = self._read_groups(grid)
        min_width = 1 + COLUMNS_PER_GROUP * len(groups)
        report: ParseReport[Lesson] = ParseReport()

        weekday: str | None = None
        current_date: date | None = None
        for row_index in range(FIRST_BODY_ROW, len(grid)):
            row = grid[row_index]
            if _is_blank(row):
                continue

            marker = parse_day_marker(cell(row, 0))
            if marker is not None:
                weekday, current_date = marker.weekday, marker.date
                if weekday is None:
                    logger.warning("Row %d: day marker without a weekday, times will be unresolved", row_index)
                continue

            if len(row) < min_width:
                logger.warning("Row %d: %d cells, expected at least %d; skipped", row_index, len(row), min_width)
                report.skip(row_index, f"short row: {len(row)} < {min_width} cells")
                continue

            number = parse_ordinal(cell(row, 0))
            if number is None:
                logger.warning("Row %d: lesson ordinal %r is not a positive integer; skipped", row_index, cell(row, 0))
                report.skip(row_index, f"bad lesson ordinal: {cell(row, 0)!r}")
                continue

            start, end = self._resolve_times(row_index, weekday, number)
            for group_index, group in enumerate(groups):
                block = 1 + group_index * COLUMNS_PER_GROUP
                subject = cell(row, block + SUBJECT_SLOT)
                if not subject:
                    continue
                report.accept(
                    row_index,
                    Lesson(
                        group=group,
                        subject=subject,
                        teacher=cell(row, block + TEACHER_SLOT),
                        classroom=cell(row, block + ROOM_SLOT),
                        day_of_week=weekday or "",
                        number=number,
                        start=start,
                        end=end,
                        date=current_date,
                    ),
                    group=group,
                )

        logger.info("Parsed %d lessons for %d groups (%d skips)", len(report.records), len(groups), len(report.skipped))
        return report

    @staticmethod
    def _read_groups(grid: Sequence[Sequence[str]]) -> list[str]:
        if len(grid) < MIN_ROWS:
            raise LayoutError(f"malformed layout: expected at least {MIN_ROWS} rows, got {len(grid)}")
        groups = [name for name in (clean_cell(value) for value in grid[GROUPS_ROW][1:]) if name]
        if not groups:
            raise LayoutError(f"malformed layout: no group names in row {GROUPS_ROW}")
        header_width = len(grid[HEADER_ROW])
        if header_width < COLUMNS_PER_GROUP * len(groups):
            raise LayoutError(
                f"malformed layout: header row has {header_width} columns, "
                f"expected at least {COLUMNS_PER_GROUP * len(groups)} for {len(groups)} groups"
            )
        return groups

    @staticmethod
    def _resolve_times(row_index: int, weekday: str | None, number: int) -> tuple[str, str]:
        if weekday is None:
            logger.warning("Row %d: weekday unknown, lesson %d left without time", row_index, number)
            return "", ""
        times = lesson_times(weekday, number)
        if times is None:
            logger.warning("Row %d: no bell time for lesson %d on %s", row_index, number, weekday)
            return "", ""
        return times


def parse_timetable(grid: Sequence[Sequence[str]]) -> ParseReport[Lesson]:
    return TimetableParser().parse(grid)

"""Bell schedule: lesson ordinal -> (start, end) for each weekday."""
from __future__ import annotations

from typing import Mapping

BellTable = Mapping[int, tuple[str, str]]

WEEKDAY_BELLS: BellTable = {
    1: ("08:15", "09:00"),
    2: ("09:00", "09:45"),
    3: ("09:55", "10:40"),
    4: ("10:40", "11:25"),
    5: ("11:40", "12:25"),
    6: ("12:25", "13:10"),
    7: ("13:30", "14:15"),
    8: ("14:15", "15:00"),
    9: ("15:15", "16:00"),
    10: ("16:00", "16:45"),
    11: ("16:55", "17:40"),
    12: ("17:40", "18:25"),
}

SATURDAY_BELLS: BellTable = {
    1: ("08:15", "09:00"),
    2: ("09:00", "09:45"),
    3: ("09:50", "10:35"),
    4: ("10:35", "11:20"),
    5: ("11:35", "12:20"),
    6: ("12:20", "13:05"),
    7: ("13:20", "14:05"),
    8: ("14:05", "14:50"),
    9: ("15:05", "15:50"),
    10: ("15:50", "16:35"),
    11: ("16:40", "17:25"),
    12: ("17:25", "18:10"),
}

# Index matches date.weekday().
WEEKDAY_NAMES = ("Понедельник", "Вторник", "Среда", "Четверг", "Пятница", "Суббота", "Воскресенье")

_TABLES: Mapping[str, BellTable] = {
    **{name.lower(): WEEKDAY_BELLS for name in WEEKDAY_NAMES[:5]},
    WEEKDAY_NAMES[5].lower(): SATURDAY_BELLS,
}


def normalize_weekday(name: str) -> str:
    return name.strip().lower().replace("ё", "е")


def canonical_weekday(name: str) -> str | None:
    wanted = normalize_weekday(name)
    for candidate in WEEKDAY_NAMES:
        if normalize_weekday(candidate) == wanted:
            return candidate
    return None


def lesson_times(weekday: str, number: int) -> tuple[str, str] | None:
    """Return the bell pair for ``number`` on ``weekday`` or None when not found.

    Callers treat None as an unresolved time and carry on with empty strings.
    """
    table = _TABLES.get(normalize_weekday(weekday))
    if table is None:
        return None
    return table.get(number)


def weekday_name(day_index: int) -> str:
    return WEEKDAY_NAMES[day_index]

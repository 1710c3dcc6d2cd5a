from datetime import date

import pytest

from timetable_sync.domain.errors import LayoutError
from timetable_sync.infrastructure.parsing.timetable import TimetableParser, parse_day_marker


def make_grid(groups, body):
    width = 1 + 4 * len(groups)
    pad = lambda row: list(row) + [""] * (width - len(row))
    header = [""]
    for _ in groups:
        header += ["Предмет", "Вид", "Преподаватель", "Ауд."]
    return [
        pad(["Расписание занятий"]),
        pad(["Группы - "] + list(groups)),
        pad([]),
        pad([]),
        header,
    ] + [pad(row) for row in body]


def test_single_lesson_gets_bell_times():
    grid = make_grid(
        ["G1"],
        [
            ["День - Понедельник, 23.06.2025"],
            ["1", "Math", "Лекция", "Smith", "101"],
        ],
    )

    report = TimetableParser().parse(grid)

    assert len(report.records) == 1
    lesson = report.records[0]
    assert lesson.group == "G1"
    assert lesson.subject == "Math"
    assert lesson.teacher == "Smith"
    assert lesson.classroom == "101"
    assert (lesson.start, lesson.end) == ("08:15", "09:00")
    assert lesson.date == date(2025, 6, 23)
    assert lesson.day_of_week == "Понедельник"
    assert not report.has_skips()


def test_lesson_count_matches_non_empty_subjects():
    grid = make_grid(
        ["G1", "G2"],
        [
            ["День - Суббота, 28.06.2025"],
            ["1", "Math", "", "Smith", "101", "", "", "", ""],
            ["2", "Physics", "", "Ivanov", "202", "History", "", "Petrov", "303"],
            [],
            ["3", "", "", "", "", "Chemistry", "", "Sidorov", "404"],
        ],
    )

    report = TimetableParser().parse(grid)

    assert len(report.records) == 4
    chemistry = [lesson for lesson in report.records if lesson.subject == "Chemistry"][0]
    assert chemistry.group == "G2"
    assert (chemistry.start, chemistry.end) == ("09:50", "10:35")


def test_short_row_is_skipped_without_aborting():
    grid = make_grid(["G1", "G2"], [["День - Вторник, 24.06.2025"]])
    grid.append(["1", "Math", "", "Smith"])
    grid.append(["2", "Art", "", "Lee", "105", "", "", "", ""])

    report = TimetableParser().parse(grid)

    assert [lesson.subject for lesson in report.records] == ["Art"]
    assert len(report.skipped) == 1
    assert report.skipped[0].reason.startswith("short row")


def test_bad_ordinal_is_reported():
    grid = make_grid(["G1"], [["День - Среда, 25.06.2025"], ["x", "Math", "", "Smith", "101"]])

    report = TimetableParser().parse(grid)

    assert report.records == []
    assert "ordinal" in report.skip_reasons()[0]


def test_lessons_before_first_marker_have_no_time():
    grid = make_grid(["G1"], [["1", "Math", "", "Smith", "101"]])

    report = TimetableParser().parse(grid)

    lesson = report.records[0]
    assert lesson.start == "" and lesson.end == ""
    assert lesson.date is None
    assert not lesson.has_time


def test_too_few_rows_is_a_layout_error():
    with pytest.raises(LayoutError):
        TimetableParser().parse([["a"], ["Группы", "G1"]])


def test_missing_group_names_is_a_layout_error():
    grid = make_grid(["G1"], [])
    grid[1] = ["Группы - ", "", "", "", ""]
    with pytest.raises(LayoutError):
        TimetableParser().parse(grid)


def test_narrow_header_is_a_layout_error():
    grid = make_grid(["G1", "G2"], [])
    grid[4] = ["", "Предмет", "Вид"]
    with pytest.raises(LayoutError):
        TimetableParser().parse(grid)


def test_day_marker_variants():
    marker = parse_day_marker("День – пятница, 27.06.2025")
    assert marker.weekday == "Пятница"
    assert marker.date == date(2025, 6, 27)

    derived = parse_day_marker("День - , 28.06.2025")
    assert derived.weekday == "Суббота"

    assert parse_day_marker("1") is None


def test_ordinal_outside_bell_table_leaves_time_empty():
    grid = make_grid(["G1"], [["День - Понедельник, 23.06.2025"], ["13", "Math", "", "Smith", "101"]])

    report = TimetableParser().parse(grid)

    assert (report.records[0].start, report.records[0].end) == ("", "")
    assert not report.has_skips()


def test_bad_marker_date_still_sets_weekday():
    grid = make_grid(["G1"], [["День - Суббота, 31.02.2025"], ["1", "Math", "", "Smith", "101"]])

    lesson = TimetableParser().parse(grid).records[0]

    assert lesson.date is None
    assert (lesson.start, lesson.end) == ("08:15", "09:00")

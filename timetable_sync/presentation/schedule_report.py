"""Renderers for the current-schedule view and parser skip reports."""
from __future__ import annotations

import csv
import io
from typing import Sequence

from timetable_sync.domain.models import CurrentScheduleEntry
from timetable_sync.domain.results import RowOutcome


def entries_to_rows(entries: Sequence[CurrentScheduleEntry]) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for entry in entries:
        rows.append(
            {
                "group": entry.group,
                "date": entry.date.isoformat(),
                "start": entry.start,
                "end": entry.end,
                "subject": entry.subject,
                "teacher": entry.teacher,
                "classroom": entry.classroom,
                "source": entry.provenance.value,
                "source_ref": entry.provenance_ref,
                "active": "yes" if entry.is_active else "no",
            }
        )
    return rows


def skips_to_rows(skipped: Sequence[RowOutcome]) -> list[dict[str, str]]:
    return [
        {"row": str(outcome.row_index), "group": outcome.group or "", "reason": outcome.reason}
        for outcome in skipped
    ]


def render_csv(rows: Sequence[dict[str, str]]) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(rows[0].keys()) if rows else [])
    if rows:
        writer.writeheader()
        writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def render_text(entries: Sequence[CurrentScheduleEntry]) -> str:
    if not entries:
        return "No lessons."
    lines = []
    for entry in entries:
        slot = f"{entry.start}-{entry.end}" if entry.end else entry.start
        details = ", ".join(part for part in (entry.teacher, entry.classroom) if part)
        line = f"{slot:<12} {entry.subject}"
        if details:
            line += f" ({details})"
        if not entry.is_active:
            line += " [cancelled]"
        lines.append(line)
    return "\n".join(lines)

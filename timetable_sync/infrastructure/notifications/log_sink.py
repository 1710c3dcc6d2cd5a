"""Notification sink that only writes to the log."""
from __future__ import annotations

import logging

from timetable_sync.domain.models import Change, ChangeKind, ScheduleSnapshot

logger = logging.getLogger(__name__)

_TITLES = {
    ChangeKind.REPLACEMENT: "Замена",
    ChangeKind.CANCELLATION: "Отмена",
    ChangeKind.ADDITION: "Добавление",
}


def format_change_message(change: Change) -> tuple[str, str]:
    title = f"{_TITLES[change.kind]}: {change.group}, {change.date.strftime('%d.%m.%Y')}"
    slot = f"{change.start}-{change.end}" if change.end else change.start
    if change.kind is ChangeKind.REPLACEMENT and change.original_subject:
        body = f"{slot} {change.original_subject} -> {change.subject}"
    else:
        body = f"{slot} {change.subject}"
    details = ", ".join(part for part in (change.teacher, change.classroom) if part)
    if details:
        body = f"{body} ({details})"
    return title, body


class LoggingNotificationSink:
    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def notify_change(self, change: Change) -> None:
        title, body = format_change_message(change)
        self._log.info("Notify %s: %s", title, body)

    def notify_new_timetable(self, snapshot: ScheduleSnapshot) -> None:
        self._log.info("Notify new timetable %s: %d lessons", snapshot.name, snapshot.lesson_count)

"""Reminder email rendering."""

from __future__ import annotations

from html import escape
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from taskalert.scheduler.models import Task

_TIME_FORMAT = "%A, %d %B %Y %H:%M UTC"

_TYPE_LABELS = {
    "one_off": "one-off",
    "delayed": "delayed",
    "recurring": "recurring",
}


def _fmt(value: datetime) -> str:
    return value.strftime(_TIME_FORMAT)


def render_reminder(task: Task, next_run_at: datetime | None = None) -> tuple[str, str]:
    """Build the ``(subject, html_body)`` of a task reminder.

    *next_run_at* is the occurrence that follows this one; it is only shown
    for recurring tasks.
    """
    subject = f"Task Reminder: {task.title}"
    label = _TYPE_LABELS.get(str(task.task_type), str(task.task_type))
    description = escape(task.description) if task.description else "No description provided"
    # next_run_at is the effective due time of this occurrence (delay included)
    due_at = task.next_run_at or task.scheduled_at
    scheduled = _fmt(due_at) if due_at else "Immediate execution"

    recurring_info = ""
    if task.is_recurring and next_run_at is not None:
        recurring_info = (
            f"<p>This is a recurring task. Next occurrence: {_fmt(next_run_at)}</p>"
        )

    body = (
        "<h2>Task Reminder</h2>\n"
        f"<p>Your {label} task: <strong>{escape(task.title)}</strong> is now due.</p>\n"
        f"<p><strong>Description:</strong> {description}</p>\n"
        f"<p><strong>Scheduled for:</strong> {scheduled}</p>\n"
        f"{recurring_info}\n"
        "<p>Please log in to your Task Scheduler account to view details.</p>\n"
        "<p>Thank you for using this service!</p>"
    )
    return subject, body

"""Due-time computation for new and recurring tasks.

All functions here are pure: the caller supplies ``now``.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from taskalert.errors import InvalidSchedule
from taskalert.scheduler.models import TaskType

if TYPE_CHECKING:
    from datetime import datetime

_RECURRENCE_UNITS = {
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


def parse_recurrence(interval: int | None, unit: str | None) -> timedelta | None:
    """Turn an ``(interval, unit)`` pair such as ``(2, "h")`` into a timedelta.

    Returns None when neither value is given.
    """
    if interval is None and not unit:
        return None
    if interval is None or not unit:
        msg = "Recurrence needs both an interval and a unit"
        raise InvalidSchedule(msg)

    key = unit.strip().lower()[:1]
    if key not in _RECURRENCE_UNITS:
        msg = f"Unknown recurrence unit: {unit!r} (use 'm', 'h' or 'd')"
        raise InvalidSchedule(msg)
    if interval <= 0:
        msg = "Recurrence interval must be positive"
        raise InvalidSchedule(msg)
    return timedelta(**{_RECURRENCE_UNITS[key]: interval})


def compute_next_run(
    task_type: TaskType | str,
    *,
    now: datetime,
    scheduled_at: datetime | None = None,
    delay_minutes: int | None = None,
    recurrence_interval: timedelta | None = None,
) -> datetime:
    """Compute the first ``next_run_at`` of a task being created or rescheduled.

    Raises:
        InvalidSchedule: the inputs do not describe a run time at or after *now*.
    """
    task_type = TaskType(task_type)

    if delay_minutes is not None and delay_minutes < 0:
        msg = "delay_minutes cannot be negative"
        raise InvalidSchedule(msg)
    if scheduled_at is not None and scheduled_at < now:
        msg = "Scheduled time cannot be in the past"
        raise InvalidSchedule(msg)

    if task_type == TaskType.RECURRING:
        if scheduled_at is None:
            msg = "Recurring tasks require scheduled_at"
            raise InvalidSchedule(msg)
        if recurrence_interval is None or recurrence_interval <= timedelta(0):
            msg = "Recurring tasks require a positive recurrence interval"
            raise InvalidSchedule(msg)
        return scheduled_at

    if recurrence_interval is not None:
        msg = f"{task_type} tasks cannot have a recurrence interval"
        raise InvalidSchedule(msg)

    if task_type == TaskType.DELAYED:
        if delay_minutes is None:
            msg = "Delayed tasks require delay_minutes"
            raise InvalidSchedule(msg)
        return now + timedelta(minutes=delay_minutes)

    # One-off
    if scheduled_at is not None:
        if delay_minutes is not None:
            return scheduled_at + timedelta(minutes=delay_minutes)
        return scheduled_at
    if delay_minutes is not None:
        return now + timedelta(minutes=delay_minutes)
    return now


def next_occurrence(completed_at: datetime, interval: timedelta) -> datetime:
    """Next run of a recurring task, measured from when the last run finished.

    Anchoring on completion (not the previous ``next_run_at``) means a late
    tick never leaves a backlog of already-due occurrences.
    """
    return completed_at + interval

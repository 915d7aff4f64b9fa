"""Task state machine — run outcomes and the transitions they cause.

The executor never decides a status itself: it reports a ``RunOutcome`` and
``transition()`` returns the resulting task and any retry delay.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from taskalert.scheduler.models import TaskStatus
from taskalert.scheduler.schedule import next_occurrence

if TYPE_CHECKING:
    from datetime import datetime

    from taskalert.scheduler.models import Task

MAX_BACKOFF_SECONDS = 60


# -- Outcomes ------------------------------------------------------------------


@dataclass(frozen=True)
class Success:
    """The occurrence ran: the notification is out (or already was)."""


@dataclass(frozen=True)
class Retryable:
    """The run failed in a way a later attempt may fix."""

    reason: str


@dataclass(frozen=True)
class Fatal:
    """The run cannot succeed (e.g. the owner is gone). No retry, no mutation."""

    reason: str


@dataclass(frozen=True)
class Skipped:
    """The task was not runnable when re-fetched."""

    reason: str


RunOutcome = Success | Retryable | Fatal | Skipped


@dataclass(frozen=True)
class Transition:
    """Result of applying an outcome.

    Attributes:
        task: The task as it should be persisted.
        persist: False when nothing changed.
        delay: Seconds to wait before persisting (retry backoff).
    """

    task: Task
    persist: bool = True
    delay: float = 0.0


# -- Helpers -------------------------------------------------------------------


def backoff_seconds(retry_count: int, cap: int = MAX_BACKOFF_SECONDS) -> int:
    """Capped exponential backoff: 2, 4, 8, ... seconds, never more than *cap*."""
    return min(2**retry_count, cap)


def is_due(task: Task, now: datetime) -> bool:
    """True if the scheduler may run *task* at *now*."""
    return (
        not task.is_deleted
        and task.status.is_runnable
        and task.next_run_at is not None
        and task.next_run_at <= now
    )


# -- Transitions ---------------------------------------------------------------


def mark_notified(task: Task, now: datetime) -> Task:
    """Record that the current occurrence's notification went out."""
    return replace(task, notification_sent=True, notification_sent_at=now, modified_at=now)


def _on_success(task: Task, now: datetime) -> Transition:
    if task.is_recurring and task.recurrence_interval is not None:
        updated = replace(
            task,
            status=TaskStatus.PENDING,
            next_run_at=next_occurrence(now, task.recurrence_interval),
            last_run_at=now,
            retry_count=0,
            notification_sent=False,
            notification_sent_at=None,
            modified_at=now,
        )
    else:
        updated = replace(
            task,
            status=TaskStatus.COMPLETED,
            last_run_at=now,
            retry_count=0,
            modified_at=now,
        )
    return Transition(task=updated)


def _on_failure(task: Task, now: datetime, backoff_cap: int) -> Transition:
    if task.retry_count < task.max_retries:
        retry_count = task.retry_count + 1
        updated = replace(
            task,
            status=TaskStatus.QUEUED,
            retry_count=retry_count,
            modified_at=now,
        )
        return Transition(task=updated, delay=backoff_seconds(retry_count, backoff_cap))

    updated = replace(task, status=TaskStatus.FAILED, modified_at=now)
    return Transition(task=updated)


def transition(
    task: Task,
    outcome: RunOutcome,
    now: datetime,
    *,
    backoff_cap: int = MAX_BACKOFF_SECONDS,
) -> Transition:
    """Apply *outcome* to *task* and return what should be persisted.

    ============  =========================  ==============================
    Outcome       Condition                  Result
    ============  =========================  ==============================
    Success       recurring                  pending, rescheduled, flags reset
    Success       one-off / delayed          completed
    Retryable     retry_count < max_retries  queued, retry_count + 1, backoff
    Retryable     budget exhausted           failed
    Fatal         any                        unchanged, not persisted
    Skipped       any                        unchanged, not persisted
    ============  =========================  ==============================
    """
    if isinstance(outcome, Success):
        return _on_success(task, now)
    if isinstance(outcome, Retryable):
        return _on_failure(task, now, backoff_cap)
    return Transition(task=task, persist=False)

"""TaskExecutor — runs one due occurrence of a task."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from taskalert.errors import OwnerNotFound, PersistenceError
from taskalert.scheduler.messages import render_reminder
from taskalert.scheduler.models import utcnow
from taskalert.scheduler.schedule import next_occurrence
from taskalert.scheduler.state import (
    MAX_BACKOFF_SECONDS,
    Fatal,
    Retryable,
    RunOutcome,
    Skipped,
    Success,
    is_due,
    mark_notified,
    transition,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime

    from taskalert.notifications.router import NotificationRouter
    from taskalert.scheduler.store import TaskStore
    from taskalert.users.store import UserStore

logger = logging.getLogger(__name__)


class TaskExecutor:
    """Executes a single due task: notify the owner, then advance its state.

    Every failure is turned into a ``RunOutcome``; nothing raised here reaches
    the scheduler loop.

    Args:
        store: TaskStore to re-fetch and persist the task.
        users: UserStore resolving the task owner's email address.
        notifier: NotificationRouter (or any object with the same ``send``).
        backoff_cap: Upper bound in seconds for the retry backoff.
        clock: Returns the current UTC time.
        sleep: Awaitable used for the retry backoff delay.
    """

    def __init__(
        self,
        store: TaskStore,
        users: UserStore,
        notifier: NotificationRouter,
        *,
        backoff_cap: int = MAX_BACKOFF_SECONDS,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._users = users
        self._notifier = notifier
        self._backoff_cap = backoff_cap
        self._clock = clock
        self._sleep = sleep

    async def execute(self, task_id: int) -> RunOutcome:
        """Run task *task_id* if it is still due and record the result."""
        try:
            outcome = await self._run(task_id)
        except Exception as exc:
            logger.exception("Error processing task %s", task_id)
            outcome = Retryable(f"{type(exc).__name__}: {exc}")

        if isinstance(outcome, Retryable):
            await self._record_failure(task_id, outcome)
        elif isinstance(outcome, Fatal):
            logger.warning("Task %s aborted: %s", task_id, outcome.reason)
        elif isinstance(outcome, Skipped):
            logger.debug("Task %s skipped: %s", task_id, outcome.reason)
        return outcome

    async def _run(self, task_id: int) -> RunOutcome:
        now = self._clock()

        # The batch query may be stale; only act on the current row.
        task = await self._store.get_task(task_id)
        if task is None:
            return Skipped("not found")
        if task.is_deleted:
            return Skipped("deleted")
        if not is_due(task, now):
            return Skipped(f"not due (status={task.status})")

        user = await self._users.find_by_id(task.owner_id)
        if user is None:
            return Fatal(str(OwnerNotFound(task.owner_id)))

        logger.info("Executing task %s: '%s' (%s)", task.id, task.title, task.task_type)

        if task.notification_sent:
            logger.info("Notification for task %s already sent this occurrence", task.id)
        else:
            upcoming = (
                next_occurrence(now, task.recurrence_interval)
                if task.is_recurring and task.recurrence_interval is not None
                else None
            )
            subject, body = render_reminder(task, upcoming)
            await self._notifier.send(user.email, subject, body)
            task = mark_notified(task, now)
            logger.info("Notification sent for task %s to %s", task.id, user.email)

        # Reschedule from completion, not from when the run started.
        finished = self._clock()
        updated = transition(task, Success(), finished, backoff_cap=self._backoff_cap).task
        if not await self._store.save_run_state(updated):
            msg = f"Task {task.id} vanished before its run could be saved"
            raise PersistenceError(msg)

        if updated.is_recurring:
            logger.info(
                "Recurring task %s scheduled for next run at %s",
                updated.id,
                updated.next_run_at.isoformat(),
            )
        else:
            logger.info("Task %s completed", updated.id)
        return Success()

    async def _record_failure(self, task_id: int, outcome: Retryable) -> None:
        """Apply the retry branch of the state machine and persist it."""
        try:
            task = await self._store.get_task(task_id)
        except Exception:
            logger.exception("Could not reload task %s to record failure", task_id)
            return
        if task is None:
            return

        result = transition(task, outcome, self._clock(), backoff_cap=self._backoff_cap)
        if result.delay:
            logger.warning(
                "Waiting %d seconds before retrying task %s", result.delay, task_id
            )
            await self._sleep(result.delay)

        try:
            await self._store.save_run_state(result.task)
        except Exception:
            logger.exception("Could not record failure of task %s", task_id)
            return

        if result.task.status.is_runnable:
            logger.warning(
                "Task %s will be retried (attempt %d/%d): %s",
                task_id,
                result.task.retry_count,
                result.task.max_retries,
                outcome.reason,
            )
        else:
            logger.error(
                "Task %s has failed after %d retry attempts", task_id, result.task.max_retries
            )

"""SchedulerEngine — APScheduler tick loop that dispatches due tasks."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from taskalert.config import settings
from taskalert.scheduler.models import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable

    from taskalert.scheduler.executor import TaskExecutor
    from taskalert.scheduler.store import TaskStore

logger = logging.getLogger(__name__)

_TICK_JOB_ID = "taskalert-tick"


class SchedulerEngine:
    """Polls the store on a fixed interval and runs due tasks concurrently.

    Each tick queries due tasks and hands them to the executor as a
    background batch, so a slow batch never delays the next tick.  A
    semaphore shared by all batches caps concurrent executions, and a task
    already running in this process is not dispatched again.

    Args:
        store: TaskStore queried for due tasks.
        executor: TaskExecutor that runs each task.
        tick_interval: Seconds between ticks (default from settings).
        max_concurrency: Maximum simultaneous executions (default from settings).
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        store: TaskStore,
        executor: TaskExecutor,
        *,
        tick_interval: int | None = None,
        max_concurrency: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._executor = executor
        self._tick_interval = tick_interval or settings.tick_interval_seconds
        self._max_concurrency = max_concurrency or settings.max_concurrent_executions
        self._clock = clock
        self._scheduler = AsyncIOScheduler(timezone=UTC)
        self._semaphore = asyncio.Semaphore(self._max_concurrency)
        self._in_flight: set[int] = set()
        self._batches: set[asyncio.Task] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> frozenset[int]:
        """Ids of tasks currently being executed."""
        return frozenset(self._in_flight)

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Arm the tick job (first tick fires immediately) and start the scheduler."""
        if self._running:
            return
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self._tick_interval, timezone=UTC),
            id=_TICK_JOB_ID,
            name="Process due tasks",
            next_run_time=datetime.now(UTC),
            coalesce=True,
            max_instances=1,
            misfire_grace_time=None,
            replace_existing=True,
        )
        self._scheduler.start()
        self._running = True
        logger.info(
            "Scheduler started (tick=%ds, max_concurrency=%d)",
            self._tick_interval,
            self._max_concurrency,
        )

    async def stop(self) -> None:
        """Stop arming ticks, then wait for in-flight executions to finish."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopping; waiting for %d batch(es)", len(self._batches))
        await self.drain()
        logger.info("Scheduler stopped")

    async def drain(self) -> None:
        """Wait until every dispatched batch has completed."""
        while self._batches:
            await asyncio.gather(*self._batches, return_exceptions=True)

    # -- Tick ------------------------------------------------------------------

    async def tick(self) -> asyncio.Task | None:
        """Query due tasks and dispatch them. Returns the batch task, if any.

        Never raises: a failing query is logged and the next tick retries.
        """
        now = self._clock()
        try:
            tasks = await self._store.list_due_tasks(now)
        except Exception:
            logger.exception("Error querying due tasks")
            return None

        logger.info("%d task(s) are due for processing", len(tasks))
        task_ids = [t.id for t in tasks if t.id not in self._in_flight]
        if len(task_ids) < len(tasks):
            logger.debug("%d due task(s) already running", len(tasks) - len(task_ids))
        if not task_ids:
            return None

        self._in_flight.update(task_ids)
        batch = asyncio.create_task(self._run_batch(task_ids))
        self._batches.add(batch)
        batch.add_done_callback(self._batches.discard)
        return batch

    async def _run_batch(self, task_ids: list[int]) -> None:
        await asyncio.gather(*(self._dispatch(task_id) for task_id in task_ids))

    async def _dispatch(self, task_id: int) -> None:
        try:
            async with self._semaphore:
                await self._executor.execute(task_id)
        except Exception:
            logger.exception("Unhandled error executing task %s", task_id)
        finally:
            self._in_flight.discard(task_id)

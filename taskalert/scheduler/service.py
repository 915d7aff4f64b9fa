"""TaskService — create, edit, read and soft-delete tasks on behalf of a user."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Annotated

from pydantic import AfterValidator, BaseModel, Field

from taskalert.config import settings
from taskalert.errors import InvalidSchedule, PersistenceError, TaskNotFound
from taskalert.scheduler.models import Task, TaskStatus, TaskType, utcnow
from taskalert.scheduler.schedule import compute_next_run, parse_recurrence

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import timedelta

    from taskalert.scheduler.store import TaskStore

logger = logging.getLogger(__name__)

_SCHEDULE_FIELDS = frozenset(
    {"task_type", "scheduled_at", "delay_minutes", "recurrence_interval", "recurrence_unit"}
)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CreateTaskRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200, description="Title of the task")
    description: str = Field(default="", description="Optional description of the task")
    task_type: TaskType = Field(description="one_off, delayed or recurring")
    scheduled_at: UtcDatetime | None = Field(
        default=None,
        description="When the task should first run (required for recurring). Naive is UTC.",
    )
    delay_minutes: int | None = Field(
        default=None, ge=0, description="Delay in minutes (required for delayed tasks)"
    )
    recurrence_interval: int | None = Field(
        default=None, gt=0, description="Interval between runs for recurring tasks (e.g. 1, 2)"
    )
    recurrence_unit: str | None = Field(
        default=None, description="Unit of recurrence: 'm' (minutes), 'h' (hours) or 'd' (days)"
    )
    max_retries: int | None = Field(
        default=None, ge=0, description="Retry budget per occurrence (defaults to settings)"
    )


class UpdateTaskRequest(BaseModel):
    """Partial edit. Only fields that are explicitly set are applied."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    task_type: TaskType | None = None
    scheduled_at: UtcDatetime | None = None
    delay_minutes: int | None = Field(default=None, ge=0)
    recurrence_interval: int | None = Field(default=None, gt=0)
    recurrence_unit: str | None = None
    max_retries: int | None = Field(default=None, ge=0)


class TaskService:
    """The write path that owns task creation and user edits.

    Validates schedules up front (raising ``InvalidSchedule``) so that the
    scheduler only ever sees tasks with a usable ``next_run_at``.

    Args:
        store: TaskStore for persistence.
        default_max_retries: Retry budget for new tasks (default from settings).
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        store: TaskStore,
        *,
        default_max_retries: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._default_max_retries = (
            default_max_retries
            if default_max_retries is not None
            else settings.default_max_retries
        )
        self._clock = clock

    async def create_task(self, owner_id: str, request: CreateTaskRequest) -> Task:
        """Validate *request*, compute its first run and store it as pending."""
        now = self._clock()
        interval = parse_recurrence(request.recurrence_interval, request.recurrence_unit)
        next_run_at = compute_next_run(
            request.task_type,
            now=now,
            scheduled_at=request.scheduled_at,
            delay_minutes=request.delay_minutes,
            recurrence_interval=interval,
        )
        task = Task(
            owner_id=owner_id,
            title=request.title,
            description=request.description,
            task_type=request.task_type,
            scheduled_at=request.scheduled_at,
            delay_minutes=request.delay_minutes,
            recurrence_interval=interval,
            next_run_at=next_run_at,
            max_retries=(
                request.max_retries
                if request.max_retries is not None
                else self._default_max_retries
            ),
            created_at=now,
            modified_at=now,
        )
        stored = await self._store.add_task(task)
        logger.info("Task %s created by %s, next run at %s", stored.id, owner_id, next_run_at)
        return stored

    async def get_task(self, owner_id: str, task_id: int) -> Task:
        """Return a live task belonging to *owner_id*, or raise ``TaskNotFound``."""
        task = await self._store.get_task(task_id)
        if task is None or task.is_deleted or task.owner_id != owner_id:
            raise TaskNotFound(task_id)
        return task

    async def list_tasks(self, owner_id: str) -> list[Task]:
        return await self._store.list_tasks_for_owner(owner_id)

    async def update_task(
        self, owner_id: str, task_id: int, request: UpdateTaskRequest
    ) -> Task:
        """Apply a partial edit.

        Changing any schedule field recomputes ``next_run_at`` and starts a
        fresh occurrence: status back to pending, retries and notification
        flags cleared.  This is how a failed task is revived.  Other edits
        only touch title, description and ``max_retries``, leaving run state
        to the engine.
        """
        task = await self.get_task(owner_id, task_id)
        now = self._clock()
        changed = request.model_fields_set

        updated = replace(
            task,
            title=request.title if request.title is not None else task.title,
            description=(
                request.description if request.description is not None else task.description
            ),
            max_retries=(
                request.max_retries if request.max_retries is not None else task.max_retries
            ),
            modified_at=now,
        )

        rescheduled = bool(changed & _SCHEDULE_FIELDS)
        if rescheduled:
            task_type = request.task_type or task.task_type
            scheduled_at = self._pick_scheduled_at(task, request, now)
            delay_minutes = (
                request.delay_minutes if "delay_minutes" in changed else task.delay_minutes
            )
            interval = self._pick_interval(task, request, task_type)
            next_run_at = compute_next_run(
                task_type,
                now=now,
                scheduled_at=scheduled_at,
                delay_minutes=delay_minutes,
                recurrence_interval=interval,
            )
            updated = replace(
                updated,
                task_type=task_type,
                scheduled_at=scheduled_at,
                delay_minutes=delay_minutes,
                recurrence_interval=interval,
                next_run_at=next_run_at,
                status=TaskStatus.PENDING,
                retry_count=0,
                notification_sent=False,
                notification_sent_at=None,
            )

        write = self._store.reschedule_task if rescheduled else self._store.update_task_details
        if not await write(updated):
            msg = f"Task {task_id} could not be updated"
            raise PersistenceError(msg)
        logger.info("Task %s updated by %s", task_id, owner_id)
        stored = await self._store.get_task(task_id)
        return stored if stored is not None else updated

    async def delete_task(self, owner_id: str, task_id: int) -> None:
        """Soft-delete a task. An execution already in flight is not cancelled."""
        await self.get_task(owner_id, task_id)
        if not await self._store.soft_delete_task(task_id):
            raise TaskNotFound(task_id)

    # -- Internal --------------------------------------------------------------

    @staticmethod
    def _pick_scheduled_at(
        task: Task, request: UpdateTaskRequest, now: datetime
    ) -> datetime | None:
        if "scheduled_at" in request.model_fields_set:
            return request.scheduled_at
        # A stored anchor that has already passed cannot be reused.
        if task.scheduled_at is not None and task.scheduled_at >= now:
            return task.scheduled_at
        return None

    @staticmethod
    def _pick_interval(
        task: Task, request: UpdateTaskRequest, task_type: TaskType
    ) -> timedelta | None:
        if task_type != TaskType.RECURRING:
            if request.recurrence_interval is not None:
                msg = f"{task_type} tasks cannot have a recurrence interval"
                raise InvalidSchedule(msg)
            return None
        if request.recurrence_interval is not None or request.recurrence_unit:
            return parse_recurrence(request.recurrence_interval, request.recurrence_unit)
        return task.recurrence_interval

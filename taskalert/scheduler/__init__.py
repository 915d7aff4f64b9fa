"""Task scheduling engine — models, due-time rules, state machine, execution, loop."""

from taskalert.scheduler.engine import SchedulerEngine
from taskalert.scheduler.executor import TaskExecutor
from taskalert.scheduler.models import Task, TaskStatus, TaskType
from taskalert.scheduler.service import CreateTaskRequest, TaskService, UpdateTaskRequest
from taskalert.scheduler.store import TaskStore

__all__ = [
    "CreateTaskRequest",
    "SchedulerEngine",
    "Task",
    "TaskExecutor",
    "TaskService",
    "TaskStatus",
    "TaskStore",
    "TaskType",
    "UpdateTaskRequest",
]

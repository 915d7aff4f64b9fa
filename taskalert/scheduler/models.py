"""Task data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum


class TaskType(StrEnum):
    ONE_OFF = "one_off"
    DELAYED = "delayed"
    RECURRING = "recurring"


class TaskStatus(StrEnum):
    """Lifecycle status. ``completed`` and ``failed`` are terminal for the engine."""

    PENDING = "pending"
    QUEUED = "queued"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_runnable(self) -> bool:
        return self in (TaskStatus.PENDING, TaskStatus.QUEUED)


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_iso(value: datetime | None) -> str | None:
    """Serialize an instant as fixed-width UTC ISO 8601 text.

    The fixed width keeps SQL string comparison chronological.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


# Column order of the ``tasks`` table; ``to_row`` / ``from_row`` follow it.
COLUMNS = (
    "id",
    "owner_id",
    "title",
    "description",
    "task_type",
    "status",
    "scheduled_at",
    "delay_minutes",
    "recurrence_seconds",
    "next_run_at",
    "last_run_at",
    "retry_count",
    "max_retries",
    "notification_sent",
    "notification_sent_at",
    "is_deleted",
    "created_at",
    "modified_at",
)


@dataclass
class Task:
    """A schedulable reminder owned by a user.

    Attributes:
        id: Store-assigned integer id (``None`` until inserted).
        owner_id: Opaque reference to the owning user.
        title: Display title, used as the email subject.
        description: Optional longer text included in the reminder.
        task_type: One-off, delayed, or recurring.
        status: Current lifecycle status.
        scheduled_at: Requested run time; anchor of the first recurring run.
        delay_minutes: Offset from creation used when ``scheduled_at`` is absent.
        recurrence_interval: Gap between recurring occurrences.
        next_run_at: When the task next becomes due.
        last_run_at: Completion time of the most recent run.
        retry_count: Failed attempts in the current occurrence.
        max_retries: Retry budget per occurrence.
        notification_sent: Whether the current occurrence was already notified.
        notification_sent_at: When that notification went out.
        is_deleted: Soft-delete flag; deleted tasks are never scheduled.
        created_at: Creation time.
        modified_at: Time of the last write to the row.
    """

    owner_id: str
    title: str
    task_type: TaskType
    next_run_at: datetime
    id: int | None = None
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    scheduled_at: datetime | None = None
    delay_minutes: int | None = None
    recurrence_interval: timedelta | None = None
    last_run_at: datetime | None = None
    retry_count: int = 0
    max_retries: int = 3
    notification_sent: bool = False
    notification_sent_at: datetime | None = None
    is_deleted: bool = False
    created_at: datetime = field(default_factory=utcnow)
    modified_at: datetime | None = None

    def __post_init__(self) -> None:
        self.task_type = TaskType(self.task_type)
        self.status = TaskStatus(self.status)

    # -- Convenience properties ------------------------------------------------

    @property
    def is_recurring(self) -> bool:
        return self.task_type == TaskType.RECURRING

    @property
    def is_terminal(self) -> bool:
        return not self.status.is_runnable

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching ``COLUMNS``."""
        return (
            self.id,
            self.owner_id,
            self.title,
            self.description,
            str(self.task_type),
            str(self.status),
            to_iso(self.scheduled_at),
            self.delay_minutes,
            (
                int(self.recurrence_interval.total_seconds())
                if self.recurrence_interval is not None
                else None
            ),
            to_iso(self.next_run_at),
            to_iso(self.last_run_at),
            self.retry_count,
            self.max_retries,
            int(self.notification_sent),
            to_iso(self.notification_sent_at),
            int(self.is_deleted),
            to_iso(self.created_at),
            to_iso(self.modified_at),
        )

    @classmethod
    def from_row(cls, row: tuple) -> Task:
        """Deserialize from a ``SELECT *`` row of the ``tasks`` table."""
        return cls(
            id=row[0],
            owner_id=row[1],
            title=row[2],
            description=row[3] or "",
            task_type=TaskType(row[4]),
            status=TaskStatus(row[5]),
            scheduled_at=from_iso(row[6]),
            delay_minutes=row[7],
            recurrence_interval=timedelta(seconds=row[8]) if row[8] is not None else None,
            next_run_at=from_iso(row[9]),
            last_run_at=from_iso(row[10]),
            retry_count=row[11],
            max_retries=row[12],
            notification_sent=bool(row[13]),
            notification_sent_at=from_iso(row[14]),
            is_deleted=bool(row[15]),
            created_at=from_iso(row[16]),
            modified_at=from_iso(row[17]),
        )

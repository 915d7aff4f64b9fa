"""TaskStore — libsql CRUD for scheduled tasks."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from taskalert.db import get_connection
from taskalert.scheduler.models import COLUMNS, Task, TaskStatus, to_iso, utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from taskalert.db import AsyncConnection

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS tasks (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id             TEXT NOT NULL,
    title                TEXT NOT NULL,
    description          TEXT NOT NULL DEFAULT '',
    task_type            TEXT NOT NULL,
    status               TEXT NOT NULL DEFAULT 'pending',
    scheduled_at         TEXT,
    delay_minutes        INTEGER,
    recurrence_seconds   INTEGER,
    next_run_at          TEXT NOT NULL,
    last_run_at          TEXT,
    retry_count          INTEGER NOT NULL DEFAULT 0,
    max_retries          INTEGER NOT NULL DEFAULT 3,
    notification_sent    INTEGER NOT NULL DEFAULT 0,
    notification_sent_at TEXT,
    is_deleted           INTEGER NOT NULL DEFAULT 0,
    created_at           TEXT NOT NULL,
    modified_at          TEXT
)
"""

_CREATE_DUE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_tasks_due
    ON tasks (is_deleted, status, next_run_at)
"""

_SELECT = f"SELECT {', '.join(COLUMNS)} FROM tasks"

_RUNNABLE = (str(TaskStatus.PENDING), str(TaskStatus.QUEUED))


class TaskStore:
    """Persists tasks in SQLite / Turso.

    Singleton accessed via ``TaskStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: TaskStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> TaskStore:
        """Return the shared TaskStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> AsyncConnection:
        db = await get_connection(local_path_override=self._db_path)
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.execute(_CREATE_DUE_INDEX)
            await db.commit()
            self._initialised = True
        return db

    # -- Write path ------------------------------------------------------------

    async def add_task(self, task: Task) -> Task:
        """Insert a new task. Returns a copy carrying the assigned id."""
        row = task.to_row()[1:]
        placeholders = ", ".join("?" for _ in COLUMNS[1:])
        async with await self._connect() as db:
            cursor = await db.execute(
                f"INSERT INTO tasks ({', '.join(COLUMNS[1:])}) "
                f"VALUES ({placeholders}) RETURNING id",
                row,
            )
            inserted = (await cursor.fetchall())[0]
            await db.commit()
        stored = replace(task, id=inserted[0])
        logger.info("Added task %s: '%s' (%s)", stored.id, stored.title, stored.task_type)
        return stored

    async def update_task_details(self, task: Task) -> bool:
        """Overwrite the user-editable text and retry budget of a live task.

        Run state is left alone, so an edit racing an execution never undoes
        what the engine recorded.
        """
        async with await self._connect() as db:
            cursor = await db.execute(
                "UPDATE tasks SET title = ?, description = ?, max_retries = ?, modified_at = ? "
                "WHERE id = ? AND is_deleted = 0",
                (
                    task.title,
                    task.description,
                    task.max_retries,
                    to_iso(task.modified_at),
                    task.id,
                ),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def reschedule_task(self, task: Task) -> bool:
        """Write a user edit that changed the schedule.

        Starts a fresh occurrence, so the run state columns are written too.
        """
        row = task.to_row()
        async with await self._connect() as db:
            cursor = await db.execute(
                """
                UPDATE tasks SET
                    title = ?, description = ?, task_type = ?, status = ?,
                    scheduled_at = ?, delay_minutes = ?, recurrence_seconds = ?,
                    next_run_at = ?, retry_count = ?, max_retries = ?,
                    notification_sent = ?, notification_sent_at = ?, modified_at = ?
                WHERE id = ? AND is_deleted = 0
                """,
                (
                    row[2], row[3], row[4], row[5],
                    row[6], row[7], row[8],
                    row[9], row[11], row[12],
                    row[13], row[14], row[17],
                    task.id,
                ),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def soft_delete_task(self, task_id: int) -> bool:
        """Flag a task as deleted. Returns True if a live row was updated."""
        async with await self._connect() as db:
            cursor = await db.execute(
                "UPDATE tasks SET is_deleted = 1, modified_at = ? "
                "WHERE id = ? AND is_deleted = 0",
                (to_iso(utcnow()), task_id),
            )
            await db.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Soft-deleted task %s", task_id)
        return deleted

    # -- Reads -----------------------------------------------------------------

    async def get_task(self, task_id: int) -> Task | None:
        """Fetch a task by id (deleted or not), or None if it never existed."""
        async with await self._connect() as db:
            cursor = await db.execute(f"{_SELECT} WHERE id = ?", (task_id,))
            row = await cursor.fetchone()
        return Task.from_row(row) if row else None

    async def list_tasks_for_owner(self, owner_id: str) -> list[Task]:
        """Return the owner's live tasks, oldest first."""
        async with await self._connect() as db:
            cursor = await db.execute(
                f"{_SELECT} WHERE owner_id = ? AND is_deleted = 0 ORDER BY created_at",
                (owner_id,),
            )
            rows = await cursor.fetchall()
        return [Task.from_row(row) for row in rows]

    async def list_due_tasks(self, now: datetime) -> list[Task]:
        """Return live pending/queued tasks whose ``next_run_at`` has passed."""
        async with await self._connect() as db:
            cursor = await db.execute(
                f"{_SELECT} WHERE is_deleted = 0 AND status IN (?, ?) "
                "AND next_run_at <= ? ORDER BY next_run_at",
                (*_RUNNABLE, to_iso(now)),
            )
            rows = await cursor.fetchall()
        return [Task.from_row(row) for row in rows]

    # -- Engine writes ---------------------------------------------------------

    async def save_run_state(self, task: Task) -> bool:
        """Persist the columns the scheduler owns, keyed by id.

        Title, description, schedule inputs, owner and the delete flag are
        left untouched so a concurrent user edit is not clobbered.
        """
        async with await self._connect() as db:
            cursor = await db.execute(
                """
                UPDATE tasks SET
                    status = ?, next_run_at = ?, last_run_at = ?, retry_count = ?,
                    notification_sent = ?, notification_sent_at = ?, modified_at = ?
                WHERE id = ?
                """,
                (
                    str(task.status),
                    to_iso(task.next_run_at),
                    to_iso(task.last_run_at),
                    task.retry_count,
                    int(task.notification_sent),
                    to_iso(task.notification_sent_at),
                    to_iso(task.modified_at),
                    task.id,
                ),
            )
            await db.commit()
            return cursor.rowcount > 0

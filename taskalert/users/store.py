"""UserStore — resolves task owners to email recipients via libsql."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from taskalert.db import get_connection
from taskalert.scheduler.models import from_iso, to_iso, utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from taskalert.db import AsyncConnection

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    id         TEXT PRIMARY KEY,
    email      TEXT NOT NULL,
    name       TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
)
"""


@dataclass
class User:
    id: str
    email: str
    name: str = ""
    created_at: datetime = field(default_factory=utcnow)


class UserStore:
    """Read side of the user directory used by the scheduler.

    Singleton accessed via ``UserStore.get()``.  Pass an explicit *db_path*
    for test isolation.
    """

    _instance: UserStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> UserStore:
        """Return the shared UserStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    async def _connect(self) -> AsyncConnection:
        db = await get_connection(local_path_override=self._db_path)
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True
        return db

    async def add_user(self, user: User) -> User:
        """Insert or replace a user record."""
        async with await self._connect() as db:
            await db.execute(
                "INSERT OR REPLACE INTO users (id, email, name, created_at) VALUES (?, ?, ?, ?)",
                (user.id, user.email, user.name, to_iso(user.created_at)),
            )
            await db.commit()
        logger.info("Saved user %s", user.id)
        return user

    async def find_by_id(self, user_id: str) -> User | None:
        """Fetch a user by id, or None if unknown."""
        async with await self._connect() as db:
            cursor = await db.execute(
                "SELECT id, email, name, created_at FROM users WHERE id = ?", (user_id,)
            )
            row = await cursor.fetchone()
        if not row:
            return None
        return User(id=row[0], email=row[1], name=row[2] or "", created_at=from_iso(row[3]))

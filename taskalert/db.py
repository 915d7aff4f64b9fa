"""Async database access over the synchronous ``libsql`` driver.

Every call is pushed to a worker thread with ``asyncio.to_thread()`` so store
operations never block the scheduler's event loop.  Connection target:

- ``TURSO_DATABASE_URL`` + ``TURSO_AUTH_TOKEN`` set → remote Turso database
- otherwise → local SQLite file at ``settings.database_path``
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import libsql

from taskalert.config import settings

if TYPE_CHECKING:
    from pathlib import Path


class AsyncCursor:
    """Awaitable view of a libsql cursor."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    async def fetchone(self) -> tuple | None:
        return await asyncio.to_thread(self._cursor.fetchone)

    async def fetchall(self) -> list[tuple]:
        return await asyncio.to_thread(self._cursor.fetchall)

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount


class AsyncConnection:
    """Awaitable view of a libsql connection.

    Usable as an async context manager; the connection is closed on exit.
    """

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def execute(self, sql: str, params: tuple = ()) -> AsyncCursor:
        cursor = await asyncio.to_thread(self._conn.execute, sql, params)
        return AsyncCursor(cursor)

    async def commit(self) -> None:
        await asyncio.to_thread(self._conn.commit)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)

    async def __aenter__(self) -> AsyncConnection:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def _open_local(path: str) -> Any:
    conn = libsql.connect(path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


async def get_connection(local_path_override: Path | None = None) -> AsyncConnection:
    """Open a new connection.

    *local_path_override* (used by tests) wins over everything else.
    """
    if local_path_override:
        local_path_override.parent.mkdir(parents=True, exist_ok=True)
        conn = await asyncio.to_thread(_open_local, str(local_path_override))
        return AsyncConnection(conn)

    if settings.turso_database_url:
        conn = await asyncio.to_thread(
            libsql.connect,
            database=settings.turso_database_url,
            auth_token=settings.turso_auth_token,
        )
        return AsyncConnection(conn)

    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    conn = await asyncio.to_thread(_open_local, str(settings.database_path))
    return AsyncConnection(conn)

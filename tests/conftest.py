"""Shared test fixtures."""

from pathlib import Path

import pytest

from taskalert.scheduler.store import TaskStore
from taskalert.users.store import User, UserStore


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("taskalert.config.settings.turso_database_url", "")


@pytest.fixture
def store(tmp_path: Path, _no_turso: None) -> TaskStore:
    """A TaskStore backed by a temp database."""
    return TaskStore(db_path=tmp_path / "test.db")


@pytest.fixture
async def users(tmp_path: Path, _no_turso: None) -> UserStore:
    """A UserStore (same temp database) holding one user, ``u1``."""
    user_store = UserStore(db_path=tmp_path / "test.db")
    await user_store.add_user(User(id="u1", email="ada@example.com", name="Ada"))
    return user_store


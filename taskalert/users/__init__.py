"""User directory used to resolve task owners."""

from taskalert.users.store import User, UserStore

__all__ = ["User", "UserStore"]

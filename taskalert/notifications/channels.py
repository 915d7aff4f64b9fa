"""NotificationChannel protocol — interface for all notification delivery channels."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class NotificationChannel(Protocol):
    """Protocol that all notification channels must satisfy."""

    @property
    def name(self) -> str:
        """Unique channel identifier (e.g. 'email', 'log')."""
        ...

    async def send(self, recipient: str, subject: str, html_body: str) -> None:
        """Deliver a message. Raises ``NotificationError`` on failure."""
        ...

"""Development channel that writes notifications to the log instead of sending them."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class LogChannel:
    """Logs every message. Used when no SMTP server is configured."""

    @property
    def name(self) -> str:
        return "log"

    async def send(self, recipient: str, subject: str, html_body: str) -> None:
        logger.info("Notification to %s: %s (%d chars)", recipient, subject, len(html_body))

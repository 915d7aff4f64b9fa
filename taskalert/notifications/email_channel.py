"""SMTP email implementation of the NotificationChannel protocol."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from taskalert.errors import NotificationError

logger = logging.getLogger(__name__)


class EmailChannel:
    """Sends HTML email through an authenticated SMTP server.

    ``smtplib`` is blocking, so each send runs in a worker thread.  A fresh
    connection is opened per message.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        *,
        sender_name: str = "Task Scheduler",
        use_tls: bool = True,
        timeout: float = 60.0,
    ) -> None:
        if not host or not username or not password or port <= 0:
            msg = "Incomplete email configuration"
            raise ValueError(msg)
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._sender_name = sender_name
        self._use_tls = use_tls
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "email"

    def _build_message(self, recipient: str, subject: str, html_body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self._sender_name, self._username))
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable email client.")
        message.add_alternative(html_body, subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        if self._port == 465:
            client: smtplib.SMTP = smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout)
        else:
            client = smtplib.SMTP(self._host, self._port, timeout=self._timeout)
        with client:
            if self._use_tls and self._port != 465:
                client.starttls()
            client.login(self._username, self._password)
            client.send_message(message)

    async def send(self, recipient: str, subject: str, html_body: str) -> None:
        """Send an HTML email to *recipient*."""
        message = self._build_message(recipient, subject, html_body)
        logger.info("Connecting to SMTP server %s:%d", self._host, self._port)
        try:
            await asyncio.to_thread(self._deliver, message)
        except smtplib.SMTPResponseException as exc:
            logger.exception("SMTP error sending email to %s", recipient)
            # 4xx replies are temporary by definition
            transient = 400 <= exc.smtp_code < 500
            msg = f"SMTP {exc.smtp_code} sending email to {recipient}"
            raise NotificationError(msg, transient=transient) from exc
        except (smtplib.SMTPException, OSError) as exc:
            logger.exception("Error sending email to %s", recipient)
            msg = f"Failed to send email to {recipient}: {exc}"
            raise NotificationError(msg) from exc
        logger.info("Email sent successfully to %s", recipient)

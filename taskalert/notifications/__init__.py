"""Notification channel abstraction layer."""

from taskalert.notifications.channels import NotificationChannel
from taskalert.notifications.email_channel import EmailChannel
from taskalert.notifications.log_channel import LogChannel
from taskalert.notifications.router import NotificationRouter

__all__ = [
    "EmailChannel",
    "LogChannel",
    "NotificationChannel",
    "NotificationRouter",
]

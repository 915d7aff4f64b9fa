"""taskalert entry point — runs the scheduler until SIGINT/SIGTERM."""

from __future__ import annotations

import asyncio
import logging
import signal

from taskalert.config import settings
from taskalert.notifications.email_channel import EmailChannel
from taskalert.notifications.log_channel import LogChannel
from taskalert.notifications.router import NotificationRouter
from taskalert.scheduler.engine import SchedulerEngine
from taskalert.scheduler.executor import TaskExecutor
from taskalert.scheduler.store import TaskStore
from taskalert.users.store import UserStore

logger = logging.getLogger(__name__)


def _init_notifications() -> NotificationRouter:
    """Register notification channels and set the default."""
    router = NotificationRouter.get()
    router.register_channel(LogChannel())
    if settings.smtp_configured():
        router.register_channel(
            EmailChannel(
                settings.smtp_host,
                settings.smtp_port,
                settings.smtp_username,
                settings.smtp_password,
                sender_name=settings.smtp_sender_name,
                use_tls=settings.smtp_use_tls,
                timeout=settings.smtp_timeout_seconds,
            )
        )
    else:
        logger.warning("SMTP is not configured; reminders will only be logged")

    default = settings.default_notification_channel
    if router.get_channel(default) is None:
        default = "log"
    router.set_default_channel(default)
    logger.info(
        "Notifications initialized: channels=%s, default=%s",
        router.list_channels(),
        router.default_channel_name,
    )
    return router


def build_engine() -> SchedulerEngine:
    """Wire stores, notifier, executor and engine from settings."""
    router = _init_notifications()
    store = TaskStore.get()
    executor = TaskExecutor(
        store=store,
        users=UserStore.get(),
        notifier=router,
        backoff_cap=settings.max_backoff_seconds,
    )
    return SchedulerEngine(store=store, executor=executor)


async def run() -> None:
    """Start the engine and block until a shutdown signal arrives."""
    engine = build_engine()
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await engine.start()
    try:
        await stop.wait()
        logger.info("Shutdown signal received")
    finally:
        await engine.stop()


def main() -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )
    logger.info("Starting taskalert scheduler (tick=%ds)", settings.tick_interval_seconds)
    asyncio.run(run())


if __name__ == "__main__":
    main()

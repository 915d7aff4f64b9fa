"""Tests for NotificationRouter."""

import pytest

from taskalert.errors import NotificationError
from taskalert.notifications.router import NotificationRouter

# -- Helpers -----------------------------------------------------------------


class FakeChannel:
    """Minimal channel implementation for testing."""

    def __init__(self, channel_name: str = "fake") -> None:
        self._name = channel_name
        self.sent: list[tuple[str, str, str]] = []

    @property
    def name(self) -> str:
        return self._name

    async def send(self, recipient: str, subject: str, html_body: str) -> None:
        self.sent.append((recipient, subject, html_body))


class FailChannel(FakeChannel):
    """Channel that always fails to send."""

    async def send(self, recipient: str, subject: str, html_body: str) -> None:
        msg = "boom"
        raise NotificationError(msg)


# -- Fixtures ----------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_router():
    """Reset the singleton before and after each test."""
    NotificationRouter._reset()
    yield
    NotificationRouter._reset()


# -- Registration ------------------------------------------------------------


def test_register_and_list() -> None:
    router = NotificationRouter.get()
    router.register_channel(FakeChannel("email"))
    assert router.list_channels() == ["email"]


def test_duplicate_registration_raises() -> None:
    router = NotificationRouter.get()
    router.register_channel(FakeChannel("email"))
    with pytest.raises(ValueError, match="already registered"):
        router.register_channel(FakeChannel("email"))


def test_set_default_unknown_raises() -> None:
    router = NotificationRouter.get()
    with pytest.raises(KeyError):
        router.set_default_channel("email")


def test_singleton() -> None:
    assert NotificationRouter.get() is NotificationRouter.get()


# -- Sending -----------------------------------------------------------------


async def test_send_uses_default_channel() -> None:
    router = NotificationRouter.get()
    email = FakeChannel("email")
    log = FakeChannel("log")
    router.register_channel(email)
    router.register_channel(log)
    router.set_default_channel("email")

    await router.send("ada@example.com", "Hi", "<p>Hi</p>")

    assert email.sent == [("ada@example.com", "Hi", "<p>Hi</p>")]
    assert log.sent == []


async def test_send_explicit_channel() -> None:
    router = NotificationRouter.get()
    email = FakeChannel("email")
    log = FakeChannel("log")
    router.register_channel(email)
    router.register_channel(log)
    router.set_default_channel("email")

    await router.send("ada@example.com", "Hi", "<p>Hi</p>", channel="log")

    assert log.sent and not email.sent


async def test_single_channel_used_without_default() -> None:
    router = NotificationRouter.get()
    ch = FakeChannel("log")
    router.register_channel(ch)

    await router.send("ada@example.com", "Hi", "body")

    assert len(ch.sent) == 1


async def test_no_channel_is_permanent_error() -> None:
    router = NotificationRouter.get()
    with pytest.raises(NotificationError) as exc_info:
        await router.send("ada@example.com", "Hi", "body")
    assert exc_info.value.transient is False


async def test_unknown_explicit_channel_raises() -> None:
    router = NotificationRouter.get()
    router.register_channel(FakeChannel("log"))
    with pytest.raises(NotificationError):
        await router.send("ada@example.com", "Hi", "body", channel="sms")


async def test_channel_failure_propagates() -> None:
    router = NotificationRouter.get()
    router.register_channel(FailChannel("email"))
    with pytest.raises(NotificationError, match="boom"):
        await router.send("ada@example.com", "Hi", "body")

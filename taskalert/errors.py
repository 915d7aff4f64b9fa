"""Exception types raised across taskalert."""


class TaskAlertError(Exception):
    """Base class for all taskalert errors."""


class InvalidSchedule(TaskAlertError):
    """Schedule inputs cannot produce a valid run time (creation-time only)."""


class TaskNotFound(TaskAlertError):
    """No live task exists with the given id."""

    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class OwnerNotFound(TaskAlertError):
    """The task's owner no longer exists. Not retried."""

    def __init__(self, owner_id: str) -> None:
        super().__init__(f"Owner {owner_id} not found")
        self.owner_id = owner_id


class NotificationError(TaskAlertError):
    """A notification channel failed to deliver a message.

    ``transient`` is True for failures that may succeed on a later attempt
    (connection drops, 4xx SMTP replies). The executor retries both kinds.
    """

    def __init__(self, message: str, *, transient: bool = True) -> None:
        super().__init__(message)
        self.transient = transient


class PersistenceError(TaskAlertError):
    """A store read or write did not take effect."""

"""Tests for the task state machine."""

from datetime import UTC, datetime, timedelta

import pytest

from taskalert.scheduler.models import Task, TaskStatus, TaskType
from taskalert.scheduler.state import (
    Fatal,
    Retryable,
    Skipped,
    Success,
    backoff_seconds,
    is_due,
    mark_notified,
    transition,
)

NOW = datetime(2025, 6, 1, 9, 0, tzinfo=UTC)


def _make_task(**kwargs) -> Task:
    defaults = {
        "id": 1,
        "owner_id": "u1",
        "title": "Standup",
        "task_type": TaskType.ONE_OFF,
        "next_run_at": NOW - timedelta(minutes=1),
        "created_at": NOW - timedelta(days=1),
    }
    defaults.update(kwargs)
    return Task(**defaults)


# -- backoff -------------------------------------------------------------------


@pytest.mark.parametrize(
    ("retry_count", "expected"),
    [(0, 1), (1, 2), (2, 4), (3, 8), (5, 32), (6, 60), (10, 60)],
)
def test_backoff_is_capped_exponential(retry_count: int, expected: int) -> None:
    assert backoff_seconds(retry_count) == expected


def test_backoff_custom_cap() -> None:
    assert backoff_seconds(4, cap=10) == 10


# -- is_due --------------------------------------------------------------------


def test_is_due_pending_past() -> None:
    assert is_due(_make_task(), NOW) is True


def test_is_due_queued() -> None:
    assert is_due(_make_task(status=TaskStatus.QUEUED), NOW) is True


def test_not_due_in_future() -> None:
    assert is_due(_make_task(next_run_at=NOW + timedelta(seconds=1)), NOW) is False


@pytest.mark.parametrize("status", [TaskStatus.COMPLETED, TaskStatus.FAILED])
def test_terminal_never_due(status: TaskStatus) -> None:
    assert is_due(_make_task(status=status), NOW) is False


def test_deleted_never_due() -> None:
    assert is_due(_make_task(is_deleted=True), NOW) is False


# -- Success -------------------------------------------------------------------


def test_one_off_success_completes() -> None:
    task = mark_notified(_make_task(retry_count=2, status=TaskStatus.QUEUED), NOW)
    result = transition(task, Success(), NOW)

    assert result.persist is True
    assert result.delay == 0
    assert result.task.status == TaskStatus.COMPLETED
    assert result.task.last_run_at == NOW
    assert result.task.retry_count == 0
    assert result.task.notification_sent is True
    assert result.task.notification_sent_at == NOW


def test_delayed_success_completes() -> None:
    result = transition(_make_task(task_type=TaskType.DELAYED), Success(), NOW)
    assert result.task.status == TaskStatus.COMPLETED


def test_recurring_success_reschedules_from_completion() -> None:
    late = NOW + timedelta(minutes=40)
    task = mark_notified(
        _make_task(
            task_type=TaskType.RECURRING,
            recurrence_interval=timedelta(hours=1),
            next_run_at=NOW,
        ),
        late,
    )

    result = transition(task, Success(), late)

    assert result.task.status == TaskStatus.PENDING
    assert result.task.last_run_at == late
    assert result.task.next_run_at == late + timedelta(hours=1)
    assert result.task.next_run_at > result.task.last_run_at
    assert result.task.notification_sent is False
    assert result.task.notification_sent_at is None


def test_transition_does_not_mutate_input() -> None:
    task = _make_task()
    transition(task, Success(), NOW)
    assert task.status == TaskStatus.PENDING
    assert task.last_run_at is None


# -- Retryable -----------------------------------------------------------------


def test_failure_with_budget_queues_with_backoff() -> None:
    result = transition(_make_task(retry_count=1, max_retries=3), Retryable("smtp down"), NOW)

    assert result.task.status == TaskStatus.QUEUED
    assert result.task.retry_count == 2
    assert result.delay == 4
    assert result.persist is True


def test_failure_keeps_notification_flag() -> None:
    result = transition(_make_task(), Retryable("db locked"), NOW)
    assert result.task.notification_sent is False


def test_failure_backoff_respects_cap() -> None:
    result = transition(
        _make_task(retry_count=9, max_retries=20), Retryable("x"), NOW, backoff_cap=60
    )
    assert result.delay == 60


def test_failure_exhausted_fails_without_incrementing() -> None:
    result = transition(_make_task(retry_count=3, max_retries=3), Retryable("x"), NOW)

    assert result.task.status == TaskStatus.FAILED
    assert result.task.retry_count == 3
    assert result.delay == 0


def test_zero_retry_budget_fails_immediately() -> None:
    result = transition(_make_task(max_retries=0), Retryable("x"), NOW)
    assert result.task.status == TaskStatus.FAILED
    assert result.task.retry_count == 0


def test_retry_count_never_exceeds_max() -> None:
    task = _make_task(max_retries=3)
    for _ in range(10):
        task = transition(task, Retryable("x"), NOW).task
        assert task.retry_count <= task.max_retries
    assert task.status == TaskStatus.FAILED


# -- Fatal / Skipped -----------------------------------------------------------


@pytest.mark.parametrize("outcome", [Fatal("owner gone"), Skipped("not due")])
def test_fatal_and_skipped_change_nothing(outcome) -> None:
    task = _make_task(retry_count=1)
    result = transition(task, outcome, NOW)
    assert result.persist is False
    assert result.task is task

"""Tests for due-time computation."""

from datetime import UTC, datetime, timedelta

import pytest

from taskalert.errors import InvalidSchedule
from taskalert.scheduler.models import TaskType
from taskalert.scheduler.schedule import compute_next_run, next_occurrence, parse_recurrence

NOW = datetime(2025, 6, 1, 9, 0, tzinfo=UTC)

# -- one_off -------------------------------------------------------------------


def test_one_off_future_scheduled_at() -> None:
    at = NOW + timedelta(minutes=5)
    assert compute_next_run(TaskType.ONE_OFF, now=NOW, scheduled_at=at) == at


def test_one_off_scheduled_at_equal_to_now_is_allowed() -> None:
    assert compute_next_run(TaskType.ONE_OFF, now=NOW, scheduled_at=NOW) == NOW


def test_one_off_delay_only() -> None:
    result = compute_next_run(TaskType.ONE_OFF, now=NOW, delay_minutes=30)
    assert result == NOW + timedelta(minutes=30)


def test_one_off_scheduled_at_plus_delay() -> None:
    at = NOW + timedelta(hours=1)
    result = compute_next_run(TaskType.ONE_OFF, now=NOW, scheduled_at=at, delay_minutes=15)
    assert result == at + timedelta(minutes=15)


def test_one_off_defaults_to_now() -> None:
    assert compute_next_run(TaskType.ONE_OFF, now=NOW) == NOW


def test_one_off_past_scheduled_at_rejected() -> None:
    with pytest.raises(InvalidSchedule, match="past"):
        compute_next_run(TaskType.ONE_OFF, now=NOW, scheduled_at=NOW - timedelta(seconds=1))


def test_negative_delay_rejected() -> None:
    with pytest.raises(InvalidSchedule, match="negative"):
        compute_next_run(TaskType.ONE_OFF, now=NOW, delay_minutes=-1)


def test_one_off_with_recurrence_rejected() -> None:
    with pytest.raises(InvalidSchedule, match="recurrence"):
        compute_next_run(
            TaskType.ONE_OFF, now=NOW, recurrence_interval=timedelta(hours=1)
        )


# -- delayed -------------------------------------------------------------------


def test_delayed_uses_delay_from_now() -> None:
    result = compute_next_run("delayed", now=NOW, delay_minutes=90)
    assert result == NOW + timedelta(minutes=90)


def test_delayed_requires_delay() -> None:
    with pytest.raises(InvalidSchedule, match="delay_minutes"):
        compute_next_run(TaskType.DELAYED, now=NOW)


# -- recurring -----------------------------------------------------------------


def test_recurring_first_run_is_scheduled_at() -> None:
    at = NOW + timedelta(days=1)
    result = compute_next_run(
        TaskType.RECURRING, now=NOW, scheduled_at=at, recurrence_interval=timedelta(hours=1)
    )
    assert result == at


def test_recurring_requires_scheduled_at() -> None:
    with pytest.raises(InvalidSchedule, match="scheduled_at"):
        compute_next_run(TaskType.RECURRING, now=NOW, recurrence_interval=timedelta(hours=1))


@pytest.mark.parametrize("interval", [None, timedelta(0), timedelta(hours=-1)])
def test_recurring_requires_positive_interval(interval: timedelta | None) -> None:
    with pytest.raises(InvalidSchedule, match="interval"):
        compute_next_run(
            TaskType.RECURRING, now=NOW, scheduled_at=NOW, recurrence_interval=interval
        )


def test_next_occurrence_counts_from_completion() -> None:
    late_completion = NOW + timedelta(minutes=47)
    result = next_occurrence(late_completion, timedelta(hours=1))
    assert result == late_completion + timedelta(hours=1)
    assert result > NOW + timedelta(hours=1)


# -- parse_recurrence ----------------------------------------------------------


@pytest.mark.parametrize(
    ("interval", "unit", "expected"),
    [
        (2, "h", timedelta(hours=2)),
        (1, "d", timedelta(days=1)),
        (3, "Days", timedelta(days=3)),
        (45, "m", timedelta(minutes=45)),
    ],
)
def test_parse_recurrence(interval: int, unit: str, expected: timedelta) -> None:
    assert parse_recurrence(interval, unit) == expected


def test_parse_recurrence_none() -> None:
    assert parse_recurrence(None, None) is None


def test_parse_recurrence_unknown_unit() -> None:
    with pytest.raises(InvalidSchedule, match="unit"):
        parse_recurrence(1, "w")


def test_parse_recurrence_missing_half() -> None:
    with pytest.raises(InvalidSchedule):
        parse_recurrence(2, None)
    with pytest.raises(InvalidSchedule):
        parse_recurrence(None, "h")


def test_parse_recurrence_non_positive() -> None:
    with pytest.raises(InvalidSchedule, match="positive"):
        parse_recurrence(0, "h")

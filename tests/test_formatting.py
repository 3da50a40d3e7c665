# tests/test_formatting.py

from __future__ import annotations

import pytest

from taskboard.tasks.formatting import (
    estimate_hours,
    estimate_minutes,
    format_estimated,
    format_hours,
    is_over_estimate,
)
from taskboard.tasks.models import Priority, Task


def _task(hours: float = 0.0, minutes: int = 0) -> Task:
    return Task(
        id="t1",
        title="Task",
        description="",
        priority=Priority.MEDIUM,
        status_id="st-todo",
        status="to do",
        estimated_hours=hours,
        estimated_minutes=minutes,
    )


@pytest.mark.parametrize(
    ("hours", "expected"),
    [
        (0.75, "45m"),
        (2.5, "2h 30m"),
        (2, "2h"),
        (1 / 3, "20m"),
        (10 / 3600, "10s"),
    ],
)
def test_format_hours(hours, expected) -> None:
    assert format_hours(hours) == expected


@pytest.mark.parametrize("hours", [0, -1.5, None])
def test_format_hours_hides_empty_values(hours) -> None:
    assert format_hours(hours) is None


def test_estimate_from_fractional_hours() -> None:
    task = _task(hours=1.5)
    assert estimate_minutes(task) == 90
    assert estimate_hours(task) == 1.5
    assert format_estimated(task) == "1h 30m"


def test_legacy_split_estimate_uses_whole_hours() -> None:
    task = _task(hours=2.7, minutes=15)
    assert estimate_minutes(task) == 135
    assert format_estimated(task) == "2h 15m"


def test_no_estimate() -> None:
    task = _task()
    assert estimate_minutes(task) == 0
    assert format_estimated(task) is None


def test_over_estimate() -> None:
    task = _task(hours=1.0)
    assert is_over_estimate(task, 1.01) is True
    assert is_over_estimate(task, 1.0) is False
    assert is_over_estimate(task, 0.5) is False


def test_task_without_estimate_is_never_over() -> None:
    assert is_over_estimate(_task(), 100.0) is False

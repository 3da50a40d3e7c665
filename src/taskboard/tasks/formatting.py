# src/taskboard/tasks/formatting.py

from __future__ import annotations

import math

from .models import Task


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _hm(total_minutes: int) -> str:
    h, m = divmod(total_minutes, 60)
    if h > 0 and m > 0:
        return f"{h}h {m}m"
    if h > 0:
        return f"{h}h"
    return f"{m}m"


def format_hours(hours: float | None) -> str | None:
    """
    Fractional hours -> "2h 30m" / "2h" / "45m", or "<n>s" under a minute.
    None for zero/negative (no badge).
    """
    if not hours or hours <= 0:
        return None
    total_seconds = _round_half_up(hours * 3600)
    if total_seconds < 60:
        return f"{total_seconds}s"
    return _hm(_round_half_up(hours * 60))


def estimate_minutes(task: Task) -> int:
    # Legacy records split the estimate into whole hours + minutes.
    if task.estimated_minutes > 0:
        return int(math.floor(task.estimated_hours)) * 60 + task.estimated_minutes
    return _round_half_up(task.estimated_hours * 60)


def estimate_hours(task: Task) -> float:
    return estimate_minutes(task) / 60.0


def format_estimated(task: Task) -> str | None:
    total = estimate_minutes(task)
    if total <= 0:
        return None
    return _hm(total)


def is_over_estimate(task: Task, actual_hours: float) -> bool:
    """A task without an estimate is never over it."""
    est = estimate_minutes(task)
    return est > 0 and actual_hours * 60 > est

# tests/test_time_tracking.py

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta

import pytest

from taskboard.realtime.feed import EventType, RealtimeEvent
from taskboard.tasks.models import Status, format_ts
from taskboard.tasks.time_tracking import ActualTime

from .fakes import ENTRIES, T0, U1


async def _work(board, tracker, clock, *, minutes: float, task_id: str = "task-home") -> None:
    """One tracked session: into In Progress, wait, out to Done."""
    await board.move_status(task_id, "st-progress", U1)
    await tracker.drain()
    clock.advance(minutes=minutes)
    await board.move_status(task_id, "st-done", U1)
    await tracker.drain()


@pytest.mark.asyncio
async def test_45_minute_session_is_recorded(board, tracker, store, clock) -> None:
    await board.load_all()

    await _work(board, tracker, clock, minutes=45)

    assert tracker.actual_hours("task-home") == ActualTime(total_hours=0.75, session_count=1)
    [doc] = store.docs(ENTRIES)
    assert doc["taskId"] == "task-home"
    assert doc["userId"] == U1
    assert doc["startTime"] == format_ts(T0)
    assert doc["duration"] == 0.75


@pytest.mark.asyncio
async def test_sessions_add_up(board, tracker, clock) -> None:
    await board.load_all()

    await _work(board, tracker, clock, minutes=20)
    await board.move_status("task-home", "st-todo", U1)
    await _work(board, tracker, clock, minutes=10)

    actual = tracker.actual_hours("task-home")
    assert actual.session_count == 2
    assert actual.total_hours == pytest.approx(0.5, abs=1e-6)
    assert [e.duration for e in tracker.entries_for("task-home")] == [
        round(20 / 60, 6),
        round(10 / 60, 6),
    ]


@pytest.mark.asyncio
async def test_no_entries_means_zero_actual_time(board, tracker) -> None:
    await board.load_all()

    assert tracker.actual_hours("task-api") == ActualTime(total_hours=0, session_count=0)
    assert tracker.tracked_hours("task-api") == 0


@pytest.mark.asyncio
async def test_open_entry_counts_only_in_tracked_hours(board, tracker, clock) -> None:
    await board.load_all()

    await board.move_status("task-home", "st-progress", U1)
    await tracker.drain()
    clock.advance(minutes=30)

    assert tracker.actual_hours("task-home") == ActualTime(total_hours=0, session_count=0)
    assert tracker.tracked_hours("task-home") == pytest.approx(0.5)
    assert len(tracker.open_entries("task-home")) == 1


@pytest.mark.asyncio
async def test_moves_between_other_statuses_do_not_track(board, tracker, store) -> None:
    await board.load_all()

    await board.move_status("task-home", "st-qa", U1)
    await board.move_status("task-home", "st-done", U1)
    await tracker.drain()

    assert store.docs(ENTRIES) == []


@pytest.mark.asyncio
async def test_rapid_enter_leave_enter_keeps_one_open_entry(board, tracker, store) -> None:
    await board.load_all()

    # No drain between moves: hooks are still queued when the next move starts.
    await board.move_status("task-home", "st-progress", U1)
    await board.move_status("task-home", "st-done", U1)
    await board.move_status("task-home", "st-progress", U1)
    await tracker.drain()

    entries = tracker.entries_for("task-home")
    assert len(entries) == 2
    assert len(tracker.open_entries("task-home")) == 1
    closed = [e for e in entries if not e.is_open]
    # Zero elapsed time still closes the entry.
    assert closed[0].duration == pytest.approx(1e-6)
    assert len([d for d in store.docs(ENTRIES) if d["duration"] == 0]) == 1


@pytest.mark.asyncio
async def test_duplicate_enter_does_not_open_second_entry(registry, tracker, store) -> None:
    await registry.load()

    first = await tracker.on_transition("task-home", "st-todo", "st-progress", U1)
    second = await tracker.on_transition("task-home", "st-qa", "st-progress", U1)

    assert first is not None
    assert second is None
    assert len(store.docs(ENTRIES)) == 1


@pytest.mark.asyncio
async def test_open_entry_created_elsewhere_is_reused(board, tracker, store, clock) -> None:
    await board.load_all()
    # Appears after the initial load, so only the remote check can see it.
    store.seed(
        ENTRIES,
        "entry-elsewhere",
        taskId="task-home",
        userId=U1,
        startTime=format_ts(T0 - timedelta(hours=1)),
        duration=0,
    )

    await board.move_status("task-home", "st-progress", U1)
    await tracker.drain()
    assert len(store.docs(ENTRIES)) == 1

    clock.advance(minutes=30)
    await board.move_status("task-home", "st-done", U1)
    await tracker.drain()

    assert store.collections[ENTRIES]["entry-elsewhere"]["duration"] == 1.5


@pytest.mark.asyncio
async def test_leaving_without_open_entry_is_logged(registry, tracker, store, caplog) -> None:
    await registry.load()

    with caplog.at_level(logging.WARNING, logger="taskboard.tasks.time_tracking"):
        result = await tracker.on_transition("task-home", "st-progress", "st-done", U1)

    assert result is None
    assert "No open time entry" in caplog.text
    assert store.docs(ENTRIES) == []
    assert not [c for c in store.calls if c[0] in ("create", "update")]


@pytest.mark.asyncio
async def test_without_in_progress_status_nothing_is_tracked(registry, tracker, store) -> None:
    registry.replace(
        [
            Status(id="st-todo", name="To Do", color="#94a3b8", order=1),
            Status(id="st-done", name="Done", color="#6366f1", order=2),
        ]
    )

    assert await tracker.on_transition("task-home", "st-todo", "st-done", U1) is None
    assert store.calls == []


@pytest.mark.asyncio
async def test_store_failure_is_swallowed(registry, tracker, store) -> None:
    await registry.load()
    store.fail("create", ENTRIES)

    assert await tracker.on_transition("task-home", "st-todo", "st-progress", U1) is None
    assert tracker.open_entries("task-home") == []


@pytest.mark.asyncio
async def test_log_manual_adds_closed_entry(tracker, store) -> None:
    entry = await tracker.log_manual("task-home", U1, date(2026, 3, 1), 1.25)

    assert entry.duration == 1.25
    assert entry.start_time == datetime(2026, 3, 1, tzinfo=UTC)
    assert not entry.is_open
    assert tracker.actual_hours("task-home") == ActualTime(total_hours=1.25, session_count=1)
    assert store.collections[ENTRIES][entry.id]["startTime"] == "2026-03-01T00:00:00.000+00:00"


@pytest.mark.asyncio
@pytest.mark.parametrize("hours", [0, -1, 1e-7, float("nan"), float("inf")])
async def test_log_manual_rejects_non_positive_hours(tracker, store, hours) -> None:
    with pytest.raises(ValueError):
        await tracker.log_manual("task-home", U1, date(2026, 3, 1), hours)
    assert store.docs(ENTRIES) == []


@pytest.mark.asyncio
async def test_rejected_tiny_log_does_not_disturb_tracking(board, tracker, clock) -> None:
    await board.load_all()
    with pytest.raises(ValueError):
        await tracker.log_manual("task-home", U1, date(2026, 3, 1), 1e-7)

    await _work(board, tracker, clock, minutes=45)

    assert tracker.actual_hours("task-home") == ActualTime(total_hours=0.75, session_count=1)
    assert tracker.open_entries("task-home") == []


@pytest.mark.asyncio
async def test_log_manual_keeps_six_decimals(tracker) -> None:
    entry = await tracker.log_manual("task-home", U1, date(2026, 3, 1), 1 / 3)
    assert entry.duration == 0.333333
    assert not entry.is_open


@pytest.mark.asyncio
async def test_load_reads_existing_entries(tracker, store) -> None:
    store.seed(ENTRIES, "e1", taskId="task-home", userId=U1, startTime=format_ts(T0), duration=0.5)
    store.seed(ENTRIES, "e2", taskId="task-home", userId=U1, startTime=format_ts(T0), duration=0)

    assert await tracker.load() == 2
    assert tracker.actual_hours("task-home") == ActualTime(total_hours=0.5, session_count=1)
    assert [e.id for e in tracker.open_entries("task-home")] == ["e2"]


def test_handle_event_upserts_and_deletes(tracker) -> None:
    doc = {"$id": "e9", "taskId": "task-api", "userId": "u", "startTime": format_ts(T0), "duration": 0}
    tracker.handle_event(RealtimeEvent(EventType.CREATE, doc))
    assert [e.id for e in tracker.open_entries("task-api")] == ["e9"]

    tracker.handle_event(RealtimeEvent(EventType.UPDATE, {**doc, "duration": 2.0}))
    assert tracker.actual_hours("task-api").total_hours == 2.0

    tracker.handle_event(RealtimeEvent(EventType.DELETE, {"$id": "e9"}))
    assert tracker.entries_for("task-api") == []


def test_handle_event_ignores_malformed_payload(tracker) -> None:
    tracker.handle_event(RealtimeEvent(EventType.CREATE, {"taskId": "task-api"}))
    assert tracker.entries_for("task-api") == []

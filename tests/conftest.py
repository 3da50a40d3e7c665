# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskboard.tasks.board import TaskBoard
from taskboard.tasks.statuses import StatusRegistry
from taskboard.tasks.time_tracking import TimeTracker

from .fakes import ENTRIES, MANAGER, STATUSES, TASKS, U1, U2, FakeClock, FakeDocumentStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root and commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskboard-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        store_backend="sqlite",
        db_path=tmp_path / "taskboard.sqlite3",
        tasks_collection=TASKS,
        time_entries_collection=ENTRIES,
        statuses_collection=STATUSES,
        task_list_limit=200,
        time_entry_list_limit=500,
        poll_interval_seconds=0.5,
        manager_capability="manage_tasks",
        user_id=U1,
        user_name="Uma",
        capabilities=[],
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> FakeDocumentStore:
    """
    Seeded store: four statuses and a few tasks.

    "QA" exists so tests can delete it and watch its tasks become orphans.
    """
    s = FakeDocumentStore()
    s.seed(STATUSES, "st-todo", name="To Do", color="#94a3b8", order=1)
    s.seed(STATUSES, "st-progress", name="In Progress", color="#22c55e", order=2)
    s.seed(STATUSES, "st-qa", name="QA", color="#f59e0b", order=3)
    s.seed(STATUSES, "st-done", name="Done", color="#6366f1", order=4)

    s.seed(
        TASKS,
        "task-home",
        title="Design homepage",
        description="Landing page mockups",
        priority="high",
        statusId="st-todo",
        status="to do",
        assigneeId=U1,
        assigneeName="Uma",
        creatorId=MANAGER,
        estimatedHours=1.0,
    )
    s.seed(
        TASKS,
        "task-api",
        title="Build API",
        priority="medium",
        statusId="st-qa",
        status="qa",
        assigneeId=U2,
        assigneeName="Ugo",
    )
    s.seed(
        TASKS,
        "task-docs",
        title="Write docs",
        priority="low",
        statusId="st-qa",
        status="qa",
        assigneeId=U1,
        assigneeName="Uma",
    )
    s.seed(
        TASKS,
        "task-shipped",
        title="Ship v1",
        statusId="st-done",
        status="done",
        assigneeId=U1,
        assigneeName="Uma",
    )
    return s


@pytest.fixture()
def registry(store: FakeDocumentStore) -> StatusRegistry:
    return StatusRegistry(store, collection=STATUSES)


@pytest.fixture()
def tracker(store: FakeDocumentStore, registry: StatusRegistry, clock: FakeClock) -> TimeTracker:
    return TimeTracker(store, registry, collection=ENTRIES, now=clock)


@pytest.fixture()
def board(store: FakeDocumentStore, registry: StatusRegistry, tracker: TimeTracker) -> TaskBoard:
    """Not loaded yet: tests call `await board.load_all()` first."""
    return TaskBoard(store, registry, tracker, collection=TASKS)


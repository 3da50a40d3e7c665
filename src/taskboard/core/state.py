# src/taskboard/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..realtime.polling import PollingRealtimeFeed
from ..tasks.board import TaskBoard
from ..tasks.statuses import StatusRegistry
from ..tasks.time_tracking import TimeTracker
from .ports import AuthOracle, DocumentStore


@dataclass
class AppState:
    """
    Runtime state shared by connectors and commands.

    This is intentionally a simple container:
    - it holds dependencies (settings, store, feed, auth),
    - and the three core components built on top of them.
    """

    settings: Any

    store: DocumentStore
    feed: PollingRealtimeFeed
    auth: AuthOracle

    registry: StatusRegistry
    tracker: TimeTracker
    board: TaskBoard

    @property
    def is_manager(self) -> bool:
        capability = str(getattr(self.settings, "manager_capability", "manage_tasks"))
        return self.auth.has_capability(capability)

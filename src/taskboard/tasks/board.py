# src/taskboard/tasks/board.py

from __future__ import annotations

"""
Task board state machine.

The in-memory task map is the client's view of the tasks collection:
- rebuilt wholesale by load_all(),
- patched by realtime events (apply_remote_event),
- mutated optimistically by commands before the remote write resolves.

Every command is three explicit phases: apply locally, attempt the remote
write, correct on failure. The correction policy is per operation:
- move_status: precise rollback to the previous status,
- reassign / rate / remove: forced full reload.

Realtime reconciliation is existence-checked for create/delete (idempotent,
order-tolerant) and last-writer-wins for update. A stale update event can
overwrite a newer optimistic change; there is no sequence number to detect it.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date

from ..core.errors import (
    AuthorizationError,
    RatingNotAllowedError,
    RemoteWriteFailure,
    TaskNotFoundError,
)
from ..core.ports import DocumentStore, ListQuery, RealtimeFeed, Unsubscribe
from ..realtime.feed import EventType, RealtimeEvent
from .models import CurrentUser, Priority, Status, Task
from .statuses import StatusRegistry
from .time_tracking import TimeTracker

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


@dataclass(frozen=True, slots=True)
class TaskFilter:
    search: str = ""
    assignee_id: str | None = None
    priority: Priority | None = None
    project_id: str | None = None

    def matches(self, task: Task) -> bool:
        if self.project_id and task.project_id != self.project_id:
            return False
        if self.assignee_id and task.assignee_id != self.assignee_id:
            return False
        if self.priority and task.priority != self.priority:
            return False
        q = self.search.strip().lower()
        if q and q not in task.title.lower() and q not in task.description.lower():
            return False
        return True


@dataclass(frozen=True, slots=True)
class BoardColumn:
    status: Status
    tasks: tuple[Task, ...]


@dataclass(frozen=True, slots=True)
class BoardView:
    columns: tuple[BoardColumn, ...]
    # Tasks pointing at a status that is not in the registry. Hidden from columns.
    orphans: tuple[Task, ...]

    def column(self, status_id: str) -> BoardColumn | None:
        for c in self.columns:
            if c.status.id == status_id:
                return c
        return None

    def all_tasks(self) -> list[Task]:
        """Tasks in column order (the list view)."""
        return [t for c in self.columns for t in c.tasks]


@dataclass(slots=True)
class TaskDraft:
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    estimated_hours: int = 0
    estimated_minutes: int = 0
    due_date: date | None = None
    project_id: str = ""
    assignee_id: str = ""
    assignee_name: str = ""


class TaskBoard:
    def __init__(
        self,
        store: DocumentStore,
        registry: StatusRegistry,
        tracker: TimeTracker,
        *,
        collection: str = "tasks",
        task_list_limit: int = 200,
        time_entry_list_limit: int = 500,
    ) -> None:
        self._store = store
        self._registry = registry
        self._tracker = tracker
        self._collection = collection
        self._task_list_limit = task_list_limit
        self._time_entry_list_limit = time_entry_list_limit
        self._tasks: dict[str, Task] = {}
        self._listeners: list[Listener] = []

    @property
    def registry(self) -> StatusRegistry:
        return self._registry

    @property
    def tracker(self) -> TimeTracker:
        return self._tracker

    # ---- change notification ----

    def add_listener(self, listener: Listener) -> Unsubscribe:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Board listener failed")

    # ---- raw state ----

    def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def all_tasks(self) -> list[Task]:
        """Every known task, orphans included (exports / unfiltered lists)."""
        return sorted(self._tasks.values(), key=lambda t: (t.created_at is None, t.created_at or 0, t.id))

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _put(self, task: Task) -> None:
        self._tasks[task.id] = task

    # ---- loading / reconciliation ----

    async def load_all(self) -> None:
        """Replace local state with the backend's. Any failure propagates; retry the whole load."""
        docs, _, _ = await asyncio.gather(
            self._store.list(
                self._collection,
                ListQuery(order_by="$createdAt", limit=self._task_list_limit),
            ),
            self._registry.load(),
            self._tracker.load(limit=self._time_entry_list_limit),
        )
        self._tasks = {}
        for doc in docs:
            task = Task.from_document(doc)
            self._tasks[task.id] = task
        logger.info(
            "Board loaded tasks=%d statuses=%d orphans=%d",
            len(self._tasks),
            len(self._registry.statuses),
            sum(1 for t in self._tasks.values() if not self._registry.is_valid_status(t.status_id)),
        )
        self._notify()

    async def _reload_after_failure(self) -> None:
        try:
            await self.load_all()
        except Exception:
            logger.exception("Reload after failed write also failed")

    def apply_remote_event(self, event: RealtimeEvent) -> bool:
        """
        Patch local state from one realtime event. Returns True if state changed.

        create: insert if absent (the optimistic path may already have it)
        update: replace by id; unseen ids are ignored
        delete: remove by id; unseen ids are ignored
        """
        doc_id = event.doc_id
        if not doc_id:
            logger.warning("Realtime event without $id ignored: %s", event.event_type)
            return False

        if event.event_type == EventType.CREATE:
            if doc_id in self._tasks:
                return False
            self._put(Task.from_document(event.payload))
        elif event.event_type == EventType.UPDATE:
            if doc_id not in self._tasks:
                return False
            self._put(Task.from_document(event.payload))
        elif event.event_type == EventType.DELETE:
            if self._tasks.pop(doc_id, None) is None:
                return False
        else:
            return False

        self._notify()
        return True

    def handle_event(self, event: RealtimeEvent) -> None:
        """Feed handler: never raises."""
        try:
            self.apply_remote_event(event)
        except Exception:
            logger.exception("Failed to apply realtime event %s id=%s", event.event_type, event.doc_id)

    def subscribe(self, feed: RealtimeFeed, channel: str) -> Unsubscribe:
        return feed.subscribe(channel, self.handle_event)

    # ---- ownership ----

    @staticmethod
    def can_drag(task: Task, user_id: str | None) -> bool:
        # Managers included: only the assignee drives a task through the board.
        return bool(user_id) and task.assignee_id == user_id

    def begin_drag(self, task_id: str, acting_user_id: str | None) -> Task:
        task = self._require(task_id)
        if not self.can_drag(task, acting_user_id):
            raise AuthorizationError(task_id, acting_user_id)
        return task

    # ---- commands ----

    async def move_status(self, task_id: str, new_status_id: str, acting_user_id: str | None) -> bool:
        """
        Move a task to another status. Returns False for a no-op move.

        Raises AuthorizationError (nothing changed) or RemoteWriteFailure
        (local status already rolled back).
        """
        task = self.begin_drag(task_id, acting_user_id)

        old_status_id = task.status_id
        if old_status_id == new_status_id:
            return False
        if not self._registry.is_valid_status(new_status_id):
            raise ValueError(f"Unknown status: {new_status_id}")

        old_label = task.status
        new_label = self._registry.name_for(new_status_id).lower()

        self._put(replace(task, status_id=new_status_id, status=new_label))
        self._notify()
        self._tracker.schedule_transition(task_id, old_status_id, new_status_id, task.assignee_id)

        try:
            await self._store.update(
                self._collection, task_id, {"statusId": new_status_id, "status": new_label}
            )
        except Exception as exc:
            logger.exception("Error moving task %s to %s; rolling back", task_id, new_status_id)
            current = self._tasks.get(task_id)
            if current is not None:
                self._put(replace(current, status_id=old_status_id, status=old_label))
                self._notify()
            raise RemoteWriteFailure("move task", task_id) from exc

        logger.info("Task %s moved %s -> %s by %s", task_id, old_status_id, new_status_id, acting_user_id)
        return True

    async def reassign(self, task_id: str, assignee_id: str, assignee_name: str = "") -> None:
        """Manager capability is checked by the caller; this only persists the change."""
        task = self._require(task_id)
        self._put(replace(task, assignee_id=assignee_id, assignee_name=assignee_name))
        self._notify()
        try:
            await self._store.update(
                self._collection,
                task_id,
                {"assigneeId": assignee_id, "assigneeName": assignee_name},
            )
        except Exception as exc:
            logger.exception("Error reassigning task %s", task_id)
            await self._reload_after_failure()
            raise RemoteWriteFailure("reassign task", task_id) from exc

    async def rate(self, task_id: str, rating: int) -> None:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValueError("rating must be an integer from 1 to 5")
        task = self._require(task_id)
        if task.status_id not in self._registry.completed_status_ids():
            raise RatingNotAllowedError(task_id)

        self._put(replace(task, quality_rating=rating))
        self._notify()
        try:
            await self._store.update(self._collection, task_id, {"qualityRating": rating})
        except Exception as exc:
            logger.exception("Error rating task %s", task_id)
            await self._reload_after_failure()
            raise RemoteWriteFailure("rate task", task_id) from exc

    async def remove(self, task_id: str) -> None:
        self._require(task_id)
        self._tasks.pop(task_id, None)
        self._notify()
        try:
            await self._store.delete(self._collection, task_id)
        except Exception as exc:
            logger.exception("Error deleting task %s", task_id)
            await self._reload_after_failure()
            raise RemoteWriteFailure("delete task", task_id) from exc
        logger.info("Task %s deleted", task_id)

    async def create_task(self, draft: TaskDraft, creator: CurrentUser) -> Task:
        """New tasks start in the first status of the workflow."""
        title = (draft.title or "").strip()
        if not title:
            raise ValueError("title is required")

        first = self._registry.first()
        total_hours = max(0, int(draft.estimated_hours)) + max(0, int(draft.estimated_minutes)) / 60
        task = Task(
            id="",
            title=title,
            description=draft.description or "",
            priority=draft.priority,
            status_id=first.id if first else "",
            status=first.key if first else "new",
            creator_id=creator.id,
            creator_name=creator.name,
            assignee_id=draft.assignee_id or creator.id,
            assignee_name=draft.assignee_name or (creator.name if not draft.assignee_id else ""),
            project_id=draft.project_id,
            due_date=draft.due_date,
            estimated_hours=round(total_hours, 2),
        )
        try:
            doc = await self._store.create(self._collection, task.to_fields())
        except Exception as exc:
            logger.exception("Error creating task %r", title)
            raise RemoteWriteFailure("create task") from exc

        created = Task.from_document(doc)
        # The realtime echo of this create is a no-op once the task is known.
        if created.id not in self._tasks:
            self._put(created)
            self._notify()
        logger.info("Task created id=%s title=%r assignee=%s", created.id, title, created.assignee_id)
        return self._tasks[created.id]

    # ---- derived views ----

    def visible_tasks_for(
        self,
        actor: CurrentUser,
        *,
        can_manage: bool,
        filters: TaskFilter | None = None,
    ) -> BoardView:
        """
        The status-partitioned view fed to board/list presentation.

        Non-managers only see tasks assigned to them. Orphans never appear in
        a column; they are returned separately.
        """

        def _visible(task: Task) -> bool:
            if not can_manage and task.assignee_id != actor.id:
                return False
            return filters is None or filters.matches(task)

        tasks = [t for t in self.all_tasks() if _visible(t)]
        columns = tuple(
            BoardColumn(status=s, tasks=tuple(t for t in tasks if t.status_id == s.id))
            for s in self._registry.statuses
        )
        orphans = tuple(t for t in tasks if not self._registry.is_valid_status(t.status_id))
        return BoardView(columns=columns, orphans=orphans)

    def task_stats(self) -> dict[str, int]:
        """Raw per-status counts (orphans only count toward total)."""
        stats = {s.id: 0 for s in self._registry.statuses}
        for t in self._tasks.values():
            if t.status_id in stats:
                stats[t.status_id] += 1
        stats["total"] = len(self._tasks)
        return stats

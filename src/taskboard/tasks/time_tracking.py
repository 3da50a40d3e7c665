# src/taskboard/tasks/time_tracking.py

from __future__ import annotations

"""
Automatic time tracking.

Time entries are a side effect of status transitions:
- entering the "in progress" status opens an entry (duration 0),
- leaving it closes the most recent open entry with the elapsed hours.

Invariant: at most one open entry per task. Transition hooks for the same task
run one after another (each waits for the previous one), and every start
checks for an existing open entry (locally, then remotely) before creating one.

Remote failures here are logged and swallowed: tracking is a best-effort side
effect and must never undo a status change.
"""

import asyncio
import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime

from ..core.ports import DocumentStore, ListQuery
from ..realtime.feed import EventType, RealtimeEvent
from .models import TimeEntry
from .statuses import StatusRegistry

logger = logging.getLogger(__name__)

DURATION_DECIMALS = 6
# Smallest representable closed duration; a close never leaves the entry looking open.
_MIN_CLOSED_HOURS = 10**-DURATION_DECIMALS

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def elapsed_hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600.0


@dataclass(frozen=True, slots=True)
class ActualTime:
    total_hours: float
    session_count: int


class TimeTracker:
    def __init__(
        self,
        store: DocumentStore,
        registry: StatusRegistry,
        *,
        collection: str = "time-entries",
        now: Clock = utc_now,
    ) -> None:
        self._store = store
        self._registry = registry
        self._collection = collection
        self._now = now
        self._entries: dict[str, TimeEntry] = {}
        self._pending: dict[str, asyncio.Task[TimeEntry | None]] = {}

    # ---- in-memory view ----

    def replace(self, entries: Iterable[TimeEntry]) -> None:
        self._entries = {e.id: e for e in entries}

    async def load(self, *, limit: int = 500) -> int:
        """Fetch recent entries (newest first, up to limit) and replace the local view."""
        docs = await self._store.list(
            self._collection, ListQuery(order_by="$createdAt", descending=True, limit=limit)
        )
        self.replace(TimeEntry.from_document(d) for d in docs)
        return len(self._entries)

    def apply_entry(self, entry: TimeEntry) -> None:
        self._entries[entry.id] = entry

    def entries_for(self, task_id: str) -> list[TimeEntry]:
        return sorted(
            (e for e in self._entries.values() if e.task_id == task_id),
            key=lambda e: e.start_time,
        )

    def open_entries(self, task_id: str) -> list[TimeEntry]:
        return [e for e in self.entries_for(task_id) if e.is_open]

    def actual_hours(self, task_id: str) -> ActualTime:
        """Sum of closed sessions only; an open entry counts once it is closed."""
        closed = [e for e in self._entries.values() if e.task_id == task_id and e.duration > 0]
        return ActualTime(total_hours=sum(e.duration for e in closed), session_count=len(closed))

    def tracked_hours(self, task_id: str, now: datetime | None = None) -> float:
        """Report-style total: closed sessions plus live elapsed time of open ones."""
        now = now or self._now()
        total = 0.0
        for e in self.entries_for(task_id):
            if e.duration > 0:
                total += e.duration
            else:
                total += max(elapsed_hours(e.start_time, now), 0.0)
        return total

    def handle_event(self, event: RealtimeEvent) -> None:
        """Realtime handler for the time-entries channel."""
        try:
            entry = TimeEntry.from_document(event.payload)
        except Exception:
            logger.warning("Ignoring malformed time entry event: %r", event.payload)
            return
        if event.event_type == EventType.DELETE:
            self._entries.pop(entry.id, None)
        else:
            self.apply_entry(entry)

    # ---- transition hook ----

    def schedule_transition(
        self,
        task_id: str,
        old_status_id: str,
        new_status_id: str,
        assignee_id: str,
    ) -> asyncio.Task[TimeEntry | None]:
        """
        Run on_transition in the background, after any earlier hook for the same task.

        Must be called from a running event loop.
        """
        prev = self._pending.get(task_id)

        async def _run() -> TimeEntry | None:
            if prev is not None:
                await asyncio.wait([prev])
            return await self.on_transition(task_id, old_status_id, new_status_id, assignee_id)

        job = asyncio.get_running_loop().create_task(_run())
        self._pending[task_id] = job

        def _done(done: asyncio.Task[TimeEntry | None], tid: str = task_id) -> None:
            if self._pending.get(tid) is done:
                del self._pending[tid]

        job.add_done_callback(_done)
        return job

    async def drain(self) -> None:
        """Wait until every scheduled transition hook has finished."""
        while self._pending:
            await asyncio.wait(list(self._pending.values()))

    async def on_transition(
        self,
        task_id: str,
        old_status_id: str,
        new_status_id: str,
        assignee_id: str,
    ) -> TimeEntry | None:
        """
        Apply the time-entry side effect of one status transition.

        Returns the created/closed entry, or None when nothing changed.
        """
        in_progress = self._registry.in_progress_status_id()
        if not in_progress:
            return None

        was_in_progress = old_status_id == in_progress
        now_in_progress = new_status_id == in_progress

        try:
            if now_in_progress and not was_in_progress:
                return await self._start(task_id, assignee_id)
            if was_in_progress and not now_in_progress:
                return await self._stop(task_id)
        except Exception:
            logger.exception(
                "Time tracking failed task=%s %s -> %s", task_id, old_status_id, new_status_id
            )
        return None

    async def _find_open_remote(self, task_id: str) -> TimeEntry | None:
        docs = await self._store.list(
            self._collection,
            ListQuery(
                equal={"taskId": task_id, "duration": 0},
                order_by="$createdAt",
                descending=True,
                limit=1,
            ),
        )
        if not docs:
            return None
        entry = TimeEntry.from_document(docs[0])
        self.apply_entry(entry)
        return entry

    async def _start(self, task_id: str, user_id: str) -> TimeEntry | None:
        existing = self.open_entries(task_id)
        if existing:
            logger.info("Task %s already has an open time entry (%s); not opening another", task_id, existing[-1].id)
            return None

        remote = await self._find_open_remote(task_id)
        if remote is not None:
            logger.info("Task %s already has an open time entry (%s) remotely", task_id, remote.id)
            return None

        start = self._now()
        doc = await self._store.create(
            self._collection,
            TimeEntry(id="", task_id=task_id, user_id=user_id, start_time=start).to_fields(),
        )
        entry = TimeEntry.from_document(doc)
        self.apply_entry(entry)
        logger.info("Time tracking started task=%s entry=%s user=%s", task_id, entry.id, user_id)
        return entry

    async def _stop(self, task_id: str) -> TimeEntry | None:
        local = self.open_entries(task_id)
        entry = local[-1] if local else await self._find_open_remote(task_id)
        if entry is None:
            logger.warning("No open time entry for task=%s; nothing to close", task_id)
            return None

        elapsed = max(elapsed_hours(entry.start_time, self._now()), 0.0)
        duration = max(round(elapsed, DURATION_DECIMALS), _MIN_CLOSED_HOURS)

        doc = await self._store.update(self._collection, entry.id, {"duration": duration})
        closed = TimeEntry.from_document(doc)
        self.apply_entry(closed)
        logger.info("Time tracking stopped task=%s entry=%s duration=%.6fh", task_id, closed.id, duration)
        return closed

    # ---- manual log ----

    async def log_manual(self, task_id: str, user_id: str, on_date: date, hours: float) -> TimeEntry:
        """Append an already-closed entry for a user-chosen date."""
        hours = float(hours)
        duration = round(hours, DURATION_DECIMALS) if math.isfinite(hours) else 0.0
        if duration <= 0:
            raise ValueError("hours must be a positive number")

        start = datetime(on_date.year, on_date.month, on_date.day, tzinfo=UTC)
        doc = await self._store.create(
            self._collection,
            TimeEntry(
                id="",
                task_id=task_id,
                user_id=user_id,
                start_time=start,
                duration=duration,
            ).to_fields(),
        )
        entry = TimeEntry.from_document(doc)
        self.apply_entry(entry)
        logger.info("Manual time logged task=%s entry=%s hours=%s", task_id, entry.id, entry.duration)
        return entry

# src/taskboard/tasks/statuses.py

from __future__ import annotations

"""
Status registry.

Holds the ordered workflow statuses and the derived lookups the board and the
time tracker rely on:
- the single "in progress" status (drives automatic time tracking),
- the completed set (gates quality rating),
- membership (tasks pointing at a missing status are orphans).

Statuses are matched by name, case-insensitively, because they are free-text
and editable by managers.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Literal

from ..core.errors import ReorderPartialFailure
from ..core.ports import DocumentStore, ListQuery
from .models import Status

logger = logging.getLogger(__name__)

IN_PROGRESS_NAME = "in progress"
COMPLETED_NAMES = frozenset({"completed", "approved", "done"})

Direction = Literal["up", "down"]


class StatusRegistry:
    def __init__(self, store: DocumentStore, *, collection: str = "task-statuses") -> None:
        self._store = store
        self._collection = collection
        self._statuses: tuple[Status, ...] = ()

    # ---- in-memory view ----

    @property
    def statuses(self) -> tuple[Status, ...]:
        return self._statuses

    def replace(self, statuses: Iterable[Status]) -> None:
        self._statuses = tuple(sorted(statuses, key=lambda s: s.order))

    def get(self, status_id: str | None) -> Status | None:
        if not status_id:
            return None
        for s in self._statuses:
            if s.id == status_id:
                return s
        return None

    def first(self) -> Status | None:
        return self._statuses[0] if self._statuses else None

    def name_for(self, status_id: str | None) -> str:
        s = self.get(status_id)
        return s.name if s else ""

    def in_progress_status_id(self) -> str | None:
        for s in self._statuses:
            if s.key == IN_PROGRESS_NAME:
                return s.id
        return None

    def completed_status_ids(self) -> frozenset[str]:
        return frozenset(s.id for s in self._statuses if s.key in COMPLETED_NAMES)

    def is_valid_status(self, status_id: str | None) -> bool:
        return self.get(status_id) is not None

    # ---- remote operations ----

    async def load(self) -> tuple[Status, ...]:
        docs = await self._store.list(self._collection, ListQuery(order_by="order"))
        self.replace(Status.from_document(d) for d in docs)
        logger.debug("Loaded %d statuses", len(self._statuses))
        return self._statuses

    async def add_status(self, name: str, color: str = "#6366f1") -> Status:
        name = (name or "").strip()
        if not name:
            raise ValueError("status name is required")

        max_order = max((s.order for s in self._statuses), default=0)
        doc = await self._store.create(
            self._collection, {"name": name, "color": color, "order": max_order + 1}
        )
        status = Status.from_document(doc)
        self.replace([*self._statuses, status])
        logger.info("Status added id=%s name=%s order=%s", status.id, status.name, status.order)
        return status

    async def update_status(
        self, status_id: str, *, name: str | None = None, color: str | None = None
    ) -> Status:
        fields: dict[str, str] = {}
        if name is not None:
            if not name.strip():
                raise ValueError("status name is required")
            fields["name"] = name.strip()
        if color is not None:
            fields["color"] = color

        current = self.get(status_id)
        if not fields and current is not None:
            return current

        doc = await self._store.update(self._collection, status_id, fields)
        updated = Status.from_document(doc)
        self.replace([updated if s.id == status_id else s for s in self._statuses])
        return updated

    async def delete_status(self, status_id: str) -> None:
        """Delete a status. Tasks that reference it become orphans; nothing cascades."""
        await self._store.delete(self._collection, status_id)
        self.replace(s for s in self._statuses if s.id != status_id)
        logger.info("Status deleted id=%s", status_id)

    async def swap_order(self, status_id: str, direction: Direction) -> bool:
        """
        Exchange `order` with the neighbour above/below.

        Returns False when there is no neighbour in that direction.
        The two writes are independent; a partial failure is reported as
        ReorderPartialFailure after reloading, and is not corrected.
        """
        ids = [s.id for s in self._statuses]
        if status_id not in ids:
            return False
        idx = ids.index(status_id)
        swap_idx = idx - 1 if direction == "up" else idx + 1
        if swap_idx < 0 or swap_idx >= len(ids):
            return False

        a = self._statuses[idx]
        b = self._statuses[swap_idx]

        results = await asyncio.gather(
            self._store.update(self._collection, a.id, {"order": b.order}),
            self._store.update(self._collection, b.id, {"order": a.order}),
            return_exceptions=True,
        )

        failed = [sid for sid, res in zip((a.id, b.id), results) if isinstance(res, BaseException)]
        if failed:
            for res in results:
                if isinstance(res, BaseException):
                    logger.error("Status order write failed: %r", res)
            try:
                await self.load()
            except Exception:
                logger.exception("Status reload after failed reorder also failed")
            raise ReorderPartialFailure(failed)

        a_order, b_order = a.order, b.order
        a.order, b.order = b_order, a_order
        self.replace(self._statuses)
        return True

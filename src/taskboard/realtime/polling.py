# src/taskboard/realtime/polling.py

from __future__ import annotations

"""
Polling realtime feed.

A small loop that:
- lists the most recently updated documents of each watched collection,
- diffs them against the previous snapshot ($id -> $updatedAt),
- publishes create/update/delete events to subscribers.

Each poll only sees a window of `limit` documents, newest $updatedAt first.
A document missing from a full window is only reported deleted if it was
newer than the oldest document still in the window; anything older may just
have scrolled out. Documents that scroll out stay in the snapshot, so a later
edit is reported as an update. A document first seen after it was edited is
reported as a create followed by an update.

The first poll only primes the snapshot. Stores may also publish their own
writes directly into this feed; the poll will later report the same change
again, which subscribers treat as a duplicate.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping

from ..core.ports import DocumentStore, ListQuery
from .feed import EventType, LocalRealtimeFeed, RealtimeEvent, channel_for

logger = logging.getLogger(__name__)


def _stamp(doc: dict) -> str:
    return str(doc.get("$updatedAt") or "")


class PollingRealtimeFeed(LocalRealtimeFeed):
    def __init__(
        self,
        store: DocumentStore,
        *,
        database_id: str,
        collections: Iterable[str],
        limit: int = 500,
        limits: Mapping[str, int] | None = None,
    ) -> None:
        super().__init__()
        self._store = store
        self._database_id = database_id
        self._collections = tuple(collections)
        self._limit = limit
        self._limits = dict(limits or {})
        self._snapshots: dict[str, dict[str, str]] = {}

    def limit_for(self, collection: str) -> int:
        return self._limits.get(collection, self._limit)

    async def poll_once(self) -> int:
        """Poll every collection once. Returns the number of events published."""
        published = 0
        for collection in self._collections:
            limit = self.limit_for(collection)
            try:
                docs = await self._store.list(
                    collection,
                    ListQuery(order_by="$updatedAt", descending=True, limit=limit),
                )
            except Exception:
                logger.exception("Realtime poll failed collection=%s", collection)
                continue

            current = {str(d.get("$id")): d for d in docs if d.get("$id")}
            previous = self._snapshots.get(collection)
            if previous is None:
                self._snapshots[collection] = {doc_id: _stamp(d) for doc_id, d in current.items()}
                continue

            # Oldest stamp still inside a full window; older misses are not deletes.
            cutoff = min((_stamp(d) for d in current.values()), default="") if len(docs) >= limit else None

            snapshot = dict(previous)
            channel = channel_for(self._database_id, collection)
            for doc_id, doc in current.items():
                stamp = _stamp(doc)
                snapshot[doc_id] = stamp
                if doc_id not in previous:
                    self.publish(channel, RealtimeEvent(EventType.CREATE, doc))
                    published += 1
                    # Edited since creation: known to subscribers that loaded it earlier.
                    if doc.get("$createdAt") != doc.get("$updatedAt"):
                        self.publish(channel, RealtimeEvent(EventType.UPDATE, doc))
                        published += 1
                elif previous[doc_id] != stamp:
                    self.publish(channel, RealtimeEvent(EventType.UPDATE, doc))
                    published += 1

            for doc_id, stamp in previous.items():
                if doc_id in current:
                    continue
                if cutoff is not None and stamp <= cutoff:
                    continue
                del snapshot[doc_id]
                self.publish(channel, RealtimeEvent(EventType.DELETE, {"$id": doc_id}))
                published += 1

            self._snapshots[collection] = snapshot

        if published:
            logger.debug("Realtime poll published %d events", published)
        return published

    async def run(self, *, interval_seconds: float = 5.0) -> None:
        """Poll forever. To stop, cancel the coroutine/task."""
        sleep_s = max(0.5, float(interval_seconds))
        while True:
            await self.poll_once()
            await asyncio.sleep(sleep_s)

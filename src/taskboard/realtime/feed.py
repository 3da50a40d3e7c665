# src/taskboard/realtime/feed.py

from __future__ import annotations

"""
Realtime event model and an in-process feed.

Backend event names look like
    databases.<db>.collections.<collection>.documents.<id>.update
and only the trailing action matters to the board.

LocalRealtimeFeed fans events out to subscribers of a channel. It is what the
SQLite store publishes to, and what tests use to simulate other sessions.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import StrEnum

from ..core.ports import Document, EventHandler, Unsubscribe

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class RealtimeEvent:
    event_type: EventType
    payload: Document

    @property
    def doc_id(self) -> str:
        return str(self.payload.get("$id") or "")


def channel_for(database_id: str, collection: str) -> str:
    return f"databases.{database_id}.collections.{collection}.documents"


def parse_event_name(name: str) -> EventType | None:
    """Map a backend event string to an EventType (None for unrelated events)."""
    action = (name or "").rsplit(".", 1)[-1].strip().lower()
    try:
        return EventType(action)
    except ValueError:
        return None


def event_from_message(events: list[str], payload: Document) -> RealtimeEvent | None:
    """Build a RealtimeEvent from a backend push message (first recognised event name wins)."""
    for name in events:
        et = parse_event_name(name)
        if et is not None:
            return RealtimeEvent(event_type=et, payload=payload)
    return None


class LocalRealtimeFeed:
    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, channel: str, handler: EventHandler) -> Unsubscribe:
        self._handlers[channel].append(handler)
        logger.debug("Subscribed to %s (%d handlers)", channel, len(self._handlers[channel]))

        def _unsubscribe() -> None:
            handlers = self._handlers.get(channel, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def publish(self, channel: str, event: RealtimeEvent) -> None:
        """Deliver to every subscriber; one failing handler does not stop the others."""
        for handler in list(self._handlers.get(channel, [])):
            try:
                handler(event)
            except Exception:
                logger.exception("Realtime handler failed channel=%s event=%s", channel, event.event_type)

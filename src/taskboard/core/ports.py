# src/taskboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The board and the time tracker depend on Protocols instead of concrete backends.
This keeps the document store / realtime transport / auth provider swappable
and makes testing easier.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..realtime.feed import RealtimeEvent
    from ..tasks.models import CurrentUser

Document = dict[str, Any]
# Backend document: user fields plus "$id", "$createdAt", "$updatedAt".

EventHandler = Callable[["RealtimeEvent"], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True, slots=True)
class ListQuery:
    """
    Minimal query model shared by all stores.

    - equal: field -> value (all must match)
    - order_by: field name (including "$createdAt")
    - limit: None means "backend default"
    """

    equal: dict[str, Any] = field(default_factory=dict)
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None


class DocumentStore(Protocol):
    """Generic collection CRUD. Every call is a suspension point."""

    def list(self, collection: str, query: ListQuery | None = None) -> Awaitable[list[Document]]: ...

    def create(self, collection: str, fields: dict[str, Any]) -> Awaitable[Document]: ...

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> Awaitable[Document]: ...

    def delete(self, collection: str, doc_id: str) -> Awaitable[None]: ...


class RealtimeFeed(Protocol):
    """
    Push channel of {create|update|delete, document} events.

    Handlers may be called at any rate and in any order, including
    echoes of this client's own writes.
    """

    def subscribe(self, channel: str, handler: EventHandler) -> Unsubscribe: ...


class AuthOracle(Protocol):
    def current_user(self) -> CurrentUser: ...
    def has_capability(self, name: str) -> bool: ...

# src/taskboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the document store backend (SQLite or Appwrite),
- wires the realtime feed, status registry, time tracker and board into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.auth import StaticAuthOracle
from ..core.ports import DocumentStore
from ..core.state import AppState
from ..realtime.feed import channel_for
from ..realtime.polling import PollingRealtimeFeed
from ..storage.appwrite_store import AppwriteDocumentStore
from ..storage.sqlite_store import SqliteDocumentStore
from ..tasks.board import TaskBoard
from ..tasks.models import CurrentUser
from ..tasks.statuses import StatusRegistry
from ..tasks.time_tracking import TimeTracker

logger = logging.getLogger(__name__)

LOCAL_DATABASE_ID = "local"

DEFAULT_STATUSES = (
    ("To Do", "#94a3b8"),
    ("In Progress", "#22c55e"),
    ("Done", "#6366f1"),
)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def build_store(settings) -> tuple[DocumentStore, str]:
    """Return (store, database_id) for the configured backend."""
    if settings.store_backend == "appwrite":
        store = AppwriteDocumentStore(
            endpoint=settings.appwrite_endpoint,
            project_id=settings.appwrite_project_id,
            database_id=settings.appwrite_database_id,
            api_key=settings.appwrite_api_key,
            timeout=settings.http_timeout_seconds,
        )
        return store, settings.appwrite_database_id

    return SqliteDocumentStore(settings.db_path, database_id=LOCAL_DATABASE_ID), LOCAL_DATABASE_ID


def create_initial_state(*, settings=None, store: DocumentStore | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the store) injectable makes the app easier to test.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if store is None:
        store, database_id = build_store(settings)
    else:
        database_id = str(getattr(store, "database_id", LOCAL_DATABASE_ID))

    feed = PollingRealtimeFeed(
        store,
        database_id=database_id,
        collections=(settings.tasks_collection, settings.time_entries_collection),
        limits={
            settings.tasks_collection: settings.task_list_limit,
            settings.time_entries_collection: settings.time_entry_list_limit,
        },
    )
    if isinstance(store, SqliteDocumentStore):
        # Own writes show up immediately; the poll picks up other processes.
        store.attach_feed(feed)

    registry = StatusRegistry(store, collection=settings.statuses_collection)
    tracker = TimeTracker(store, registry, collection=settings.time_entries_collection)
    board = TaskBoard(
        store,
        registry,
        tracker,
        collection=settings.tasks_collection,
        task_list_limit=settings.task_list_limit,
        time_entry_list_limit=settings.time_entry_list_limit,
    )

    board.subscribe(feed, channel_for(database_id, settings.tasks_collection))
    feed.subscribe(channel_for(database_id, settings.time_entries_collection), tracker.handle_event)

    auth = StaticAuthOracle(
        CurrentUser(id=settings.user_id, name=settings.user_name),
        settings.capabilities,
    )

    return AppState(
        settings=settings,
        store=store,
        feed=feed,
        auth=auth,
        registry=registry,
        tracker=tracker,
        board=board,
    )


async def seed_default_statuses(state: AppState) -> int:
    """Create a minimal workflow when the registry is empty. Returns the number created."""
    if state.registry.statuses:
        return 0
    for name, color in DEFAULT_STATUSES:
        await state.registry.add_status(name, color)
    logger.info("Seeded %d default statuses", len(DEFAULT_STATUSES))
    return len(DEFAULT_STATUSES)


async def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.tracker.drain()
    except Exception:
        logger.exception("Pending time tracking did not finish cleanly.")

    aclose = getattr(state.store, "aclose", None)
    if aclose is not None:
        try:
            await aclose()
        except Exception:
            logger.debug("Store close failed.", exc_info=True)

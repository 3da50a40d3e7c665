# src/taskboard/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads the board, then runs:
- the realtime poll loop in the background,
- the console REPL in the foreground.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from ..cli.bootstrap import create_initial_state, seed_default_statuses, shutdown_state
from ..config import get_settings
from ..logging_setup import setup_logging
from ..storage.sqlite_store import SqliteDocumentStore
from .console import run_console_loop

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    state = create_initial_state(settings=settings)
    poller: asyncio.Task[None] | None = None
    try:
        await state.board.load_all()
        if isinstance(state.store, SqliteDocumentStore):
            await seed_default_statuses(state)

        poller = asyncio.create_task(
            state.feed.run(interval_seconds=settings.poll_interval_seconds)
        )
        await run_console_loop(state)
    finally:
        if poller is not None:
            poller.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poller
        await shutdown_state(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger.info("Starting %s (backend=%s)...", settings.app_name, settings.store_backend)

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()

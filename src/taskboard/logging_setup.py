# src/taskboard/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# The poller and feed log every diffed document; on the console only problems matter.
_QUIET_PREFIXES = ("taskboard.realtime.",)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable while the REPL prompt is open.

    Board, tracker and store records pass at any level. Realtime records pass
    from WARNING. httpx, sqlite and captured warnings pass only from ERROR;
    the log file still gets everything.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("taskboard."):
            return record.levelno >= logging.ERROR
        if name.startswith(_QUIET_PREFIXES):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskboard",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """Route records to stderr (filtered) and to <log_dir>/taskboard.log (full). Call once, first."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    log_file = logging.FileHandler(str(log_dir / "taskboard.log"), encoding="utf-8")
    log_file.setLevel(file_level)
    log_file.setFormatter(fmt)
    root.addHandler(log_file)

    logging.captureWarnings(True)

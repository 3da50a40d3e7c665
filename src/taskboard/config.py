# src/taskboard/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (the SQLite backend needs none).
- Collection ids are configurable so the same code talks to any Appwrite project.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "TASKBOARD"

STORE_BACKENDS = ("sqlite", "appwrite")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Backend selection ----
    store_backend: str
    db_path: Path

    # ---- Appwrite ----
    appwrite_endpoint: str
    appwrite_project_id: str
    appwrite_api_key: str | None
    appwrite_database_id: str
    http_timeout_seconds: float
    poll_interval_seconds: float

    # ---- Collections ----
    tasks_collection: str
    time_entries_collection: str
    statuses_collection: str

    # ---- Load limits ----
    task_list_limit: int
    time_entry_list_limit: int

    # ---- Acting user (console) ----
    manager_capability: str
    user_id: str
    user_name: str
    capabilities: list[str]

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskboard")
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskboard"))

        store_backend = _env(_k("STORE_BACKEND"), "sqlite").strip().lower()
        if store_backend not in STORE_BACKENDS:
            store_backend = "sqlite"
        db_path = _env_path(_k("DB_PATH"), data_dir / "taskboard.sqlite3")

        appwrite_endpoint = _env(_k("APPWRITE_ENDPOINT"), "https://cloud.appwrite.io/v1").rstrip("/")
        appwrite_project_id = _env(_k("APPWRITE_PROJECT_ID"), "").strip()
        appwrite_api_key = _env(_k("APPWRITE_API_KEY"), "").strip() or None
        appwrite_database_id = _env(_k("APPWRITE_DATABASE_ID"), "").strip()
        http_timeout_seconds = max(1.0, _env_float(_k("HTTP_TIMEOUT_SECONDS"), 15.0))
        poll_interval_seconds = max(0.5, _env_float(_k("POLL_INTERVAL_SECONDS"), 5.0))

        tasks_collection = _env(_k("TASKS_COLLECTION"), "tasks")
        time_entries_collection = _env(_k("TIME_ENTRIES_COLLECTION"), "time-entries")
        statuses_collection = _env(_k("STATUSES_COLLECTION"), "task-statuses")

        task_list_limit = max(1, _env_int(_k("TASK_LIST_LIMIT"), 200))
        time_entry_list_limit = max(1, _env_int(_k("TIME_ENTRY_LIST_LIMIT"), 500))

        manager_capability = _env(_k("MANAGER_CAPABILITY"), "manage_tasks")
        user_id = _env(_k("USER_ID"), "local-user").strip()
        user_name = _env(_k("USER_NAME"), "Local User").strip()
        capabilities = _env_list(_k("CAPABILITIES"), [])

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            store_backend=store_backend,
            db_path=db_path,
            appwrite_endpoint=appwrite_endpoint,
            appwrite_project_id=appwrite_project_id,
            appwrite_api_key=appwrite_api_key,
            appwrite_database_id=appwrite_database_id,
            http_timeout_seconds=http_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            tasks_collection=tasks_collection,
            time_entries_collection=time_entries_collection,
            statuses_collection=statuses_collection,
            task_list_limit=task_list_limit,
            time_entry_list_limit=time_entry_list_limit,
            manager_capability=manager_capability,
            user_id=user_id,
            user_name=user_name,
            capabilities=capabilities,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS

# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets (the Appwrite API key). Use a local, gitignored .env.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKBOARD_APP_NAME": "App display name (default: taskboard).",
    "TASKBOARD_LOG_LEVEL": "Console logging level (default: INFO).",
    "TASKBOARD_DATA_DIR": "Local data dir for logs and the SQLite store (default: .local/taskboard).",
    # Backend
    "TASKBOARD_STORE_BACKEND": "sqlite (local file) or appwrite (hosted).",
    "TASKBOARD_DB_PATH": "SQLite file path (default: <data dir>/taskboard.sqlite3).",
    "TASKBOARD_APPWRITE_ENDPOINT": "Appwrite endpoint (default: https://cloud.appwrite.io/v1).",
    "TASKBOARD_APPWRITE_PROJECT_ID": "Appwrite project id (required for appwrite).",
    "TASKBOARD_APPWRITE_DATABASE_ID": "Appwrite database id (required for appwrite).",
    "TASKBOARD_APPWRITE_API_KEY": "Appwrite API key with documents read/write scope.",
    "TASKBOARD_HTTP_TIMEOUT_SECONDS": "HTTP timeout for backend calls (default: 15).",
    "TASKBOARD_POLL_INTERVAL_SECONDS": "Realtime poll interval (default: 5).",
    # Collections
    "TASKBOARD_TASKS_COLLECTION": "Tasks collection id (default: tasks).",
    "TASKBOARD_TIME_ENTRIES_COLLECTION": "Time entries collection id (default: time-entries).",
    "TASKBOARD_STATUSES_COLLECTION": "Statuses collection id (default: task-statuses).",
    "TASKBOARD_TASK_LIST_LIMIT": "Max tasks fetched on load (default: 200).",
    "TASKBOARD_TIME_ENTRY_LIST_LIMIT": "Max recent time entries fetched on load (default: 500).",
    # Acting user
    "TASKBOARD_USER_ID": "Console user id (default: local-user).",
    "TASKBOARD_USER_NAME": "Console user display name.",
    "TASKBOARD_CAPABILITIES": "Comma/space separated capabilities, e.g. manage_tasks.",
    "TASKBOARD_MANAGER_CAPABILITY": "Capability that grants task management (default: manage_tasks).",
}

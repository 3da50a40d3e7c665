# src/taskboard/core/errors.py

from __future__ import annotations


class TaskBoardError(Exception):
    """Base class for errors surfaced to the presentation layer."""


class StoreError(TaskBoardError):
    """A document store call failed (transport, HTTP status, bad payload)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TaskNotFoundError(TaskBoardError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class AuthorizationError(TaskBoardError):
    """The acting user is not the task's assignee."""

    def __init__(self, task_id: str, actor_id: str | None) -> None:
        super().__init__("Only the assignee can change the status of their task.")
        self.task_id = task_id
        self.actor_id = actor_id


class RatingNotAllowedError(TaskBoardError):
    def __init__(self, task_id: str) -> None:
        super().__init__("Only completed tasks can be rated.")
        self.task_id = task_id


class RemoteWriteFailure(TaskBoardError):
    """
    The backend rejected a write after the optimistic local change was applied.

    By the time this is raised the local state has already been corrected
    (rolled back or reloaded, depending on the operation).
    """

    def __init__(self, operation: str, task_id: str | None = None) -> None:
        target = f" task={task_id}" if task_id else ""
        super().__init__(f"Failed to {operation}{target}. Local state was restored.")
        self.operation = operation
        self.task_id = task_id


class ReorderPartialFailure(TaskBoardError):
    """One or both writes of a status order swap failed; orders may now collide."""

    def __init__(self, failed_ids: list[str]) -> None:
        super().__init__(f"Status reorder incomplete (failed: {', '.join(failed_ids)}).")
        self.failed_ids = failed_ids

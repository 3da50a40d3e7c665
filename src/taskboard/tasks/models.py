# src/taskboard/tasks/models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from ..core.ports import Document


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.MEDIUM


def parse_ts(raw: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp from a document; naive values are taken as UTC."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        try:
            dt = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def format_ts(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="milliseconds")


def _float(raw: Any, default: float = 0.0) -> float:
    try:
        return float(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default


def _int(raw: Any, default: int = 0) -> int:
    try:
        return int(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True, slots=True)
class CurrentUser:
    id: str
    name: str


@dataclass(slots=True)
class Status:
    id: str
    name: str
    color: str
    order: int

    @property
    def key(self) -> str:
        """Case-insensitive name used for the in-progress / completed lookups."""
        return (self.name or "").strip().lower()

    @classmethod
    def from_document(cls, doc: Document) -> Status:
        return cls(
            id=str(doc["$id"]),
            name=str(doc.get("name") or ""),
            color=str(doc.get("color") or "#6366f1"),
            order=_int(doc.get("order")),
        )


@dataclass(slots=True)
class Task:
    id: str
    title: str
    description: str
    priority: Priority
    status_id: str
    # Cached lowercase label of status_id, kept for readers that do not load statuses.
    status: str

    creator_id: str = ""
    creator_name: str = ""
    assignee_id: str = ""
    assignee_name: str = ""
    project_id: str = ""

    due_date: date | None = None
    estimated_hours: float = 0.0
    # Legacy split estimate; when > 0 only the integer part of estimated_hours counts.
    estimated_minutes: int = 0
    quality_rating: int = 0
    created_at: datetime | None = None

    @property
    def is_unassigned(self) -> bool:
        return not self.assignee_id

    @classmethod
    def from_document(cls, doc: Document) -> Task:
        due = parse_ts(doc.get("dueDate"))
        rating = _int(doc.get("qualityRating"))
        return cls(
            id=str(doc["$id"]),
            title=str(doc.get("title") or ""),
            description=str(doc.get("description") or ""),
            priority=Priority.from_db(doc.get("priority")),
            status_id=str(doc.get("statusId") or ""),
            status=str(doc.get("status") or ""),
            creator_id=str(doc.get("creatorId") or ""),
            creator_name=str(doc.get("creatorName") or ""),
            assignee_id=str(doc.get("assigneeId") or ""),
            assignee_name=str(doc.get("assigneeName") or ""),
            project_id=str(doc.get("projectId") or ""),
            due_date=due.date() if due else None,
            estimated_hours=max(0.0, _float(doc.get("estimatedHours"))),
            estimated_minutes=max(0, _int(doc.get("estimatedMinutes"))),
            quality_rating=max(0, min(5, rating)),
            created_at=parse_ts(doc.get("$createdAt")),
        )

    def to_fields(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "statusId": self.status_id,
            "status": self.status,
            "creatorId": self.creator_id,
            "creatorName": self.creator_name,
            "assigneeId": self.assignee_id,
            "assigneeName": self.assignee_name,
            "projectId": self.project_id,
            "dueDate": (
                format_ts(datetime(self.due_date.year, self.due_date.month, self.due_date.day, tzinfo=UTC))
                if self.due_date
                else None
            ),
            "estimatedHours": self.estimated_hours,
            "qualityRating": self.quality_rating,
        }


@dataclass(slots=True)
class TimeEntry:
    id: str
    task_id: str
    user_id: str
    start_time: datetime
    # Hours. 0 while the interval is still being tracked.
    duration: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.duration == 0

    @classmethod
    def from_document(cls, doc: Document) -> TimeEntry:
        start = parse_ts(doc.get("startTime")) or parse_ts(doc.get("$createdAt"))
        return cls(
            id=str(doc["$id"]),
            task_id=str(doc.get("taskId") or ""),
            user_id=str(doc.get("userId") or ""),
            start_time=start or datetime.fromtimestamp(0, UTC),
            duration=max(0.0, _float(doc.get("duration"))),
        )

    def to_fields(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "userId": self.user_id,
            "startTime": format_ts(self.start_time),
            "duration": self.duration,
        }

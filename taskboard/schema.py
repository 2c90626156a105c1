"""
Task board schema.

Board columns (fixed, ordered):
  Todo → InProgress → Done

Tasks carry no workflow rules: any status may move to any other. The hub
owns the canonical copy, sessions hold projections of it.
"""
from enum import Enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from .errors import ValidationError


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Accept a datetime or an ISO-8601 string (trailing Z allowed)."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"Invalid timestamp: {value!r}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value!r}")
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class TaskStatus(Enum):
    """Board columns, in display order."""
    TODO = "Todo"
    IN_PROGRESS = "InProgress"
    DONE = "Done"

    @classmethod
    def parse(cls, value: Any) -> "TaskStatus":
        """Strict lookup. Accepts the legacy "In Progress" spelling."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            if text == "In Progress":
                return cls.IN_PROGRESS
            try:
                return cls(text)
            except ValueError:
                pass
        allowed = ", ".join(s.value for s in cls)
        raise ValidationError(f"Invalid status: {value!r}. Allowed: {allowed}")


class TaskPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> "TaskPriority":
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.MEDIUM
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(p.value for p in cls)
            raise ValidationError(f"Invalid priority: {value!r}. Allowed: {allowed}")


def parse_title(value: Any) -> str:
    """Titles are required and trimmed; whitespace-only counts as empty."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("title is required")
    return value.strip()


def parse_user_ref(value: Any) -> Optional[int]:
    """Assignee reference: an integer user id, or None for unassigned."""
    if value is None or value == "":
        return None
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"Invalid user id: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid user id: {value!r}")


def parse_task_id(value: Any) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"Invalid task id: {value!r}")
    try:
        task_id = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid task id: {value!r}")
    if task_id < 1:
        raise ValidationError(f"Invalid task id: {value!r}")
    return task_id


@dataclass(frozen=True)
class User:
    """A roster participant. Static configuration, never created at runtime."""
    id: int
    display_name: str
    initials: str
    accent: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "initials": self.initials,
            "accent": self.accent,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        name = data.get("displayName") or data.get("display_name") or data.get("name") or ""
        initials = data.get("initials") or "".join(p[0] for p in name.split() if p).upper()
        return cls(
            id=int(data["id"]),
            display_name=name,
            initials=initials,
            accent=data.get("accent", ""),
        )


DEFAULT_ROSTER = (
    User(1, "Alice Chen", "AC", "blue"),
    User(2, "Bob Smith", "BS", "indigo"),
    User(3, "Carol Davis", "CD", "cyan"),
    User(4, "David Lee", "DL", "violet"),
)


@dataclass
class Task:
    """Canonical task as persisted by the store and broadcast by the hub."""

    id: int
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    assigned_to: Optional[int] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def with_changes(self, **changes) -> "Task":
        """Copy with fields replaced; the original is left untouched."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Wire format (camelCase keys, ISO timestamps)."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "assignedTo": self.assigned_to,
            "priority": self.priority.value,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Deserialize from wire format. Raises ValidationError on bad data."""
        if not isinstance(data, dict):
            raise ValidationError(f"Task payload must be an object, got {type(data).__name__}")
        if "id" not in data:
            raise ValidationError("Task payload has no id")
        created_at = parse_timestamp(data["createdAt"]) if data.get("createdAt") else utc_now()
        updated_at = parse_timestamp(data["updatedAt"]) if data.get("updatedAt") else created_at
        return cls(
            id=parse_task_id(data["id"]),
            title=parse_title(data.get("title")),
            description=data.get("description") or "",
            status=TaskStatus.parse(data.get("status", TaskStatus.TODO.value)),
            assigned_to=parse_user_ref(data.get("assignedTo")),
            priority=TaskPriority.parse(data.get("priority")),
            created_at=created_at,
            updated_at=updated_at,
        )

"""
Intents (client → hub) and canonical events (hub → every client).

Both are closed sets. Wire names:

    intents:  create | update | delete | move
    events:   created | updated | deleted | moved

Intents are parsed and validated here so the hub and the sessions share one
set of rules. Events are only ever built by the hub from persisted state.
"""
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Union, ClassVar, Tuple

from .errors import ValidationError
from .schema import (
    Task,
    TaskStatus,
    TaskPriority,
    parse_title,
    parse_user_ref,
    parse_task_id,
)


def _parse_description(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"Invalid description: {value!r}")
    return value


# wire key -> (attribute, parser)
UPDATABLE_FIELDS = {
    "title": ("title", parse_title),
    "description": ("description", _parse_description),
    "status": ("status", TaskStatus.parse),
    "assignedTo": ("assigned_to", parse_user_ref),
    "priority": ("priority", TaskPriority.parse),
}
_WIRE_KEYS = {attr: key for key, (attr, _) in UPDATABLE_FIELDS.items()}

# Sent back by clients that echo a full task; never writable.
IMMUTABLE_FIELDS = {"id", "createdAt", "updatedAt"}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Intents
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True)
class CreateTask:
    name: ClassVar[str] = "create"

    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    assigned_to: Optional[int] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    actor: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "assignedTo": self.assigned_to,
            "priority": self.priority.value,
        }


@dataclass(frozen=True)
class UpdateTask:
    name: ClassVar[str] = "update"

    task_id: int
    changes: Dict[str, Any] = field(default_factory=dict)  # attribute name -> parsed value
    actor: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.task_id}
        for attr, value in self.changes.items():
            if isinstance(value, (TaskStatus, TaskPriority)):
                value = value.value
            payload[_WIRE_KEYS[attr]] = value
        return payload


@dataclass(frozen=True)
class DeleteTask:
    name: ClassVar[str] = "delete"

    task_id: int
    actor: Optional[int] = None

    def to_payload(self) -> int:
        return self.task_id


@dataclass(frozen=True)
class MoveTask:
    name: ClassVar[str] = "move"

    task_id: int
    new_status: TaskStatus
    actor: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        return {"taskId": self.task_id, "newStatus": self.new_status.value}


Intent = Union[CreateTask, UpdateTask, DeleteTask, MoveTask]


def _require_object(name: str, payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError(f"{name} payload must be an object")
    return payload


def _parse_create(payload: Any, actor: Optional[int]) -> CreateTask:
    data = _require_object("create", payload)
    return CreateTask(
        title=parse_title(data.get("title")),
        description=_parse_description(data.get("description")),
        status=TaskStatus.parse(data.get("status") or TaskStatus.TODO.value),
        assigned_to=parse_user_ref(data.get("assignedTo")),
        priority=TaskPriority.parse(data.get("priority")),
        actor=actor,
    )


def _parse_update(payload: Any, actor: Optional[int]) -> UpdateTask:
    data = _require_object("update", payload)
    if "id" not in data:
        raise ValidationError("update payload requires id")
    task_id = parse_task_id(data["id"])

    changes = {}
    unknown = []
    for key, value in data.items():
        if key in IMMUTABLE_FIELDS:
            continue
        if key not in UPDATABLE_FIELDS:
            unknown.append(key)
            continue
        attr, parser = UPDATABLE_FIELDS[key]
        changes[attr] = parser(value)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
    return UpdateTask(task_id=task_id, changes=changes, actor=actor)


def _parse_delete(payload: Any, actor: Optional[int]) -> DeleteTask:
    if isinstance(payload, dict):
        payload = payload.get("taskId", payload.get("id"))
    return DeleteTask(task_id=parse_task_id(payload), actor=actor)


def _parse_move(payload: Any, actor: Optional[int]) -> MoveTask:
    data = _require_object("move", payload)
    if "newStatus" not in data:
        raise ValidationError("move payload requires newStatus")
    return MoveTask(
        task_id=parse_task_id(data.get("taskId")),
        new_status=TaskStatus.parse(data["newStatus"]),
        actor=actor,
    )


INTENT_PARSERS = {
    "create": _parse_create,
    "update": _parse_update,
    "delete": _parse_delete,
    "move": _parse_move,
}


def parse_intent(name: str, payload: Any, actor: Optional[int] = None) -> Intent:
    """
    Build a typed intent from a wire name and JSON payload.

    Raises:
        ValidationError for unknown names, empty titles, unknown status or
        priority values, malformed ids, and unknown update fields.
    """
    parser = INTENT_PARSERS.get(name)
    if parser is None:
        raise ValidationError(f"Unknown intent: {name!r}")
    return parser(payload, actor)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Canonical events
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass(frozen=True)
class TaskCreated:
    type: ClassVar[str] = "created"

    task: Task
    seq: int = 0
    actor: Optional[int] = None

    @property
    def task_id(self) -> int:
        return self.task.id

    def payload(self) -> Dict[str, Any]:
        return self.task.to_dict()


@dataclass(frozen=True)
class TaskUpdated:
    type: ClassVar[str] = "updated"

    task: Task
    seq: int = 0
    actor: Optional[int] = None

    @property
    def task_id(self) -> int:
        return self.task.id

    def payload(self) -> Dict[str, Any]:
        return self.task.to_dict()


@dataclass(frozen=True)
class TaskDeleted:
    type: ClassVar[str] = "deleted"

    task_id: int
    seq: int = 0
    actor: Optional[int] = None

    def payload(self) -> int:
        return self.task_id


@dataclass(frozen=True)
class TaskMoved:
    type: ClassVar[str] = "moved"

    task_id: int
    new_status: TaskStatus
    task_title: str = ""
    seq: int = 0
    actor: Optional[int] = None

    def payload(self) -> Dict[str, Any]:
        return {
            "taskId": self.task_id,
            "newStatus": self.new_status.value,
            "taskTitle": self.task_title,
        }


BoardEvent = Union[TaskCreated, TaskUpdated, TaskDeleted, TaskMoved]
EVENT_TYPES: Tuple[str, ...] = ("created", "updated", "deleted", "moved")


def event_to_dict(event: BoardEvent) -> Dict[str, Any]:
    """Envelope sent over the event stream."""
    return {
        "type": event.type,
        "seq": event.seq,
        "actor": event.actor,
        "payload": event.payload(),
    }


def event_from_dict(data: Dict[str, Any]) -> BoardEvent:
    """Parse an event envelope. Raises ValidationError on anything malformed."""
    if not isinstance(data, dict):
        raise ValidationError("event envelope must be an object")
    kind = data.get("type")
    seq = int(data.get("seq") or 0)
    actor = parse_user_ref(data.get("actor"))
    payload = data.get("payload")

    if kind == "created":
        return TaskCreated(task=Task.from_dict(payload), seq=seq, actor=actor)
    if kind == "updated":
        return TaskUpdated(task=Task.from_dict(payload), seq=seq, actor=actor)
    if kind == "deleted":
        return TaskDeleted(task_id=parse_task_id(payload), seq=seq, actor=actor)
    if kind == "moved":
        body = _require_object("moved", payload)
        return TaskMoved(
            task_id=parse_task_id(body.get("taskId")),
            new_status=TaskStatus.parse(body.get("newStatus")),
            task_title=body.get("taskTitle") or "",
            seq=seq,
            actor=actor,
        )
    raise ValidationError(f"Unknown event type: {kind!r}")

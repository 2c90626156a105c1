"""
Client session: a local, non-authoritative projection of the board.

The session never applies its own intents. It sends them to the hub and
waits for the broadcast like every other client. Reconciliation is written
so that applying the same event twice leaves the projection unchanged:

    created → insert unless present
    updated → replace, or insert if missing (joined mid-flight)
    deleted → remove if present
    moved   → set status if present
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from .activity import ActivityRecorder, DEFAULT_LIMIT
from .cache import LocalCache
from .errors import BoardError
from .events import (
    BoardEvent,
    Intent,
    TaskCreated,
    TaskDeleted,
    TaskMoved,
    TaskUpdated,
    parse_intent,
)
from .schema import Task, TaskStatus, TaskPriority, User, DEFAULT_ROSTER

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def send(self, intent: Intent) -> None: ...


class LocalTransport:
    """Sends intents straight to an in-process hub."""

    def __init__(self, hub):
        self.hub = hub

    def send(self, intent: Intent) -> None:
        self.hub.submit(intent)


@dataclass(frozen=True)
class BoardStats:
    total: int
    completed: int
    in_progress: int
    completion_rate: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "completed": self.completed,
            "inProgress": self.in_progress,
            "completionRate": self.completion_rate,
        }


def compute_stats(tasks: Sequence[Task]) -> BoardStats:
    """Counts plus completion percentage, rounded half up; 0 for an empty board."""
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status == TaskStatus.DONE)
    in_progress = sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS)
    rate = (200 * completed + total) // (2 * total) if total else 0
    return BoardStats(total, completed, in_progress, rate)


# Session-side keyword names -> wire keys for update intents
_UPDATE_KEYS = {
    "title": "title",
    "description": "description",
    "status": "status",
    "assigned_to": "assignedTo",
    "priority": "priority",
}


def _wire_value(value: Any) -> Any:
    return value.value if isinstance(value, (TaskStatus, TaskPriority)) else value


class BoardSession:
    """Per-connection projection, derived views, and intent helpers."""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        roster: Sequence[User] = DEFAULT_ROSTER,
        activity_limit: int = DEFAULT_LIMIT,
        cache: Optional[LocalCache] = None,
        actor: Optional[int] = None,
        clock: Optional[Callable] = None,
    ):
        self.transport = transport
        self.roster = tuple(roster)
        self.cache = cache
        self.actor = actor
        recorder_kwargs = {"clock": clock} if clock else {}
        self.activity = ActivityRecorder(self.roster, limit=activity_limit, **recorder_kwargs)
        self._tasks: Dict[int, Task] = {}
        self._lock = threading.RLock()
        self._snapshot_seq = 0
        self.last_seq = 0

    # ── Connection ───────────────────────────────────────────────────────────

    def paint_from_cache(self) -> bool:
        """Fill the projection from the local cache. Returns True if anything was loaded."""
        if self.cache is None:
            return False
        cached = self.cache.load()
        with self._lock:
            self._tasks = {t.id: t for t in cached.tasks}
            self.activity.restore(cached.activity)
        return bool(cached.tasks or cached.activity)

    def load_snapshot(self, tasks: Sequence[Task], seq: int = 0) -> None:
        """
        Replace the projection with an authoritative snapshot.

        seq is the hub sequence number the snapshot reflects; buffered events
        at or below it are already contained in the snapshot and are skipped.
        """
        with self._lock:
            self._tasks = {t.id: t for t in tasks}
            self._snapshot_seq = seq
            self.last_seq = max(self.last_seq, seq) if seq else self.last_seq
            self._save_cache()
        logger.debug(f"Loaded snapshot: {len(tasks)} tasks at seq {seq}")

    def attach(self, hub) -> int:
        """
        Join an in-process hub: subscribe, load its snapshot, send intents to it.

        Subscription and snapshot happen under the hub's lock, so no event
        can slip in between them. Returns the subscription handle.
        """
        self.paint_from_cache()
        self.transport = LocalTransport(hub)
        return hub.connect(self.apply, self.load_snapshot)

    # ── Reconciliation ───────────────────────────────────────────────────────

    def apply(self, event: BoardEvent) -> bool:
        """Reconcile one broadcast event. Returns True if the projection changed."""
        if not isinstance(event, (TaskCreated, TaskUpdated, TaskDeleted, TaskMoved)):
            raise TypeError(f"Unknown event type: {type(event).__name__}")

        with self._lock:
            if event.seq and event.seq <= self._snapshot_seq:
                logger.debug(f"Skipping {event.type} #{event.seq}: already in snapshot")
                return False
            if event.seq and event.seq < self.last_seq:
                logger.debug(f"Out-of-order {event.type} #{event.seq} (last {self.last_seq})")
            self.last_seq = max(self.last_seq, event.seq)

            title_snapshot = None
            status_snapshot = None

            if isinstance(event, TaskCreated):
                changed = event.task.id not in self._tasks
                if changed:
                    self._tasks[event.task.id] = event.task
            elif isinstance(event, TaskUpdated):
                changed = self._tasks.get(event.task.id) != event.task
                self._tasks[event.task.id] = event.task
            elif isinstance(event, TaskDeleted):
                removed = self._tasks.pop(event.task_id, None)
                changed = removed is not None
                if removed is not None:
                    title_snapshot = removed.title
                    status_snapshot = removed.status.value
            else:
                current = self._tasks.get(event.task_id)
                changed = current is not None and current.status != event.new_status
                if changed:
                    self._tasks[event.task_id] = current.with_changes(status=event.new_status)

            self.activity.record(event, task_title=title_snapshot, status=status_snapshot)
            if changed:
                self._save_cache()
            return changed

    def _save_cache(self) -> None:
        if self.cache is not None:
            self.cache.save(list(self._tasks.values()), self.activity.entries())

    # ── Derived views ────────────────────────────────────────────────────────

    def tasks(self) -> List[Task]:
        with self._lock:
            return list(self._tasks.values())

    def find(self, task_id: int) -> Optional[Task]:
        with self._lock:
            return self._tasks.get(task_id)

    def columns(self) -> Dict[TaskStatus, List[Task]]:
        """Tasks grouped by status; every column present, in board order."""
        grouped: Dict[TaskStatus, List[Task]] = {status: [] for status in TaskStatus}
        for task in self.tasks():
            grouped[task.status].append(task)
        return grouped

    def stats(self) -> BoardStats:
        return compute_stats(self.tasks())

    def tasks_for(self, user_id: Optional[int]) -> List[Task]:
        """Tasks assigned to a user; None selects unassigned tasks."""
        return [t for t in self.tasks() if t.assigned_to == user_id]

    def user(self, user_id: Optional[int]) -> Optional[User]:
        return next((u for u in self.roster if u.id == user_id), None)

    # ── Intents ──────────────────────────────────────────────────────────────

    def _send(self, name: str, payload: Any) -> Intent:
        # Local checks are for quick feedback only; the hub validates again.
        intent = parse_intent(name, payload, actor=self.actor)
        if self.transport is None:
            raise BoardError("session has no transport; attach or connect it first")
        self.transport.send(intent)
        return intent

    def create_task(
        self,
        title: str,
        description: str = "",
        status: Any = TaskStatus.TODO,
        assigned_to: Optional[int] = None,
        priority: Any = TaskPriority.MEDIUM,
    ) -> Intent:
        """Send a create intent. Raises ValidationError for an empty title."""
        return self._send("create", {
            "title": title,
            "description": description,
            "status": _wire_value(status),
            "assignedTo": assigned_to,
            "priority": _wire_value(priority),
        })

    def update_task(self, task_id: int, **changes) -> Intent:
        unknown = set(changes) - set(_UPDATE_KEYS)
        if unknown:
            raise TypeError(f"Unknown task fields: {', '.join(sorted(unknown))}")
        payload = {"id": task_id}
        for key, value in changes.items():
            payload[_UPDATE_KEYS[key]] = _wire_value(value)
        return self._send("update", payload)

    def delete_task(self, task_id: int) -> Intent:
        return self._send("delete", task_id)

    def move_task(self, task_id: int, new_status: Any) -> Intent:
        return self._send("move", {"taskId": task_id, "newStatus": _wire_value(new_status)})

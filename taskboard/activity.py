"""
Activity feed: a bounded, newest-first log of board mutations.

Entries are derived from the broadcast event stream, never from intents, so
every session records the same actions. Attribution comes from the actor id
the hub stamps on each event, resolved against the configured roster.
"""
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Any, List, Optional, Sequence

from .events import BoardEvent, TaskCreated, TaskUpdated, TaskDeleted, TaskMoved
from .schema import User, DEFAULT_ROSTER, utc_now, parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
UNKNOWN_USER = "Someone"


@dataclass(frozen=True)
class ActivityEntry:
    id: int
    action: str                     # created | updated | deleted | moved
    task_id: int
    task_title: Optional[str]
    status: Optional[str]
    timestamp: datetime
    user: str

    @property
    def summary(self) -> str:
        """Human-readable action text."""
        if self.action == "moved":
            return f"moved task to {self.status}"
        return f"{self.action} task"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "taskId": self.task_id,
            "task": self.task_title,
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
            "user": self.user,
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActivityEntry":
        return cls(
            id=int(data["id"]),
            action=data["action"],
            task_id=int(data["taskId"]),
            task_title=data.get("task"),
            status=data.get("status"),
            timestamp=parse_timestamp(data["timestamp"]),
            user=data.get("user") or UNKNOWN_USER,
        )


class ActivityRecorder:
    """Fixed-capacity activity log; the oldest entries fall off the end."""

    def __init__(
        self,
        roster: Sequence[User] = DEFAULT_ROSTER,
        limit: int = DEFAULT_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ):
        if limit < 1:
            raise ValueError(f"activity limit must be >= 1, got {limit}")
        self._users = {u.id: u for u in roster}
        self._entries: deque = deque(maxlen=limit)
        self._next_id = 1
        self.clock = clock

    @property
    def limit(self) -> int:
        return self._entries.maxlen

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> List[ActivityEntry]:
        """Newest first."""
        return list(self._entries)

    def attribute(self, actor: Optional[int]) -> str:
        user = self._users.get(actor) if actor is not None else None
        return user.display_name if user else UNKNOWN_USER

    def record(
        self,
        event: BoardEvent,
        task_title: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Optional[ActivityEntry]:
        """
        Append one entry for a reconciled event.

        task_title/status are snapshots for deletes, where the event itself
        carries only the id. Never raises: a failed append is logged and the
        caller carries on.
        """
        try:
            if isinstance(event, (TaskCreated, TaskUpdated)):
                task_title = event.task.title
                status = event.task.status.value
            elif isinstance(event, TaskMoved):
                task_title = event.task_title or task_title
                status = event.new_status.value
            elif not isinstance(event, TaskDeleted):
                raise TypeError(f"Unknown event type: {type(event).__name__}")

            entry = ActivityEntry(
                id=self._next_id,
                action=event.type,
                task_id=event.task_id,
                task_title=task_title,
                status=status,
                timestamp=self.clock(),
                user=self.attribute(event.actor),
            )
        except Exception as e:
            logger.warning(f"Could not record activity: {e}")
            return None

        self._next_id += 1
        self._entries.appendleft(entry)
        return entry

    def restore(self, entries: Sequence[ActivityEntry]) -> None:
        """Replace the log with previously saved entries (newest first)."""
        self._entries.clear()
        for entry in list(entries)[: self.limit]:
            self._entries.append(entry)
        if self._entries:
            self._next_id = max(e.id for e in self._entries) + 1

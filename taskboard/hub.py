"""
Synchronization hub: the single writer for the task board.

Every intent, from any client, goes through submit():

    validate → apply to store → broadcast canonical event to all subscribers

All three steps run under one lock, so the order in which intents are
applied is the order every subscriber receives the events in. There is no
merge step: the last intent to reach the hub wins for the fields it touches.

If the store rejects a write, the mutation is dropped and nothing is
broadcast; subscribers stay on the last persisted state.
"""
import logging
import threading
from collections import deque
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from .events import (
    BoardEvent,
    CreateTask,
    DeleteTask,
    Intent,
    MoveTask,
    TaskCreated,
    TaskDeleted,
    TaskMoved,
    TaskUpdated,
    UpdateTask,
    parse_intent,
)
from .errors import ValidationError
from .schema import Task, utc_now
from .store import TaskStore

logger = logging.getLogger(__name__)

Listener = Callable[[BoardEvent], None]


class SyncHub:
    """Applies intents against the store and fans canonical events out."""

    def __init__(self, store: TaskStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock
        self._lock = threading.RLock()
        self._listeners: Dict[int, Listener] = {}
        self._next_handle = 1
        self._seq = 0
        self._pending: deque = deque()
        self._delivering = False

    # ── Subscriptions ────────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> int:
        """Register a broadcast listener. Returns a handle for unsubscribe()."""
        with self._lock:
            handle = self._next_handle
            self._next_handle += 1
            self._listeners[handle] = listener
        logger.debug(f"Subscriber {handle} connected ({len(self._listeners)} total)")
        return handle

    def unsubscribe(self, handle: int) -> None:
        with self._lock:
            self._listeners.pop(handle, None)
        logger.debug(f"Subscriber {handle} disconnected")

    def connect(self, listener: Listener, on_snapshot: Callable[[List[Task], int], None]) -> int:
        """
        Subscribe and hand over a snapshot in one step.

        on_snapshot(tasks, seq) runs while the hub lock is held, so the
        listener cannot see an event older than the snapshot it was given.
        """
        with self._lock:
            handle = self.subscribe(listener)
            on_snapshot(self.store.find_all(), self._seq)
        return handle

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def _broadcast(self, event: BoardEvent) -> None:
        """
        Deliver to every listener, the originator included.

        An intent submitted by a listener mid-delivery is applied at once but
        its event is queued behind the current one, so every listener sees
        events in seq order.
        """
        self._pending.append(event)
        if self._delivering:
            return
        self._delivering = True
        try:
            while self._pending:
                current = self._pending.popleft()
                for handle, listener in list(self._listeners.items()):
                    try:
                        listener(current)
                    except Exception as e:
                        logger.error(
                            f"Error delivering {current.type} #{current.seq} to subscriber {handle}: {e}"
                        )
        finally:
            self._delivering = False

    # ── Reads ────────────────────────────────────────────────────────────────

    def snapshot(self) -> List[Task]:
        """Bulk read of the canonical collection."""
        return self.store.find_all()

    def versioned_snapshot(self) -> Tuple[int, List[Task]]:
        """Snapshot plus the sequence number of the last event it reflects."""
        with self._lock:
            return self._seq, self.store.find_all()

    @property
    def last_seq(self) -> int:
        return self._seq

    # ── Intents ──────────────────────────────────────────────────────────────

    def submit_raw(self, name: str, payload, actor: Optional[int] = None) -> Optional[BoardEvent]:
        """Parse a wire intent and submit it. Invalid intents are logged and dropped."""
        try:
            intent = parse_intent(name, payload, actor=actor)
        except ValidationError as e:
            logger.info(f"Rejected {name} intent: {e}")
            return None
        return self.submit(intent)

    def submit(self, intent: Intent) -> Optional[BoardEvent]:
        """
        Apply one intent and broadcast the result.

        Returns:
            The broadcast event, or None when the intent was rejected,
            referenced a missing task, or could not be persisted.
        """
        with self._lock:
            if isinstance(intent, CreateTask):
                event = self._create(intent)
            elif isinstance(intent, UpdateTask):
                event = self._update(intent)
            elif isinstance(intent, DeleteTask):
                event = self._delete(intent)
            elif isinstance(intent, MoveTask):
                event = self._move(intent)
            else:
                raise TypeError(f"Unknown intent type: {type(intent).__name__}")

            if event is not None:
                self._broadcast(event)
            return event

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def _now(self, not_before: Optional[datetime] = None) -> datetime:
        now = self.clock()
        if not_before is not None and now < not_before:
            return not_before
        return now

    def _create(self, intent: CreateTask) -> Optional[TaskCreated]:
        task_id = self.store.next_task_id()
        if task_id is None:
            logger.error(f"Create '{intent.title}' dropped: could not allocate an id")
            return None

        now = self._now()
        task = Task(
            id=task_id,
            title=intent.title,
            description=intent.description,
            status=intent.status,
            assigned_to=intent.assigned_to,
            priority=intent.priority,
            created_at=now,
            updated_at=now,
        )
        if not self.store.insert(task):
            logger.error(f"Create task {task_id} dropped: store write failed")
            return None

        logger.info(f"Created task {task_id}: {task.title}")
        return TaskCreated(task=task, seq=self._next_seq(), actor=intent.actor)

    def _update(self, intent: UpdateTask) -> Optional[TaskUpdated]:
        current = self.store.find(intent.task_id)
        if current is None:
            logger.warning(f"Update ignored: task {intent.task_id} not found")
            return None

        merged = current.with_changes(
            updated_at=self._now(not_before=current.created_at),
            **intent.changes,
        )
        if not self.store.update(merged):
            logger.error(f"Update task {intent.task_id} dropped: store write failed")
            return None

        logger.info(f"Updated task {merged.id}: {', '.join(sorted(intent.changes)) or 'touch'}")
        return TaskUpdated(task=merged, seq=self._next_seq(), actor=intent.actor)

    def _delete(self, intent: DeleteTask) -> Optional[TaskDeleted]:
        if self.store.find(intent.task_id) is None:
            logger.debug(f"Delete ignored: task {intent.task_id} not found")
            return None

        if not self.store.delete(intent.task_id):
            logger.error(f"Delete task {intent.task_id} dropped: store write failed")
            return None

        logger.info(f"Deleted task {intent.task_id}")
        return TaskDeleted(task_id=intent.task_id, seq=self._next_seq(), actor=intent.actor)

    def _move(self, intent: MoveTask) -> Optional[TaskMoved]:
        current = self.store.find(intent.task_id)
        if current is None:
            logger.warning(f"Move ignored: task {intent.task_id} not found")
            return None

        moved = current.with_changes(
            status=intent.new_status,
            updated_at=self._now(not_before=current.created_at),
        )
        if not self.store.update(moved):
            logger.error(f"Move task {intent.task_id} dropped: store write failed")
            return None

        logger.info(f"Moved task {moved.id} to {moved.status.value}")
        return TaskMoved(
            task_id=moved.id,
            new_status=moved.status,
            task_title=moved.title,
            seq=self._next_seq(),
            actor=intent.actor,
        )

"""
Task storage backend (SQLite).

Document-store contract used by the hub: find / insert / update / delete by
task id, plus a bulk read. Storage errors never escape; they are logged and
reported through the return value so the caller can fail closed.
"""
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional

from .errors import ValidationError
from .schema import Task, TaskStatus, TaskPriority, parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "taskboard" / "tasks.db"


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode with dict-like rows."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class TaskStore:
    """SQLite-backed store for board tasks."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize store and create tables if needed."""
        if db_path is None:
            db_path = str(DEFAULT_DB_PATH)
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'Todo',
                    assigned_to INTEGER,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")
            conn.commit()

    def insert(self, task: Task) -> bool:
        """Insert a new task. Fails (False) if the id is already taken."""
        try:
            with _connect(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO tasks
                    (id, title, description, status, assigned_to, priority, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, self._task_params(task))
                conn.commit()
                return True
        except sqlite3.Error as e:
            logger.error(f"Error inserting task {task.id}: {e}")
            return False

    def update(self, task: Task) -> bool:
        """Overwrite a stored task. False if it does not exist or the write fails."""
        try:
            with _connect(self.db_path) as conn:
                params = self._task_params(task)
                cursor = conn.execute("""
                    UPDATE tasks
                    SET title = ?, description = ?, status = ?, assigned_to = ?,
                        priority = ?, created_at = ?, updated_at = ?
                    WHERE id = ?
                """, params[1:] + params[:1])
                conn.commit()
                return cursor.rowcount == 1
        except sqlite3.Error as e:
            logger.error(f"Error updating task {task.id}: {e}")
            return False

    def delete(self, task_id: int) -> bool:
        """Delete a task. False if nothing was removed or the write fails."""
        try:
            with _connect(self.db_path) as conn:
                cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Error deleting task {task_id}: {e}")
            return False

    def find(self, task_id: int) -> Optional[Task]:
        """Retrieve a task by id."""
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT * FROM tasks WHERE id = ?", (task_id,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error retrieving task {task_id}: {e}")
            return None
        return self._row_to_task(row) if row else None

    def find_all(self) -> List[Task]:
        """Bulk read of every task, in id order."""
        try:
            with _connect(self.db_path) as conn:
                rows = conn.execute("SELECT * FROM tasks ORDER BY id ASC").fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error listing tasks: {e}")
            return []
        tasks = []
        for row in rows:
            task = self._row_to_task(row)
            if task is not None:
                tasks.append(task)
        return tasks

    def next_task_id(self) -> Optional[int]:
        """
        Next id, never reused: the highest id ever stored plus one.

        sqlite_sequence remembers ids of deleted rows; MAX(id) covers
        databases created before the column was AUTOINCREMENT.
        Single-writer safe only.
        """
        try:
            with _connect(self.db_path) as conn:
                highest = conn.execute("SELECT MAX(id) FROM tasks").fetchone()[0] or 0
                has_sequence = conn.execute(
                    "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'sqlite_sequence'"
                ).fetchone()
                if has_sequence:
                    row = conn.execute(
                        "SELECT seq FROM sqlite_sequence WHERE name = 'tasks'"
                    ).fetchone()
                    if row and row[0]:
                        highest = max(highest, row[0])
        except sqlite3.Error as e:
            logger.error(f"Error allocating task id: {e}")
            return None
        return highest + 1

    @staticmethod
    def _task_params(task: Task) -> tuple:
        return (
            task.id,
            task.title,
            task.description,
            task.status.value,
            task.assigned_to,
            task.priority.value,
            task.created_at.isoformat(),
            task.updated_at.isoformat(),
        )

    def _row_to_task(self, row: sqlite3.Row) -> Optional[Task]:
        """Convert a database row to a Task; unreadable rows are skipped."""
        try:
            return Task(
                id=row["id"],
                title=row["title"],
                description=row["description"] or "",
                status=TaskStatus.parse(row["status"]),
                assigned_to=row["assigned_to"],
                priority=TaskPriority.parse(row["priority"]),
                created_at=parse_timestamp(row["created_at"]),
                updated_at=parse_timestamp(row["updated_at"]),
            )
        except ValidationError as e:
            logger.warning(f"Skipping unreadable task row {row['id']}: {e}")
            return None

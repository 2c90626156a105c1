"""
Tests for the SQLite task store.
"""
import sqlite3

from taskboard.schema import Task, TaskPriority, TaskStatus
from taskboard.store import TaskStore


def test_insert_and_find(store):
    """Saved task comes back with every field intact"""
    task = Task(id=1, title="Write spec", priority=TaskPriority.HIGH, assigned_to=2)
    assert store.insert(task)

    found = store.find(1)
    assert found == task


def test_find_missing_returns_none(store):
    assert store.find(42) is None


def test_insert_duplicate_id_fails(store):
    """At most one task per id"""
    assert store.insert(Task(id=1, title="First"))
    assert not store.insert(Task(id=1, title="Second"))
    assert store.find(1).title == "First"


def test_update_overwrites(store):
    task = Task(id=1, title="Original")
    store.insert(task)

    assert store.update(task.with_changes(title="Updated", status=TaskStatus.DONE))

    updated = store.find(1)
    assert updated.title == "Updated"
    assert updated.status == TaskStatus.DONE


def test_update_missing_task_fails(store):
    assert not store.update(Task(id=99, title="Ghost"))
    assert store.find(99) is None


def test_delete(store):
    store.insert(Task(id=1, title="Doomed"))
    assert store.delete(1)
    assert store.find(1) is None
    assert not store.delete(1)


def test_find_all_in_id_order(store):
    for task_id in (3, 1, 2):
        store.insert(Task(id=task_id, title=f"Task {task_id}"))
    assert [t.id for t in store.find_all()] == [1, 2, 3]


def test_next_task_id(store):
    assert store.next_task_id() == 1
    store.insert(Task(id=1, title="a"))
    store.insert(Task(id=5, title="b"))
    assert store.next_task_id() == 6


def test_next_task_id_survives_deleting_highest(store):
    """Ids of deleted tasks are never handed out again"""
    store.insert(Task(id=1, title="a"))
    store.insert(Task(id=2, title="b"))
    store.delete(2)
    assert store.next_task_id() == 3


def test_next_task_id_on_legacy_table(tmp_path):
    """A table created without AUTOINCREMENT still allocates from MAX(id)"""
    db_path = tmp_path / "legacy.db"
    with sqlite3.connect(db_path) as conn:
        conn.execute("""
            CREATE TABLE tasks (
                id INTEGER PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT DEFAULT '',
                status TEXT NOT NULL DEFAULT 'Todo',
                assigned_to INTEGER,
                priority TEXT NOT NULL DEFAULT 'medium',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.commit()
    store = TaskStore(str(db_path))
    store.insert(Task(id=4, title="old"))
    assert store.next_task_id() == 5


def test_unreadable_rows_are_skipped(store):
    """A row with a status outside the fixed set never reaches a projection"""
    store.insert(Task(id=1, title="Good"))
    with sqlite3.connect(store.db_path) as conn:
        conn.execute(
            "INSERT INTO tasks (id, title, status, priority, created_at, updated_at) "
            "VALUES (2, 'Bad', 'Archived', 'medium', '2024-01-01T00:00:00+00:00', '2024-01-01T00:00:00+00:00')"
        )
        conn.commit()

    assert [t.id for t in store.find_all()] == [1]
    assert store.find(2) is None


def test_storage_errors_are_reported_not_raised(tmp_path):
    store = TaskStore(str(tmp_path / "tasks.db"))
    with sqlite3.connect(store.db_path) as conn:
        conn.execute("DROP TABLE tasks")
        conn.commit()

    assert not store.insert(Task(id=1, title="x"))
    assert not store.update(Task(id=1, title="x"))
    assert not store.delete(1)
    assert store.find(1) is None
    assert store.find_all() == []
    assert store.next_task_id() is None


def test_creates_parent_directory(tmp_path):
    db_path = tmp_path / "nested" / "dir" / "tasks.db"
    TaskStore(str(db_path))
    assert db_path.exists()

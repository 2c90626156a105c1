"""
Tests for the board data model and the intent/event wire formats.
"""
from datetime import datetime, timezone

import pytest

from taskboard.errors import ValidationError
from taskboard.events import (
    CreateTask,
    DeleteTask,
    MoveTask,
    TaskMoved,
    UpdateTask,
    event_from_dict,
    event_to_dict,
    parse_intent,
)
from taskboard.schema import (
    Task,
    TaskPriority,
    TaskStatus,
    User,
    parse_timestamp,
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Enums
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_status_order_matches_board_columns():
    assert [s.value for s in TaskStatus] == ["Todo", "InProgress", "Done"]


def test_status_parse_accepts_legacy_spelling():
    assert TaskStatus.parse("In Progress") == TaskStatus.IN_PROGRESS
    assert TaskStatus.parse("InProgress") == TaskStatus.IN_PROGRESS
    assert TaskStatus.parse(TaskStatus.DONE) == TaskStatus.DONE


@pytest.mark.parametrize("value", ["Archived", "todo", "", None, 3])
def test_status_parse_rejects_unknown(value):
    with pytest.raises(ValidationError):
        TaskStatus.parse(value)


def test_priority_defaults_to_medium():
    assert TaskPriority.parse(None) == TaskPriority.MEDIUM
    assert TaskPriority.parse("") == TaskPriority.MEDIUM
    assert TaskPriority.parse("HIGH") == TaskPriority.HIGH


def test_priority_rejects_unknown():
    with pytest.raises(ValidationError):
        TaskPriority.parse("critical")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Task
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_task_defaults():
    task = Task(id=1, title="Write spec")
    assert task.status == TaskStatus.TODO
    assert task.priority == TaskPriority.MEDIUM
    assert task.assigned_to is None
    assert task.description == ""


def test_task_to_dict_uses_wire_keys():
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    task = Task(
        id=7,
        title="Ship it",
        status=TaskStatus.IN_PROGRESS,
        assigned_to=3,
        priority=TaskPriority.HIGH,
        created_at=created,
        updated_at=created,
    )
    data = task.to_dict()
    assert data["assignedTo"] == 3
    assert data["status"] == "InProgress"
    assert data["priority"] == "high"
    assert data["createdAt"] == "2024-01-01T00:00:00+00:00"
    assert Task.from_dict(data) == task


def test_task_from_dict_accepts_z_suffix_and_blank_assignee():
    task = Task.from_dict({
        "id": "4",
        "title": "  Trim me  ",
        "status": "In Progress",
        "assignedTo": "",
        "createdAt": "2024-01-01T00:00:00Z",
    })
    assert task.id == 4
    assert task.title == "Trim me"
    assert task.assigned_to is None
    assert task.status == TaskStatus.IN_PROGRESS
    assert task.updated_at == task.created_at


def test_task_from_dict_requires_title():
    with pytest.raises(ValidationError):
        Task.from_dict({"id": 1, "title": "   "})


def test_with_changes_leaves_original_untouched():
    task = Task(id=1, title="A")
    moved = task.with_changes(status=TaskStatus.DONE)
    assert task.status == TaskStatus.TODO
    assert moved.status == TaskStatus.DONE


def test_parse_timestamp_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_timestamp("yesterday")


def test_user_from_dict_derives_initials():
    user = User.from_dict({"id": 9, "name": "Grace Hopper"})
    assert user.display_name == "Grace Hopper"
    assert user.initials == "GH"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Intents
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestParseIntent:

    def test_create(self):
        intent = parse_intent("create", {
            "title": " Write spec ",
            "status": "Todo",
            "priority": "high",
            "assignedTo": 2,
        }, actor=1)
        assert isinstance(intent, CreateTask)
        assert intent.title == "Write spec"
        assert intent.priority == TaskPriority.HIGH
        assert intent.assigned_to == 2
        assert intent.actor == 1

    def test_create_missing_status_defaults_to_todo(self):
        intent = parse_intent("create", {"title": "x"})
        assert intent.status == TaskStatus.TODO

    @pytest.mark.parametrize("title", ["", "   ", None])
    def test_create_rejects_empty_title(self, title):
        with pytest.raises(ValidationError):
            parse_intent("create", {"title": title})

    def test_create_rejects_non_object(self):
        with pytest.raises(ValidationError):
            parse_intent("create", "Write spec")

    def test_update_keeps_only_given_fields(self):
        intent = parse_intent("update", {"id": 2, "priority": "low"})
        assert isinstance(intent, UpdateTask)
        assert intent.task_id == 2
        assert intent.changes == {"priority": TaskPriority.LOW}

    def test_update_ignores_immutable_fields(self):
        intent = parse_intent("update", {
            "id": 2,
            "title": "Renamed",
            "createdAt": "2020-01-01T00:00:00Z",
            "updatedAt": "2020-01-01T00:00:00Z",
        })
        assert intent.changes == {"title": "Renamed"}

    def test_update_rejects_unknown_fields(self):
        with pytest.raises(ValidationError) as exc:
            parse_intent("update", {"id": 2, "owner": 5})
        assert "owner" in str(exc.value)

    def test_update_requires_id(self):
        with pytest.raises(ValidationError):
            parse_intent("update", {"title": "x"})

    def test_update_payload_uses_wire_keys(self):
        intent = parse_intent("update", {"id": 2, "assignedTo": 3, "status": "Done"})
        assert intent.to_payload() == {"id": 2, "assignedTo": 3, "status": "Done"}

    def test_delete_accepts_bare_id_or_object(self):
        assert parse_intent("delete", 5) == DeleteTask(task_id=5)
        assert parse_intent("delete", {"taskId": 5}) == DeleteTask(task_id=5)

    @pytest.mark.parametrize("payload", [None, "abc", 0, -1, True, 1.5, 1.9])
    def test_delete_rejects_bad_ids(self, payload):
        with pytest.raises(ValidationError):
            parse_intent("delete", payload)

    def test_move(self):
        intent = parse_intent("move", {"taskId": 1, "newStatus": "InProgress"})
        assert intent == MoveTask(task_id=1, new_status=TaskStatus.IN_PROGRESS)

    def test_whole_number_floats_are_ids(self):
        assert parse_intent("delete", 2.0) == DeleteTask(task_id=2)

    def test_move_rejects_fractional_task_id(self):
        with pytest.raises(ValidationError):
            parse_intent("move", {"taskId": 1.7, "newStatus": "Done"})

    def test_create_rejects_fractional_assignee(self):
        with pytest.raises(ValidationError):
            parse_intent("create", {"title": "x", "assignedTo": 2.5})

    def test_move_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            parse_intent("move", {"taskId": 1, "newStatus": "Blocked"})

    def test_unknown_intent(self):
        with pytest.raises(ValidationError):
            parse_intent("archive", {"taskId": 1})


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Event envelopes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_moved_event_envelope():
    event = TaskMoved(task_id=1, new_status=TaskStatus.DONE, task_title="Write spec", seq=4, actor=2)
    data = event_to_dict(event)
    assert data == {
        "type": "moved",
        "seq": 4,
        "actor": 2,
        "payload": {"taskId": 1, "newStatus": "Done", "taskTitle": "Write spec"},
    }
    assert event_from_dict(data) == event


def test_deleted_event_carries_only_id():
    data = {"type": "deleted", "seq": 2, "actor": None, "payload": 9}
    event = event_from_dict(data)
    assert event.task_id == 9
    assert event_to_dict(event)["payload"] == 9


def test_unknown_event_type_rejected():
    with pytest.raises(ValidationError):
        event_from_dict({"type": "archived", "payload": 1})

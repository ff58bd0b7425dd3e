"""
Tests for database.py - users, task CRUD and per-user isolation.
"""
import pytest
import sys
import os
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import (
    UsernameTakenError,
    create_task_db,
    create_user_db,
    delete_task_db,
    get_task_db,
    get_tasks_for_user,
    get_user_by_id_db,
    get_user_by_username_db,
    update_task_db,
    update_user_password_db,
)


@pytest.fixture
def alice(test_db):
    return create_user_db("alice", "hash-a")


@pytest.fixture
def bob(test_db):
    return create_user_db("bob", "hash-b")


class TestUsers:
    """Tests for user records."""

    def test_create_user(self, test_db):
        user = create_user_db("alice", "hash-a")

        assert user.id is not None
        assert user.username == "alice"
        assert user.password_hash == "hash-a"
        assert user.created_at

    def test_duplicate_username_rejected(self, alice):
        with pytest.raises(UsernameTakenError):
            create_user_db("alice", "other-hash")

    def test_lookup_by_username_and_id(self, alice):
        assert get_user_by_username_db("alice") == alice
        assert get_user_by_id_db(alice.id) == alice

    def test_lookup_missing_user(self, test_db):
        assert get_user_by_username_db("nobody") is None
        assert get_user_by_id_db(999) is None

    def test_update_password(self, alice):
        assert update_user_password_db(alice.id, "new-hash") is True
        assert get_user_by_id_db(alice.id).password_hash == "new-hash"


class TestTaskCRUD:
    """Tests for basic task create/read/update/delete operations."""

    def test_create_task_basic(self, alice):
        task = create_task_db(alice.id, "Buy groceries", priority="low")

        assert task.id is not None
        assert task.user_id == alice.id
        assert task.title == "Buy groceries"
        assert task.priority == "low"
        assert task.completed is False
        assert task.description is None
        assert task.due_date is None
        assert task.ai_tags is None

    def test_create_task_with_tags_and_due_date(self, alice):
        task = create_task_db(
            alice.id, "File taxes", "Federal and state", "high",
            "2026-04-15T00:00:00", ["finance", "deadline"]
        )

        stored = get_task_db(task.id, alice.id)
        assert stored.ai_tags == ["finance", "deadline"]
        assert stored.due_date == "2026-04-15T00:00:00"
        assert stored.description == "Federal and state"

    def test_get_tasks_empty(self, alice):
        assert get_tasks_for_user(alice.id) == []

    def test_get_tasks_insertion_order(self, alice):
        create_task_db(alice.id, "First", priority="low")
        create_task_db(alice.id, "Second", priority="high")
        create_task_db(alice.id, "Third", priority="medium")

        titles = [task.title for task in get_tasks_for_user(alice.id)]
        assert titles == ["First", "Second", "Third"]

    def test_update_task_completed(self, alice):
        task = create_task_db(alice.id, "Do something")
        updated = update_task_db(task.id, alice.id, completed=True)

        assert updated.completed is True
        assert updated.title == "Do something"

    def test_update_task_multiple_fields(self, alice):
        task = create_task_db(alice.id, "Old title", "old", "low")
        updated = update_task_db(
            task.id, alice.id,
            title="New title", description=None, priority="high",
            due_date=datetime(2026, 11, 1, 9, 30),
        )

        assert updated.title == "New title"
        assert updated.description is None
        assert updated.priority == "high"
        assert updated.due_date == "2026-11-01T09:30:00"

    def test_update_ignores_unknown_fields(self, alice):
        task = create_task_db(alice.id, "Keep me")
        updated = update_task_db(task.id, alice.id, id=12345, created_at="never", owner=7)

        assert updated.id == task.id
        assert updated.user_id == alice.id
        assert updated.created_at == task.created_at
        assert get_task_db(task.id, alice.id) == task

    @pytest.mark.parametrize("task_id", [0, -1, 2**63, 10**20])
    def test_out_of_range_ids_are_absent(self, alice, task_id):
        create_task_db(alice.id, "Untouched")

        assert get_task_db(task_id, alice.id) is None
        assert update_task_db(task_id, alice.id, completed=True) is None
        assert delete_task_db(task_id, alice.id) is False
        assert len(get_tasks_for_user(alice.id)) == 1

    def test_update_task_not_found(self, alice):
        assert update_task_db(999, alice.id, title="New title") is None

    def test_delete_task(self, alice):
        task = create_task_db(alice.id, "Delete me")
        assert delete_task_db(task.id, alice.id) is True
        assert get_tasks_for_user(alice.id) == []

    def test_delete_task_twice(self, alice):
        task = create_task_db(alice.id, "Delete me")
        delete_task_db(task.id, alice.id)
        assert delete_task_db(task.id, alice.id) is False


class TestUserIsolation:
    """Task operations never see or touch another user's tasks."""

    def test_list_only_own_tasks(self, alice, bob):
        create_task_db(alice.id, "Alice task")
        create_task_db(bob.id, "Bob task")

        assert [t.title for t in get_tasks_for_user(alice.id)] == ["Alice task"]
        assert [t.title for t in get_tasks_for_user(bob.id)] == ["Bob task"]

    def test_cannot_update_other_users_task(self, alice, bob):
        task = create_task_db(alice.id, "Alice task")

        assert update_task_db(task.id, bob.id, completed=True) is None
        assert get_task_db(task.id, alice.id).completed is False

    def test_cannot_delete_other_users_task(self, alice, bob):
        task = create_task_db(alice.id, "Alice task")

        assert delete_task_db(task.id, bob.id) is False
        assert len(get_tasks_for_user(alice.id)) == 1

    def test_get_task_scoped_to_owner(self, alice, bob):
        task = create_task_db(alice.id, "Alice task")
        assert get_task_db(task.id, bob.id) is None

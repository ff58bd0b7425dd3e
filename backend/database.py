import sqlite3
import json
import logging
from datetime import datetime
from typing import Optional
from contextlib import contextmanager

import config
from models import Task, User

logger = logging.getLogger(__name__)

DATABASE_PATH = config.DATABASE_PATH

# Columns a partial task update may touch
UPDATABLE_TASK_FIELDS = ("title", "description", "priority", "due_date", "completed", "ai_tags", "ai_notes")

# SQLite INTEGER PRIMARY KEY range; ids outside it cannot exist
MAX_ROW_ID = 2**63 - 1


class UsernameTakenError(Exception):
    """Raised when registering a username that already exists."""


@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()

def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os
    import sys

    # Run alembic upgrade from the backend directory with this interpreter
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        cwd=backend_dir,
        check=True
    )

def is_valid_row_id(row_id: int) -> bool:
    return 1 <= row_id <= MAX_ROW_ID

def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
    )

def _row_to_task(row) -> Task:
    """Convert a database row to a Task model."""
    tags = row["ai_tags"]
    return Task(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        description=row["description"],
        priority=row["priority"],
        due_date=row["due_date"],
        completed=bool(row["completed"]),
        ai_tags=json.loads(tags) if tags else None,
        ai_notes=row["ai_notes"],
        created_at=row["created_at"],
    )


# User operations
def create_user_db(username: str, password_hash: str) -> User:
    created_at = datetime.now().isoformat()
    with get_db() as conn:
        try:
            cursor = conn.execute(
                "INSERT INTO users (username, password_hash, created_at) VALUES (?, ?, ?)",
                (username, password_hash, created_at)
            )
        except sqlite3.IntegrityError as e:
            raise UsernameTakenError(username) from e
        conn.commit()
        user_id = cursor.lastrowid

    logger.info("Registered user %s (id=%s)", username, user_id)
    return User(id=user_id, username=username, password_hash=password_hash, created_at=created_at)

def get_user_by_username_db(username: str) -> Optional[User]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        if row:
            return _row_to_user(row)
    return None

def get_user_by_id_db(user_id: int) -> Optional[User]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row:
            return _row_to_user(row)
    return None

def update_user_password_db(user_id: int, password_hash: str) -> bool:
    """Replace a user's password hash. The only mutable user field."""
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE users SET password_hash = ? WHERE id = ?",
            (password_hash, user_id)
        )
        conn.commit()
        return cursor.rowcount > 0


# Task operations, always scoped to the owning user
def get_tasks_for_user(user_id: int) -> list[Task]:
    """All tasks owned by user_id, in insertion order."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM tasks WHERE user_id = ? ORDER BY id",
            (user_id,)
        ).fetchall()
        return [_row_to_task(row) for row in rows]

def get_task_db(task_id: int, user_id: int) -> Optional[Task]:
    if not is_valid_row_id(task_id):
        return None
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM tasks WHERE id = ? AND user_id = ?",
            (task_id, user_id)
        ).fetchone()
        if row:
            return _row_to_task(row)
    return None

def create_task_db(
    user_id: int,
    title: str,
    description: Optional[str] = None,
    priority: str = "medium",
    due_date: Optional[str] = None,
    ai_tags: Optional[list[str]] = None,
    ai_notes: Optional[str] = None
) -> Task:
    """Create a task owned by user_id.
    ai_tags are computed by the caller before the insert and stored as a JSON array.
    """
    created_at = datetime.now().isoformat()
    tags_json = json.dumps(ai_tags) if ai_tags is not None else None

    with get_db() as conn:
        cursor = conn.execute(
            """INSERT INTO tasks
               (user_id, title, description, priority, due_date, completed, ai_tags, ai_notes, created_at)
               VALUES (?, ?, ?, ?, ?, 0, ?, ?, ?)""",
            (user_id, title, description, priority, due_date, tags_json, ai_notes, created_at)
        )
        conn.commit()
        task_id = cursor.lastrowid

    return Task(
        id=task_id,
        user_id=user_id,
        title=title,
        description=description,
        priority=priority,
        due_date=due_date,
        completed=False,
        ai_tags=ai_tags,
        ai_notes=ai_notes,
        created_at=created_at,
    )

def update_task_db(task_id: int, user_id: int, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values.
    Returns None if the task does not exist or belongs to another user.

    Args:
        task_id: Task ID to update
        user_id: Owner the task must belong to
        **updates: Field names and values to update (see UPDATABLE_TASK_FIELDS)
    """
    if not is_valid_row_id(task_id):
        return None
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM tasks WHERE id = ? AND user_id = ?",
            (task_id, user_id)
        ).fetchone()
        if not row:
            return None

        changes = {}
        for field, new_value in updates.items():
            if field not in UPDATABLE_TASK_FIELDS:
                continue

            # Convert to storage representation before comparing
            if isinstance(new_value, bool):
                new_value = int(new_value)
            elif isinstance(new_value, datetime):
                new_value = new_value.isoformat()
            elif field == "ai_tags" and new_value is not None:
                new_value = json.dumps(new_value)

            if new_value != row[field]:
                changes[field] = new_value

        if changes:
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id, user_id]
            conn.execute(f"UPDATE tasks SET {set_clause} WHERE id = ? AND user_id = ?", values)
            conn.commit()

        # Return updated task (re-fetch to get current state)
        updated_row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        return _row_to_task(updated_row)

def delete_task_db(task_id: int, user_id: int) -> bool:
    """Delete a task. Returns False when nothing was deleted; callers treat that as success."""
    if not is_valid_row_id(task_id):
        return False
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM tasks WHERE id = ? AND user_id = ?",
            (task_id, user_id)
        )
        conn.commit()
        return cursor.rowcount > 0

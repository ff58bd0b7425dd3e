"""
Shared pytest fixtures for backend tests.
Uses a temporary SQLite database per test and a scripted stand-in for the Anthropic client.
"""
import pytest
import sqlite3
import sys
import os
from types import SimpleNamespace

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
import database
from ai_service import TaskAI


# Mirrors alembic revisions 001-002 (test_migrations.py checks they agree)
TEST_SCHEMA = """
    CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL
    );

    CREATE TABLE tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        description TEXT,
        priority TEXT NOT NULL CHECK (priority IN ('high', 'medium', 'low')),
        due_date TEXT,
        completed INTEGER NOT NULL DEFAULT 0,
        ai_tags TEXT,
        ai_notes TEXT,
        created_at TEXT NOT NULL
    );
"""


class FakeMessages:
    """Mimics client.messages: records each call and answers from a reply queue."""

    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        text = self.replies.pop(0) if self.replies else ""
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


class FakeAnthropic:
    def __init__(self, replies=None, error=None):
        self.messages = FakeMessages(replies, error)


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript(TEST_SCHEMA)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def fake_client():
    """Anthropic stand-in with no scripted replies (every call gets an empty answer)."""
    return FakeAnthropic()


@pytest.fixture
def task_ai(fake_client):
    return TaskAI(fake_client, model="test-model")


@pytest.fixture
def app_client(test_db, task_ai, monkeypatch):
    """
    Create a test client for the FastAPI app.
    The AI dependency is overridden with task_ai so no real API is called.
    """
    from fastapi.testclient import TestClient
    import main

    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "test-key")
    main.app.dependency_overrides[main.get_task_ai] = lambda: task_ai

    with TestClient(main.app) as client:
        yield client

    main.app.dependency_overrides.clear()


def register(client, username, password="secret-pw"):
    """Register a user; the client's session switches to them."""
    response = client.post("/api/register", json={"username": username, "password": password})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def auth_client(app_client):
    """Test client logged in as a freshly registered user."""
    register(app_client, "alice")
    return app_client

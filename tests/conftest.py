# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskbot.core.state import AppState
from taskbot.tasks.task_models import User
from taskbot.tasks.task_store import TaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskbot-test",
        data_dir=tmp_path,
        db_path=tmp_path / "taskbot.sqlite3",
        console_user="console",
        matrix_enabled=False,
        reminder_interval_seconds=60.0,
        reminder_batch_limit=0,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.db_path)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore) -> AppState:
    """
    AppState wired with a real SQLite store: its correctness is part of
    what we want to test.
    """
    return AppState(settings=settings, store=store)


@pytest.fixture()
def user(store: TaskStore) -> User:
    return store.get_or_create_user("@alice:example.org", "Alice", channel="matrix", address="!room:example.org")

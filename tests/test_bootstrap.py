# tests/test_bootstrap.py

from __future__ import annotations

import logging

from taskbot.cli.bootstrap import create_initial_state
from taskbot.config import Settings
from taskbot.logging_setup import _ConsoleNoiseFilter


def test_create_initial_state_builds_store(settings) -> None:
    settings.db_path = settings.data_dir / "nested" / "db.sqlite3"

    state = create_initial_state(settings=settings)

    assert state.settings is settings
    assert settings.db_path.exists()
    assert state.store.count_tasks() == 0
    assert state.runners == []


def test_settings_from_env(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("TASKBOT_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("TASKBOT_MATRIX_ENABLED", "yes")
    monkeypatch.setenv("TASKBOT_MATRIX_ROOMS", "!a:x.org, !b:x.org")
    monkeypatch.setenv("TASKBOT_REMINDER_INTERVAL_SECONDS", "0.2")
    monkeypatch.setenv("TASKBOT_REMINDER_BATCH_LIMIT", "oops")
    monkeypatch.delenv("TASKBOT_DB_PATH", raising=False)

    s = Settings.from_env()

    assert s.matrix_enabled is True
    assert s.matrix_rooms == ["!a:x.org", "!b:x.org"]
    assert s.db_path == tmp_path / "taskbot.sqlite3"
    assert s.reminder_interval_seconds == 1.0
    assert s.reminder_batch_limit == 0


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_noise_filter() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("taskbot.core.chat", logging.DEBUG))
    assert not f.filter(_record("taskbot.tasks.dispatcher", logging.INFO))
    assert f.filter(_record("taskbot.tasks.dispatcher", logging.WARNING))
    assert not f.filter(_record("taskbot.connectors.matrix_connector", logging.INFO))
    assert not f.filter(_record("nio.client", logging.WARNING))
    assert f.filter(_record("nio.client", logging.ERROR))

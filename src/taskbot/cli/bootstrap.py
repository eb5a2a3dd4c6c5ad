# src/taskbot/cli/bootstrap.py

"""
Composition root: settings -> local directories -> TaskStore -> AppState.

Connectors are not started here; main decides which ones run.
"""

from __future__ import annotations

import logging
import time

from ..config import get_settings
from ..core.state import AppState
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    for path in (settings.data_dir, settings.db_path.parent):
        path.mkdir(parents=True, exist_ok=True)
    if getattr(settings, "matrix_enabled", False):
        settings.matrix_store_path.mkdir(parents=True, exist_ok=True)


def _log_backlog(store: TaskStore) -> None:
    # Reminders that came due while the bot was down go out on the first sweep.
    overdue = store.find_due_unsent(now_ts=time.time())
    if overdue:
        logger.info("%d overdue reminder(s) will be delivered on the first sweep", len(overdue))


def create_initial_state(*, settings=None) -> AppState:
    """
    Build AppState. Settings are injectable for tests; None means get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.db_path)
    _log_backlog(store)
    return AppState(settings=settings, store=store)

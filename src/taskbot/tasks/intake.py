# src/taskbot/tasks/intake.py

"""
Task intake: one chat message -> one stored task (+ its reminder).

parse_task_message() is pure and only interprets the text.
create_task_from_message() does the store work: project lookup-or-create
on the first tag, task insert, reminder scheduling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..core.ports import TrackerStore
from .dates import resolve_due_at
from .reminders import REMINDER_LEAD, schedule_reminder
from .tags import extract_tags
from .task_models import Project, Reminder, Task
from .title import normalize_title

logger = logging.getLogger(__name__)


class TaskIntakeError(RuntimeError):
    """The message was understood but the task could not be stored."""


@dataclass(slots=True, frozen=True)
class TaskDraft:
    title: str
    tags: list[str]
    due_at: datetime | None

    @property
    def project_name(self) -> str | None:
        return self.tags[0] if self.tags else None

    @property
    def remind_at(self) -> datetime | None:
        if self.due_at is None:
            return None
        return self.due_at - REMINDER_LEAD


@dataclass(slots=True, frozen=True)
class IntakeResult:
    task: Task
    project: Project | None
    reminder: Reminder | None
    due_at: datetime | None


def parse_task_message(text: str, *, now: datetime | None = None) -> TaskDraft:
    """
    Interpret a raw message.

    Raises ValueError for blank input. If stripping tags and dates leaves
    nothing, the trimmed raw text becomes the title.
    """
    raw = (text or "").strip()
    if not raw:
        raise ValueError("message is empty")

    if now is None:
        now = datetime.now()

    title = normalize_title(raw) or raw
    return TaskDraft(
        title=title,
        tags=extract_tags(raw),
        due_at=resolve_due_at(raw, now),
    )


def _discard_task(store: TrackerStore, task_id: int) -> None:
    # A task without its reminder would never fire; the user is told to resend.
    try:
        store.delete_task(task_id)
    except Exception:
        logger.exception("Failed to discard half-created task id=%s", task_id)


def create_task_from_message(
    store: TrackerStore,
    *,
    owner_id: int,
    text: str,
    now: datetime | None = None,
) -> IntakeResult:
    draft = parse_task_message(text, now=now)

    task: Task | None = None
    try:
        project = None
        if draft.project_name:
            project = store.get_or_create_project(owner_id, draft.project_name)

        task = store.insert_task(
            owner_id=owner_id,
            title=draft.title,
            tags=draft.tags,
            project_id=project.id if project is not None else None,
            due_at=draft.due_at.timestamp() if draft.due_at is not None else None,
        )
        reminder = schedule_reminder(store, task)
    except Exception as e:
        if task is not None:
            _discard_task(store, task.id)
        raise TaskIntakeError(f"failed to store task for owner_id={owner_id}") from e

    logger.info(
        "Task created id=%s owner_id=%s project=%s tags=%d due_at=%s",
        task.id,
        owner_id,
        project.name if project is not None else None,
        len(draft.tags),
        draft.due_at.isoformat() if draft.due_at is not None else None,
    )
    return IntakeResult(task=task, project=project, reminder=reminder, due_at=draft.due_at)

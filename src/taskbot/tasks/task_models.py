# src/taskbot/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Allowed transitions:
    - todo -> in_progress
    - any open status -> done / cancelled
    Nothing leaves done or cancelled.
    """

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(raw)
        except ValueError:
            return cls.TODO

    @property
    def is_closed(self) -> bool:
        return self in (TaskStatus.DONE, TaskStatus.CANCELLED)

    def can_become(self, new_status: TaskStatus) -> bool:
        if self.is_closed:
            return False
        if new_status in (TaskStatus.DONE, TaskStatus.CANCELLED):
            return True
        return self is TaskStatus.TODO and new_status is TaskStatus.IN_PROGRESS


@dataclass(slots=True)
class User:
    id: int
    external_id: str
    display_name: str | None
    channel: str
    address: str
    created_at: float


@dataclass(slots=True)
class Project:
    id: int
    owner_id: int
    name: str
    created_at: float


@dataclass(slots=True)
class Task:
    id: int
    owner_id: int
    project_id: int | None
    title: str
    tags: list[str]
    due_at: float | None
    status: TaskStatus
    created_at: float
    updated_at: float

    # Filled by joined queries only.
    project_name: str | None = None


@dataclass(slots=True)
class Reminder:
    id: int
    task_id: int
    scheduled_at: float
    sent: bool
    created_at: float
    sent_at: float | None = None
    message_ref: str | None = None


@dataclass(slots=True, frozen=True)
class DueReminder:
    """A pending reminder joined with its task and the owner's delivery address."""

    reminder: Reminder
    task: Task
    channel: str
    address: str


@dataclass(slots=True)
class TaskFilter:
    owner_id: int | None = None
    project_id: int | None = None
    statuses: list[TaskStatus] = field(default_factory=list)
    exclude_statuses: list[TaskStatus] = field(default_factory=list)
    due_from: float | None = None
    due_before: float | None = None
    newest_first: bool = True
    limit: int | None = None

# src/taskbot/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps connectors/storage swappable and makes testing easier.
TaskStore implements every repo port below.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Awaitable, Protocol


@dataclass(slots=True, frozen=True)
class ActionButton:
    """One interactive affordance on a delivered notification."""

    label: str
    data: str  # "kind:task_id"


ActionRows = Sequence[Sequence[ActionButton]]


class Notifier(Protocol):
    """
    Connector-side port: how the reminder dispatcher reaches a user.

    deliver() returns a message reference (used later to disable the
    actions) and raises on failure.
    """

    def deliver(self, *, address: str, text: str, actions: ActionRows) -> Awaitable[str | None]: ...

    def disable_actions(self, message_ref: str) -> Awaitable[None]: ...


class UserDirectory(Protocol):
    def get_or_create_user(
            self,
            external_id: str,
            display_name: str | None = None,
            *,
            channel: str = "console",
            address: str | None = None,
    ) -> Any: ...

    def find_user(self, external_id: str) -> Any | None: ...


class ProjectDirectory(Protocol):
    def get_or_create_project(self, owner_id: int, name: str) -> Any: ...
    def list_projects(self, owner_id: int) -> list[Any]: ...


class TaskRepo(Protocol):
    def insert_task(
            self,
            *,
            owner_id: int,
            title: str,
            tags: list[str] | None = None,
            project_id: int | None = None,
            due_at: float | None = None,
            status: Any = None,  # TaskStatus (kept as Any to avoid import coupling)
    ) -> Any: ...

    def get_task(self, task_id: int) -> Any | None: ...
    def list_tasks(self, flt: Any | None = None) -> list[Any]: ...
    def update_task_status(self, task_id: int, new_status: Any) -> None: ...
    def delete_task(self, task_id: int) -> bool: ...


class ReminderRepo(Protocol):
    def insert_reminder(self, task_id: int, scheduled_at: float) -> Any: ...

    def find_due_unsent(
            self,
            *,
            now_ts: float,
            channel: str | None = None,
            limit: int | None = None,
    ) -> list[Any]: ...

    def mark_sent(
            self,
            reminder_id: int,
            *,
            message_ref: str | None = None,
            sent_at: float | None = None,
    ) -> None: ...


class TrackerStore(UserDirectory, ProjectDirectory, TaskRepo, ReminderRepo, Protocol):
    """Everything the chat layer needs from storage."""

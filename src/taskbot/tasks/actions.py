# src/taskbot/tasks/actions.py

"""
User reactions to a delivered reminder.

Every notification carries three actions, each encoded as "kind:task_id":
- done        -> task status becomes done
- in_progress -> task status becomes in_progress
- snooze      -> a new pending reminder one hour from now; status untouched

Unknown kinds are ignored. Once an action is processed the connector
disables the remaining buttons on that message.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import StrEnum

from ..core.ports import ActionButton, TrackerStore
from .reminders import schedule_snooze
from .task_models import Reminder, Task, TaskStatus

logger = logging.getLogger(__name__)


class ReminderAction(StrEnum):
    DONE = "done"
    IN_PROGRESS = "in_progress"
    SNOOZE = "snooze"


# Older clients sent "progress:<id>".
_KIND_ALIASES = {"progress": ReminderAction.IN_PROGRESS}

ACTION_LABELS: dict[ReminderAction, str] = {
    ReminderAction.DONE: "✅ Выполнено",
    ReminderAction.IN_PROGRESS: "⏳ В процессе",
    ReminderAction.SNOOZE: "⏰ Отложить на 1ч",
}


class ReminderActionError(RuntimeError):
    """An action could not be applied (missing task, store failure)."""


@dataclass(slots=True, frozen=True)
class ActionOutcome:
    action: ReminderAction
    task: Task
    changed: bool
    reply: str
    reminder: Reminder | None = None


def encode_action(action: ReminderAction, task_id: int) -> str:
    return f"{action.value}:{int(task_id)}"


def parse_action(data: str | None) -> tuple[ReminderAction, int] | None:
    """Decode "kind:task_id". Anything malformed or of unknown kind -> None."""
    if not data:
        return None

    kind, sep, raw_id = data.strip().partition(":")
    if not sep:
        return None

    kind = kind.strip().lower()
    action = _KIND_ALIASES.get(kind)
    if action is None:
        try:
            action = ReminderAction(kind)
        except ValueError:
            return None

    try:
        task_id = int(raw_id.strip())
    except ValueError:
        return None
    if task_id <= 0:
        return None
    return action, task_id


def build_action_rows(task_id: int) -> list[list[ActionButton]]:
    """Two rows: [done, in progress], [snooze]."""

    def button(action: ReminderAction) -> ActionButton:
        return ActionButton(label=ACTION_LABELS[action], data=encode_action(action, task_id))

    return [
        [button(ReminderAction.DONE), button(ReminderAction.IN_PROGRESS)],
        [button(ReminderAction.SNOOZE)],
    ]


def _set_status(store: TrackerStore, task: Task, action: ReminderAction, target: TaskStatus) -> ActionOutcome:
    if task.status is target:
        return ActionOutcome(action=action, task=task, changed=False, reply=_already_reply(target))

    if not task.status.can_become(target):
        logger.info("Task %s: %s -> %s not allowed; ignored", task.id, task.status.value, target.value)
        return ActionOutcome(
            action=action,
            task=task,
            changed=False,
            reply=f"Задача уже в статусе «{task.status.value}», изменить нельзя.",
        )

    store.update_task_status(task.id, target)
    logger.info("Task %s -> %s", task.id, target.value)
    task.status = target
    reply = "✅ Задача выполнена!" if target is TaskStatus.DONE else "⏳ В процессе"
    return ActionOutcome(action=action, task=task, changed=True, reply=reply)


def _already_reply(status: TaskStatus) -> str:
    if status is TaskStatus.DONE:
        return "Задача уже выполнена."
    return "Задача уже в процессе."


def apply_reminder_action(
    store: TrackerStore,
    action: ReminderAction,
    task_id: int,
    *,
    now_ts: float | None = None,
    owner_id: int | None = None,
) -> ActionOutcome:
    """
    Apply one reaction. When owner_id is given, tasks of other users are refused.
    """
    if now_ts is None:
        now_ts = time.time()

    try:
        task = store.get_task(task_id)
    except Exception as e:
        raise ReminderActionError(f"failed to load task {task_id}") from e
    if task is None:
        raise ReminderActionError(f"task {task_id} not found")
    if owner_id is not None and task.owner_id != owner_id:
        raise ReminderActionError(f"task {task_id} does not belong to user {owner_id}")

    try:
        if action is ReminderAction.DONE:
            return _set_status(store, task, action, TaskStatus.DONE)

        if action is ReminderAction.IN_PROGRESS:
            return _set_status(store, task, action, TaskStatus.IN_PROGRESS)

        reminder = schedule_snooze(store, task.id, now_ts=now_ts)
        return ActionOutcome(
            action=action,
            task=task,
            changed=True,
            reply="⏰ Напомню через час",
            reminder=reminder,
        )
    except Exception as e:
        raise ReminderActionError(f"failed to apply {action.value} to task {task_id}") from e

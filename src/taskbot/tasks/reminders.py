# src/taskbot/tasks/reminders.py

from __future__ import annotations

import logging
from datetime import timedelta

from ..core.ports import ReminderRepo
from .task_models import Reminder, Task

logger = logging.getLogger(__name__)

REMINDER_LEAD = timedelta(minutes=15)
SNOOZE_DELAY = timedelta(minutes=60)


def reminder_time_for(due_at: float) -> float:
    return due_at - REMINDER_LEAD.total_seconds()


def schedule_reminder(store: ReminderRepo, task: Task) -> Reminder | None:
    """
    Persist the pending reminder for a freshly created task.

    Called once per task creation; tasks without a due time get nothing.
    """
    if task.due_at is None:
        return None

    reminder = store.insert_reminder(task.id, reminder_time_for(task.due_at))
    logger.info(
        "Reminder scheduled id=%s task_id=%s scheduled_at=%s",
        reminder.id,
        task.id,
        reminder.scheduled_at,
    )
    return reminder


def schedule_snooze(store: ReminderRepo, task_id: int, *, now_ts: float) -> Reminder:
    """A brand-new pending reminder SNOOZE_DELAY after now."""
    reminder = store.insert_reminder(task_id, now_ts + SNOOZE_DELAY.total_seconds())
    logger.info("Reminder snoozed id=%s task_id=%s scheduled_at=%s", reminder.id, task_id, reminder.scheduled_at)
    return reminder

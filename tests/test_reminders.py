# tests/test_reminders.py

from __future__ import annotations

from datetime import datetime

from taskbot.tasks.reminders import schedule_reminder, schedule_snooze


def test_reminder_is_fifteen_minutes_before_due(store, user) -> None:
    due = datetime(2026, 3, 11, 18, 0).timestamp()
    task = store.insert_task(owner_id=user.id, title="Отчёт", due_at=due)

    reminder = schedule_reminder(store, task)

    assert reminder is not None
    assert reminder.task_id == task.id
    assert reminder.scheduled_at == due - 15 * 60
    assert reminder.sent is False
    assert len(store.list_reminders(task.id)) == 1


def test_no_reminder_without_due(store, user) -> None:
    task = store.insert_task(owner_id=user.id, title="Когда-нибудь")
    assert schedule_reminder(store, task) is None
    assert store.list_reminders(task.id) == []


def test_snooze_is_one_hour_from_now(store, user) -> None:
    task = store.insert_task(owner_id=user.id, title="Отчёт")
    reminder = schedule_snooze(store, task.id, now_ts=1_000_000.0)
    assert reminder.scheduled_at == 1_000_000.0 + 3600
    assert reminder.sent is False

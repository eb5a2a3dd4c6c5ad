# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from datetime import datetime

from taskbot.tasks.task_models import TaskFilter, TaskStatus
from taskbot.tasks.task_store import TaskStore


def test_get_or_create_user_is_idempotent_and_refreshes_address(store: TaskStore) -> None:
    u1 = store.get_or_create_user("@bob:example.org", "Bob", channel="matrix", address="!a:example.org")
    u2 = store.get_or_create_user("@bob:example.org", None, channel="matrix", address="!b:example.org")

    assert u1.id == u2.id
    assert u2.address == "!b:example.org"
    assert u2.display_name == "Bob"
    assert store.find_user("@bob:example.org") == u2
    assert store.find_user("@nobody:example.org") is None
    assert store.get_user(u1.id) == u2


def test_projects_unique_per_owner_ignoring_case(store: TaskStore) -> None:
    alice = store.get_or_create_user("alice")
    bob = store.get_or_create_user("bob")

    p1 = store.get_or_create_project(alice.id, "Работа")
    p2 = store.get_or_create_project(alice.id, "РАБОТА")
    p3 = store.get_or_create_project(bob.id, "работа")

    assert p1.id == p2.id
    assert p2.name == "Работа"
    assert p3.id != p1.id
    assert [p.name for p in store.list_projects(alice.id)] == ["Работа"]


def test_tags_keep_order_and_duplicates(store: TaskStore, user) -> None:
    task = store.insert_task(owner_id=user.id, title="t", tags=["b", "a", "b"])
    fetched = store.get_task(task.id)
    assert fetched is not None
    assert fetched.tags == ["b", "a", "b"]


def test_list_tasks_filters(store: TaskStore, user) -> None:
    other = store.get_or_create_user("other")
    project = store.get_or_create_project(user.id, "дом")
    due = datetime(2026, 3, 10, 18, 0).timestamp()

    t1 = store.insert_task(owner_id=user.id, title="one", project_id=project.id, due_at=due)
    t2 = store.insert_task(owner_id=user.id, title="two")
    t3 = store.insert_task(owner_id=user.id, title="three", due_at=due + 86400)
    store.insert_task(owner_id=other.id, title="foreign")
    store.update_task_status(t2.id, TaskStatus.DONE)

    mine = store.list_tasks(TaskFilter(owner_id=user.id))
    assert [t.id for t in mine] == [t3.id, t2.id, t1.id]

    open_tasks = store.list_tasks(TaskFilter(owner_id=user.id, exclude_statuses=[TaskStatus.DONE], newest_first=False))
    assert [t.id for t in open_tasks] == [t1.id, t3.id]
    assert open_tasks[0].project_name == "дом"

    on_day = store.list_tasks(TaskFilter(owner_id=user.id, due_from=due - 3600, due_before=due + 3600))
    assert [t.id for t in on_day] == [t1.id]

    done = store.list_tasks(TaskFilter(owner_id=user.id, statuses=[TaskStatus.DONE]))
    assert [t.id for t in done] == [t2.id]

    assert len(store.list_tasks(TaskFilter(owner_id=user.id, limit=2))) == 2


def test_update_task_fields(store: TaskStore, user) -> None:
    task = store.insert_task(owner_id=user.id, title="old", due_at=100.0)
    store.update_task_fields(task.id, title="new", tags=["x"], clear_due=True)

    fetched = store.get_task(task.id)
    assert fetched is not None
    assert fetched.title == "new"
    assert fetched.tags == ["x"]
    assert fetched.due_at is None


def test_delete_task_cascades_to_reminders(store: TaskStore, user) -> None:
    task = store.insert_task(owner_id=user.id, title="t", due_at=2000.0)
    store.insert_reminder(task.id, 1000.0)
    store.insert_reminder(task.id, 1500.0)

    assert store.delete_task(task.id) is True
    assert store.get_task(task.id) is None
    assert store.list_reminders(task.id) == []
    assert store.find_due_unsent(now_ts=5000.0) == []
    assert store.delete_task(task.id) is False


def test_find_due_unsent_joins_task_and_address(store: TaskStore, user) -> None:
    task = store.insert_task(owner_id=user.id, title="Отчёт")
    due = store.insert_reminder(task.id, 1000.0)
    store.insert_reminder(task.id, 9000.0)

    items = store.find_due_unsent(now_ts=1000.0)
    assert len(items) == 1
    assert items[0].reminder.id == due.id
    assert items[0].task.title == "Отчёт"
    assert items[0].address == "!room:example.org"
    assert items[0].channel == "matrix"

    assert store.find_due_unsent(now_ts=1000.0, channel="console") == []

    store.mark_sent(due.id, message_ref="$evt", sent_at=1001.0)
    assert store.find_due_unsent(now_ts=1000.0) == []
    sent = store.list_reminders(task.id)[0]
    assert sent.sent is True
    assert sent.message_ref == "$evt"
    assert sent.sent_at == 1001.0


def test_schema_survives_reopen(settings, store: TaskStore, user) -> None:
    store.insert_task(owner_id=user.id, title="persisted")
    reopened = TaskStore(settings.db_path)
    assert reopened.count_tasks() == 1


def test_status_transitions() -> None:
    assert TaskStatus.TODO.can_become(TaskStatus.IN_PROGRESS)
    assert TaskStatus.TODO.can_become(TaskStatus.CANCELLED)
    assert TaskStatus.IN_PROGRESS.can_become(TaskStatus.DONE)
    assert not TaskStatus.IN_PROGRESS.can_become(TaskStatus.TODO)
    assert not TaskStatus.DONE.can_become(TaskStatus.IN_PROGRESS)
    assert not TaskStatus.CANCELLED.can_become(TaskStatus.DONE)
    assert TaskStatus.from_db("archived") is TaskStatus.TODO


def test_reminders_table_gains_delivery_columns(tmp_path) -> None:
    db_path = tmp_path / "early.sqlite3"
    conn = sqlite3.connect(db_path)
    conn.execute(
        "CREATE TABLE reminders (id INTEGER PRIMARY KEY AUTOINCREMENT, task_id INTEGER NOT NULL,"
        " scheduled_at REAL NOT NULL, sent INTEGER NOT NULL DEFAULT 0, created_at REAL NOT NULL)"
    )
    conn.commit()
    conn.close()

    TaskStore(db_path)

    conn = sqlite3.connect(db_path)
    cols = {row[1] for row in conn.execute("PRAGMA table_info(reminders)")}
    conn.close()
    assert {"sent_at", "message_ref"} <= cols

# tests/test_commands.py

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from taskbot.cli.commands import CommandRegistry, registry
from taskbot.tasks.task_models import TaskStatus


def test_command_registry_routes_and_aliases(state, user) -> None:
    reg = CommandRegistry()
    seen: list[list[str]] = []

    def echo(state, args, user):
        seen.append(args)
        return f"echo {user.external_id}"

    reg.register("echo", echo, "повторить", aliases=["e"])

    assert reg.handle(state, "/echo a b", user) == "echo @alice:example.org"
    assert reg.handle(state, "/E", user) == "echo @alice:example.org"
    assert reg.handle(state, "/echo@taskbot x", user) == "echo @alice:example.org"
    assert seen == [["a", "b"], [], ["x"]]
    assert "/echo — повторить" in reg.build_help()


def test_command_registry_unknown_and_non_command(state, user) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello", user) is None
    assert "Неизвестная команда: /nope" in (reg.handle(state, "/nope", user) or "")
    assert "Пустая команда" in (reg.handle(state, "/", user) or "")


def test_start_includes_examples_and_help(state, user) -> None:
    reply = registry.handle(state, "/start", user) or ""
    assert reply.startswith("👋 Привет!")
    assert "#работа" in reply
    for name in ("/list", "/today", "/projects"):
        assert name in reply


def test_list_shows_open_tasks_newest_first(state, user) -> None:
    store = state.store
    project = store.get_or_create_project(user.id, "дом")
    store.insert_task(owner_id=user.id, title="первая", project_id=project.id)
    second = store.insert_task(owner_id=user.id, title="вторая")
    done = store.insert_task(owner_id=user.id, title="готовая")
    store.update_task_status(second.id, TaskStatus.IN_PROGRESS)
    store.update_task_status(done.id, TaskStatus.DONE)

    reply = registry.handle(state, "/list", user)

    assert reply == "📋 Твои задачи:\n\n1. ⏳ вторая\n2. ⭕ первая [дом]"


def test_list_empty(state, user) -> None:
    assert registry.handle(state, "/list", user) == "У тебя пока нет активных задач! 🎉"


def test_today_only_tasks_due_today(state, user) -> None:
    store = state.store
    today_noon = datetime.combine(date.today(), time(12, 0))
    store.insert_task(owner_id=user.id, title="сегодня", due_at=today_noon.timestamp())
    store.insert_task(owner_id=user.id, title="завтра", due_at=(today_noon + timedelta(days=1)).timestamp())
    store.insert_task(owner_id=user.id, title="без срока")

    reply = registry.handle(state, "/today", user)

    assert reply == "📅 Задачи на сегодня:\n\n1. сегодня"


def test_today_empty(state, user) -> None:
    assert registry.handle(state, "/today", user) == "На сегодня задач нет! 🎉"


def test_projects(state, user) -> None:
    assert "Создай задачу с тегом" in (registry.handle(state, "/projects", user) or "")

    state.store.get_or_create_project(user.id, "работа")
    state.store.get_or_create_project(user.id, "Дом")

    assert registry.handle(state, "/projects", user) == "📁 Твои проекты:\n\n• Дом\n• работа"

# tests/test_chat.py

from __future__ import annotations

from datetime import datetime

import pytest

from taskbot.core.chat import handle_action_event, handle_incoming_text
from taskbot.tasks.task_models import TaskFilter, TaskStatus

from .fakes import FakeNotifier

NOW = datetime(2026, 3, 10, 12, 0)


def test_plain_text_becomes_task(state) -> None:
    reply = handle_incoming_text(
        state,
        "Созвониться с Иваном завтра #работа",
        external_id="@bob:example.org",
        channel="matrix",
        address="!dm:example.org",
        now=NOW,
    )

    assert reply == (
        '✅ Задача создана: "Созвониться с Иваном"\n'
        "📁 Проект: работа\n"
        "⏰ Напоминание: 11.03.2026 18:00"
    )
    user = state.store.find_user("@bob:example.org")
    assert user is not None
    assert user.address == "!dm:example.org"
    assert len(state.store.list_tasks(TaskFilter(owner_id=user.id))) == 1


def test_task_without_project_or_due(state) -> None:
    reply = handle_incoming_text(state, "Прочитать книгу", external_id="console", channel="console", now=NOW)
    assert reply == '✅ Задача создана: "Прочитать книгу"'


def test_blank_text_ignored(state) -> None:
    assert handle_incoming_text(state, "   ", external_id="console", channel="console") is None
    assert state.store.find_user("console") is None


def test_slash_command_routed_to_registry(state) -> None:
    reply = handle_incoming_text(state, "/list", external_id="console", channel="console")
    assert reply == "У тебя пока нет активных задач! 🎉"
    assert state.store.count_tasks() == 0


@pytest.mark.asyncio
async def test_action_updates_task_and_disables_buttons(state, user) -> None:
    task = state.store.insert_task(owner_id=user.id, title="t")
    notifier = FakeNotifier()

    reply = await handle_action_event(
        state,
        notifier,
        data=f"done:{task.id}",
        message_ref="msg-1",
        external_id=user.external_id,
    )

    assert reply == "✅ Задача выполнена!"
    assert notifier.disabled == ["msg-1"]
    assert state.store.get_task(task.id).status is TaskStatus.DONE


@pytest.mark.asyncio
async def test_unknown_action_kind_ignored(state, user) -> None:
    task = state.store.insert_task(owner_id=user.id, title="t")
    notifier = FakeNotifier()

    reply = await handle_action_event(state, notifier, data=f"archive:{task.id}", message_ref="msg-1")

    assert reply is None
    assert notifier.disabled == []
    assert state.store.get_task(task.id).status is TaskStatus.TODO


@pytest.mark.asyncio
async def test_action_from_unknown_user_ignored(state, user) -> None:
    task = state.store.insert_task(owner_id=user.id, title="t")
    notifier = FakeNotifier()

    reply = await handle_action_event(
        state,
        notifier,
        data=f"done:{task.id}",
        message_ref="msg-1",
        external_id="@stranger:example.org",
    )

    assert reply is None
    assert state.store.get_task(task.id).status is TaskStatus.TODO


@pytest.mark.asyncio
async def test_failed_action_keeps_buttons(state, user) -> None:
    notifier = FakeNotifier()

    reply = await handle_action_event(state, notifier, data="done:404", message_ref="msg-1")

    assert reply == "⚠️ Не удалось обновить задачу."
    assert notifier.disabled == []

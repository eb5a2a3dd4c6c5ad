# src/taskbot/core/chat.py

"""
Transport-agnostic chat handling.

Connectors hand over inbound text (plus who sent it and where reminders for
that user should go) and interactive action events; this module turns them
into store operations and reply text. How replies are shown is up to the
connector.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..tasks.actions import ReminderActionError, apply_reminder_action, parse_action
from ..tasks.intake import IntakeResult, TaskIntakeError, create_task_from_message
from .ports import Notifier
from .state import AppState

logger = logging.getLogger(__name__)

DUE_FORMAT = "%d.%m.%Y %H:%M"


def format_created_reply(result: IntakeResult) -> str:
    lines = [f'✅ Задача создана: "{result.task.title}"']
    if result.project is not None:
        lines.append(f"📁 Проект: {result.project.name}")
    if result.due_at is not None:
        lines.append(f"⏰ Напоминание: {result.due_at.strftime(DUE_FORMAT)}")
    return "\n".join(lines)


def handle_incoming_text(
    state: AppState,
    text: str,
    *,
    external_id: str,
    channel: str,
    address: str | None = None,
    display_name: str | None = None,
    now: datetime | None = None,
) -> str | None:
    """
    Route one inbound message: /commands go to the registry, anything else
    becomes a task. Returns the reply text (None for blank input).
    """
    body = (text or "").strip()
    if not body:
        return None

    try:
        user = state.store.get_or_create_user(
            external_id,
            display_name,
            channel=channel,
            address=address,
        )
    except Exception:
        logger.exception("get_or_create_user failed external_id=%s", external_id)
        return "⚠️ Внутренняя ошибка, попробуй позже."

    if body.startswith("/"):
        try:
            return command_registry.handle(state, body, user)
        except Exception:
            logger.exception("Command handler crashed: %r", body)
            return "⚠️ Внутренняя ошибка при выполнении команды."

    try:
        result = create_task_from_message(state.store, owner_id=user.id, text=body, now=now)
    except TaskIntakeError:
        logger.exception("Task intake failed user_id=%s", user.id)
        return "⚠️ Не удалось сохранить задачу, попробуй ещё раз."

    return format_created_reply(result)


async def handle_action_event(
    state: AppState,
    notifier: Notifier,
    *,
    data: str,
    message_ref: str,
    external_id: str | None = None,
    now_ts: float | None = None,
) -> str | None:
    """
    React to a button press / reaction on a delivered reminder.

    Unknown action kinds are ignored (None). On success the message's actions
    are disabled so the same reminder cannot be actuated twice.
    """
    parsed = parse_action(data)
    if parsed is None:
        logger.debug("Ignoring unknown action %r", data)
        return None
    action, task_id = parsed

    owner_id = None
    if external_id is not None:
        user = state.store.find_user(external_id)
        if user is None:
            logger.info("Action %r from unknown user %s ignored", data, external_id)
            return None
        owner_id = user.id

    try:
        outcome = apply_reminder_action(state.store, action, task_id, now_ts=now_ts, owner_id=owner_id)
    except ReminderActionError:
        logger.exception("Action %r failed", data)
        return "⚠️ Не удалось обновить задачу."

    try:
        await notifier.disable_actions(message_ref)
    except Exception:
        logger.exception("disable_actions failed ref=%s", message_ref)

    return outcome.reply

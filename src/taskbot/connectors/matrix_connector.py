# src/taskbot/connectors/matrix_connector.py

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field

from nio import AsyncClient, MatrixRoom, ReactionEvent, RoomMessageText, RoomSendResponse

from ..core.background import BackgroundLoop, start_loop_in_background
from ..core.chat import handle_action_event, handle_incoming_text
from ..core.ports import ActionRows
from ..core.state import AppState
from ..tasks.actions import ReminderAction, parse_action
from ..tasks.dispatcher import ReminderDispatcher
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)

CHANNEL = "matrix"

# Actions travel inside the reminder event as "kind:task_id" strings.
ACTIONS_CONTENT_KEY = "org.taskbot.actions"

# Reminder events whose reactions are still honoured.
MAX_OPEN_REMINDERS = 200

REACTION_KEYS: dict[ReminderAction, str] = {
    ReminderAction.DONE: "✅",
    ReminderAction.IN_PROGRESS: "⏳",
    ReminderAction.SNOOZE: "⏰",
}


def _ms_now() -> int:
    return int(time.time() * 1000)


def _normalize_key(key: str) -> str:
    # Clients differ on emoji variation selectors.
    return (key or "").replace("\ufe0f", "").strip()


@dataclass(slots=True)
class _OpenReminder:
    room_id: str
    text: str
    data_by_key: dict[str, str] = field(default_factory=dict)


class MatrixNotifier:
    """
    Sends reminders as room messages.

    Matrix has no inline buttons, so each action is offered as a reaction
    emoji; the action data is also embedded in the event content. Reacting
    to an open reminder triggers the action; disable_actions() edits the
    message and forgets the mapping so later reactions are ignored. Only the
    newest max_open reminders are tracked; reactions to older ones are ignored.
    """

    def __init__(self, client: AsyncClient, *, max_open: int = MAX_OPEN_REMINDERS) -> None:
        self._client = client
        self._max_open = max(1, max_open)
        self._open: OrderedDict[str, _OpenReminder] = OrderedDict()

    async def deliver(self, *, address: str, text: str, actions: ActionRows) -> str:
        data_by_key: dict[str, str] = {}
        hints: list[str] = []
        for row in actions:
            for button in row:
                parsed = parse_action(button.data)
                if parsed is None:
                    continue
                key = REACTION_KEYS[parsed[0]]
                data_by_key[key] = button.data
                hints.append(button.label)

        body = text
        if hints:
            body = f"{text}\n\nОтветь реакцией: " + " · ".join(hints)

        content = {
            "msgtype": "m.text",
            "body": body,
            ACTIONS_CONTENT_KEY: [[button.data for button in row] for row in actions],
        }
        resp = await self._client.room_send(
            room_id=address,
            message_type="m.room.message",
            content=content,
            ignore_unverified_devices=True,
        )
        if not isinstance(resp, RoomSendResponse):
            raise RuntimeError(f"room_send failed room={address}: {resp!r}")

        self._open[resp.event_id] = _OpenReminder(room_id=address, text=text, data_by_key=data_by_key)
        while len(self._open) > self._max_open:
            self._open.popitem(last=False)
        return resp.event_id

    def lookup(self, event_id: str, key: str) -> str | None:
        entry = self._open.get(event_id)
        if entry is None:
            return None
        return entry.data_by_key.get(_normalize_key(key))

    async def disable_actions(self, message_ref: str) -> None:
        entry = self._open.pop(message_ref, None)
        if entry is None:
            return

        # Replace the message with the bare reminder text (no reaction hints).
        await self._client.room_send(
            room_id=entry.room_id,
            message_type="m.room.message",
            content={
                "msgtype": "m.text",
                "body": f"* {entry.text}",
                "m.new_content": {"msgtype": "m.text", "body": entry.text},
                "m.relates_to": {"rel_type": "m.replace", "event_id": message_ref},
            },
            ignore_unverified_devices=True,
        )


async def _send_text(client: AsyncClient, *, room_id: str, text: str) -> None:
    await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={"msgtype": "m.text", "body": text},
        ignore_unverified_devices=True,
    )


def _room_allowlist(settings_rooms: list[str]) -> set[str] | None:
    rooms = [r.strip() for r in (settings_rooms or []) if str(r).strip()]
    return set(rooms) if rooms else None


async def _run_matrix_bot(state: AppState, stop_event: asyncio.Event) -> None:
    """
    Matrix connector (async):

    init -> dispatcher -> callbacks -> sync loop

    Shutdown model:
    - main thread sets stop_event via loop.call_soon_threadsafe(stop_event.set)
    - we run a manual sync loop so we can exit promptly.
    """
    settings = state.settings

    startup_ts = _ms_now()
    allowed_rooms = _room_allowlist(getattr(settings, "matrix_rooms", []) or [])
    logger.info("Matrix allowed_rooms=%s", allowed_rooms if allowed_rooms is not None else "ALL")

    client = await create_matrix_client(settings)
    if client is None:
        logger.error("Matrix client creation failed; connector will stop.")
        return

    notifier = MatrixNotifier(client)
    dispatcher = ReminderDispatcher(
        state.store,
        notifier,
        channel=CHANNEL,
        interval_seconds=settings.reminder_interval_seconds,
        batch_limit=settings.reminder_batch_limit,
    )

    def _accept(room: MatrixRoom, sender: str, server_ts: int | None) -> bool:
        # Skip history from before startup, our own events and foreign rooms.
        if server_ts is not None and server_ts <= startup_ts:
            return False
        if sender == client.user_id:
            return False
        return allowed_rooms is None or room.room_id in allowed_rooms

    async def message_callback(room: MatrixRoom, event: RoomMessageText) -> None:
        if not _accept(room, event.sender, getattr(event, "server_timestamp", None)):
            return

        body = (event.body or "").strip()
        if not body:
            return

        logger.info("Matrix <%s> %s: %r", room.display_name, event.sender, body)

        try:
            reply = handle_incoming_text(
                state,
                body,
                external_id=event.sender,
                channel=CHANNEL,
                address=room.room_id,
                display_name=room.user_name(event.sender),
            )
            if reply:
                await _send_text(client, room_id=room.room_id, text=reply)
        except Exception:
            logger.exception("Failed to handle Matrix message.")

    async def reaction_callback(room: MatrixRoom, event: ReactionEvent) -> None:
        if not _accept(room, event.sender, getattr(event, "server_timestamp", None)):
            return

        data = notifier.lookup(event.reacts_to, event.key)
        if data is None:
            return

        try:
            reply = await handle_action_event(
                state,
                notifier,
                data=data,
                message_ref=event.reacts_to,
                external_id=event.sender,
            )
            if reply:
                await _send_text(client, room_id=room.room_id, text=reply)
        except Exception:
            logger.exception("Failed to handle Matrix reaction.")

    client.add_event_callback(message_callback, RoomMessageText)
    client.add_event_callback(reaction_callback, ReactionEvent)

    try:
        logger.info("Matrix initial sync...")
        await client.sync(timeout=30000, full_state=True)
        logger.info("Matrix initial sync done. Joined rooms: %d", len(client.rooms))

        dispatcher.start()

        while not stop_event.is_set():
            await client.sync(timeout=30000, full_state=False)

    except asyncio.CancelledError:
        logger.info("Matrix connector cancelled.")
    except Exception:
        logger.exception("Matrix connector crashed.")
    finally:
        await dispatcher.stop()

        with contextlib.suppress(Exception):
            await client.close()

        logger.info("Matrix connector stopped.")


def start_matrix_in_background(state: AppState) -> BackgroundLoop | None:
    """
    Start the Matrix connector in a background thread (so the console REPL
    can run in parallel). The connector owns its own reminder dispatcher.
    """
    if not state.settings.matrix_enabled:
        logger.info("Matrix connector disabled, not starting.")
        return None

    return start_loop_in_background(functools.partial(_run_matrix_bot, state), name="matrix")

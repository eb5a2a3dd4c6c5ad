# src/taskbot/connectors/console_connector.py

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections import OrderedDict
from collections.abc import Callable
from datetime import datetime

from ..core.chat import handle_action_event, handle_incoming_text
from ..core.ports import ActionRows
from ..core.state import AppState
from ..tasks.actions import encode_action, parse_action
from ..core.background import BackgroundLoop
from ..tasks.dispatcher import ReminderDispatcher, start_dispatcher_in_background

logger = logging.getLogger(__name__)

CHANNEL = "console"

# Older reminders drop out of the open set.
MAX_OPEN_REMINDERS = 200


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleNotifier:
    """
    Prints reminders to stdout.

    Actions are shown as "[done:42] ✅ Выполнено"; the user types the
    bracketed part back. Each printed reminder keeps its actions open until
    one of them is used; only the newest max_open reminders stay actionable.
    """

    def __init__(self, emit: Callable[[str], None] = _print_ts, *, max_open: int = MAX_OPEN_REMINDERS) -> None:
        self._emit = emit
        self._lock = threading.Lock()
        self._seq = itertools.count(1)
        self._max_open = max(1, max_open)
        self._open: OrderedDict[str, set[str]] = OrderedDict()

    async def deliver(self, *, address: str, text: str, actions: ActionRows) -> str:
        ref = f"{CHANNEL}-{next(self._seq)}"
        buttons = [b for row in actions for b in row]
        with self._lock:
            self._open[ref] = {b.data for b in buttons}
            while len(self._open) > self._max_open:
                self._open.popitem(last=False)

        options = "  ".join(f"[{b.data}] {b.label}" for b in buttons)
        self._emit(f"{text}\n    {options}" if options else text)
        return ref

    async def disable_actions(self, message_ref: str) -> None:
        with self._lock:
            self._open.pop(message_ref, None)

    def find_open_ref(self, data: str) -> str | None:
        """Most recent reminder that still offers this action."""
        parsed = parse_action(data)
        if parsed is None:
            return None
        key = encode_action(*parsed)
        with self._lock:
            for ref in reversed(self._open):
                if key in self._open[ref]:
                    return ref
        return None


def start_console_dispatcher(state: AppState, notifier: ConsoleNotifier) -> BackgroundLoop | None:
    settings = state.settings

    def make_dispatcher() -> ReminderDispatcher:
        return ReminderDispatcher(
            state.store,
            notifier,
            channel=CHANNEL,
            interval_seconds=settings.reminder_interval_seconds,
            batch_limit=settings.reminder_batch_limit,
        )

    return start_dispatcher_in_background(make_dispatcher, name="console-reminders")


def handle_console_line(state: AppState, notifier: ConsoleNotifier, line: str) -> str | None:
    """One line of console input -> reply text."""
    user_id = state.settings.console_user

    if parse_action(line) is not None:
        ref = notifier.find_open_ref(line)
        if ref is None:
            return "Нет активного напоминания с таким действием."
        return asyncio.run(
            handle_action_event(
                state,
                notifier,
                data=line,
                message_ref=ref,
                external_id=user_id,
            )
        )

    return handle_incoming_text(
        state,
        line,
        external_id=user_id,
        channel=CHANNEL,
        address=CHANNEL,
        display_name=user_id,
    )


def run_console_loop(state: AppState, notifier: ConsoleNotifier) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Напиши задачу. /help — команды, /exit — выход.\n")

    while True:
        try:
            user_input = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = handle_console_line(state, notifier, user_input)
        except Exception:
            logger.exception("Console handler crashed.")
            reply = "⚠️ Внутренняя ошибка."

        if reply:
            _print_ts(reply)

    logger.info("Console connector finished.")

# src/taskbot/tasks/dispatcher.py

"""
Reminder dispatcher.

A small polling loop that, every interval:
- fetches unsent reminders whose time has come,
- delivers each one through an injected notifier port,
- marks a reminder sent only after the notifier reported success.

A failed delivery is logged and left unsent, so the next sweep retries it.
Delivery is at-least-once: if the send succeeds remotely but mark_sent
fails, the user gets the reminder again on the next sweep.

One dispatcher never runs two sweeps at once (single loop + lock). Two
dispatchers on the same database and channel are not coordinated.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..core.background import BackgroundLoop, start_loop_in_background
from ..core.ports import Notifier, ReminderRepo
from .actions import build_action_rows
from .task_models import Task

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0


def render_reminder_text(task: Task) -> str:
    return f"🔔 Напоминание: {task.title}"


@dataclass(slots=True)
class SweepStats:
    found: int = 0
    delivered: int = 0
    failed: int = 0


class ReminderDispatcher:
    """
    Periodic due-reminder sweep for one notification channel.

    Lifecycle: start() schedules run() on the running loop, stop() cancels it.
    """

    def __init__(
        self,
        store: ReminderRepo,
        notifier: Notifier,
        *,
        channel: str | None = None,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        batch_limit: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._channel = channel
        self._interval = max(0.01, float(interval_seconds))
        self._batch_limit = batch_limit if batch_limit and batch_limit > 0 else None
        self._clock = clock
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep(self) -> SweepStats:
        stats = SweepStats()

        async with self._lock:
            now_ts = self._clock()
            try:
                due = self._store.find_due_unsent(
                    now_ts=now_ts,
                    channel=self._channel,
                    limit=self._batch_limit,
                )
            except Exception:
                logger.exception("find_due_unsent failed channel=%s", self._channel)
                return stats

            stats.found = len(due)

            for item in due:
                reminder_id = item.reminder.id
                task = item.task

                try:
                    message_ref = await self._notifier.deliver(
                        address=item.address,
                        text=render_reminder_text(task),
                        actions=build_action_rows(task.id),
                    )
                except Exception:
                    stats.failed += 1
                    logger.exception(
                        "Reminder delivery failed reminder_id=%s task_id=%s address=%s",
                        reminder_id,
                        task.id,
                        item.address,
                    )
                    continue

                stats.delivered += 1
                try:
                    self._store.mark_sent(reminder_id, message_ref=message_ref, sent_at=self._clock())
                    logger.info("Reminder %s sent (task_id=%s ref=%s)", reminder_id, task.id, message_ref)
                except Exception:
                    # Delivered but not recorded: it will go out again next sweep.
                    logger.exception("mark_sent failed reminder_id=%s", reminder_id)

        if stats.found:
            logger.debug(
                "Sweep channel=%s found=%d delivered=%d failed=%d",
                self._channel,
                stats.found,
                stats.delivered,
                stats.failed,
            )
        return stats

    async def run(self) -> None:
        """Sweep, sleep, repeat. Cancel the task to stop."""
        logger.info("Reminder dispatcher started channel=%s interval=%.1fs", self._channel, self._interval)
        try:
            while True:
                await self.sweep()
                await asyncio.sleep(self._interval)
        finally:
            logger.info("Reminder dispatcher stopped channel=%s", self._channel)

    def start(self) -> asyncio.Task[None]:
        """Schedule run() on the current event loop. Idempotent."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def start_dispatcher_in_background(
    make_dispatcher: Callable[[], ReminderDispatcher],
    *,
    name: str = "reminder-dispatcher",
) -> BackgroundLoop | None:
    """
    Run a dispatcher in a background thread until the runner is stopped.

    The factory is called inside the thread so the dispatcher's lock and
    task belong to that thread's loop.
    """

    async def _main(stop_event: asyncio.Event) -> None:
        dispatcher = make_dispatcher()
        dispatcher.start()
        try:
            await stop_event.wait()
        finally:
            await dispatcher.stop()

    return start_loop_in_background(_main, name=name)

# src/taskbot/core/background.py

"""
Background event loops.

Connectors and reminder dispatchers that must run next to the blocking
console REPL get a thread with a private asyncio loop. The main thread stops
them through stop_event, set via loop.call_soon_threadsafe.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

LoopMain = Callable[[asyncio.Event], Awaitable[None]]


@dataclass
class BackgroundLoop:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Loop of %s already closed.", self.thread.name, exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_loop_in_background(main: LoopMain, *, name: str) -> BackgroundLoop | None:
    """
    Run main(stop_event) to completion on a new loop in a daemon thread.

    main is called inside the thread, so any asyncio primitives it creates
    belong to that loop. Returns None if the thread did not come up.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(main(stop_event))
        except Exception:
            logger.exception("Background loop %s crashed.", name)
        finally:
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name=name, daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Background thread %s did not initialize properly.", name)
        return None

    logger.info("Background thread started (%s).", name)
    return BackgroundLoop(thread=t, loop=loop, stop_event=stop_event)

# src/taskbot/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts connectors:
- console REPL in the main thread (optional), with its reminder dispatcher
  in a background thread,
- Matrix connector in a background thread (optional), which runs its own
  reminder dispatcher.

Every background runner is registered on AppState and stopped on exit.
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import ConsoleNotifier, run_console_loop, start_console_dispatcher
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    state = create_initial_state(settings=settings)

    if settings.matrix_enabled:
        from ..connectors.matrix_connector import start_matrix_in_background

        matrix_runner = start_matrix_in_background(state)
        if matrix_runner is not None:
            state.add_runner(matrix_runner)

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
        if not settings.console_enabled:
            # With the console on, Ctrl+C is handled by the REPL itself.
            signal.signal(signal.SIGINT, _handle_signal)
    except (ValueError, OSError):
        logger.debug("Signal handlers not installed.", exc_info=True)

    try:
        if settings.console_enabled:
            notifier = ConsoleNotifier()
            console_dispatcher = start_console_dispatcher(state, notifier)
            if console_dispatcher is not None:
                state.add_runner(console_dispatcher)
            run_console_loop(state, notifier)
        else:
            logger.info("Console disabled. Running background connectors only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        state.stop_runners()
        state.store.close()
        logger.info("Bye.")


if __name__ == "__main__":
    main()

# src/taskbot/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from ..tasks.task_store import TaskStore


class BackgroundRunner(Protocol):
    def stop(self) -> None: ...
    def join(self, timeout: float | None = None) -> None: ...


@dataclass
class AppState:
    """
    Process-wide state shared by connectors.

    Background runners (reminder dispatchers, the Matrix thread) register
    here so main can stop every one of them on shutdown.
    """

    # Store Settings on the state for easy access in other modules.
    settings: Any
    store: TaskStore

    runners: list[BackgroundRunner] = field(default_factory=list)

    def add_runner(self, runner: BackgroundRunner) -> None:
        self.runners.append(runner)

    def stop_runners(self, timeout: float = 10.0) -> None:
        for runner in self.runners:
            runner.stop()
        for runner in self.runners:
            runner.join(timeout=timeout)
        self.runners.clear()

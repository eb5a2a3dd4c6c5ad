# src/taskbot/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, time, timedelta

from ..core.state import AppState
from ..tasks.task_models import TaskFilter, TaskStatus, User

CommandHandler = Callable[[AppState, list[str], User], str]

logger = logging.getLogger(__name__)

LIST_LIMIT = 10


class CommandRegistry:
    """Simple slash-command registry used by the chat layer (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, user: User) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Пустая команда. Список команд: /help"

        # Telegram-style "/list@botname" is accepted too.
        name = parts[0].split("@", 1)[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Неизвестная команда: /{name}. Список команд: /help"

        return handler(state, args, user)

    def build_help(self) -> str:
        lines = ["Команды:"]
        for name, help_text in self._help.items():
            lines.append(f"/{name} — {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _day_bounds(now: datetime) -> tuple[float, float]:
    start = datetime.combine(now.date(), time(0, 0), tzinfo=now.tzinfo)
    end = start + timedelta(days=1)
    return start.timestamp(), end.timestamp()


def cmd_start(state: AppState, args: list[str], user: User) -> str:
    return (
        "👋 Привет! Я помогу управлять твоими задачами.\n\n"
        "📝 Просто напиши задачу:\n"
        '"Созвониться с Иваном завтра в 15:00 #работа"\n'
        '"Купить молоко сегодня #дом"\n\n'
        + registry.build_help()
    )


def cmd_help(state: AppState, args: list[str], user: User) -> str:
    return registry.build_help()


def cmd_list(state: AppState, args: list[str], user: User) -> str:
    tasks = state.store.list_tasks(
        TaskFilter(
            owner_id=user.id,
            exclude_statuses=[TaskStatus.DONE],
            newest_first=True,
            limit=LIST_LIMIT,
        )
    )
    if not tasks:
        return "У тебя пока нет активных задач! 🎉"

    lines = ["📋 Твои задачи:", ""]
    for i, task in enumerate(tasks, start=1):
        icon = "⏳" if task.status is TaskStatus.IN_PROGRESS else "⭕"
        project = f" [{task.project_name}]" if task.project_name else ""
        lines.append(f"{i}. {icon} {task.title}{project}")
    return "\n".join(lines)


def cmd_today(state: AppState, args: list[str], user: User) -> str:
    day_start, day_end = _day_bounds(datetime.now())
    tasks = state.store.list_tasks(
        TaskFilter(
            owner_id=user.id,
            exclude_statuses=[TaskStatus.DONE],
            due_from=day_start,
            due_before=day_end,
            newest_first=False,
        )
    )
    if not tasks:
        return "На сегодня задач нет! 🎉"

    lines = ["📅 Задачи на сегодня:", ""]
    for i, task in enumerate(tasks, start=1):
        lines.append(f"{i}. {task.title}")
    return "\n".join(lines)


def cmd_projects(state: AppState, args: list[str], user: User) -> str:
    projects = state.store.list_projects(user.id)
    if not projects:
        return "У тебя пока нет проектов. Создай задачу с тегом #проект"

    lines = ["📁 Твои проекты:", ""]
    lines.extend(f"• {p.name}" for p in projects)
    return "\n".join(lines)


registry.register("start", cmd_start, help_text="приветствие и примеры")
registry.register("help", cmd_help, help_text="список команд", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="все активные задачи")
registry.register("today", cmd_today, help_text="задачи на сегодня")
registry.register("projects", cmd_projects, help_text="мои проекты")

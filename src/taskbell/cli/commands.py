# src/taskbell/cli/commands.py

from __future__ import annotations

import contextlib
import logging
from collections.abc import Awaitable, Callable

from ..core.state import AppState
from ..core.weekdays import Weekday
from ..storage.document_store import StorageError
from ..tasks import task_api
from ..tasks.task_models import Task, TaskStatus

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)

_DAY_GROUPS: dict[str, tuple[Weekday, ...]] = {
    "daily": tuple(Weekday),
    "everyday": tuple(Weekday),
    "weekdays": (Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY),
    "weekends": (Weekday.SATURDAY, Weekday.SUNDAY),
}


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

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

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return await handler(state, args, emit)
        except StorageError:
            logger.exception("Command /%s failed on storage", name)
            return "Could not save your changes (storage error). Please try again."
        except ValueError as e:
            return f"Invalid input: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def parse_days_token(token: str) -> tuple[Weekday, ...] | None:
    """'mon,wed' / 'daily' / 'weekdays' -> weekdays; None if the token names no days."""
    key = token.strip().lower()
    if key in _DAY_GROUPS:
        return _DAY_GROUPS[key]
    days: list[Weekday] = []
    for part in key.split(","):
        if not part:
            continue
        try:
            days.append(Weekday.parse(part))
        except ValueError:
            return None
    return tuple(days) if days else None


def _short(task_id: str) -> str:
    return task_id[:8]


def _format_task(state: AppState, task: Task) -> str:
    days = ", ".join(d.label[:3] for d in task.repeat_day)
    when = state.clock.format_time(task.task_time)
    return f"[{_short(task.task_id)}] {task.task_name} - {when} ({days}) {task.task_status.value}"


async def _resolve_task(state: AppState, prefix: str) -> Task | str:
    matches = [t for t in await task_api.load_tasks(state) if t.task_id.startswith(prefix)]
    if not matches:
        return f"No task with id {prefix}."
    if len(matches) > 1:
        return f"Id {prefix} is ambiguous ({len(matches)} tasks). Use more characters."
    return matches[0]


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    s = state.settings
    tasks = await task_api.load_tasks(state)
    unread = await task_api.unread_notification_count(state)
    granted = await state.platform.permissions_granted()
    return (
        "Status:\n"
        f"  Timezone: {state.clock.timezone_name} (now {state.clock.format_time(state.clock.now())})\n"
        f"  Lead / grace: {s.lead_minutes}m / {s.grace_minutes}m\n"
        f"  Tasks: {len(tasks)}  Live alerts: {state.notifier.registry.count()}\n"
        f"  Notifications: {'ON' if granted else 'OFF'}  Unread: {unread}"
    )


async def cmd_tasks(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /tasks             -> all tasks
    /tasks overdue     -> only one status (incomplete | complete | overdue)
    """
    tasks = await task_api.load_tasks(state)
    if args:
        wanted = TaskStatus.from_raw(args[0])
        tasks = [t for t in tasks if t.task_status == wanted]
    if not tasks:
        return "No tasks found."
    return "\n".join(_format_task(state, t) for t in tasks)


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add 09:00 mon,wed Standup
    /add 18:30 Evening walk        (no days -> today)
    """
    if len(args) < 2:
        return "Usage: /add HH:MM [days] name. Days: mon,tue,... | daily | weekdays | weekends."

    time_text = args[0]
    days = parse_days_token(args[1]) if len(args) > 2 else None
    name_parts = args[2:] if days is not None else args[1:]

    tasks = await task_api.add_task(
        state,
        task_name=" ".join(name_parts),
        task_time=time_text,
        repeat_day=list(days or []),
    )
    task = tasks[-1]
    n = await task_api.schedule_all_notification_tasks(state, task)
    return f"Added {_format_task(state, task)}; {n} alert(s) scheduled."


async def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /done <task id>"
    found = await _resolve_task(state, args[0])
    if isinstance(found, str):
        return found
    tasks = await task_api.complete_task(state, found.task_id)
    task = next((t for t in tasks if t.task_id == found.task_id), found)
    return _format_task(state, task)


async def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /delete <task id>"
    found = await _resolve_task(state, args[0])
    if isinstance(found, str):
        return found
    await task_api.delete_task(state, found.task_id)
    await task_api.cancel_all_notification_tasks(state, found.task_id)
    return f"Deleted {found.task_name}."


async def cmd_history(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    records = await task_api.load_notification_history(state)
    if not records:
        return "No notifications yet."
    lines = []
    for r in records[:30]:
        mark = " " if r.read else "*"
        when = state.clock.to_display_time(r.timestamp).strftime("%a %H:%M")
        lines.append(f"{mark} [{r.id}] {when} {r.title}: {r.body}")
    return "\n".join(lines)


async def cmd_read(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /read <notification id> | /read all"
    if args[0].lower() == "all":
        n = await task_api.mark_all_notifications_read(state)
        return f"Marked {n} notification(s) as read."
    if await task_api.mark_notification_read(state, args[0]):
        return "Marked as read."
    return f"No unread notification with id {args[0]}."


async def cmd_clear(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    await task_api.clear_notification_history(state)
    return "Notification history cleared."


async def cmd_sweep(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        with contextlib.suppress(Exception):
            emit("[SWEEP] Reconciling statuses...")
    tasks = await state.sweeper.sweep()
    overdue = sum(1 for t in tasks if t.task_status == TaskStatus.OVERDUE)
    return f"Sweep done: {len(tasks)} task(s), {overdue} overdue."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show timezone, timing and alert counts.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [incomplete|complete|overdue].", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add HH:MM [days] name.")
registry.register("done", cmd_done, help_text="Mark a task complete: /done <id>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("history", cmd_history, help_text="Show delivered notifications (newest first).")
registry.register("read", cmd_read, help_text="Mark notifications read: /read <id> | /read all.")
registry.register("clear", cmd_clear, help_text="Clear notification history.")
registry.register("sweep", cmd_sweep, help_text="Run a status sweep now.")

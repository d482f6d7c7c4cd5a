# tests/test_commands.py

from __future__ import annotations

import pytest

from taskbell.cli.commands import CommandRegistry, parse_days_token, registry
from taskbell.core.weekdays import Weekday
from taskbell.tasks.task_models import TaskStatus

from .fakes import manila


@pytest.mark.asyncio
async def test_command_registry_routes_and_passes_emit(state) -> None:
    reg = CommandRegistry()
    notes: list[str] = []

    async def h(state, args, emit):
        if emit is not None:
            emit("note")
        return "|".join(args)

    reg.register("echo", h, "echo", aliases=["e"])

    assert await reg.handle(state, "/echo a b", emit=notes.append) == "a|b"
    assert await reg.handle(state, "/E x") == "x"
    assert notes == ["note"]


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


def test_parse_days_token() -> None:
    assert parse_days_token("mon,wed") == (Weekday.MONDAY, Weekday.WEDNESDAY)
    assert parse_days_token("weekends") == (Weekday.SATURDAY, Weekday.SUNDAY)
    assert len(parse_days_token("daily") or ()) == 7
    assert parse_days_token("Standup") is None


@pytest.mark.asyncio
async def test_help_lists_commands(state) -> None:
    text = await registry.handle(state, "/help") or ""
    for name in ("/add", "/tasks", "/done", "/history", "/sweep"):
        assert name in text


@pytest.mark.asyncio
async def test_add_with_days_schedules_alerts(state, platform) -> None:
    reply = await registry.handle(state, "/add 09:00 mon,wed,fri Standup meeting") or ""

    assert "Standup meeting" in reply
    assert "9 alert(s) scheduled" in reply
    tasks = await state.task_store.load()
    assert tasks[0].repeat_day == (Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY)
    assert len(platform.jobs) == 9


@pytest.mark.asyncio
async def test_add_without_days_uses_today(state) -> None:
    reply = await registry.handle(state, "/add 18:30 Evening walk") or ""

    assert "3 alert(s) scheduled" in reply
    tasks = await state.task_store.load()
    assert tasks[0].task_name == "Evening walk"
    assert tasks[0].repeat_day == (Weekday.MONDAY,)


@pytest.mark.asyncio
async def test_add_rejects_bad_input(state) -> None:
    assert "Usage" in (await registry.handle(state, "/add 09:00") or "")
    assert "Invalid input" in (await registry.handle(state, "/add 25:00 mon Nope") or "")
    assert await state.task_store.load() == []


@pytest.mark.asyncio
async def test_tasks_done_and_delete(state, platform, now) -> None:
    await registry.handle(state, "/add 09:00 mon Standup")
    task = (await state.task_store.load())[0]

    now.set(manila(19, 9, 30))
    await registry.handle(state, "/sweep")
    overdue = await registry.handle(state, "/tasks overdue") or ""
    assert "Standup" in overdue
    assert "OVERDUE" in overdue
    assert await registry.handle(state, "/tasks complete") == "No tasks found."

    reply = await registry.handle(state, f"/done {task.task_id[:8]}") or ""
    assert "COMPLETE" in reply
    assert (await state.task_store.get(task.task_id)).task_status == TaskStatus.COMPLETE
    assert platform.jobs == {}

    assert "No task with id" in (await registry.handle(state, "/done zzzz") or "")

    reply = await registry.handle(state, f"/delete {task.task_id}") or ""
    assert "Deleted Standup" in reply
    assert await state.task_store.load() == []


@pytest.mark.asyncio
async def test_history_read_and_clear(state, platform) -> None:
    await registry.handle(state, "/add 09:00 mon Standup")
    task = (await state.task_store.load())[0]
    assert await registry.handle(state, "/history") == "No notifications yet."

    await platform.fire(platform.handle_of(task.task_id, "start", Weekday.MONDAY))

    history = await registry.handle(state, "/history") or ""
    assert "Task Started" in history
    assert history.startswith("*")

    assert await registry.handle(state, "/read all") == "Marked 1 notification(s) as read."
    assert "Unread: 0" in (await registry.handle(state, "/status") or "")

    assert await registry.handle(state, "/clear") == "Notification history cleared."
    assert await registry.handle(state, "/history") == "No notifications yet."

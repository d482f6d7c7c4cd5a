# tests/test_notification_scheduler.py

from __future__ import annotations

import pytest

from taskbell.core.weekdays import Weekday
from taskbell.notifications.models import AlertKind, WeeklyTrigger
from taskbell.notifications.scheduler import alert_offsets, compute_trigger
from taskbell.tasks import task_api
from taskbell.tasks.task_models import TaskStatus

from .fakes import manila


async def _add(state, name: str, at: str, days: list[str]):
    return (await task_api.add_task(state, task_name=name, task_time=at, repeat_day=days))[-1]


@pytest.mark.asyncio
async def test_three_alerts_per_repeat_day(state, platform) -> None:
    task = await _add(state, "Standup", "09:00", ["Monday", "Wednesday", "Friday"])

    n = await task_api.schedule_all_notification_tasks(state, task)

    assert n == 9
    assert len(platform.alerts_for(task.task_id)) == 9
    assert state.notifier.registry.count(task.task_id) == 9

    by_kind: dict[str, set[tuple[Weekday, int, int]]] = {}
    for _, trigger, payload in platform.alerts_for(task.task_id):
        by_kind.setdefault(payload["kind"], set()).add((trigger.weekday, trigger.hour, trigger.minute))
    days = (Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY)
    assert by_kind["upcoming"] == {(d, 8, 45) for d in days}
    assert by_kind["start"] == {(d, 9, 0) for d in days}
    assert by_kind["overdue"] == {(d, 9, 15) for d in days}


@pytest.mark.asyncio
async def test_payload_carries_titles_and_bodies(state, platform) -> None:
    task = await _add(state, "Standup", "09:00", ["Monday"])
    await task_api.schedule_all_notification_tasks(state, task)

    payloads = {p["kind"]: p for _, _, p in platform.alerts_for(task.task_id)}

    assert payloads["upcoming"]["title"] == "Upcoming Task"
    assert payloads["upcoming"]["body"] == 'Your task "Standup" will start in 15 minutes (9:00 AM)'
    assert payloads["start"]["title"] == "Task Started"
    assert payloads["start"]["body"] == "It's time to start your task: Standup (9:00 AM)"
    assert payloads["overdue"]["title"] == "Task Overdue"
    assert payloads["overdue"]["type"] == "task_overdue"
    assert payloads["overdue"]["taskId"] == task.task_id
    assert payloads["overdue"]["weekday"] == int(Weekday.MONDAY)


@pytest.mark.asyncio
async def test_rescheduling_never_duplicates(state, platform) -> None:
    task = await _add(state, "Standup", "09:00", ["Monday", "Wednesday", "Friday"])

    await task_api.schedule_all_notification_tasks(state, task)
    await task_api.schedule_all_notification_tasks(state, task)

    assert len(platform.alerts_for(task.task_id)) == 9


@pytest.mark.asyncio
async def test_cancel_all_leaves_nothing(state, platform) -> None:
    task = await _add(state, "Standup", "09:00", ["Monday", "Wednesday"])
    await task_api.schedule_all_notification_tasks(state, task)

    cancelled = await task_api.cancel_all_notification_tasks(state, task.task_id)

    assert cancelled == 6
    assert platform.alerts_for(task.task_id) == []
    assert state.notifier.registry.count(task.task_id) == 0


@pytest.mark.asyncio
async def test_cancel_uses_platform_list_when_registry_is_lost(state, platform) -> None:
    task = await _add(state, "Standup", "09:00", ["Monday"])
    await task_api.schedule_all_notification_tasks(state, task)

    state.notifier.registry.clear()  # e.g. after a restart
    await task_api.cancel_all_notification_tasks(state, task.task_id)

    assert platform.alerts_for(task.task_id) == []


@pytest.mark.asyncio
async def test_complete_task_is_not_scheduled(state, platform) -> None:
    task = await _add(state, "Standup", "09:00", ["Monday"])
    await task_api.complete_task(state, task.task_id)
    done = await state.task_store.get(task.task_id)

    assert done.task_status == TaskStatus.COMPLETE
    assert await task_api.schedule_all_notification_tasks(state, done) == 0
    assert platform.jobs == {}


@pytest.mark.asyncio
async def test_upcoming_alert_crosses_midnight_to_previous_day(state, platform) -> None:
    task = await _add(state, "Early run", "00:05", ["Monday"])
    await task_api.schedule_all_notification_tasks(state, task)

    triggers = {p["kind"]: t for _, t, p in platform.alerts_for(task.task_id)}

    assert triggers["upcoming"] == WeeklyTrigger(Weekday.SUNDAY, 23, 50, "Asia/Manila")
    assert triggers["start"] == WeeklyTrigger(Weekday.MONDAY, 0, 5, "Asia/Manila")


def test_overdue_alert_crosses_midnight_to_next_day(state) -> None:
    offsets = alert_offsets(15, 15)
    trigger = compute_trigger(
        state.clock, Weekday.SATURDAY, 23, 55, offsets[AlertKind.OVERDUE], manila(19, 8, 0)
    )
    assert (trigger.weekday, trigger.hour, trigger.minute) == (Weekday.SUNDAY, 0, 10)


@pytest.mark.asyncio
async def test_one_failing_alert_does_not_stop_the_rest(state, platform) -> None:
    task = await _add(state, "Standup", "09:00", ["Monday", "Wednesday", "Friday"])
    platform.fail_on = {("start", Weekday.WEDNESDAY)}

    n = await task_api.schedule_all_notification_tasks(state, task)

    assert n == 8
    assert len(platform.alerts_for(task.task_id)) == 8


@pytest.mark.asyncio
async def test_denied_permission_schedules_nothing(state, platform) -> None:
    task = await _add(state, "Standup", "09:00", ["Monday"])
    await task_api.schedule_all_notification_tasks(state, task)
    assert len(platform.jobs) == 3

    platform.granted = False
    n = await task_api.schedule_all_notification_tasks(state, task)

    assert n == 0
    # Stale alerts from before the denial are gone too.
    assert platform.jobs == {}
    assert await task_api.request_notification_permissions(state) is False


@pytest.mark.asyncio
async def test_sync_registry_rebuilds_from_platform(state, platform) -> None:
    task = await _add(state, "Standup", "09:00", ["Monday", "Friday"])
    await task_api.schedule_all_notification_tasks(state, task)
    platform.jobs["foreign"] = (WeeklyTrigger(Weekday.MONDAY, 7, 0, "Asia/Manila"), {"hello": "world"})

    state.notifier.registry.clear()
    n = await state.notifier.sync_registry()

    assert n == 6
    assert state.notifier.registry.task_ids() == [task.task_id]

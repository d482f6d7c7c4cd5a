# tests/test_delivery.py

from __future__ import annotations

from datetime import date

import pytest

from taskbell.core.weekdays import Weekday
from taskbell.notifications.delivery import DeliveryTracker
from taskbell.notifications.history import HISTORY_KEY
from taskbell.notifications.models import AlertKind
from taskbell.storage.document_store import JsonDocumentStore
from taskbell.tasks import task_api

from .fakes import manila


async def _scheduled_standup(state):
    task = (
        await task_api.add_task(state, task_name="Standup", task_time="09:00", repeat_day=["Monday"])
    )[-1]
    await task_api.schedule_all_notification_tasks(state, task)
    return task


@pytest.mark.asyncio
async def test_delivered_alert_becomes_history_record(state, platform) -> None:
    task = await _scheduled_standup(state)
    handle = platform.handle_of(task.task_id, "upcoming", Weekday.MONDAY)

    await platform.fire(handle)

    records = await task_api.load_notification_history(state)
    assert len(records) == 1
    rec = records[0]
    assert rec.task_id == task.task_id
    assert rec.type == "task_upcoming"
    assert rec.title == "Upcoming Task"
    assert rec.read is False
    assert rec.id == platform.jobs[handle][1]["notificationId"]
    assert await state.delivery_tracker.has_been_delivered(task.task_id, AlertKind.UPCOMING)


@pytest.mark.asyncio
async def test_double_delivery_records_once(state, platform) -> None:
    task = await _scheduled_standup(state)
    handle = platform.handle_of(task.task_id, "start", Weekday.MONDAY)

    await platform.fire(handle)
    await platform.fire(handle)

    assert len(await state.history.load()) == 1


@pytest.mark.asyncio
async def test_recent_window_catches_duplicates_without_delivered_flag(state, platform, now) -> None:
    task = await _scheduled_standup(state)
    handle = platform.handle_of(task.task_id, "start", Weekday.MONDAY)

    await platform.fire(handle)
    await state.delivery_tracker.clear_delivered(task.task_id)
    now.advance(minutes=2)
    await platform.fire(handle)

    assert len(await state.history.load()) == 1

    # Outside the window (and with the flag cleared) it is a new delivery.
    await state.delivery_tracker.clear_delivered(task.task_id)
    now.advance(minutes=10)
    await platform.fire(handle)

    records = await state.history.load()
    assert len(records) == 2
    assert records[0].id != records[1].id


@pytest.mark.asyncio
async def test_different_kinds_are_independent(state, platform) -> None:
    task = await _scheduled_standup(state)

    await platform.fire(platform.handle_of(task.task_id, "upcoming", Weekday.MONDAY))
    await platform.fire(platform.handle_of(task.task_id, "start", Weekday.MONDAY))

    types = sorted(r.type for r in await state.history.load())
    assert types == ["task_start", "task_upcoming"]


@pytest.mark.asyncio
async def test_malformed_payload_is_ignored(state) -> None:
    assert await state.delivery.record_delivery({"title": "no task id"}) is None
    assert await state.delivery.record_delivery({"taskId": "t1", "kind": "bogus", "title": "x", "body": "y"}) is None
    assert await state.history.load() == []


@pytest.mark.asyncio
async def test_next_day_alert_is_not_blocked_by_yesterdays_flag(state, platform, now) -> None:
    now.set(manila(19, 0, 0))
    task = (
        await task_api.add_task(
            state, task_name="Midnight pills", task_time="00:00", repeat_day=["Monday", "Tuesday"]
        )
    )[-1]
    await task_api.schedule_all_notification_tasks(state, task)

    await platform.fire(platform.handle_of(task.task_id, "start", Weekday.MONDAY))
    await state.sweeper.sweep()
    now.set(manila(19, 23, 59))
    await state.sweeper.sweep()

    # Tuesday's alert fires before any sweep has noticed the new day.
    now.set(manila(20, 0, 0))
    await platform.fire(platform.handle_of(task.task_id, "start", Weekday.TUESDAY))

    starts = [r for r in await state.history.load() if r.type == "task_start"]
    assert len(starts) == 2


@pytest.mark.asyncio
async def test_delivered_flag_is_scoped_to_its_display_date(state) -> None:
    tracker = state.delivery_tracker
    await tracker.mark_delivered("t1", AlertKind.START, on=date(2026, 10, 19))

    assert await tracker.has_been_delivered("t1", AlertKind.START, on=date(2026, 10, 19))
    assert not await tracker.has_been_delivered("t1", AlertKind.START, on=date(2026, 10, 20))
    assert await tracker.has_been_delivered("t1", AlertKind.START)


@pytest.mark.asyncio
async def test_legacy_delivered_list_is_read_as_undated(state) -> None:
    await state.documents.set_item("delivered_notifications", {"t1": ["task_overdue"]})
    tracker = state.delivery_tracker

    assert await tracker.has_been_delivered("t1", AlertKind.OVERDUE)
    assert not await tracker.has_been_delivered("t1", AlertKind.OVERDUE, on=date(2026, 10, 19))
    assert not await tracker.has_been_delivered("t1", AlertKind.START)


@pytest.mark.asyncio
async def test_delivered_flags_survive_restart(state, platform) -> None:
    task = await _scheduled_standup(state)
    await platform.fire(platform.handle_of(task.task_id, "overdue", Weekday.MONDAY))

    tracker = DeliveryTracker(JsonDocumentStore(state.documents.root))
    assert await tracker.has_been_delivered(task.task_id, AlertKind.OVERDUE)
    assert not await tracker.has_been_delivered(task.task_id, AlertKind.START)


@pytest.mark.asyncio
async def test_history_outlives_its_task(state, platform) -> None:
    task = await _scheduled_standup(state)
    await platform.fire(platform.handle_of(task.task_id, "start", Weekday.MONDAY))

    await task_api.delete_task(state, task.task_id)
    await task_api.cancel_all_notification_tasks(state, task.task_id)

    assert len(await task_api.load_notification_history(state)) == 1


@pytest.mark.asyncio
async def test_read_flags_and_unread_count(state, platform, now) -> None:
    task = await _scheduled_standup(state)
    await platform.fire(platform.handle_of(task.task_id, "upcoming", Weekday.MONDAY))
    now.advance(minutes=15)
    await platform.fire(platform.handle_of(task.task_id, "start", Weekday.MONDAY))

    assert await task_api.unread_notification_count(state) == 2

    first = (await task_api.load_notification_history(state))[-1]
    assert await task_api.mark_notification_read(state, first.id) is True
    assert await task_api.mark_notification_read(state, first.id) is False
    assert await task_api.unread_notification_count(state) == 1

    assert await task_api.mark_all_notifications_read(state) == 1
    assert await task_api.unread_notification_count(state) == 0

    await task_api.clear_notification_history(state)
    assert await task_api.load_notification_history(state) == []


@pytest.mark.asyncio
async def test_history_view_dedups_and_sorts_newest_first(state) -> None:
    await state.documents.set_item(
        HISTORY_KEY,
        [
            {"id": "a", "taskId": "t1", "title": "T", "body": "B", "type": "task_start",
             "timestamp": "2026-10-19T01:00:00+00:00", "read": False},
            {"id": "b", "taskId": "t1", "title": "T", "body": "B", "type": "task_start",
             "timestamp": "2026-10-19T01:00:00+00:00", "read": False},
            {"id": "c", "taskId": "t1", "title": "T", "body": "B", "type": "task_overdue",
             "timestamp": "2026-10-19T01:15:00+00:00", "read": True},
            {"id": "d", "taskId": "t2", "title": "T", "body": "B", "type": "task_upcoming",
             "timestamp": "2026-10-18T23:45:00Z", "read": False},
        ],
    )

    records = await task_api.load_notification_history(state)

    assert [r.id for r in records] == ["c", "a", "d"]
    assert await task_api.unread_notification_count(state) == 2


@pytest.mark.asyncio
async def test_response_listener_is_wired(state, platform) -> None:
    # Only logged; must not raise.
    await platform.respond({"taskId": "t1", "type": "task_start"})

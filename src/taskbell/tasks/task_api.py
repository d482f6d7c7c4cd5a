# src/taskbell/tasks/task_api.py

"""
Functions the UI shell calls. Each takes the AppState built in cli.bootstrap.

CRUD calls return the full task list so the shell can re-render from it. Alert scheduling is
a separate call the shell makes after create/update/delete/complete.
"""

from __future__ import annotations

import logging
from datetime import datetime, time
from typing import Any

from ..core.state import AppState
from ..notifications.models import NotificationRecord
from .task_models import MANUAL_TRANSITIONS, Task, TaskStatus

logger = logging.getLogger(__name__)


async def load_tasks(state: AppState) -> list[Task]:
    return await state.task_store.load()


async def add_task(
    state: AppState,
    *,
    task_name: str,
    task_time: datetime | time | str,
    repeat_day: Any = None,
) -> list[Task]:
    """New INCOMPLETE task. An empty repeat_day means "today"."""
    return await state.task_store.add(
        task_name=task_name,
        task_time=task_time,
        repeat_day=repeat_day,
    )


async def update_task(state: AppState, task_id: str, **patch: Any) -> list[Task]:
    return await state.task_store.update(task_id, **patch)


async def delete_task(state: AppState, task_id: str) -> list[Task]:
    return await state.task_store.delete(task_id)


async def complete_task(state: AppState, task_id: str) -> list[Task]:
    """
    Mark the current occurrence done and cancel its alerts.

    Only INCOMPLETE/OVERDUE -> COMPLETE is allowed here; anything else is logged and ignored.
    """
    task = await state.task_store.get(task_id)
    if task is None:
        logger.warning("complete_task: task %s not found", task_id)
        return await state.task_store.load()
    if task.task_status == TaskStatus.COMPLETE:
        return await state.task_store.load()
    if (task.task_status, TaskStatus.COMPLETE) not in MANUAL_TRANSITIONS:
        logger.warning("complete_task: %s -> COMPLETE not allowed for %s", task.task_status, task_id)
        return await state.task_store.load()

    tasks = await state.task_store.update(task_id, task_status=TaskStatus.COMPLETE)
    await state.notifier.cancel_all(task_id)
    return tasks


async def update_task_statuses(state: AppState) -> list[Task]:
    """Timer / screen-focus hook: reconcile statuses and return the fresh list."""
    return await state.reconciler.reconcile_all()


async def check_completed_tasks(state: AppState) -> list[str]:
    return await state.sweeper.check_completed_tasks()


async def schedule_all_notification_tasks(state: AppState, task: Task) -> int:
    return await state.notifier.schedule_all(task)


async def cancel_all_notification_tasks(state: AppState, task_id: str) -> int:
    return await state.notifier.cancel_all(task_id)


async def request_notification_permissions(state: AppState) -> bool:
    try:
        granted = await state.platform.request_permissions()
    except Exception:
        logger.exception("Failed to request notification permissions")
        return False
    if not granted:
        logger.warning("Notification permissions not granted")
    return granted


async def load_notification_history(state: AppState) -> list[NotificationRecord]:
    return await state.history.unique_sorted()


async def mark_notification_read(state: AppState, notification_id: str) -> bool:
    return await state.history.mark_read(notification_id)


async def mark_all_notifications_read(state: AppState) -> int:
    return await state.history.mark_all_read()


async def clear_notification_history(state: AppState) -> None:
    await state.history.clear_all()


async def unread_notification_count(state: AppState) -> int:
    return await state.history.unread_count()

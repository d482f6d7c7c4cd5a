# src/taskbell/notifications/scheduler.py

from __future__ import annotations

"""
Notification scheduler.

For every task it registers 3 alerts per repeat day (upcoming / start / overdue), each one a
recurring weekly trigger. Re-scheduling always starts from a clean slate:

    cancel old alerts -> clear delivered flags -> register new alerts

and that sequence is serialized per task so two schedule calls can never interleave and leave
duplicate live alerts behind.

Platform failures are logged with (task_id, kind, weekday) and never stop the sibling alerts.
"""

import asyncio
import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta

from ..core.clock import DisplayClock
from ..core.ports import NotificationPlatform
from ..core.weekdays import Weekday
from ..tasks.task_models import Task, TaskStatus
from .delivery import DeliveryTracker
from .models import AlertKind, AlertPayload, WeeklyTrigger, render_body
from .registry import ScheduleRegistry

logger = logging.getLogger(__name__)


def alert_offsets(lead_minutes: int, grace_minutes: int) -> dict[AlertKind, int]:
    """Minute offsets from the task's scheduled time. overdue must equal the reconciler's grace."""
    return {
        AlertKind.UPCOMING: -int(lead_minutes),
        AlertKind.START: 0,
        AlertKind.OVERDUE: int(grace_minutes),
    }


def compute_trigger(
    clock: DisplayClock,
    weekday: Weekday,
    hour: int,
    minute: int,
    offset_minutes: int,
    now: datetime,
) -> WeeklyTrigger:
    """
    Weekly trigger for an alert `offset_minutes` away from weekday hour:minute.

    The offset is applied to a real calendar date (the next occurrence of that weekday) on the
    wall clock, and weekday/hour/minute are read back from the result. An upcoming alert for a
    Monday 00:05 task therefore fires on Sunday 23:50.
    """
    occurrence = clock.next_occurrence(weekday, hour, minute, now)
    shifted = occurrence.replace(tzinfo=None) + timedelta(minutes=offset_minutes)
    return WeeklyTrigger(
        weekday=Weekday.from_python_weekday(shifted.weekday()),
        hour=shifted.hour,
        minute=shifted.minute,
        timezone=clock.timezone_name,
    )


class NotificationScheduler:
    def __init__(
        self,
        platform: NotificationPlatform,
        registry: ScheduleRegistry,
        tracker: DeliveryTracker,
        clock: DisplayClock,
        *,
        lead_minutes: int,
        grace_minutes: int,
    ) -> None:
        self._platform = platform
        self._registry = registry
        self._tracker = tracker
        self._clock = clock
        self._lead_minutes = int(lead_minutes)
        self._offsets = alert_offsets(lead_minutes, grace_minutes)
        self._task_locks: dict[str, asyncio.Lock] = {}

    @property
    def registry(self) -> ScheduleRegistry:
        return self._registry

    def _lock_for(self, task_id: str) -> asyncio.Lock:
        lk = self._task_locks.get(task_id)
        if lk is None:
            lk = asyncio.Lock()
            self._task_locks[task_id] = lk
        return lk

    def build_alerts(self, task: Task, now: datetime | None = None) -> list[tuple[WeeklyTrigger, AlertPayload]]:
        """All (trigger, payload) pairs for a task: 3 per repeat day."""
        now = now or self._clock.now()
        hour, minute = self._clock.time_of_day(task.task_time)
        time_text = self._clock.format_time(task.task_time)

        out: list[tuple[WeeklyTrigger, AlertPayload]] = []
        for weekday in sorted(set(task.repeat_day)):
            for kind, offset in self._offsets.items():
                trigger = compute_trigger(self._clock, weekday, hour, minute, offset, now)
                payload = AlertPayload(
                    notification_id=f"{kind.value}_{task.task_id}_{uuid.uuid4().hex[:12]}",
                    task_id=task.task_id,
                    task_name=task.task_name,
                    kind=kind,
                    title=kind.title,
                    body=render_body(kind, task.task_name, time_text, self._lead_minutes),
                    weekday=weekday,
                )
                out.append((trigger, payload))
        return out

    async def schedule_all(self, task: Task) -> int:
        """
        (Re)register every alert of `task`. Returns the number of alerts registered.

        COMPLETE tasks get no alerts for the current occurrence; the call is a no-op.
        """
        if task.task_status == TaskStatus.COMPLETE:
            logger.info("Task %s is COMPLETE; not scheduling alerts", task.task_id)
            return 0

        async with self._lock_for(task.task_id):
            await self._cancel_locked(task.task_id)
            await self._tracker.clear_delivered(task.task_id)

            try:
                granted = await self._platform.permissions_granted()
            except Exception:
                logger.exception("Permission check failed task_id=%s", task.task_id)
                granted = False
            if not granted:
                logger.warning("Notification permission not granted; task %s gets no alerts", task.task_id)
                return 0

            scheduled = 0
            for trigger, payload in self.build_alerts(task):
                try:
                    handle = await self._platform.schedule_weekly_notification(trigger, payload)
                except Exception:
                    logger.exception(
                        "Failed to schedule alert task_id=%s kind=%s weekday=%s",
                        task.task_id,
                        payload.kind.value,
                        payload.weekday.label if payload.weekday else None,
                    )
                    continue
                if payload.weekday is not None:
                    self._registry.track(task.task_id, payload.kind, payload.weekday, handle)
                scheduled += 1
                logger.debug(
                    "Scheduled %s alert task_id=%s at %s handle=%s",
                    payload.kind.value,
                    task.task_id,
                    trigger.describe(),
                    handle,
                )

        logger.info(
            "Scheduled %d/%d alert(s) for task %s",
            scheduled,
            len(self._offsets) * len(set(task.repeat_day)),
            task.task_id,
        )
        return scheduled

    async def cancel_all(self, task_id: str) -> int:
        """Cancel every live alert of `task_id` and clear its delivered flags. Returns alerts cancelled."""
        async with self._lock_for(task_id):
            cancelled = await self._cancel_locked(task_id)
            await self._tracker.clear_delivered(task_id)
        return cancelled

    async def _cancel_locked(self, task_id: str) -> int:
        cancelled = 0
        done: set[str] = set()

        for kind, weekday, handle in self._registry.handles_for(task_id):
            done.add(handle)
            try:
                await self._platform.cancel_notification(handle)
                cancelled += 1
            except Exception:
                logger.exception(
                    "Failed to cancel alert task_id=%s kind=%s weekday=%s handle=%s",
                    task_id,
                    kind.value,
                    weekday.label,
                    handle,
                )
        self._registry.forget(task_id)

        # Backstop: the registry is empty after a restart, the platform's list is authoritative.
        try:
            pending = await self._platform.list_pending_notifications()
        except Exception:
            logger.exception("Failed to list pending alerts task_id=%s", task_id)
            pending = []

        for item in pending:
            if item.handle in done or str(item.payload.get("taskId")) != task_id:
                continue
            try:
                await self._platform.cancel_notification(item.handle)
                cancelled += 1
            except Exception:
                logger.exception(
                    "Failed to cancel pending alert task_id=%s kind=%s weekday=%s handle=%s",
                    task_id,
                    item.payload.get("kind"),
                    item.payload.get("weekday"),
                    item.handle,
                )

        if cancelled:
            logger.info("Cancelled %d alert(s) for task %s", cancelled, task_id)
        return cancelled

    async def reschedule_tasks(self, tasks: Iterable[Task]) -> int:
        """schedule_all for every non-complete task; one failing task does not stop the rest."""
        total = 0
        for task in tasks:
            if task.task_status == TaskStatus.COMPLETE:
                continue
            try:
                total += await self.schedule_all(task)
            except Exception:
                logger.exception("Rescheduling failed task_id=%s", task.task_id)
        return total

    async def sync_registry(self) -> int:
        """Rebuild the handle registry from the platform (cold start)."""
        try:
            pending = await self._platform.list_pending_notifications()
        except Exception:
            logger.exception("Failed to list pending alerts; registry left as is")
            return self._registry.count()
        return self._registry.rebuild(pending)

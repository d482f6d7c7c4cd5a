# src/taskbell/tasks/sweeper.py

"""
Status sweeper.

The periodic job that keeps stored statuses and scheduled alerts in line with the clock:
- every interval (and on demand): reconcile statuses, start the next occurrence of
  COMPLETE tasks, and reset delivered flags when the display day rolls over
- on resume/startup: rebuild the handle registry from the platform and reschedule alerts

Sweeps never overlap; a sweep requested while one is running waits for it.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime

from ..core.clock import DisplayClock
from ..notifications.delivery import DeliveryTracker
from ..notifications.scheduler import NotificationScheduler
from .status_reconciler import StatusReconciler
from .task_models import Task, TaskStatus
from .task_store import TaskStore

logger = logging.getLogger(__name__)


class StatusSweeper:
    def __init__(
        self,
        store: TaskStore,
        reconciler: StatusReconciler,
        notifier: NotificationScheduler,
        tracker: DeliveryTracker,
        clock: DisplayClock,
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._notifier = notifier
        self._tracker = tracker
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_day: date | None = None

    async def check_completed_tasks(self, now: datetime | None = None) -> list[str]:
        """Reset due COMPLETE tasks and schedule their alerts again. Returns the ids that were reset."""
        reset_ids: list[str] = []
        for task in await self._store.load():
            if task.task_status != TaskStatus.COMPLETE:
                continue
            try:
                if not await self._reconciler.reset_completed_if_due(task.task_id, now):
                    continue
            except Exception:
                logger.exception("Completed-task check failed task_id=%s", task.task_id)
                continue
            reset_ids.append(task.task_id)

            fresh = await self._store.get(task.task_id)
            if fresh is not None:
                await self._notifier.schedule_all(fresh)
        return reset_ids

    async def _roll_day(self, tasks: list[Task], now: datetime) -> None:
        today = self._clock.local_date(now)
        if self._last_day is not None and today != self._last_day:
            # New display day: each task's next occurrence may deliver its alerts again.
            logger.info("Display day changed %s -> %s; clearing delivered flags", self._last_day, today)
            for task in tasks:
                await self._tracker.clear_delivered(task.task_id)
        self._last_day = today

    async def sweep(self, now: datetime | None = None) -> list[Task]:
        now = self._clock.to_display_time(now) if now is not None else self._clock.now()
        async with self._lock:
            await self._reconciler.reconcile_all(now)
            await self.check_completed_tasks(now)
            tasks = await self._store.load()
            await self._roll_day(tasks, now)
        logger.debug("Sweep done at %s (%d tasks)", now.isoformat(), len(tasks))
        return tasks

    async def on_resume(self, now: datetime | None = None) -> list[Task]:
        """App start / focus regained: trust the platform's pending list, reschedule, then sweep."""
        await self._notifier.sync_registry()
        tasks = await self.sweep(now)
        n = await self._notifier.reschedule_tasks(tasks)
        logger.info("Resume: %d alert(s) registered for %d task(s)", n, len(tasks))
        return tasks


async def run_status_sweeper(
        sweeper: StatusSweeper,
        *,
        interval_seconds: float = 60.0,
) -> None:
    """
    Simple polling loop: sweep every interval_seconds.

    Failures are logged and the loop keeps going; a stale status is fixed by the next sweep.
    To stop the sweeper, cancel the coroutine/task.
    """
    sleep_s = max(0.5, float(interval_seconds))

    while True:
        try:
            await sweeper.sweep()
        except Exception:
            logger.exception("Status sweep failed")

        await asyncio.sleep(sleep_s)

# src/taskbell/tasks/status_reconciler.py

"""
Status reconciliation.

The pure functions at the top decide what a task's status should be at a given moment;
StatusReconciler applies them to the stored collection. All day/time questions go through
the DisplayClock, and time comparisons use minute-of-day arithmetic so that a date
rollover between the stored taskTime and "now" cannot skew the result.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime

from ..core.clock import DisplayClock
from ..core.weekdays import Weekday
from .task_models import Task, TaskStatus, can_transition
from .task_store import TaskStore

logger = logging.getLogger(__name__)


def is_scheduled_on(task: Task, weekday: Weekday) -> bool:
    return weekday in task.repeat_day


def minutes_past_slot(task: Task, now: datetime, clock: DisplayClock) -> int:
    """now's minute-of-day minus the task's scheduled minute-of-day (negative = before)."""
    return clock.minute_of_day(now) - clock.minute_of_day(task.task_time)


def compute_status(task: Task, now: datetime, clock: DisplayClock, grace_minutes: int) -> TaskStatus:
    """
    Status a non-complete task should have at `now`.

    - not scheduled today -> INCOMPLETE (it cannot be overdue on a day it does not run)
    - scheduled today, grace period elapsed -> OVERDUE
    - scheduled today, before the threshold (incl. the lead window) -> INCOMPLETE

    COMPLETE is returned unchanged; only reset_completed_if_due moves a task out of it.
    """
    if task.task_status == TaskStatus.COMPLETE:
        return TaskStatus.COMPLETE
    if not is_scheduled_on(task, clock.weekday(now)):
        return TaskStatus.INCOMPLETE
    if minutes_past_slot(task, now, clock) >= grace_minutes:
        return TaskStatus.OVERDUE
    return TaskStatus.INCOMPLETE


def reconcile_statuses(
    tasks: Sequence[Task],
    now: datetime,
    clock: DisplayClock,
    grace_minutes: int,
) -> tuple[list[Task], list[str]]:
    """Return (new task list, ids whose status changed). updated_at is bumped only for changed tasks."""
    out: list[Task] = []
    changed: list[str] = []
    for task in tasks:
        status = compute_status(task, now, clock, grace_minutes)
        if status != task.task_status and not can_transition(task.task_status, status):
            logger.warning("Refusing %s -> %s for task %s", task.task_status, status, task.task_id)
            status = task.task_status
        if status != task.task_status:
            out.append(replace(task, task_status=status, updated_at=now))
            changed.append(task.task_id)
        else:
            out.append(task)
    return out, changed


def should_reset_completed(
    task: Task,
    now: datetime,
    clock: DisplayClock,
    *,
    reset_past_slot: bool = False,
) -> bool:
    """
    Whether a COMPLETE task starts a new occurrence at `now`.

    Requires: scheduled today and last touched on an earlier display date. Unless
    reset_past_slot is set, a task whose slot already passed today stays COMPLETE.
    """
    if task.task_status != TaskStatus.COMPLETE:
        return False
    if not is_scheduled_on(task, clock.weekday(now)):
        return False
    if task.updated_at is not None and clock.local_date(task.updated_at) == clock.local_date(now):
        return False
    if not reset_past_slot and minutes_past_slot(task, now, clock) > 0:
        return False
    return True


class StatusReconciler:
    """Applies the status rules to the stored tasks. Sweeps never overlap."""

    def __init__(
        self,
        store: TaskStore,
        clock: DisplayClock,
        *,
        grace_minutes: int,
        reset_past_slot: bool = False,
    ) -> None:
        self._store = store
        self._clock = clock
        self._grace_minutes = int(grace_minutes)
        self._reset_past_slot = bool(reset_past_slot)
        self._sweep_lock = asyncio.Lock()

    @property
    def grace_minutes(self) -> int:
        return self._grace_minutes

    async def reconcile_all(self, now: datetime | None = None) -> list[Task]:
        """
        Recompute every non-complete task's status and persist only the ones that changed.

        Idempotent: a second call with the same `now` finds nothing to change and writes nothing.
        """
        now = self._clock.to_display_time(now) if now is not None else self._clock.now()
        changed_ids: list[str] = []

        def apply(tasks: list[Task]) -> list[Task] | None:
            new_tasks, changed = reconcile_statuses(tasks, now, self._clock, self._grace_minutes)
            changed_ids.extend(changed)
            return new_tasks if changed else None

        async with self._sweep_lock:
            tasks = await self._store.mutate(apply)

        if changed_ids:
            logger.info("Reconciled %d task status(es): %s", len(changed_ids), ", ".join(changed_ids))
        return tasks

    async def reset_completed_if_due(self, task_id: str, now: datetime | None = None) -> bool:
        """Reset a COMPLETE task to INCOMPLETE when its next occurrence has begun. Returns True on reset."""
        now = self._clock.to_display_time(now) if now is not None else self._clock.now()
        reset = False

        def apply(tasks: list[Task]) -> list[Task] | None:
            nonlocal reset
            for i, task in enumerate(tasks):
                if task.task_id != task_id:
                    continue
                if not should_reset_completed(
                    task, now, self._clock, reset_past_slot=self._reset_past_slot
                ):
                    return None
                tasks[i] = replace(task, task_status=TaskStatus.INCOMPLETE, updated_at=now)
                reset = True
                return tasks
            return None

        await self._store.mutate(apply)
        if reset:
            logger.info("Task %s reset COMPLETE -> INCOMPLETE for its next occurrence", task_id)
        return reset

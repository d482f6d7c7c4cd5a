# src/taskbell/tasks/task_store.py

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, time
from typing import Any

from ..core.clock import DisplayClock
from ..core.weekdays import Weekday, parse_repeat_days
from ..storage.document_store import JsonDocumentStore, StorageError
from .task_models import (
    MANUAL_TRANSITIONS,
    TASKS_SCHEMA_VERSION,
    Task,
    TaskStatus,
    can_transition,
    task_from_record,
)

logger = logging.getLogger(__name__)

TASKS_KEY = "tasks"
TASKS_VERSION_KEY = "tasks_schema_version"

_UNSET: Any = object()


def _settable(old: TaskStatus, new: TaskStatus) -> bool:
    # OVERDUE is only ever reached through reconciliation.
    if old == new or (old, new) in MANUAL_TRANSITIONS:
        return True
    return new == TaskStatus.INCOMPLETE and can_transition(old, new)


class TaskStore:
    """
    Task collection persisted as a single JSON array under the `tasks` key.

    Every mutation loads the whole collection, changes it in memory and writes the whole
    collection back, holding the document lock for the full sequence.

    Failure policy:
    - load() never raises; it logs and returns the last collection it successfully saw
    - save() logs and re-raises StorageError so the caller can retry or show an error
    """

    def __init__(self, documents: JsonDocumentStore, clock: DisplayClock) -> None:
        self._docs = documents
        self._clock = clock
        self._cache: list[Task] = []

    @property
    def clock(self) -> DisplayClock:
        return self._clock

    # ---- low-level helpers ----

    async def _read(self) -> list[Task]:
        try:
            raw = await self._docs.get_item(TASKS_KEY)
            version = await self._docs.get_item(TASKS_VERSION_KEY)
        except StorageError:
            logger.exception("Failed to load tasks; using last known list (%d)", len(self._cache))
            return list(self._cache)

        if raw is None:
            self._cache = []
            return []
        if not isinstance(raw, list):
            logger.error("Tasks document is not a list (%s); ignoring it", type(raw).__name__)
            return list(self._cache)

        tasks: list[Task] = []
        needs_rewrite = version != TASKS_SCHEMA_VERSION
        seen: set[str] = set()
        for rec in raw:
            task, migrated = task_from_record(rec)
            if task is None:
                needs_rewrite = True
                continue
            if task.task_id in seen:
                logger.warning("Dropping duplicate task id %s", task.task_id)
                needs_rewrite = True
                continue
            seen.add(task.task_id)
            if not task.repeat_day:
                # Never leave a task without days: fall back to the weekday of its own time.
                task = replace(task, repeat_day=(self._clock.weekday(task.task_time),))
                migrated = True
            needs_rewrite = needs_rewrite or migrated
            tasks.append(task)

        if needs_rewrite:
            logger.info(
                "Migrating tasks document to schema v%d (%d tasks)", TASKS_SCHEMA_VERSION, len(tasks)
            )
            try:
                await self._write(tasks)
            except StorageError:
                # Migration is retried on the next load.
                pass

        self._cache = list(tasks)
        return tasks

    async def _write(self, tasks: list[Task]) -> None:
        try:
            await self._docs.set_item(TASKS_KEY, [t.to_record() for t in tasks])
            await self._docs.set_item(TASKS_VERSION_KEY, TASKS_SCHEMA_VERSION)
        except StorageError:
            logger.exception("Failed to save %d tasks", len(tasks))
            raise
        self._cache = list(tasks)

    def _new_id(self, existing: Iterable[Task]) -> str:
        taken = {t.task_id for t in existing}
        while True:
            candidate = uuid.uuid4().hex
            if candidate not in taken:
                return candidate

    def _normalize_days(self, repeat_day: Any) -> tuple[Weekday, ...]:
        days = parse_repeat_days(repeat_day)
        if not days:
            today = self._clock.today()
            logger.info("No repeat days selected; defaulting to today (%s)", today.label)
            days = (today,)
        return days

    # ---- public API ----

    async def load(self) -> list[Task]:
        async with self._docs.lock(TASKS_KEY):
            return await self._read()

    async def save(self, tasks: list[Task]) -> None:
        async with self._docs.lock(TASKS_KEY):
            await self._write(list(tasks))

    async def get(self, task_id: str) -> Task | None:
        for task in await self.load():
            if task.task_id == task_id:
                return task
        return None

    async def add(
        self,
        *,
        task_name: str,
        task_time: datetime | time | str,
        repeat_day: Any = None,
        task_status: TaskStatus = TaskStatus.INCOMPLETE,
    ) -> list[Task]:
        if not task_name or not task_name.strip():
            raise ValueError("task_name is required")

        anchored = self._clock.anchor_time(task_time)
        days = self._normalize_days(repeat_day)
        now = self._clock.now()

        async with self._docs.lock(TASKS_KEY):
            tasks = await self._read()
            task = Task(
                task_id=self._new_id(tasks),
                task_name=task_name.strip(),
                task_status=task_status,
                task_time=anchored,
                repeat_day=days,
                created_at=now,
                updated_at=now,
            )
            tasks.append(task)
            await self._write(tasks)

        logger.info(
            "Task added id=%s name=%r time=%s days=%s",
            task.task_id,
            task.task_name,
            self._clock.format_time(task.task_time),
            ",".join(d.label for d in days),
        )
        return tasks

    async def update(
        self,
        task_id: str,
        *,
        task_name: str | None = None,
        task_status: TaskStatus | None = None,
        task_time: datetime | time | str | None = None,
        repeat_day: Any = _UNSET,
    ) -> list[Task]:
        """
        Merge the given fields into the task and refresh updated_at. Unknown ids are logged only.

        Status changes are limited to manual completion and moves back to INCOMPLETE;
        anything else (e.g. into OVERDUE) raises ValueError.
        """
        async with self._docs.lock(TASKS_KEY):
            tasks = await self._read()
            for i, task in enumerate(tasks):
                if task.task_id != task_id:
                    continue

                changes: dict[str, Any] = {"updated_at": self._clock.now()}
                if task_name is not None:
                    if not task_name.strip():
                        raise ValueError("task_name must not be empty")
                    changes["task_name"] = task_name.strip()
                if task_status is not None:
                    new_status = TaskStatus(str(task_status).upper())
                    if not _settable(task.task_status, new_status):
                        raise ValueError(
                            f"cannot move task from {task.task_status.value} to {new_status.value}"
                        )
                    changes["task_status"] = new_status
                if task_time is not None:
                    changes["task_time"] = self._clock.anchor_time(task_time)
                if repeat_day is not _UNSET:
                    changes["repeat_day"] = self._normalize_days(repeat_day)

                tasks[i] = replace(task, **changes)
                await self._write(tasks)
                logger.debug("Task updated id=%s fields=%s", task_id, sorted(changes))
                return tasks

        logger.warning("update: task %s not found", task_id)
        return tasks

    async def mutate(self, fn: Callable[[list[Task]], list[Task] | None]) -> list[Task]:
        """
        Run `fn` on the current collection inside the store's critical section.

        `fn` returns the new collection, or None when nothing changed (no write happens).
        """
        async with self._docs.lock(TASKS_KEY):
            tasks = await self._read()
            result = fn(list(tasks))
            if result is None:
                return tasks
            await self._write(result)
            return result

    async def delete(self, task_id: str) -> list[Task]:
        async with self._docs.lock(TASKS_KEY):
            tasks = await self._read()
            remaining = [t for t in tasks if t.task_id != task_id]
            if len(remaining) == len(tasks):
                logger.warning("delete: task %s not found", task_id)
                return tasks
            await self._write(remaining)

        logger.info("Task deleted id=%s", task_id)
        return remaining

# src/taskbell/notifications/registry.py

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.weekdays import Weekday
from .models import AlertKind, AlertPayload, PendingNotification

logger = logging.getLogger(__name__)


class ScheduleRegistry:
    """
    In-memory table of platform handles: task_id -> kind -> weekday -> handle.

    One instance per process, injected into the NotificationScheduler. It is a cache, not the
    source of truth: after a restart it starts empty and rebuild() repopulates it from the
    platform's pending list.
    """

    def __init__(self) -> None:
        self._table: dict[str, dict[AlertKind, dict[Weekday, str]]] = {}

    def track(self, task_id: str, kind: AlertKind, weekday: Weekday, handle: str) -> None:
        self._table.setdefault(task_id, {}).setdefault(kind, {})[weekday] = handle

    def handles_for(self, task_id: str) -> list[tuple[AlertKind, Weekday, str]]:
        out: list[tuple[AlertKind, Weekday, str]] = []
        for kind, by_day in self._table.get(task_id, {}).items():
            for weekday, handle in by_day.items():
                out.append((kind, weekday, handle))
        return out

    def forget(self, task_id: str) -> None:
        self._table.pop(task_id, None)

    def task_ids(self) -> list[str]:
        return list(self._table)

    def count(self, task_id: str | None = None) -> int:
        if task_id is not None:
            return len(self.handles_for(task_id))
        return sum(len(self.handles_for(tid)) for tid in self._table)

    def clear(self) -> None:
        self._table.clear()

    def rebuild(self, pending: Iterable[PendingNotification]) -> int:
        """Replace the table with what the platform reports as scheduled. Returns entries tracked."""
        self._table.clear()
        n = 0
        for item in pending:
            try:
                payload = AlertPayload.from_dict(item.payload)
            except (KeyError, ValueError, TypeError):
                logger.debug("Ignoring pending alert %s with foreign payload", item.handle)
                continue
            if payload.weekday is None:
                continue
            self.track(payload.task_id, payload.kind, payload.weekday, item.handle)
            n += 1
        logger.info("Schedule registry rebuilt from platform: %d alert(s)", n)
        return n

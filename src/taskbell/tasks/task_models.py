# src/taskbell/tasks/task_models.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..core.clock import parse_iso, to_utc_iso
from ..core.weekdays import Weekday, days_to_names, parse_repeat_days

logger = logging.getLogger(__name__)

TASKS_SCHEMA_VERSION = 2

_LEGACY_STATUS = {
    "pending": "INCOMPLETE",
    "started": "INCOMPLETE",
    "in_progress": "INCOMPLETE",
    "incomplete": "INCOMPLETE",
    "todo": "INCOMPLETE",
    "done": "COMPLETE",
    "completed": "COMPLETE",
    "complete": "COMPLETE",
    "late": "OVERDUE",
    "overdue": "OVERDUE",
}


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Transitions:
    - INCOMPLETE -> OVERDUE      (automatic, grace period elapsed)
    - INCOMPLETE -> COMPLETE     (manual)
    - OVERDUE    -> COMPLETE     (manual)
    - COMPLETE   -> INCOMPLETE   (automatic, next occurrence)
    - OVERDUE    -> INCOMPLETE   (automatic, a new occurrence or a day the task is not scheduled)
    """

    INCOMPLETE = "INCOMPLETE"
    COMPLETE = "COMPLETE"
    OVERDUE = "OVERDUE"

    @classmethod
    def from_raw(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.INCOMPLETE
        s = str(raw).strip()
        try:
            return cls(s.upper())
        except ValueError:
            pass
        mapped = _LEGACY_STATUS.get(s.lower())
        if mapped is None:
            logger.warning("Unknown task status %r; treating as INCOMPLETE", raw)
            return cls.INCOMPLETE
        return cls(mapped)


_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.INCOMPLETE: frozenset({TaskStatus.OVERDUE, TaskStatus.COMPLETE}),
    TaskStatus.OVERDUE: frozenset({TaskStatus.COMPLETE, TaskStatus.INCOMPLETE}),
    TaskStatus.COMPLETE: frozenset({TaskStatus.INCOMPLETE}),
}

MANUAL_TRANSITIONS: frozenset[tuple[TaskStatus, TaskStatus]] = frozenset(
    {
        (TaskStatus.INCOMPLETE, TaskStatus.COMPLETE),
        (TaskStatus.OVERDUE, TaskStatus.COMPLETE),
    }
)


def can_transition(old: TaskStatus, new: TaskStatus) -> bool:
    return old == new or new in _TRANSITIONS[old]


@dataclass(slots=True)
class Task:
    task_id: str
    task_name: str
    task_status: TaskStatus

    # Full timestamp, but only hour:minute in the display timezone matter.
    task_time: datetime
    repeat_day: tuple[Weekday, ...]

    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "taskName": self.task_name,
            "taskStatus": self.task_status.value,
            "taskTime": to_utc_iso(self.task_time),
            "repeatDay": days_to_names(self.repeat_day),
            "created_at": to_utc_iso(self.created_at) if self.created_at else None,
            "updated_at": to_utc_iso(self.updated_at) if self.updated_at else None,
        }


def _optional_ts(raw: Any) -> datetime | None:
    if not raw:
        return None
    try:
        return parse_iso(str(raw))
    except ValueError:
        return None


def task_from_record(rec: dict[str, Any]) -> tuple[Task | None, bool]:
    """
    Build a Task from a stored record, accepting the legacy flat schema
    ({id, task, status, time, days}).

    Returns (task, migrated). `migrated` is True when the stored form differs from what
    to_record() would write, so the caller knows a rewrite is due. task is None for records
    that cannot be recovered (no id, name or time).
    """
    if not isinstance(rec, dict):
        return None, True

    task_id = rec.get("taskId", rec.get("id"))
    name = rec.get("taskName", rec.get("task"))
    raw_time = rec.get("taskTime", rec.get("time"))
    raw_status = rec.get("taskStatus", rec.get("status"))
    raw_days = rec.get("repeatDay", rec.get("days"))

    if task_id is None or not str(task_id).strip():
        logger.warning("Dropping task record without id: %r", rec)
        return None, True
    if not name or not str(name).strip():
        logger.warning("Dropping task record %s without name", task_id)
        return None, True
    try:
        task_time = parse_iso(str(raw_time))
    except (TypeError, ValueError):
        logger.warning("Dropping task record %s with unreadable time %r", task_id, raw_time)
        return None, True

    task = Task(
        task_id=str(task_id),
        task_name=str(name).strip(),
        task_status=TaskStatus.from_raw(raw_status),
        task_time=task_time,
        repeat_day=parse_repeat_days(raw_days),
        created_at=_optional_ts(rec.get("created_at")),
        updated_at=_optional_ts(rec.get("updated_at")),
    )
    return task, task.to_record() != rec

# src/taskbell/notifications/models.py

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any

from ..core.weekdays import Weekday


class AlertKind(StrEnum):
    UPCOMING = "upcoming"
    START = "start"
    OVERDUE = "overdue"

    @property
    def history_type(self) -> str:
        return f"task_{self.value}"

    @property
    def title(self) -> str:
        return _TITLES[self]

    @classmethod
    def from_history_type(cls, raw: str) -> AlertKind:
        s = (raw or "").strip().lower()
        return cls(s.removeprefix("task_"))


_TITLES = {
    AlertKind.UPCOMING: "Upcoming Task",
    AlertKind.START: "Task Started",
    AlertKind.OVERDUE: "Task Overdue",
}


def render_body(kind: AlertKind, task_name: str, time_text: str, lead_minutes: int) -> str:
    if kind == AlertKind.UPCOMING:
        return f'Your task "{task_name}" will start in {lead_minutes} minutes ({time_text})'
    if kind == AlertKind.START:
        return f"It's time to start your task: {task_name} ({time_text})"
    return f'Your task "{task_name}" is now overdue ({time_text})'


@dataclass(frozen=True, slots=True)
class WeeklyTrigger:
    """Fire every week on `weekday` at hour:minute, wall clock in `timezone`."""

    weekday: Weekday
    hour: int
    minute: int
    timezone: str

    def describe(self) -> str:
        return f"{self.weekday.label} {self.hour:02d}:{self.minute:02d} ({self.timezone})"


@dataclass(frozen=True, slots=True)
class AlertPayload:
    """
    Data attached to a platform alert.

    Self-sufficient on purpose: the delivery callback can run while no task list is loaded,
    so everything the history record needs travels with the alert.
    """

    notification_id: str
    task_id: str
    task_name: str
    kind: AlertKind
    title: str
    body: str
    # The occurrence weekday from repeatDay (the trigger itself may fall on the previous/next day).
    weekday: Weekday | None

    @property
    def type(self) -> str:
        return self.kind.history_type

    def to_dict(self) -> dict[str, Any]:
        return {
            "notificationId": self.notification_id,
            "taskId": self.task_id,
            "taskName": self.task_name,
            "kind": self.kind.value,
            "type": self.type,
            "title": self.title,
            "body": self.body,
            "weekday": int(self.weekday) if self.weekday is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AlertPayload:
        """Raises ValueError/KeyError on payloads that were not produced by to_dict()."""
        raw_kind = data.get("kind") or data["type"]
        kind = AlertKind.from_history_type(str(raw_kind))
        task_id = str(data["taskId"]).strip()
        if not task_id:
            raise ValueError("payload without taskId")
        return cls(
            notification_id=str(data.get("notificationId") or ""),
            task_id=task_id,
            task_name=str(data.get("taskName") or ""),
            kind=kind,
            title=str(data["title"]),
            body=str(data["body"]),
            weekday=Weekday.parse(data["weekday"]) if data.get("weekday") else None,
        )


@dataclass(frozen=True, slots=True)
class PendingNotification:
    """One entry of the platform's authoritative list of scheduled alerts."""

    handle: str
    payload: dict[str, Any]


@dataclass(slots=True)
class NotificationRecord:
    id: str
    task_id: str
    title: str
    body: str
    type: str
    timestamp: str
    read: bool = False

    def to_record(self) -> dict[str, Any]:
        rec = asdict(self)
        rec["taskId"] = rec.pop("task_id")
        return rec

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> NotificationRecord:
        return cls(
            id=str(rec["id"]),
            task_id=str(rec.get("taskId", "")),
            title=str(rec.get("title", "")),
            body=str(rec.get("body", "")),
            type=str(rec.get("type", "")),
            timestamp=str(rec.get("timestamp", "")),
            read=bool(rec.get("read", False)),
        )

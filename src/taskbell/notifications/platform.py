# src/taskbell/notifications/platform.py

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any

import pytz
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..core.ports import NotificationListener
from .models import AlertPayload, PendingNotification, WeeklyTrigger

logger = logging.getLogger(__name__)

_JOB_PREFIX = "alert-"


class SchedulerPlatform:
    """
    Local notification platform on top of APScheduler.

    Each alert is a cron job (day_of_week + hour + minute in the trigger's timezone) whose
    kwargs carry the payload dict, so the job store doubles as the authoritative pending list.
    When a job fires, the payload is handed to every "received" listener.

    Permission is a plain flag here: desktop hosts have no OS prompt, so the setting
    `notifications_enabled` plays that role.
    """

    def __init__(
        self,
        *,
        timezone: str,
        notifications_enabled: bool = True,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._scheduler = scheduler or AsyncIOScheduler(timezone=pytz.timezone(timezone))
        self._enabled = bool(notifications_enabled)
        self._granted = False
        self._received: list[NotificationListener] = []
        self._responded: list[NotificationListener] = []

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    def start(self, *, paused: bool = False) -> None:
        """Start the underlying scheduler. Needs a running event loop."""
        if not self._scheduler.running:
            self._scheduler.start(paused=paused)
            logger.info("Notification platform started (paused=%s)", paused)

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Notification platform stopped")

    # ---- permissions ----

    async def permissions_granted(self) -> bool:
        return self._granted

    async def request_permissions(self) -> bool:
        self._granted = self._enabled
        if not self._granted:
            logger.warning("Notifications are disabled in settings; alerts will not be scheduled")
        return self._granted

    # ---- scheduling ----

    async def schedule_weekly_notification(self, trigger: WeeklyTrigger, payload: AlertPayload) -> str:
        handle = f"{_JOB_PREFIX}{uuid.uuid4().hex}"
        cron = CronTrigger(
            day_of_week=trigger.weekday.cron_name,
            hour=trigger.hour,
            minute=trigger.minute,
            timezone=pytz.timezone(trigger.timezone),
        )
        self._scheduler.add_job(
            self._fire,
            trigger=cron,
            id=handle,
            name=f"{payload.kind.value}:{payload.task_id}",
            kwargs={"payload": payload.to_dict()},
            replace_existing=True,
            misfire_grace_time=60,
            coalesce=True,
        )
        return handle

    async def cancel_notification(self, handle: str) -> None:
        try:
            self._scheduler.remove_job(handle)
        except JobLookupError:
            # Already gone (fired-and-removed or cancelled elsewhere): nothing to cancel.
            logger.debug("cancel_notification: no job %s", handle)

    async def list_pending_notifications(self) -> list[PendingNotification]:
        out: list[PendingNotification] = []
        for job in self._scheduler.get_jobs():
            if not job.id.startswith(_JOB_PREFIX):
                continue
            payload = job.kwargs.get("payload")
            if isinstance(payload, dict):
                out.append(PendingNotification(handle=job.id, payload=dict(payload)))
        return out

    # ---- delivery ----

    def add_listeners(
        self,
        on_received: NotificationListener,
        on_response: NotificationListener | None = None,
    ) -> Callable[[], None]:
        self._received.append(on_received)
        if on_response is not None:
            self._responded.append(on_response)

        def remove() -> None:
            if on_received in self._received:
                self._received.remove(on_received)
            if on_response is not None and on_response in self._responded:
                self._responded.remove(on_response)

        return remove

    async def _fire(self, payload: dict[str, Any]) -> None:
        logger.info("Alert delivered: %s", payload.get("title"))
        await self._dispatch(self._received, payload)

    async def respond(self, payload: dict[str, Any]) -> None:
        await self._dispatch(self._responded, payload)

    @staticmethod
    async def _dispatch(listeners: list[NotificationListener], payload: dict[str, Any]) -> None:
        for listener in list(listeners):
            try:
                await listener(payload)
            except Exception:
                logger.exception("Notification listener failed task_id=%s", payload.get("taskId"))

# src/taskbell/notifications/delivery.py

"""
Delivery tracking.

Platforms can fire the "received" callback twice for one alert, and overlapping triggers can
land close together, so a delivered alert passes two independent checks before it becomes
a history record:
- the durable delivered set, keyed by (taskId, alert type) and stamped with the display date
- a trailing time window over the history itself
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import date, timedelta
from typing import Any

from ..core.clock import DisplayClock, to_utc_iso
from ..storage.document_store import JsonDocumentStore, StorageError
from .history import NotificationHistoryStore
from .models import AlertKind, AlertPayload, NotificationRecord

logger = logging.getLogger(__name__)

DELIVERED_KEY = "delivered_notifications"


class DeliveryTracker:
    """
    Durable map taskId -> {alert type: display date it was delivered on}.

    A flag only suppresses deliveries on its own display date, so the next weekly occurrence
    is never mistaken for a duplicate even before the sweeper clears the day. Legacy
    documents stored a bare list of types; those flags carry no date.
    """

    def __init__(self, documents: JsonDocumentStore) -> None:
        self._docs = documents

    async def _read(self) -> dict[str, dict[str, str | None]]:
        raw = await self._docs.get_item(DELIVERED_KEY)
        if not isinstance(raw, dict):
            return {}
        delivered: dict[str, dict[str, str | None]] = {}
        for task_id, flags in raw.items():
            if isinstance(flags, dict):
                delivered[str(task_id)] = {
                    str(t): (str(d) if d is not None else None) for t, d in flags.items()
                }
            elif isinstance(flags, list):
                delivered[str(task_id)] = {str(t): None for t in flags}
        return delivered

    async def has_been_delivered(
        self, task_id: str, kind: AlertKind, *, on: date | None = None
    ) -> bool:
        """With `on`, only a flag stamped with that display date counts."""
        try:
            delivered = await self._read()
        except StorageError:
            logger.exception("Failed to check delivered state task_id=%s kind=%s", task_id, kind.value)
            return False
        flags = delivered.get(task_id, {})
        if kind.history_type not in flags:
            return False
        if on is None:
            return True
        return flags[kind.history_type] == on.isoformat()

    async def mark_delivered(self, task_id: str, kind: AlertKind, *, on: date | None = None) -> None:
        stamp = on.isoformat() if on is not None else None
        async with self._docs.lock(DELIVERED_KEY):
            try:
                delivered = await self._read()
                flags = delivered.setdefault(task_id, {})
                if kind.history_type in flags and flags[kind.history_type] == stamp:
                    return
                flags[kind.history_type] = stamp
                await self._docs.set_item(DELIVERED_KEY, delivered)
            except StorageError:
                logger.exception("Failed to mark delivered task_id=%s kind=%s", task_id, kind.value)

    async def clear_delivered(self, task_id: str) -> None:
        async with self._docs.lock(DELIVERED_KEY):
            try:
                delivered = await self._read()
                if delivered.pop(task_id, None) is None:
                    return
                await self._docs.set_item(DELIVERED_KEY, delivered)
            except StorageError:
                logger.exception("Failed to clear delivered state task_id=%s", task_id)
                return
        logger.debug("Delivered state cleared task_id=%s", task_id)


class DeliveryRecorder:
    """Turns a delivered platform alert into (at most one) NotificationRecord."""

    def __init__(
        self,
        tracker: DeliveryTracker,
        history: NotificationHistoryStore,
        clock: DisplayClock,
        *,
        dedup_window_minutes: int = 5,
    ) -> None:
        self._tracker = tracker
        self._history = history
        self._clock = clock
        self._window = timedelta(minutes=max(0, int(dedup_window_minutes)))
        self._lock = asyncio.Lock()

    async def record_delivery(self, data: dict[str, Any]) -> NotificationRecord | None:
        """
        "Notification received" callback.

        Returns the stored record, or None when the payload was malformed or a duplicate.
        """
        try:
            payload = AlertPayload.from_dict(data)
        except (KeyError, ValueError, TypeError):
            logger.warning("Ignoring delivered alert with incomplete payload: %r", data)
            return None

        async with self._lock:
            now = self._clock.now()
            day = self._clock.local_date(now)
            if await self._tracker.has_been_delivered(payload.task_id, payload.kind, on=day):
                logger.info(
                    "Duplicate delivery dropped (already delivered) task_id=%s kind=%s",
                    payload.task_id,
                    payload.kind.value,
                )
                return None

            if self._window and await self._history.has_recent(
                payload.task_id, payload.type, now, self._window
            ):
                logger.info(
                    "Duplicate delivery dropped (within %s) task_id=%s kind=%s",
                    self._window,
                    payload.task_id,
                    payload.kind.value,
                )
                await self._tracker.mark_delivered(payload.task_id, payload.kind, on=day)
                return None

            # Weekly triggers redeliver the same payload; its id is only reusable once.
            record_id = payload.notification_id
            if not record_id or await self._history.has_id(record_id):
                record_id = f"{payload.kind.value}_{payload.task_id}_{uuid.uuid4().hex[:12]}"

            record = NotificationRecord(
                id=record_id,
                task_id=payload.task_id,
                title=payload.title,
                body=payload.body,
                type=payload.type,
                timestamp=to_utc_iso(now),
                read=False,
            )
            try:
                await self._history.append(record)
            except StorageError:
                # Leave the delivered flag unset so a redelivery can still be recorded.
                return None
            await self._tracker.mark_delivered(payload.task_id, payload.kind, on=day)

        logger.info("Added notification to history: %s for task %s", payload.type, payload.task_id)
        return record

    async def record_response(self, data: dict[str, Any]) -> None:
        """User-responded callback. Only logged for now; deep links would hook in here."""
        logger.info(
            "Notification response received task_id=%s type=%s",
            data.get("taskId"),
            data.get("type"),
        )

# src/taskbell/notifications/history.py

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from ..core.clock import parse_iso
from ..storage.document_store import JsonDocumentStore, StorageError
from .models import NotificationRecord

logger = logging.getLogger(__name__)

HISTORY_KEY = "notification_history"

_EPOCH_MIN = datetime.min.replace(tzinfo=UTC)


def _ts(record: NotificationRecord) -> datetime | None:
    try:
        return parse_iso(record.timestamp)
    except ValueError:
        return None


class NotificationHistoryStore:
    """
    Durable list of delivered alerts, independent of the task store.

    Records outlive their task (the taskId is a weak reference). They are only ever
    appended, flipped to read, or removed all at once by clear_all().
    """

    def __init__(self, documents: JsonDocumentStore) -> None:
        self._docs = documents
        self._cache: list[NotificationRecord] = []

    async def _read(self) -> list[NotificationRecord]:
        try:
            raw = await self._docs.get_item(HISTORY_KEY)
        except StorageError:
            logger.exception("Failed to load notification history; using last known list")
            return list(self._cache)

        if raw is None:
            self._cache = []
            return []
        if not isinstance(raw, list):
            logger.error("Notification history is not a list (%s); ignoring it", type(raw).__name__)
            return list(self._cache)

        records: list[NotificationRecord] = []
        for rec in raw:
            try:
                records.append(NotificationRecord.from_record(rec))
            except (KeyError, TypeError, AttributeError):
                logger.warning("Skipping malformed history record: %r", rec)
        self._cache = list(records)
        return records

    async def _write(self, records: list[NotificationRecord]) -> None:
        try:
            await self._docs.set_item(HISTORY_KEY, [r.to_record() for r in records])
        except StorageError:
            logger.exception("Failed to save notification history (%d records)", len(records))
            raise
        self._cache = list(records)

    async def load(self) -> list[NotificationRecord]:
        async with self._docs.lock(HISTORY_KEY):
            return await self._read()

    async def append(self, record: NotificationRecord) -> None:
        async with self._docs.lock(HISTORY_KEY):
            records = await self._read()
            records.append(record)
            await self._write(records)

    async def mark_read(self, notification_id: str) -> bool:
        async with self._docs.lock(HISTORY_KEY):
            records = await self._read()
            hit = False
            for r in records:
                if r.id == notification_id and not r.read:
                    r.read = True
                    hit = True
            if hit:
                await self._write(records)
            return hit

    async def mark_all_read(self) -> int:
        async with self._docs.lock(HISTORY_KEY):
            records = await self._read()
            n = 0
            for r in records:
                if not r.read:
                    r.read = True
                    n += 1
            if n:
                await self._write(records)
            return n

    async def clear_all(self) -> None:
        async with self._docs.lock(HISTORY_KEY):
            try:
                await self._docs.remove_item(HISTORY_KEY)
            except StorageError:
                logger.exception("Failed to clear notification history")
                raise
            self._cache = []
        logger.info("Notification history cleared")

    async def unique_sorted(self) -> list[NotificationRecord]:
        """History as shown to the user: exact (taskId, type, timestamp) repeats dropped, newest first."""
        seen: set[tuple[str, str, str]] = set()
        out: list[NotificationRecord] = []
        for r in await self.load():
            key = (r.task_id, r.type, r.timestamp)
            if key in seen:
                continue
            seen.add(key)
            out.append(r)
        # Unparsable timestamps sink to the bottom.
        out.sort(key=lambda r: _ts(r) or _EPOCH_MIN, reverse=True)
        return out

    async def unread_count(self) -> int:
        return sum(1 for r in await self.unique_sorted() if not r.read)

    async def has_id(self, notification_id: str) -> bool:
        return any(r.id == notification_id for r in await self.load())

    async def has_recent(self, task_id: str, type_: str, now: datetime, window: timedelta) -> bool:
        """True if a record for (task_id, type_) was delivered within `window` before `now`."""
        for r in await self.load():
            if r.task_id != task_id or r.type != type_:
                continue
            ts = _ts(r)
            if ts is None:
                continue
            if abs(now - ts) <= window:
                return True
        return False

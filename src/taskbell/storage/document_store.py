# src/taskbell/storage/document_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import re
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class StorageError(RuntimeError):
    """Read/write/serialize failure in the document store."""


class JsonDocumentStore:
    """
    Flat key-value store: one JSON document per key, one file per document.

    There is no partial write: callers read the whole document, mutate it in memory and
    write it back. Each key has an asyncio.Lock that repositories hold around their
    read-modify-write sequence so two in-flight mutations cannot lose each other's update.

    Writes are atomic (tmp file + os.replace).
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, asyncio.Lock] = {}
        logger.info("JsonDocumentStore ready root=%s", self._root)

    @property
    def root(self) -> Path:
        return self._root

    def lock(self, key: str) -> asyncio.Lock:
        lk = self._locks.get(key)
        if lk is None:
            lk = asyncio.Lock()
            self._locks[key] = lk
        return lk

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid document key: {key!r}")
        return self._root / f"{key}.json"

    # ---- sync helpers (run in a worker thread) ----

    def _read(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text("utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read document {key!r} from {path}") from e

    def _write(self, key: str, value: Any) -> None:
        path = self._path(key)
        try:
            payload = json.dumps(value, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Failed to serialize document {key!r}") from e
        try:
            tmp = path.with_suffix(".tmp")
            tmp.write_text(payload, "utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"Failed to write document {key!r} to {path}") from e
        with contextlib.suppress(OSError):
            # Task names can be personal; keep the file private on disk.
            os.chmod(path, 0o600)

    def _remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove document {key!r} at {path}") from e

    # ---- public API ----

    async def get_item(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._read, key)

    async def set_item(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)
        logger.debug("Document %s written", key)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)
        logger.debug("Document %s removed", key)

"""Session storage for Void Focus.

This module provides a small durable key-value store backed by a JSON file and
the :class:`SessionStore` repository that keeps every focus session under one
well-known key.

Persisted layout
----------------
The value stored under ``@void_sessions`` is a JSON document::

    {"version": 1, "sessions": [{"id": "1739000000000_k3j9x0a", "startTime": 1739000000000,
     "endTime": 1739000600000, "duration": 600, "isActive": false}]}

A bare JSON list of session records (the unversioned layout) is migrated to
version 1 when read.  Any other ``version`` is rejected.

Failure policy
--------------
Read and write failures never propagate to the caller: they are logged and
handed to the optional ``on_error`` hook, and the caller continues with the
in-memory result.  Mutations are serialised with one :class:`asyncio.Lock` so
concurrent read-modify-write sequences cannot lose updates.
"""

import asyncio
import dataclasses
import json
import random
import string
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from .config import SCHEMA_VERSION, SESSIONS_KEY
from .models import FocusSession

ErrorHook = Callable[[str, Exception], None]

_ID_ALPHABET = string.digits + string.ascii_lowercase
_UPDATABLE_FIELDS = {f.name for f in dataclasses.fields(FocusSession)} - {"id"}


class UnsupportedSchemaError(ValueError):
    """Raised when the stored session document has an unknown version."""


class JsonKeyValueStore:
    """String key-value store persisted as a single JSON object on disk."""

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: JSON file holding the data.  Parent directories are created
                automatically.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.path = path

    async def get_item(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or ``None``."""
        data = await asyncio.to_thread(self._read)
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""
        await asyncio.to_thread(self._write_item, key, value)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        content = self.path.read_text(encoding="utf-8")
        if not content.strip():
            return {}
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def _write_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self.path)


class SessionStore:
    """Repository of :class:`FocusSession` records.

    Every method returns the full, updated list of sessions.
    """

    def __init__(
        self,
        backend: JsonKeyValueStore,
        key: str = SESSIONS_KEY,
        on_error: Optional[ErrorHook] = None,
    ) -> None:
        self._backend = backend
        self._key = key
        self._on_error = on_error
        self._write_lock = asyncio.Lock()

    @staticmethod
    def generate_id() -> str:
        """Return a new unique session id (``<epoch ms>_<7 random chars>``)."""
        suffix = "".join(random.choices(_ID_ALPHABET, k=7))
        return f"{int(time.time() * 1000)}_{suffix}"

    async def get_all(self) -> List[FocusSession]:
        """Load every stored session; an unreadable store yields ``[]``."""
        try:
            return await self._load()
        except Exception as error:
            self._report("read", error)
            return []

    async def add(self, session: FocusSession) -> List[FocusSession]:
        """Store a new session in front of the existing ones."""
        async with self._write_lock:
            sessions, loaded = await self._load_for_write()
            updated = [session] + sessions
            if loaded:
                await self._save(updated)
            return updated

    async def update(self, session_id: str, **fields: Any) -> List[FocusSession]:
        """Apply ``fields`` to the session with ``session_id``.

        Raises:
            TypeError: If a field name is not a :class:`FocusSession` attribute
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Unknown session fields: {', '.join(sorted(unknown))}")

        async with self._write_lock:
            sessions, loaded = await self._load_for_write()
            updated = [
                dataclasses.replace(s, **fields) if s.id == session_id else s
                for s in sessions
            ]
            if loaded:
                await self._save(updated)
            return updated

    async def delete(self, session_id: str) -> List[FocusSession]:
        """Remove the session with ``session_id``."""
        async with self._write_lock:
            sessions, loaded = await self._load_for_write()
            updated = [s for s in sessions if s.id != session_id]
            if loaded:
                await self._save(updated)
            return updated

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _load(self) -> List[FocusSession]:
        raw = await self._backend.get_item(self._key)
        if raw is None:
            return []

        document = json.loads(raw)
        if isinstance(document, list):
            logger.info(f"Migrating {len(document)} unversioned session record(s) to version {SCHEMA_VERSION}")
            records = document
        elif isinstance(document, dict):
            version = document.get("version")
            if version != SCHEMA_VERSION:
                raise UnsupportedSchemaError(
                    f"Unsupported session store version {version!r} (expected {SCHEMA_VERSION})"
                )
            records = document.get("sessions", [])
        else:
            raise UnsupportedSchemaError(f"Unexpected session document type: {type(document).__name__}")

        return [FocusSession.from_dict(record) for record in records]

    async def _load_for_write(self):
        """Load sessions for a mutation.

        Returns:
            Tuple of (sessions, loaded).  When loading failed ``loaded`` is
            ``False`` and the caller must not overwrite what is on disk.
        """
        try:
            return await self._load(), True
        except Exception as error:
            self._report("read", error)
            return [], False

    async def _save(self, sessions: List[FocusSession]) -> None:
        document = {
            "version": SCHEMA_VERSION,
            "sessions": [s.to_dict() for s in sessions],
        }
        try:
            await self._backend.set_item(self._key, json.dumps(document))
        except Exception as error:
            self._report("write", error)

    def _report(self, operation: str, error: Exception) -> None:
        logger.warning(f"Session store {operation} failed: {error}")
        if self._on_error is not None:
            self._on_error(operation, error)

"""
Progress persistence.

ProgressStore is the collaborator the engine reads and writes learner state
through. Reads never raise on bad data: a missing or unreadable blob yields
the default object, and an unreadable one is first copied to its own key so
the next save cannot overwrite it. Damaged records inside a readable blob are
kept as stored (see ProgressData). Version-1 progress is migrated on read and
the migrated blob persisted.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

from loguru import logger
from sqlalchemy import delete, select

from src.core.models import ProgressData
from src.db.database import Database
from src.db.models import KvBlob
from src.study.migration import migrate_progress_data

PROGRESS_KEY = "progress"
GRAPH_KEY = "encompassing_graph"
UNREADABLE_PROGRESS_KEY = "progress_unreadable"


class ProgressStore(Protocol):
    """Persistence collaborator for learner progress."""

    def get_progress(self) -> ProgressData:
        ...

    def save_progress(self, data: ProgressData) -> None:
        ...

    def get_blob(self, key: str) -> Any | None:
        ...

    def set_blob(self, key: str, value: Any) -> None:
        ...

    def reset(self) -> None:
        ...


class BaseProgressStore:
    """
    JSON blob handling shared by the concrete stores.

    Subclasses provide raw string storage via _read / _write / _clear.
    """

    def _read(self, key: str) -> str | None:
        raise NotImplementedError

    def _write(self, key: str, value: str) -> None:
        raise NotImplementedError

    def _clear(self) -> None:
        raise NotImplementedError

    def get_blob(self, key: str) -> Any | None:
        """Stored JSON value for a key; None when absent or unparsable."""
        raw = self._read(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupt JSON stored under {key!r}: {e}")
            return None

    def set_blob(self, key: str, value: Any) -> None:
        self._write(key, json.dumps(value, ensure_ascii=False))

    def get_progress(self) -> ProgressData:
        text = self._read(PROGRESS_KEY)
        if text is None:
            return ProgressData()
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            return self._set_aside(text, f"corrupt JSON: {e}")
        if not isinstance(raw, dict):
            return self._set_aside(text, f"a {type(raw).__name__}, expected an object")

        try:
            migrated, changed = migrate_progress_data(raw)
            data = ProgressData.from_dict(migrated)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            return self._set_aside(text, str(e))

        if changed:
            self.save_progress(data)
        return data

    def _set_aside(self, text: str, reason: str) -> ProgressData:
        """Copy an unreadable progress blob to its own key so saving defaults cannot lose it."""
        if self._read(UNREADABLE_PROGRESS_KEY) != text:
            self._write(UNREADABLE_PROGRESS_KEY, text)
        logger.error(
            f"Stored progress is unreadable ({reason}); kept under {UNREADABLE_PROGRESS_KEY!r}, using defaults"
        )
        return ProgressData()

    def save_progress(self, data: ProgressData) -> None:
        self.set_blob(PROGRESS_KEY, data.to_dict())

    def reset(self) -> None:
        """Delete all stored progress."""
        self._clear()
        logger.info("Progress store reset")


class InMemoryProgressStore(BaseProgressStore):
    """Process-local store; holds serialized JSON exactly as a real backend would."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def _read(self, key: str) -> str | None:
        return self._data.get(key)

    def _write(self, key: str, value: str) -> None:
        self._data[key] = value

    def _clear(self) -> None:
        self._data.clear()


class SqlProgressStore(BaseProgressStore):
    """Store backed by the kv_blobs table."""

    def __init__(self, database: Database):
        self.database = database
        self.database.init_db()

    def _read(self, key: str) -> str | None:
        with self.database.session_scope() as session:
            return session.scalar(select(KvBlob.value).where(KvBlob.key == key))

    def _write(self, key: str, value: str) -> None:
        with self.database.session_scope() as session:
            row = session.get(KvBlob, key)
            if row is None:
                session.add(KvBlob(key=key, value=value))
            else:
                row.value = value

    def _clear(self) -> None:
        with self.database.session_scope() as session:
            session.execute(delete(KvBlob))

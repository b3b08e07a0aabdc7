"""
Persistence Gateway — key-based get/set of JSON-serialisable values.

``get`` never raises on bad data: a missing key, an unreadable row or
malformed JSON all come back as ``None`` and callers fall back to an empty
collection or default settings.
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol

logger = logging.getLogger(__name__)


class PersistenceGateway(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryGateway:
    """Dict-backed gateway; values are round-tripped through JSON like a real store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return _decode(key, self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def put_raw(self, key: str, raw: str) -> None:
        """Store *raw* text as-is (used to simulate corrupted data)."""
        self._data[key] = raw

    def snapshot(self) -> Dict[str, Any]:
        return {k: copy.deepcopy(self.get(k)) for k in self._data}


class SqliteGateway:
    """SQLite-backed key/value store — one row per logical collection."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._init_db()

    def get(self, key: str) -> Optional[Any]:
        try:
            with self._conn() as conn:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error:
            logger.exception("Failed to read %r from %s", key, self.db_path)
            return None
        return _decode(key, row[0] if row else None)

    def set(self, key: str, value: Any) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO kv (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, json.dumps(value)),
            )

    def delete(self, key: str) -> None:
        with self._conn() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def keys(self) -> List[str]:
        with self._conn() as conn:
            return [r[0] for r in conn.execute("SELECT key FROM kv ORDER BY key")]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _init_db(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key   TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()


def _decode(key: str, raw: Optional[str]) -> Optional[Any]:
    if raw is None or raw in ("", "undefined", "null"):
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Malformed JSON stored under %r, treating as empty", key)
        return None

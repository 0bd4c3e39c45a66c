"""Persisted settings store — a small durable byte-key/byte-value table.

Backed by a single SQLite file so values survive restarts.  Reads may run
from any request task; writes are serialized through one lock.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS settings (
    key   BLOB PRIMARY KEY,
    value BLOB NOT NULL
)
"""


class StoreError(RuntimeError):
    """Raised when the underlying store cannot be read or written."""


def _key(key: str | bytes) -> bytes:
    return key.encode("utf-8") if isinstance(key, str) else key


class SettingsStore:
    """Ordered byte-key store with ``get`` / ``set`` / ``remove``.

    Pass ``":memory:"`` as *path* for a throwaway store (tests).
    """

    def __init__(self, path: Path | str) -> None:
        self._path = str(path)
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(
                self._path, check_same_thread=False, isolation_level=None,
            )
            self._conn.execute(_SCHEMA)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open settings store {self._path}: {e}") from e
        logger.info("Settings store opened at %s", self._path)

    @property
    def path(self) -> str:
        return self._path

    def get(self, key: str | bytes) -> bytes | None:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM settings WHERE key = ?", (_key(key),),
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read {key!r}: {e}") from e
        return bytes(row[0]) if row else None

    def set(self, key: str | bytes, value: bytes) -> None:
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (_key(key), value),
                )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to write {key!r}: {e}") from e

    def remove(self, key: str | bytes) -> bool:
        """Delete *key*.  Returns False if it was not present."""
        try:
            with self._lock:
                cur = self._conn.execute(
                    "DELETE FROM settings WHERE key = ?", (_key(key),),
                )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to remove {key!r}: {e}") from e
        return cur.rowcount > 0

    def keys(self) -> list[bytes]:
        """All keys in byte order."""
        try:
            with self._lock:
                rows = self._conn.execute(
                    "SELECT key FROM settings ORDER BY key",
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to list keys: {e}") from e
        return [bytes(r[0]) for r in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

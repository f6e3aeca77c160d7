"""
DONTCLOSETHIS — Local Key/Value Persistence

String key/value store used by the sequencer for progress, scores and the
pending-submission queue. Reads and writes never raise: a missing store, a
locked file or a malformed JSON value is logged and replaced by the caller's
default.

Backends:
    MemoryStore  — dict-backed, for tests and throwaway sessions
    SqliteStore  — single `kv` table in a SQLite file, survives restarts
"""

import json
import logging
import sqlite3
from typing import Any, Optional

logger = logging.getLogger("dontclosethis.storage")


class KeyValueStore:
    """Safe string store with JSON helpers."""

    def _read(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def _write(self, key: str, value: str):
        raise NotImplementedError

    def _remove(self, key: str):
        raise NotImplementedError

    def get(self, key: str) -> Optional[str]:
        try:
            return self._read(key)
        except Exception as e:
            logger.error(f"Error reading {key!r} from storage: {e}")
            return None

    def set(self, key: str, value) -> bool:
        try:
            self._write(key, str(value))
            return True
        except Exception as e:
            logger.error(f"Error writing {key!r} to storage: {e}")
            return False

    def delete(self, key: str) -> bool:
        try:
            self._remove(key)
            return True
        except Exception as e:
            logger.error(f"Error deleting {key!r} from storage: {e}")
            return False

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get(key)
        if not raw:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Malformed JSON under {key!r}, using default: {e}")
            return default

    def set_json(self, key: str, value: Any) -> bool:
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Cannot encode {key!r} as JSON: {e}")
            return False
        return self.set(key, encoded)

    def get_flag(self, key: str) -> bool:
        return self.get(key) == "true"

    def set_flag(self, key: str, value: bool) -> bool:
        return self.set(key, "true" if value else "false")


class MemoryStore(KeyValueStore):

    def __init__(self, initial: dict = None):
        self.data: dict[str, str] = dict(initial or {})

    def _read(self, key):
        return self.data.get(key)

    def _write(self, key, value):
        self.data[key] = value

    def _remove(self, key):
        self.data.pop(key, None)


class SqliteStore(KeyValueStore):
    """Key/value table in a SQLite database file."""

    def __init__(self, path: str):
        self.path = path
        self._conn = sqlite3.connect(path, timeout=10)
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.execute(
            "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )
        self._conn.commit()

    def _read(self, key):
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def _write(self, key, value):
        self._conn.execute(
            "INSERT INTO kv (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )
        self._conn.commit()

    def _remove(self, key):
        self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        self._conn.commit()

    def close(self):
        self._conn.close()

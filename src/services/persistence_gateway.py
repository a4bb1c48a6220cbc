"""
Persistence Gateway

Byte-level key/value access to the app_state table. Every value is also
mirrored in memory, so reads keep working when the database becomes
unavailable; failed writes are reported as PersistenceError.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Dict, Optional

from core.database import DatabaseManager
from models.errors import PersistenceError

logger = logging.getLogger(__name__)


class PersistenceGateway:
    """
    Key/value persistence

    Constructed without a DatabaseManager it is purely in-memory, which is
    what the test container uses.
    """

    def __init__(self, db: Optional[DatabaseManager] = None):
        self._db = db
        self._mirror: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    @property
    def is_durable(self) -> bool:
        return self._db is not None

    def get(self, key: str) -> Optional[bytes]:
        """Stored bytes, None if absent"""
        if self._db is not None:
            try:
                row = self._db.fetch_one("SELECT value FROM app_state WHERE key = ?", (key,))
            except sqlite3.Error as e:
                logger.warning("Read of %s failed, using in-memory copy: %s", key, e)
            else:
                value = self._to_bytes(row["value"]) if row else None
                with self._lock:
                    if value is None:
                        self._mirror.pop(key, None)
                    else:
                        self._mirror[key] = value
                return value

        with self._lock:
            return self._mirror.get(key)

    def set(self, key: str, value: bytes) -> None:
        """
        Store bytes under key

        Raises:
            PersistenceError: The durable write failed (the in-memory copy
                is still updated)
        """
        with self._lock:
            self._mirror[key] = value

        if self._db is None:
            return

        try:
            self._db.execute(
                "INSERT OR REPLACE INTO app_state(key, value, updated_at) VALUES(?, ?, CURRENT_TIMESTAMP)",
                (key, sqlite3.Binary(value)),
            )
        except sqlite3.Error as e:
            logger.warning("Write of %s failed: %s", key, e)
            raise PersistenceError(f"Failed to write {key}: {e}") from e

    def remove(self, key: str) -> None:
        with self._lock:
            self._mirror.pop(key, None)

        if self._db is None:
            return

        try:
            self._db.execute("DELETE FROM app_state WHERE key = ?", (key,))
        except sqlite3.Error as e:
            logger.warning("Delete of %s failed: %s", key, e)
            raise PersistenceError(f"Failed to delete {key}: {e}") from e

    @staticmethod
    def _to_bytes(value) -> bytes:
        if isinstance(value, bytes):
            return value
        if isinstance(value, memoryview):
            return value.tobytes()
        return str(value).encode("utf-8")

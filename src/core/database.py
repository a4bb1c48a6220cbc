"""
Database Management Module

Provides SQLite operation encapsulation for durable application state.
"""

import sqlite3
import time
from typing import Optional, List, Dict, Any
from pathlib import Path
import threading
import logging

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Database Manager - Singleton Pattern

    Provides thread-safe SQLite operation encapsulation. Each thread gets its
    own connection; writes are serialized and committed immediately.

    Example:
        db = DatabaseManager("cassette_player.db")
        db.execute("INSERT OR REPLACE INTO app_state(key, value) VALUES(?, ?)", (key, value))
        row = db.fetch_one("SELECT value FROM app_state WHERE key = ?", (key,))
    """

    _instance: Optional['DatabaseManager'] = None
    _lock = threading.Lock()

    def __new__(cls, db_path: str = None) -> 'DatabaseManager':
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    @staticmethod
    def _get_default_db_path() -> str:
        """Get the default database path in the user data directory"""
        import sys
        import os

        if sys.platform == "win32":
            base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        elif sys.platform == "darwin":
            base = Path.home() / "Library" / "Application Support"
        else:
            base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))

        db_dir = base / "cassette-player"
        db_dir.mkdir(parents=True, exist_ok=True)
        return str(db_dir / "cassette_player.db")

    def __init__(self, db_path: str = None):
        if self._initialized:
            return

        self._db_path = db_path or self._get_default_db_path()
        self._local = threading.local()
        self._write_lock = threading.RLock()
        self._initialized = True
        self._init_schema()

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def _conn(self) -> sqlite3.Connection:
        """Get thread-local connection"""
        if not hasattr(self._local, 'connection') or self._local.connection is None:
            self._local.connection = sqlite3.connect(self._db_path, timeout=30.0)
            self._local.connection.row_factory = sqlite3.Row

            # Enable WAL mode for better concurrency
            with self._write_lock:
                self._local.connection.execute("PRAGMA journal_mode=WAL")
                self._local.connection.execute("PRAGMA synchronous=NORMAL")
        return self._local.connection

    @staticmethod
    def _is_write_sql(sql: str) -> bool:
        first_keyword = sql.lstrip().split(None, 1)[0].upper() if sql.strip() else ""
        return first_keyword in ("INSERT", "UPDATE", "DELETE", "REPLACE", "CREATE", "DROP", "ALTER")

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute SQL statement

        Write operations are committed immediately to release database locks.
        "database is locked" errors are retried with a short backoff.
        """
        max_retries = 5
        retry_delay = 0.1

        is_write = self._is_write_sql(sql)

        for i in range(max_retries):
            try:
                if is_write:
                    with self._write_lock:
                        cursor = self._conn.execute(sql, params)
                        self._conn.commit()
                else:
                    cursor = self._conn.execute(sql, params)
                return cursor
            except sqlite3.OperationalError as e:
                if "locked" in str(e).lower() and i < max_retries - 1:
                    time.sleep(retry_delay * (i + 1))
                    continue
                raise

    def fetch_one(self, sql: str, params: tuple = ()) -> Optional[Dict[str, Any]]:
        """Fetch single record"""
        cursor = self.execute(sql, params)
        row = cursor.fetchone()
        return dict(row) if row else None

    def fetch_all(self, sql: str, params: tuple = ()) -> List[Dict[str, Any]]:
        """Fetch all records"""
        cursor = self.execute(sql, params)
        return [dict(row) for row in cursor.fetchall()]

    def _init_schema(self) -> None:
        """Initialize database Schema"""
        from core.schema import get_all_schema_statements

        for statement in get_all_schema_statements():
            self.execute(statement.strip())

    def close(self) -> None:
        """Close current thread's connection"""
        local = getattr(self, '_local', None)
        if local is not None and getattr(local, 'connection', None):
            local.connection.close()
            local.connection = None

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (For testing only)"""
        with cls._lock:
            if cls._instance is not None:
                cls._instance.close()
                cls._instance = None

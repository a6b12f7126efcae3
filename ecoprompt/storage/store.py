"""
Key-value stores.

The engine treats settings, totals and history as opaque named records
held in a Store. Two implementations are provided: an in-memory store
and a SQLite-backed store that persists JSON values.
"""

import copy
import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from .db import DEFAULT_DB_PATH, DEFAULT_TIMEOUT_SECONDS, get_connection

logger = logging.getLogger(__name__)

StoreListener = Callable[[str, Any, Any], None]


class StoreWriteFailure(Exception):
    """Raised when a value could not be persisted."""
    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


class StoreReadFailure(Exception):
    """Raised when a stored value could not be read or decoded."""
    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


class Store(ABC):
    """Base key-value store with change notification.

    Listeners are called with ``(key, old_value, new_value)`` after each
    successful ``set``.
    """

    def __init__(self):
        self._listeners: List[StoreListener] = []

    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the stored value, or None if absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a value and notify listeners."""

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: str, old: Any, new: Any) -> None:
        for listener in list(self._listeners):
            listener(key, old, new)


class InMemoryStore(Store):
    """Store kept in process memory. Values are deep-copied in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        super().__init__()
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        old = self._data.get(key)
        self._data[key] = copy.deepcopy(value)
        self._notify(key, old, copy.deepcopy(value))


class SqliteStore(Store):
    """Store persisting JSON-encoded values in a SQLite table."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        super().__init__()
        self.db_path = db_path
        self.timeout = timeout

    def initialize_schema(self) -> None:
        """Create the key-value table if it doesn't exist."""
        conn = get_connection(self.db_path, self.timeout)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> Any:
        """Read a value.

        Raises:
            StoreReadFailure: If the store cannot be read or the value is corrupt
        """
        try:
            conn = get_connection(self.db_path, self.timeout)
        except (sqlite3.Error, OSError) as e:
            raise StoreReadFailure(f"Could not open store {self.db_path}: {e}", key) from e
        try:
            cursor = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            # Store not initialized yet reads as empty
            if "no such table" in str(e).lower():
                return None
            raise StoreReadFailure(f"Failed to read '{key}' from {self.db_path}: {e}", key) from e
        finally:
            conn.close()
        if not row:
            return None
        try:
            return json.loads(row[0])
        except ValueError as e:
            raise StoreReadFailure(f"Stored value for '{key}' is not valid JSON: {e}", key) from e

    def set(self, key: str, value: Any) -> None:
        """Persist a value under a key.

        Raises:
            StoreWriteFailure: If the value cannot be encoded or written
        """
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StoreWriteFailure(f"Value for '{key}' is not JSON-serializable: {e}", key) from e

        try:
            old = self.get(key) if self._listeners else None
        except StoreReadFailure as e:
            raise StoreWriteFailure(str(e), key) from e
        try:
            conn = get_connection(self.db_path, self.timeout)
        except (sqlite3.Error, OSError) as e:
            raise StoreWriteFailure(f"Could not open store {self.db_path}: {e}", key) from e
        try:
            conn.execute("""
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
            """, (key, encoded))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreWriteFailure(f"Failed to write '{key}' to {self.db_path}: {e}", key) from e
        finally:
            conn.close()
        logger.debug("Stored %s (%d bytes)", key, len(encoded))
        self._notify(key, old, value)

"""
Database connection management.

Provides the SQLite connection backing the key-value store.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "ecoprompt.db"
DEFAULT_TIMEOUT_SECONDS = 5.0


def get_connection(db_path: str = DEFAULT_DB_PATH, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> sqlite3.Connection:
    """Create and return a SQLite connection, creating parent directories.

    Args:
        db_path: Path to SQLite database file
        timeout: Seconds to wait for a lock held by another connection

    Returns:
        SQLite connection
    """
    path = Path(db_path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(str(path), timeout=timeout)

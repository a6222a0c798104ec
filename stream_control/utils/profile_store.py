"""
SQLite-backed store for cached chatter profiles.

One row per Twitch login. Rows are written once and never updated.
"""

import sqlite3
import threading
from pathlib import Path

from .logger import get_logger
from .profile_cache import ProfileRecord, StorageUnavailable

logger = get_logger("profile_store")

SCHEMA = """
CREATE TABLE user_cache (
    username TEXT PRIMARY KEY,
    displayname TEXT NOT NULL,
    profile_image_url TEXT NOT NULL
)
"""


class SQLiteProfileStore:
    """Profile store on a single SQLite connection shared across threads."""

    def __init__(self, path: str | Path = "db.sqlite"):
        self.path = str(path)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            self._init_schema()
        except sqlite3.Error as e:
            logger.error(f"Failed to open user cache database {self.path}: {e}")
            raise StorageUnavailable(str(e)) from e

    def _init_schema(self) -> None:
        with self._lock:
            exists = self._conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='user_cache'"
            ).fetchone()
            if exists:
                logger.warning("Detected existing user cache database")
                return
            with self._conn:
                self._conn.execute(SCHEMA)
            logger.info(f"Created user cache database at {self.path}")

    def find_by_key(self, key: str) -> ProfileRecord | None:
        """Return the stored record for a login, or None."""
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT username, displayname, profile_image_url "
                    "FROM user_cache WHERE username = ?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageUnavailable(str(e)) from e

        if row is None:
            return None
        return ProfileRecord(key=row[0], display_name=row[1], avatar_url=row[2])

    def insert(self, record: ProfileRecord) -> None:
        """Store a record. An existing row for the same login is left untouched."""
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute(
                    "INSERT OR IGNORE INTO user_cache VALUES (?, ?, ?)",
                    (record.key, record.display_name, record.avatar_url),
                )
        except sqlite3.Error as e:
            raise StorageUnavailable(str(e)) from e

        if cursor.rowcount == 0:
            logger.debug(f"User cache already had a row for {record.key}")

    def count(self) -> int:
        """Number of cached profiles."""
        try:
            with self._lock:
                return self._conn.execute("SELECT COUNT(*) FROM user_cache").fetchone()[0]
        except sqlite3.Error as e:
            raise StorageUnavailable(str(e)) from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

"""
EntryCache - SQLite-backed TTL cache of entry lists keyed by source URL.

Rows hold the entries as JSON with their fetch and expiry times. Expired or
unreadable rows are deleted when read, and ``cleanup`` sweeps them in bulk.
"""

import hashlib
import json
import logging
import sqlite3
import threading
import time
from typing import Any, Callable, Optional

from lshstore import config
from lshstore.adapter import VectorStoreEntry

logger = logging.getLogger(__name__)


def cache_key(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, VectorStoreEntry):
        return value.to_dict()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class EntryCache:
    """
    Persistent key -> entries cache with a time-to-live.

    API:
    - get(url) - Cached entries, or None if missing or expired
    - set(url, entries) - Store entries, resetting the TTL
    - touch(url) - Reset the TTL of a live entry
    - cleanup() - Delete expired and malformed rows

    Example:
        >>> with EntryCache(db_path="cache.db", ttl_seconds=3600) as cache:
        ...     cache.set("https://example.com/entries.json", [{"id": "a", "vector": [1.0]}])
        ...     cache.get("https://example.com/entries.json")
        [{'id': 'a', 'vector': [1.0]}]
    """

    def __init__(
        self,
        db_path: str = config.CACHE_PATH,
        ttl_seconds: float = config.CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            db_path: Path to the SQLite database file.
            ttl_seconds: Lifetime of an entry after it is set or touched.
            clock: Returns the current time in seconds.
        """
        self.db_path = db_path
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._local = threading.local()
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, "conn"):
            self._local.conn = sqlite3.connect(self.db_path)
            self._local.conn.row_factory = sqlite3.Row
        return self._local.conn

    def _init_db(self) -> None:
        conn = self._get_conn()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS entry_cache (
                key TEXT PRIMARY KEY,
                url TEXT NOT NULL,
                entries_json TEXT NOT NULL,
                fetched_at REAL NOT NULL,
                expires_at REAL NOT NULL
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_entry_cache_expiry ON entry_cache (expires_at)")
        conn.commit()

    def _delete(self, key: str) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM entry_cache WHERE key = ?", (key,))
        conn.commit()

    def get(self, url: str) -> Optional[list[Any]]:
        """Return the cached entries for ``url``, or None."""
        key = cache_key(url)
        cursor = self._get_conn().cursor()
        cursor.execute("SELECT entries_json, expires_at FROM entry_cache WHERE key = ?", (key,))
        row = cursor.fetchone()
        if row is None:
            return None

        if row["expires_at"] <= self._clock():
            logger.info("Cache entry for %s expired", url)
            self._delete(key)
            return None

        try:
            entries = json.loads(row["entries_json"])
        except json.JSONDecodeError:
            entries = None
        if not isinstance(entries, list):
            logger.warning("Dropping malformed cache entry for %s", url)
            self._delete(key)
            return None
        return entries

    def set(self, url: str, entries: list[Any]) -> None:
        """Cache ``entries`` for ``url`` with a fresh TTL."""
        now = self._clock()
        conn = self._get_conn()
        conn.execute(
            "INSERT OR REPLACE INTO entry_cache (key, url, entries_json, fetched_at, expires_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (cache_key(url), url, json.dumps(entries, default=_to_jsonable), now, now + self.ttl_seconds),
        )
        conn.commit()

    def touch(self, url: str) -> bool:
        """Reset the TTL of a live entry. Returns False if there is none."""
        if self.get(url) is None:
            return False
        conn = self._get_conn()
        conn.execute(
            "UPDATE entry_cache SET expires_at = ? WHERE key = ?",
            (self._clock() + self.ttl_seconds, cache_key(url)),
        )
        conn.commit()
        return True

    def cleanup(self) -> int:
        """Delete expired and malformed rows. Returns the number removed."""
        now = self._clock()
        conn = self._get_conn()
        cursor = conn.cursor()

        cursor.execute("SELECT key, entries_json, expires_at FROM entry_cache")
        stale = []
        for row in cursor.fetchall():
            if row["expires_at"] <= now:
                stale.append(row["key"])
                continue
            try:
                if not isinstance(json.loads(row["entries_json"]), list):
                    stale.append(row["key"])
            except json.JSONDecodeError:
                stale.append(row["key"])

        cursor.executemany("DELETE FROM entry_cache WHERE key = ?", [(key,) for key in stale])
        conn.commit()
        if stale:
            logger.info("Cache cleanup removed %d entries", len(stale))
        return len(stale)

    def clear(self) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM entry_cache")
        conn.commit()

    def __len__(self) -> int:
        cursor = self._get_conn().cursor()
        cursor.execute("SELECT COUNT(*) AS count FROM entry_cache")
        return cursor.fetchone()["count"]

    def close(self) -> None:
        """Close the database connection."""
        if hasattr(self._local, "conn"):
            self._local.conn.close()
            delattr(self._local, "conn")

    def __enter__(self) -> "EntryCache":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

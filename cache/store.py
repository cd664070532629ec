"""
cache/store.py -- Key-value caches with per-entry TTL.

The login rate limiter keeps its counters here. Two backends share one
interface so the limiter never knows which one it is talking to:

  MemoryCache  -- process-local dict, the default. Lost on restart, which is
                 fine for a UX throttle.
  SQLiteCache  -- one SQLite file shared by every worker process on a host.

increment() is the only compound operation. It reads, adds one and writes
back under a lock, and refreshes the entry's expiry each time (sliding TTL).

Usage:
    cache = MemoryCache()
    cache.set("lockout:alice:10.0.0.1", 1700000000.0, ttl=900)
    cache.get("lockout:alice:10.0.0.1")      # value or None once expired
    cache.increment("attempts:alice:10.0.0.1", ttl=900)   # -> 1, 2, 3 ...
    cache.remove("attempts:alice:10.0.0.1")
"""

import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

Clock = Callable[[], float]

_DDL = """
CREATE TABLE IF NOT EXISTS kv_cache (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    expires_at  REAL NOT NULL
);
"""


class KeyValueCache(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl: float) -> None: ...

    def remove(self, key: str) -> None: ...

    def increment(self, key: str, ttl: float) -> int: ...


class MemoryCache:
    def __init__(self, clock: Clock = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[tuple[Any, float]]:
        # Caller holds the lock.
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> Optional[Any]:
        """Return the value for key, or None if it is missing or expired."""
        with self._lock:
            entry = self._live(key)
        return entry[0] if entry is not None else None

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    def remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def increment(self, key: str, ttl: float) -> int:
        """Add one to an integer counter and push its expiry out to now + ttl."""
        with self._lock:
            entry = self._live(key)
            count = (int(entry[0]) if entry is not None else 0) + 1
            self._entries[key] = (count, self._clock() + ttl)
        return count

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        now = self._clock()
        with self._lock:
            stale = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
            for k in stale:
                del self._entries[k]
        return len(stale)


class SQLiteCache:
    def __init__(self, db_path: Path, clock: Clock = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.execute(_DDL)

    def get(self, key: str) -> Optional[Any]:
        """Return the value for key, or None if it is missing or expired."""
        with self._lock:
            row = self._conn.execute(
                "SELECT value, expires_at FROM kv_cache WHERE key = ?",
                (key,),
            ).fetchone()
            if row is None:
                return None
            value, expires_at = row
            if expires_at <= self._clock():
                self._conn.execute("DELETE FROM kv_cache WHERE key = ?", (key,))
                return None
        return json.loads(value)

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv_cache (key, value, expires_at) VALUES (?, ?, ?)",
                (key, json.dumps(value), self._clock() + ttl),
            )

    def remove(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv_cache WHERE key = ?", (key,))

    def increment(self, key: str, ttl: float) -> int:
        """Add one to an integer counter and push its expiry out to now + ttl.

        BEGIN IMMEDIATE takes the database write lock before the read, so two
        processes incrementing the same key cannot both read the old value.
        """
        with self._lock:
            now = self._clock()
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                row = self._conn.execute(
                    "SELECT value, expires_at FROM kv_cache WHERE key = ?",
                    (key,),
                ).fetchone()
                count = 1
                if row is not None and row[1] > now:
                    count = int(json.loads(row[0])) + 1
                self._conn.execute(
                    "INSERT OR REPLACE INTO kv_cache (key, value, expires_at) VALUES (?, ?, ?)",
                    (key, json.dumps(count), now + ttl),
                )
                self._conn.execute("COMMIT")
            except Exception:
                self._conn.execute("ROLLBACK")
                raise
        return count

    def purge_expired(self) -> int:
        """Delete all expired entries. Returns number of rows removed."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM kv_cache WHERE expires_at <= ?", (self._clock(),))
        return cursor.rowcount

    def close(self) -> None:
        self._conn.close()

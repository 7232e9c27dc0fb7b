"""Key/value cache backends with a per-entry size ceiling."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Protocol

import orjson

from chunk_store.core.logging import get_logger
from chunk_store.core.metrics import CACHE_REJECTIONS
from chunk_store.db.sqlite import SQLiteDatabase

logger = get_logger(__name__)

Clock = Callable[[], float]


class CacheBackend(Protocol):
    """Physical cache. ``get`` returns ``None`` on a miss."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: int) -> bool: ...

    def add(self, key: str, value: Any, ttl: int) -> bool: ...

    def delete(self, key: str) -> bool: ...


def _encode(key: str, value: Any, max_bytes: int | None) -> bytes | None:
    payload = orjson.dumps(value)
    if max_bytes is not None and len(payload) > max_bytes:
        CACHE_REJECTIONS.inc()
        logger.warning("Cache value for %s is %s bytes, over the %s byte limit", key, len(payload), max_bytes)
        return None
    return payload


class MemoryCacheBackend:
    """Process-local cache; values are stored serialized so callers never share state."""

    def __init__(self, max_value_bytes: int | None = None, clock: Clock = time.time) -> None:
        self.max_value_bytes = max_value_bytes
        self._clock = clock
        self._items: dict[str, tuple[bytes, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._items)

    def get(self, key: str) -> Any | None:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            payload, expires_at = item
            if expires_at <= self._clock():
                del self._items[key]
                return None
        return orjson.loads(payload)

    def set(self, key: str, value: Any, ttl: int) -> bool:
        payload = _encode(key, value, self.max_value_bytes)
        if payload is None:
            return False
        with self._lock:
            self._items[key] = (payload, self._clock() + ttl)
        return True

    def add(self, key: str, value: Any, ttl: int) -> bool:
        payload = _encode(key, value, self.max_value_bytes)
        if payload is None:
            return False
        with self._lock:
            current = self._items.get(key)
            if current is not None and current[1] > self._clock():
                return False
            self._items[key] = (payload, self._clock() + ttl)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._items.pop(key, None) is not None

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._items)


class SQLiteCacheBackend:
    """Cache rows in the ``cache_entries`` table of the application database."""

    def __init__(self, db: SQLiteDatabase, max_value_bytes: int | None = None, clock: Clock = time.time) -> None:
        self.db = db
        self.max_value_bytes = max_value_bytes
        self._clock = clock

    def get(self, key: str) -> Any | None:
        row = self.db.execute("SELECT value, expires_at FROM cache_entries WHERE key = ?", [key]).fetchone()
        if row is None:
            return None
        if row["expires_at"] <= self._clock():
            self.delete(key)
            return None
        return orjson.loads(row["value"])

    def set(self, key: str, value: Any, ttl: int) -> bool:
        payload = _encode(key, value, self.max_value_bytes)
        if payload is None:
            return False
        self.db.execute(
            "INSERT OR REPLACE INTO cache_entries (key, value, expires_at) VALUES (?, ?, ?)",
            [key, payload, self._clock() + ttl],
        )
        self.db.commit()
        return True

    def add(self, key: str, value: Any, ttl: int) -> bool:
        payload = _encode(key, value, self.max_value_bytes)
        if payload is None:
            return False
        now = self._clock()
        self.db.execute("DELETE FROM cache_entries WHERE key = ? AND expires_at <= ?", [key, now])
        cursor = self.db.execute(
            "INSERT OR IGNORE INTO cache_entries (key, value, expires_at) VALUES (?, ?, ?)",
            [key, payload, now + ttl],
        )
        self.db.commit()
        return cursor.rowcount == 1

    def delete(self, key: str) -> bool:
        cursor = self.db.execute("DELETE FROM cache_entries WHERE key = ?", [key])
        self.db.commit()
        return cursor.rowcount > 0


__all__ = ["CacheBackend", "MemoryCacheBackend", "SQLiteCacheBackend"]

"""Cache facade that splits oversized listings across several backend entries."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from chunk_store.cache.backends import CacheBackend
from chunk_store.core.config import DAY_IN_SECONDS
from chunk_store.core.logging import get_logger
from chunk_store.core.metrics import CACHE_LOOKUPS

logger = get_logger(__name__)

DEFAULT_PREFIX = "chunk-store-"
DEFAULT_CHUNK_SIZE = 50
PROCESSED_LISTING_KEY = "entries_processed"


class ChunkedCache:
    """Namespaced cache with transparent chunking for large listings.

    Keys listed in ``chunked_keys`` hold sequences. They are written as
    ``<key>_0 .. <key>_{n-1}`` groups of ``chunk_size`` elements plus a
    ``<key>_total`` marker, which keeps each physical write under the
    backend's size ceiling. A read that finds the marker but not every chunk
    is a miss; nothing is repaired until the next ``set``.
    """

    def __init__(
        self,
        backend: CacheBackend,
        prefix: str = DEFAULT_PREFIX,
        ttl: int = DAY_IN_SECONDS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunked_keys: Iterable[str] = (PROCESSED_LISTING_KEY,),
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.backend = backend
        self.prefix = prefix
        self.ttl = ttl
        self.chunk_size = chunk_size
        self._chunked = {self.key(name) for name in chunked_keys}

    def key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def is_chunked(self, name: str) -> bool:
        return self.key(name) in self._chunked

    def get(self, name: str, default: Any = None) -> Any:
        key = self.key(name)
        if key in self._chunked:
            value, reason = self._get_chunked(key)
        else:
            value = self.backend.get(key)
            reason = "absent" if value is None else "found"
        CACHE_LOOKUPS.labels(result="miss" if value is None else "hit", reason=reason).inc()
        return default if value is None else value

    def set(self, name: str, value: Any, ttl: int | None = None) -> bool:
        key = self.key(name)
        expiration = self.ttl if ttl is None else ttl
        if key in self._chunked:
            return self._set_chunked(key, value, expiration)
        return self.backend.set(key, value, expiration)

    def add(self, name: str, value: Any, ttl: int | None = None) -> bool:
        """Write ``value`` only if ``name`` is not currently cached."""
        key = self.key(name)
        if key in self._chunked:
            raise ValueError(f"add() is not supported for chunked key {name!r}")
        return self.backend.add(key, value, self.ttl if ttl is None else ttl)

    def delete(self, name: str) -> bool:
        key = self.key(name)
        if key not in self._chunked:
            return self.backend.delete(key)
        total = self.backend.get(f"{key}_total")
        if total is None:
            return True
        for index in range(int(total)):
            self.backend.delete(f"{key}_{index}")
        self.backend.delete(f"{key}_total")
        return True

    def _get_chunked(self, key: str) -> tuple[list[Any] | None, str]:
        """Return the joined listing and why a lookup missed (``marker`` or ``chunk``)."""
        total = self.backend.get(f"{key}_total")
        if total is None:
            return None, "marker"
        entries: list[Any] = []
        for index in range(int(total)):
            chunk = self.backend.get(f"{key}_{index}")
            if chunk is None:
                logger.info("Chunk %s of %s missing; treating as miss", index, key)
                return None, "chunk"
            entries.extend(chunk)
        return entries, "found"

    def _set_chunked(self, key: str, value: Sequence[Any], ttl: int) -> bool:
        items = list(value)
        chunks = [items[start : start + self.chunk_size] for start in range(0, len(items), self.chunk_size)]
        for index, chunk in enumerate(chunks):
            if not self.backend.set(f"{key}_{index}", chunk, ttl):
                # A stale marker would otherwise stitch old and new chunks together.
                self.backend.delete(f"{key}_total")
                return False
        return self.backend.set(f"{key}_total", len(chunks), ttl)


__all__ = ["ChunkedCache", "DEFAULT_CHUNK_SIZE", "DEFAULT_PREFIX", "PROCESSED_LISTING_KEY"]

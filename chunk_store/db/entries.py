"""Entry table access with write-through cache invalidation."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from chunk_store.cache.chunked import ChunkedCache
from chunk_store.core.config import Settings
from chunk_store.core.logging import get_logger
from chunk_store.db.sqlite import SQLiteDatabase
from chunk_store.models.entities import (
    ENTRY_COLUMNS,
    Entry,
    EntryStatus,
    StorageBackend,
    to_column_value,
)
from chunk_store.utils.time import utc_now

logger = get_logger(__name__)

ENTRIES_KEY = "entries"
COUNT_KEY = "entries_count"
STATUS_LISTING_LIMIT = 500


def entry_key(entry_id: int) -> str:
    return f"entry_{entry_id}"


def status_key(status: EntryStatus | str) -> str:
    return f"entries_{EntryStatus(status).value}"


class EntryStore:
    """Durable table of entries keyed by numeric id."""

    table = "entries"

    def __init__(self, db: SQLiteDatabase, cache: ChunkedCache, settings: Settings | None = None) -> None:
        self.db = db
        self.cache = cache
        self.settings = settings or Settings()

    @staticmethod
    def column_defaults() -> dict[str, Any]:
        now = utc_now()
        return {
            "created_at": now,
            "modified_at": now,
            "source_id": "",
            "title": "",
            "content": "",
            "embedding": [],
            "token_count": 0,
            "status": EntryStatus.SCHEDULED,
            "backend": StorageBackend.LOCAL,
        }

    # Reads ------------------------------------------------------------

    def get(self, entry_id: int) -> Entry | None:
        cached = self.cache.get(entry_key(entry_id))
        if cached is not None:
            return Entry.from_cache(cached)
        row = self.db.execute(f"SELECT * FROM {self.table} WHERE id = ?", [entry_id]).fetchone()
        if row is None:
            return None
        entry = Entry.from_row(row)
        self.cache.set(entry_key(entry_id), entry.to_cache())
        return entry

    def get_by_status(self, status: EntryStatus | str, limit: int = STATUS_LISTING_LIMIT) -> list[Entry]:
        """Entries with ``status`` in id order, at most ``limit`` of them.

        The scheduled listing drives dispatch and is always read live. Other
        listings are cached after reading at least ``STATUS_LISTING_LIMIT``
        rows, so the cached list is either complete (shorter than that) or
        long enough to slice for any ``limit`` up to it.
        """
        status = EntryStatus(status)
        cacheable = status is not EntryStatus.SCHEDULED
        if cacheable:
            cached = self.cache.get(status_key(status))
            if isinstance(cached, list) and (len(cached) >= limit or len(cached) < STATUS_LISTING_LIMIT):
                return [Entry.from_cache(item) for item in cached[:limit]]
        fetch = max(limit, STATUS_LISTING_LIMIT) if cacheable else limit
        rows = self.db.query(
            f"SELECT * FROM {self.table} WHERE post_status = ? ORDER BY id LIMIT ?",
            [status.value, fetch],
        )
        entries = [Entry.from_row(row) for row in rows]
        if cacheable:
            self.cache.set(status_key(status), [entry.to_cache() for entry in entries])
        return entries[:limit]

    def get_by_backend(self, backend: StorageBackend | str, limit: int = 100) -> list[Entry]:
        rows = self.db.query(
            f"SELECT * FROM {self.table} WHERE storage = ? ORDER BY id LIMIT ?",
            [StorageBackend(backend).value, limit],
        )
        return [Entry.from_row(row) for row in rows]

    def count(self) -> int:
        cached = self.cache.get(COUNT_KEY)
        if cached is not None:
            return int(cached)
        row = self.db.execute(f"SELECT COUNT(*) AS count FROM {self.table}").fetchone()
        total = int(row["count"]) if row else 0
        self.cache.set(COUNT_KEY, total)
        return total

    def ids_beyond_limit(self, limit: int | None = None) -> list[str]:
        """Source ids of rows ranked after the newest ``limit`` rows, deduplicated.

        The page size is the cached total row count, so every row past
        position ``limit`` is covered.
        """
        if limit is None:
            limit = self.settings.chunks_limit
        rows = self.db.query(
            f"SELECT post_id FROM {self.table} ORDER BY id DESC LIMIT ? OFFSET ?",
            [self.count(), limit],
        )
        return _unique_in_order(row["post_id"] for row in rows)

    # Writes -----------------------------------------------------------

    def insert(self, fields: Mapping[str, Any]) -> int:
        data = {**self.column_defaults(), **_known_fields(fields)}
        columns = [ENTRY_COLUMNS[name] for name in data]
        placeholders = ", ".join("?" for _ in columns)
        cursor = self.db.execute(
            f"INSERT INTO {self.table} ({', '.join(columns)}) VALUES ({placeholders})",
            [to_column_value(name, value) for name, value in data.items()],
        )
        self.db.commit()
        entry_id = int(cursor.lastrowid)

        self.cache.delete(ENTRIES_KEY)
        self.cache.delete(COUNT_KEY)
        return entry_id

    def update(self, entry_id: int, fields: Mapping[str, Any]) -> int:
        data = _known_fields(fields)
        data.setdefault("modified_at", utc_now())
        data.pop("created_at", None)
        assignments = ", ".join(f"{ENTRY_COLUMNS[name]} = ?" for name in data)
        cursor = self.db.execute(
            f"UPDATE {self.table} SET {assignments} WHERE id = ?",
            [*(to_column_value(name, value) for name, value in data.items()), entry_id],
        )
        self.db.commit()

        self.cache.delete(entry_key(entry_id))
        self.cache.delete(status_key(EntryStatus.PROCESSED))
        return cursor.rowcount

    def delete_by_source(self, source_id: str | int) -> int:
        cursor = self.db.execute(f"DELETE FROM {self.table} WHERE post_id = ?", [str(source_id)])
        self.db.commit()

        self.cache.delete(ENTRIES_KEY)
        self.cache.delete(status_key(EntryStatus.PROCESSED))
        self.cache.delete(COUNT_KEY)
        return cursor.rowcount

    def update_backend(self, to: StorageBackend | str, from_: StorageBackend | str) -> int:
        """Move every entry homed on ``from_`` to ``to``; vectors are not copied."""
        cursor = self.db.execute(
            f"UPDATE {self.table} SET storage = ?, modified = ? WHERE storage = ?",
            [
                StorageBackend(to).value,
                to_column_value("modified_at", utc_now()),
                StorageBackend(from_).value,
            ],
        )
        self.db.commit()

        self.cache.delete(ENTRIES_KEY)
        self.cache.delete(status_key(EntryStatus.PROCESSED))
        return cursor.rowcount


def _known_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - set(ENTRY_COLUMNS)
    if unknown:
        logger.debug("Ignoring unknown entry fields: %s", sorted(unknown))
    return {name: value for name, value in fields.items() if name in ENTRY_COLUMNS}


def _unique_in_order(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for item in values:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


__all__ = ["EntryStore", "entry_key", "status_key"]

"""Choosing and switching the backend that holds entry vectors."""

from __future__ import annotations

from chunk_store.core.logging import get_logger
from chunk_store.db.entries import EntryStore
from chunk_store.models.entities import Entry, StorageBackend
from chunk_store.vectors.index import BackendHealth

logger = get_logger(__name__)


class BackendSelector:
    def __init__(self, store: EntryStore, health: BackendHealth) -> None:
        self.store = store
        self.health = health

    def is_external_active(self) -> bool:
        return bool(self.health.is_active())

    def active_backend(self) -> StorageBackend:
        return StorageBackend.EXTERNAL if self.is_external_active() else StorageBackend.LOCAL

    def entries_on(self, backend: StorageBackend | str, limit: int = 100) -> list[Entry]:
        return self.store.get_by_backend(backend, limit=limit)

    def update_backend(self, to: StorageBackend | str, from_: StorageBackend | str) -> int:
        """Re-home every entry from ``from_`` to ``to`` in one statement.

        Only the ``backend`` field moves; copying vectors between backends is
        the caller's job.
        """
        to, from_ = StorageBackend(to), StorageBackend(from_)
        if to is from_:
            return 0
        moved = self.store.update_backend(to, from_)
        logger.info("Moved %s entries from %s to %s", moved, from_.value, to.value)
        return moved


__all__ = ["BackendSelector"]

"""Tests for backend selection and re-homing."""

from __future__ import annotations

from chunk_store.ingest.backends import BackendSelector
from chunk_store.models.entities import StorageBackend
from chunk_store.vectors.index import InMemoryVectorIndex


def test_active_backend_follows_health(store) -> None:
    index = InMemoryVectorIndex(active=False)
    selector = BackendSelector(store, index)
    assert not selector.is_external_active()
    assert selector.active_backend() is StorageBackend.LOCAL

    index.active = True
    assert selector.is_external_active()
    assert selector.active_backend() is StorageBackend.EXTERNAL


def test_update_backend_moves_entries(store) -> None:
    selector = BackendSelector(store, InMemoryVectorIndex())
    for _ in range(3):
        store.insert({})

    assert selector.update_backend("external", "local") == 3
    assert len(selector.entries_on(StorageBackend.EXTERNAL)) == 3
    assert selector.entries_on(StorageBackend.LOCAL) == []


def test_update_backend_to_same_backend_is_noop(store) -> None:
    selector = BackendSelector(store, InMemoryVectorIndex())
    entry_id = store.insert({})
    before = store.get(entry_id)
    assert selector.update_backend(StorageBackend.LOCAL, StorageBackend.LOCAL) == 0
    assert store.get(entry_id) == before


def test_entries_on_respects_limit(store) -> None:
    selector = BackendSelector(store, InMemoryVectorIndex())
    for _ in range(5):
        store.insert({})
    assert len(selector.entries_on("local", limit=2)) == 2

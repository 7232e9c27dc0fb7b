"""Tests for component wiring."""

from __future__ import annotations

from chunk_store.cache.backends import MemoryCacheBackend, SQLiteCacheBackend
from chunk_store.core.config import Settings
from chunk_store.ingest.embeddings import HashedEmbeddingService, HttpEmbeddingService
from chunk_store.models.dto import TASK_DELETE_SOURCES
from chunk_store.models.entities import EntryStatus, StorageBackend
from chunk_store.runtime import build_cache_backend, build_embedding_service, build_runtime
from chunk_store.vectors.index import InMemoryVectorIndex, QdrantVectorIndex


def test_builders_follow_settings(tmp_path, db) -> None:
    settings = Settings(db_path=tmp_path / "x.db", cache_backend="memory", embedding_backend="http")
    assert isinstance(build_cache_backend(settings, db), MemoryCacheBackend)
    assert isinstance(build_embedding_service(settings), HttpEmbeddingService)

    defaults = Settings(db_path=tmp_path / "y.db")
    assert isinstance(build_cache_backend(defaults, db), SQLiteCacheBackend)
    assert isinstance(build_embedding_service(defaults), HashedEmbeddingService)


def test_runtime_processes_entries_through_queue(settings, embedder) -> None:
    index = InMemoryVectorIndex(active=True)
    runtime = build_runtime(settings, embeddings=embedder, vector_index=index)
    try:
        assert isinstance(runtime.vector_index, InMemoryVectorIndex)
        entry_id = runtime.store.insert({"source_id": "1", "content": "hello"})
        runtime.pipeline.enqueue(entry_id)
        assert runtime.scheduler.run_pending() == 1

        entry = runtime.store.get(entry_id)
        assert entry.status is EntryStatus.PROCESSED
        assert entry.backend is StorageBackend.EXTERNAL
        assert index.size == 1
    finally:
        runtime.close()


def test_runtime_registers_deletion_handler(settings) -> None:
    runtime = build_runtime(settings)
    try:
        assert isinstance(runtime.vector_index, QdrantVectorIndex)
        assert not runtime.selector.is_external_active()
        runtime.store.insert({"source_id": "gone"})
        runtime.scheduler.schedule(0, TASK_DELETE_SOURCES, {"source_ids": ["gone"]})
        assert runtime.scheduler.run_pending() == 1
        assert runtime.store.count() == 0
    finally:
        runtime.close()

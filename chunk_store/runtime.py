"""Construct and wire the chunk-store components once per process."""

from __future__ import annotations

from dataclasses import dataclass

from chunk_store.cache.backends import CacheBackend, MemoryCacheBackend, SQLiteCacheBackend
from chunk_store.cache.chunked import ChunkedCache
from chunk_store.core.config import Settings
from chunk_store.db.entries import EntryStore
from chunk_store.db.flags import SourceFlags
from chunk_store.db.sqlite import SQLiteDatabase
from chunk_store.ingest.backends import BackendSelector
from chunk_store.ingest.deletion import BulkDeletionCoordinator
from chunk_store.ingest.embeddings import EmbeddingService, HashedEmbeddingService, HttpEmbeddingService
from chunk_store.ingest.pipeline import EmbeddingPipeline
from chunk_store.models.dto import TASK_DELETE_SOURCES, TASK_PROCESS_ENTRY
from chunk_store.scheduler.queue import TaskQueue
from chunk_store.vectors.index import QdrantVectorIndex, VectorIndexService


@dataclass(slots=True)
class Runtime:
    settings: Settings
    db: SQLiteDatabase
    cache: ChunkedCache
    store: EntryStore
    flags: SourceFlags
    scheduler: TaskQueue
    embeddings: EmbeddingService
    vector_index: VectorIndexService
    pipeline: EmbeddingPipeline
    selector: BackendSelector
    deletion: BulkDeletionCoordinator

    def close(self) -> None:
        self.db.close()


def build_cache_backend(settings: Settings, db: SQLiteDatabase) -> CacheBackend:
    if settings.cache_backend == "memory":
        return MemoryCacheBackend(max_value_bytes=settings.cache_max_value_bytes)
    return SQLiteCacheBackend(db, max_value_bytes=settings.cache_max_value_bytes)


def build_embedding_service(settings: Settings) -> EmbeddingService:
    if settings.embedding_backend == "http":
        return HttpEmbeddingService(
            api_url=settings.embedding_api_url,
            api_key=settings.embedding_api_key,
            model_name=settings.embedding_model,
        )
    return HashedEmbeddingService(model_name=settings.embedding_model, dim=settings.embedding_dim)


def build_vector_index(settings: Settings) -> VectorIndexService:
    return QdrantVectorIndex(
        url=settings.vector_index_url,
        collection=settings.vector_index_collection,
        api_key=settings.vector_index_api_key,
        enabled=settings.vector_index_enabled,
    )


def build_runtime(
    settings: Settings,
    *,
    db: SQLiteDatabase | None = None,
    cache_backend: CacheBackend | None = None,
    embeddings: EmbeddingService | None = None,
    vector_index: VectorIndexService | None = None,
    scheduler: TaskQueue | None = None,
) -> Runtime:
    """Build every component and register the task handlers on the queue."""
    db = db or SQLiteDatabase(settings.db_path)
    db.ensure_schema()

    cache = ChunkedCache(
        cache_backend or build_cache_backend(settings, db),
        prefix=settings.cache_prefix,
        ttl=settings.cache_ttl_seconds,
        chunk_size=settings.cache_chunk_size,
    )
    store = EntryStore(db, cache, settings)
    flags = SourceFlags(db)
    scheduler = scheduler or TaskQueue(db)
    embeddings = embeddings or build_embedding_service(settings)
    vector_index = vector_index or build_vector_index(settings)

    pipeline = EmbeddingPipeline(store, embeddings, vector_index, scheduler, settings)
    selector = BackendSelector(store, vector_index)
    deletion = BulkDeletionCoordinator(store, flags, scheduler)

    scheduler.register(TASK_PROCESS_ENTRY, pipeline.handle_task)
    scheduler.register(TASK_DELETE_SOURCES, deletion.handle_task)

    return Runtime(
        settings=settings,
        db=db,
        cache=cache,
        store=store,
        flags=flags,
        scheduler=scheduler,
        embeddings=embeddings,
        vector_index=vector_index,
        pipeline=pipeline,
        selector=selector,
        deletion=deletion,
    )


__all__ = ["Runtime", "build_runtime"]

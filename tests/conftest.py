"""Test fixtures for chunk-store."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from chunk_store.cache.backends import MemoryCacheBackend  # noqa: E402
from chunk_store.cache.chunked import ChunkedCache  # noqa: E402
from chunk_store.core.config import Settings, get_settings  # noqa: E402
from chunk_store.db.entries import EntryStore  # noqa: E402
from chunk_store.db.flags import SourceFlags  # noqa: E402
from chunk_store.db.sqlite import SQLiteDatabase  # noqa: E402
from chunk_store.ingest.embeddings import EmbeddingResult, EmbeddingServiceError  # noqa: E402
from chunk_store.scheduler.queue import TaskQueue  # noqa: E402
from chunk_store.vectors.index import InMemoryVectorIndex  # noqa: E402


class FakeClock:
    """Manually advanced clock for TTLs and task due times."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEmbeddingService:
    """Embedding service double that records calls and can be told to fail."""

    def __init__(self, vector: list[float] | None = None) -> None:
        self.vector = vector if vector is not None else [0.1, 0.2, 0.3]
        self.error: Exception | None = None
        self.empty = False
        self.calls: list[str] = []

    def create_embeddings(self, text: str) -> list[EmbeddingResult]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        if self.empty:
            return []
        return [EmbeddingResult(embedding=list(self.vector)), EmbeddingResult(embedding=[9.0, 9.0, 9.0])]

    def fail_with(self, message: str = "service unavailable") -> None:
        self.error = EmbeddingServiceError(message)


@pytest.fixture(autouse=True)
def reset_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep the developer's environment out of the tests."""
    for key in list(os.environ):
        if key.startswith("CHKS_"):
            monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(db_path=tmp_path / "chunks.db", site_url="https://example.test")


@pytest.fixture
def db(settings: Settings) -> Iterator[SQLiteDatabase]:
    database = SQLiteDatabase(settings.db_path)
    database.ensure_schema()
    yield database
    database.close()


@pytest.fixture
def cache_backend(settings: Settings, clock: FakeClock) -> MemoryCacheBackend:
    return MemoryCacheBackend(max_value_bytes=settings.cache_max_value_bytes, clock=clock)


@pytest.fixture
def cache(cache_backend: MemoryCacheBackend, settings: Settings) -> ChunkedCache:
    return ChunkedCache(
        cache_backend,
        prefix=settings.cache_prefix,
        ttl=settings.cache_ttl_seconds,
        chunk_size=settings.cache_chunk_size,
    )


@pytest.fixture
def store(db: SQLiteDatabase, cache: ChunkedCache, settings: Settings) -> EntryStore:
    return EntryStore(db, cache, settings)


@pytest.fixture
def flags(db: SQLiteDatabase) -> SourceFlags:
    return SourceFlags(db)


@pytest.fixture
def queue(db: SQLiteDatabase, clock: FakeClock) -> TaskQueue:
    return TaskQueue(db, clock=clock)


@pytest.fixture
def embedder() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex(active=False)


@pytest.fixture(scope="session")
def sample_html() -> str:
    return "<p>Hello <strong>world</strong></p><script>alert('x')</script>"

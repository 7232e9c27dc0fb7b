"""Vector index backends."""

from .index import (
    BackendHealth,
    InMemoryVectorIndex,
    QdrantVectorIndex,
    VectorIndexError,
    VectorIndexService,
)

__all__ = [
    "BackendHealth",
    "InMemoryVectorIndex",
    "QdrantVectorIndex",
    "VectorIndexError",
    "VectorIndexService",
]

"""External vector index abstraction."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

import requests

from chunk_store.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0


class VectorIndexError(Exception):
    """The vector index rejected a write or could not be reached."""


class BackendHealth(Protocol):
    def is_active(self) -> bool: ...


class VectorIndexService(BackendHealth, Protocol):
    def add_point(self, vector: Sequence[float], metadata: Mapping[str, Any]) -> str: ...


@dataclass(slots=True)
class Point:
    id: str
    vector: list[float]
    payload: dict[str, Any]


class InMemoryVectorIndex:
    """Process-local vector index used for development and tests."""

    def __init__(self, dim: int | None = None, active: bool = True) -> None:
        self.dim = dim
        self.active = active
        self._points: dict[str, Point] = {}

    @property
    def size(self) -> int:
        return len(self._points)

    @property
    def points(self) -> list[Point]:
        return list(self._points.values())

    def is_active(self) -> bool:
        return self.active

    def add_point(self, vector: Sequence[float], metadata: Mapping[str, Any]) -> str:
        if not vector:
            raise VectorIndexError("Cannot index an empty vector")
        if self.dim is None:
            self.dim = len(vector)
        elif len(vector) != self.dim:
            raise VectorIndexError("Vector dimension mismatch")
        point_id = str(uuid.uuid4())
        self._points[point_id] = Point(id=point_id, vector=list(vector), payload=dict(metadata))
        return point_id


class QdrantVectorIndex:
    """Writes points to a Qdrant collection over its REST API."""

    def __init__(
        self,
        url: str | None,
        collection: str,
        api_key: str | None = None,
        *,
        enabled: bool = True,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.url = url.rstrip("/") if url else None
        self.collection = collection
        self.api_key = api_key
        self.enabled = enabled
        self.timeout = timeout
        self._session = session or requests.Session()

    def is_active(self) -> bool:
        return self.enabled and bool(self.url)

    def add_point(self, vector: Sequence[float], metadata: Mapping[str, Any]) -> str:
        if not self.is_active():
            raise VectorIndexError("Qdrant backend is not configured")
        point_id = str(uuid.uuid4())
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["api-key"] = self.api_key
        try:
            resp = self._session.put(
                f"{self.url}/collections/{self.collection}/points",
                params={"wait": "true"},
                json={"points": [{"id": point_id, "vector": list(vector), "payload": dict(metadata)}]},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise VectorIndexError(f"Qdrant request failed: {exc}") from exc
        if not resp.ok:
            raise VectorIndexError(f"Qdrant returned {resp.status_code}: {resp.text[:200]}")
        logger.debug("Upserted point %s into %s", point_id, self.collection)
        return point_id


__all__ = [
    "BackendHealth",
    "InMemoryVectorIndex",
    "Point",
    "QdrantVectorIndex",
    "VectorIndexError",
    "VectorIndexService",
]

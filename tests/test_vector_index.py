"""Tests for vector index adapters."""

from __future__ import annotations

import pytest
import requests

from chunk_store.vectors.index import InMemoryVectorIndex, QdrantVectorIndex, VectorIndexError


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "") -> None:
        self.status_code = status_code
        self.text = text
        self.ok = status_code < 400


class FakeSession:
    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or FakeResponse()
        self.error = error
        self.requests: list[dict] = []

    def put(self, url, **kwargs):
        self.requests.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


def test_in_memory_index_stores_points() -> None:
    index = InMemoryVectorIndex()
    point_id = index.add_point([1.0, 0.0, 0.0], {"source_id": "a"})
    assert point_id
    assert index.size == 1
    assert index.points[0].payload == {"source_id": "a"}
    assert index.dim == 3


def test_in_memory_index_rejects_bad_vectors() -> None:
    index = InMemoryVectorIndex(dim=2)
    with pytest.raises(VectorIndexError):
        index.add_point([], {})
    with pytest.raises(VectorIndexError):
        index.add_point([1.0, 2.0, 3.0], {})
    assert index.size == 0


def test_qdrant_upserts_point_with_payload() -> None:
    session = FakeSession()
    index = QdrantVectorIndex("http://qdrant:6333/", "chunks", api_key="k", session=session)

    point_id = index.add_point([0.5, 0.5], {"source_id": "9", "site_url": "https://example.test"})

    [request] = session.requests
    assert request["url"] == "http://qdrant:6333/collections/chunks/points"
    assert request["params"] == {"wait": "true"}
    assert request["headers"]["api-key"] == "k"
    [point] = request["json"]["points"]
    assert point["id"] == point_id
    assert point["vector"] == [0.5, 0.5]
    assert point["payload"]["source_id"] == "9"


def test_qdrant_activity_depends_on_configuration() -> None:
    assert QdrantVectorIndex("http://qdrant", "c", session=FakeSession()).is_active()
    assert not QdrantVectorIndex(None, "c", session=FakeSession()).is_active()
    disabled = QdrantVectorIndex("http://qdrant", "c", enabled=False, session=FakeSession())
    assert not disabled.is_active()
    with pytest.raises(VectorIndexError):
        disabled.add_point([1.0], {})


@pytest.mark.parametrize(
    "session",
    [FakeSession(error=requests.Timeout("slow")), FakeSession(FakeResponse(status_code=500, text="oops"))],
)
def test_qdrant_failures_raise(session) -> None:
    index = QdrantVectorIndex("http://qdrant", "c", session=session)
    with pytest.raises(VectorIndexError):
        index.add_point([1.0], {})

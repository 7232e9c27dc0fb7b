"""Embedding services."""

from __future__ import annotations

import hashlib
import math
import re
from dataclasses import dataclass
from typing import Protocol

import requests

from chunk_store.core.logging import get_logger

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"\w+")

DEFAULT_TIMEOUT = 30.0


class EmbeddingServiceError(Exception):
    """The embedding service failed or returned an unusable response."""


@dataclass(slots=True)
class EmbeddingResult:
    embedding: list[float]
    model: str = ""


class EmbeddingService(Protocol):
    def create_embeddings(self, text: str) -> list[EmbeddingResult]: ...


class HashedEmbeddingService:
    """Lightweight hashed embedding model with deterministic output."""

    def __init__(self, model_name: str = "hashed", dim: int = 384) -> None:
        if dim <= 0:
            raise ValueError("dim must be positive")
        self.model_name = model_name
        self.dim = dim

    def create_embeddings(self, text: str) -> list[EmbeddingResult]:
        vector = [0.0] * self.dim
        for token in _tokenize(text):
            vector[_hash_token(token, self.dim)] += 1.0
        _normalize(vector)
        return [EmbeddingResult(embedding=vector, model=self.model_name)]


class HttpEmbeddingService:
    """Client for an OpenAI-compatible ``/embeddings`` endpoint."""

    def __init__(
        self,
        api_url: str,
        api_key: str | None,
        model_name: str,
        *,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.model_name = model_name
        self.timeout = timeout
        self._session = session or requests.Session()

    def create_embeddings(self, text: str) -> list[EmbeddingResult]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        logger.debug("Requesting %s embedding for %s chars", self.model_name, len(text))
        try:
            resp = self._session.post(
                f"{self.api_url}/embeddings",
                json={"model": self.model_name, "input": text},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise EmbeddingServiceError(f"Embedding request failed: {exc}") from exc
        if not resp.ok:
            raise EmbeddingServiceError(f"Embedding service returned {resp.status_code}: {resp.text[:200]}")
        try:
            data = resp.json()["data"]
            return [
                EmbeddingResult(embedding=[float(value) for value in item["embedding"]], model=self.model_name)
                for item in data
            ]
        except (ValueError, KeyError, TypeError) as exc:
            raise EmbeddingServiceError(f"Malformed embedding response: {exc}") from exc


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "big")
    return value % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "EmbeddingResult",
    "EmbeddingService",
    "EmbeddingServiceError",
    "HashedEmbeddingService",
    "HttpEmbeddingService",
]

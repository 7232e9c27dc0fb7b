"""Persisted entities and their column mapping."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping

import orjson
from pydantic import BaseModel, Field

from chunk_store.utils.time import from_db_datetime, to_db_datetime


class EntryStatus(str, Enum):
    SCHEDULED = "scheduled"
    PROCESSED = "processed"


class StorageBackend(str, Enum):
    LOCAL = "local"
    EXTERNAL = "external"


# Entry attribute -> column in the entries table.
ENTRY_COLUMNS: Mapping[str, str] = {
    "created_at": "date",
    "modified_at": "modified",
    "source_id": "post_id",
    "title": "post_title",
    "content": "post_content",
    "embedding": "embeddings",
    "token_count": "token_count",
    "status": "post_status",
    "backend": "storage",
}


class Entry(BaseModel):
    """One content chunk with its embedding and processing state."""

    id: int
    created_at: datetime
    modified_at: datetime
    source_id: str = ""
    title: str = ""
    content: str = ""
    embedding: list[float] = Field(default_factory=list)
    token_count: int = 0
    status: EntryStatus = EntryStatus.SCHEDULED
    backend: StorageBackend = StorageBackend.LOCAL

    model_config = {"frozen": True}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Entry":
        raw_embedding = row["embeddings"]
        return cls(
            id=row["id"],
            created_at=from_db_datetime(row["date"]),
            modified_at=from_db_datetime(row["modified"]),
            source_id=row["post_id"],
            title=row["post_title"],
            content=row["post_content"],
            embedding=orjson.loads(raw_embedding) if raw_embedding else [],
            token_count=row["token_count"],
            status=EntryStatus(row["post_status"]),
            backend=StorageBackend(row["storage"]),
        )

    def to_cache(self) -> dict[str, Any]:
        """JSON-safe payload for the cache layer."""
        return self.model_dump(mode="json")

    @classmethod
    def from_cache(cls, payload: Mapping[str, Any]) -> "Entry":
        return cls.model_validate(payload)


def to_column_value(field: str, value: Any) -> Any:
    """Convert an Entry attribute value to its stored column representation."""
    if field in {"created_at", "modified_at"}:
        return to_db_datetime(value) if isinstance(value, datetime) else str(value)
    if field == "embedding":
        if not value:
            return ""
        if isinstance(value, (str, bytes)):
            return value.decode("utf-8") if isinstance(value, bytes) else value
        return orjson.dumps([float(item) for item in value]).decode("utf-8")
    if field == "status":
        return EntryStatus(value).value
    if field == "backend":
        return StorageBackend(value).value
    if field == "token_count":
        return int(value)
    return "" if value is None else str(value)


__all__ = [
    "ENTRY_COLUMNS",
    "Entry",
    "EntryStatus",
    "StorageBackend",
    "to_column_value",
]

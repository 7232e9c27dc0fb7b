"""Pydantic payloads carried by scheduled tasks."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

TASK_PROCESS_ENTRY = "process_entry"
TASK_DELETE_SOURCES = "delete_sources"


class ProcessEntryTask(BaseModel):
    entry_id: int
    attempt: int = Field(default=0, ge=0)


class DeleteSourcesTask(BaseModel):
    source_ids: list[str] = Field(default_factory=list, description="Sources still waiting for deletion")

    @field_validator("source_ids", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        return value


__all__ = [
    "TASK_PROCESS_ENTRY",
    "TASK_DELETE_SOURCES",
    "ProcessEntryTask",
    "DeleteSourcesTask",
]

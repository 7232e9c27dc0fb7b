"""Common pipeline data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class PipelineOutcome(str, Enum):
    """Result of one ``process_entry`` run."""

    PROCESSED = "processed"
    RETRY_SCHEDULED = "retry_scheduled"
    ABANDONED = "abandoned"
    MISSING = "missing"
    BUSY = "busy"


@dataclass(slots=True)
class DeletionResult:
    """Outcome of one bulk deletion batch."""

    processed: list[str] = field(default_factory=list)
    entries_deleted: int = 0
    remaining: list[str] = field(default_factory=list)

    @property
    def continuation_scheduled(self) -> bool:
        return bool(self.remaining)

    def to_dict(self) -> dict[str, object]:
        return {
            "processed": list(self.processed),
            "entries_deleted": self.entries_deleted,
            "remaining": len(self.remaining),
        }


__all__ = ["DeletionResult", "PipelineOutcome"]

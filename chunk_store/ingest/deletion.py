"""Batched deletion of entries by source."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from chunk_store.core.logging import get_logger
from chunk_store.core.metrics import ENTRIES_DELETED
from chunk_store.db.entries import EntryStore
from chunk_store.db.flags import SourceFlags
from chunk_store.ingest.types import DeletionResult
from chunk_store.models.dto import TASK_DELETE_SOURCES, DeleteSourcesTask
from chunk_store.scheduler.queue import Scheduler

logger = get_logger(__name__)

DELETE_BATCH_SIZE = 20
DELETE_CONTINUATION_DELAY = 10
SOURCE_FLAGS = ("added", "needs_update", "moderation_failed", "moderation_review")


class BulkDeletionCoordinator:
    """Delete sources a bounded batch at a time, rescheduling the remainder."""

    def __init__(
        self,
        store: EntryStore,
        flags: SourceFlags,
        scheduler: Scheduler,
        batch_size: int = DELETE_BATCH_SIZE,
        continuation_delay: float = DELETE_CONTINUATION_DELAY,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.flags = flags
        self.scheduler = scheduler
        self.batch_size = batch_size
        self.continuation_delay = continuation_delay

    def handle_task(self, args: Mapping[str, Any]) -> DeletionResult:
        task = DeleteSourcesTask.model_validate(dict(args))
        return self.delete_sources(task.source_ids)

    def delete_sources(self, source_ids: Iterable[str | int]) -> DeletionResult:
        pending = [str(source_id) for source_id in source_ids]
        batch, remaining = pending[: self.batch_size], pending[self.batch_size :]

        result = DeletionResult(remaining=remaining)
        for source_id in batch:
            result.entries_deleted += self.store.delete_by_source(source_id)
            for flag in SOURCE_FLAGS:
                self.flags.clear(source_id, flag)
            result.processed.append(source_id)
        ENTRIES_DELETED.inc(result.entries_deleted)

        if remaining:
            self.scheduler.schedule(
                self.continuation_delay,
                TASK_DELETE_SOURCES,
                DeleteSourcesTask(source_ids=remaining).model_dump(),
            )
        logger.info(
            "Deleted %s entries for %s sources; %s sources left",
            result.entries_deleted,
            len(batch),
            len(remaining),
        )
        return result

    def prune_over_limit(self, limit: int | None = None) -> DeletionResult:
        """Delete every source with entries past the retention cap."""
        return self.delete_sources(self.store.ids_beyond_limit(limit))


__all__ = [
    "BulkDeletionCoordinator",
    "DELETE_BATCH_SIZE",
    "DELETE_CONTINUATION_DELAY",
    "SOURCE_FLAGS",
]

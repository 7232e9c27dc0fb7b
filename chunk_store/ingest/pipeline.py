"""Per-entry embedding pipeline.

An entry moves ``scheduled -> embedding -> storing -> processed``. A failure
in either processing stage leaves the entry untouched and schedules the same
run again after a fixed delay; there is no terminal failed state unless
``retry_max_attempts`` is configured.
"""

from __future__ import annotations

from typing import Any, Mapping

from chunk_store.cache.chunked import ChunkedCache
from chunk_store.core.config import Settings
from chunk_store.core.logging import get_logger
from chunk_store.core.metrics import PIPELINE_RUNS, RETRIES_SCHEDULED
from chunk_store.db.entries import EntryStore
from chunk_store.ingest.embeddings import EmbeddingService, EmbeddingServiceError
from chunk_store.ingest.types import PipelineOutcome
from chunk_store.models.dto import TASK_PROCESS_ENTRY, ProcessEntryTask
from chunk_store.models.entities import Entry, EntryStatus, StorageBackend
from chunk_store.scheduler.queue import Scheduler
from chunk_store.utils.text import strip_markup
from chunk_store.vectors.index import BackendHealth, VectorIndexService

logger = get_logger(__name__)


class EmbeddingPipeline:
    """Compute an entry's embedding and home it on the active backend."""

    def __init__(
        self,
        store: EntryStore,
        embeddings: EmbeddingService,
        vector_index: VectorIndexService,
        scheduler: Scheduler,
        settings: Settings,
        health: BackendHealth | None = None,
        lease_cache: ChunkedCache | None = None,
    ) -> None:
        self.store = store
        self.embeddings = embeddings
        self.vector_index = vector_index
        self.scheduler = scheduler
        self.settings = settings
        self.health = health or vector_index
        self.lease_cache = lease_cache or store.cache

    def enqueue(self, entry_id: int, delay: float = 0) -> None:
        """Ask the scheduler to process ``entry_id``."""
        self.scheduler.schedule(delay, TASK_PROCESS_ENTRY, ProcessEntryTask(entry_id=entry_id).model_dump())

    def enqueue_scheduled(self, limit: int = 500) -> int:
        """Enqueue every entry still waiting for an embedding."""
        entries = self.store.get_by_status(EntryStatus.SCHEDULED, limit=limit)
        for entry in entries:
            self.enqueue(entry.id)
        return len(entries)

    def handle_task(self, args: Mapping[str, Any]) -> PipelineOutcome:
        task = ProcessEntryTask.model_validate(dict(args))
        return self.process_entry(task.entry_id, attempt=task.attempt)

    def process_entry(self, entry_id: int, attempt: int = 0) -> PipelineOutcome:
        entry = self.store.get(entry_id)
        if entry is None:
            logger.warning("Entry %s no longer exists; dropping", entry_id, extra={"ctx_entry_id": entry_id})
            return self._finish(PipelineOutcome.MISSING)

        lease = self._acquire_lease(entry_id)
        if lease is False:
            logger.info("Entry %s is being processed elsewhere", entry_id, extra={"ctx_entry_id": entry_id})
            return self._finish(PipelineOutcome.BUSY)
        try:
            return self._finish(self._run(entry, attempt))
        finally:
            if lease:
                self.lease_cache.delete(_lease_key(entry_id))

    def _run(self, entry: Entry, attempt: int) -> PipelineOutcome:
        text = strip_markup(entry.content)
        try:
            results = self.embeddings.create_embeddings(text)
        except EmbeddingServiceError as exc:
            logger.warning("Embedding failed for entry %s: %s", entry.id, exc, extra={"ctx_entry_id": entry.id})
            return self._retry(entry.id, attempt, stage="embedding")
        # A processed entry must carry a vector.
        if not results or not results[0].embedding:
            logger.warning("Embedding service returned no vector for entry %s", entry.id, extra={"ctx_entry_id": entry.id})
            return self._retry(entry.id, attempt, stage="embedding")

        vector = list(results[0].embedding)
        backend = StorageBackend.LOCAL

        if self.health.is_active():
            try:
                point_id = self.vector_index.add_point(
                    vector,
                    {
                        "source_id": entry.source_id,
                        "title": entry.title,
                        "content": entry.content,
                        "token_count": entry.token_count,
                        "site_url": self.settings.site_url,
                    },
                )
            except Exception as exc:
                logger.warning(
                    "Vector index write failed for entry %s: %s",
                    entry.id,
                    exc,
                    extra={"ctx_entry_id": entry.id},
                )
                return self._retry(entry.id, attempt, stage="store")
            if not point_id:
                logger.warning("Vector index rejected entry %s", entry.id, extra={"ctx_entry_id": entry.id})
                return self._retry(entry.id, attempt, stage="store")
            backend = StorageBackend.EXTERNAL

        self.store.update(
            entry.id,
            {
                "embedding": vector,
                "status": EntryStatus.PROCESSED,
                "backend": backend,
            },
        )
        logger.info("Processed entry %s on %s backend", entry.id, backend.value, extra={"ctx_entry_id": entry.id})
        return PipelineOutcome.PROCESSED

    def _retry(self, entry_id: int, attempt: int, stage: str) -> PipelineOutcome:
        next_attempt = attempt + 1
        cap = self.settings.retry_max_attempts
        if cap is not None and next_attempt >= cap:
            logger.error(
                "Giving up on entry %s after %s attempts",
                entry_id,
                next_attempt,
                extra={"ctx_entry_id": entry_id},
            )
            return PipelineOutcome.ABANDONED
        self.scheduler.schedule(
            self.settings.retry_delay_seconds,
            TASK_PROCESS_ENTRY,
            ProcessEntryTask(entry_id=entry_id, attempt=next_attempt).model_dump(),
        )
        RETRIES_SCHEDULED.labels(stage=stage).inc()
        return PipelineOutcome.RETRY_SCHEDULED

    def _acquire_lease(self, entry_id: int) -> bool | None:
        """Return None when leasing is disabled, else whether the lease was taken."""
        if self.settings.lease_seconds <= 0:
            return None
        return self.lease_cache.add(_lease_key(entry_id), 1, ttl=self.settings.lease_seconds)

    @staticmethod
    def _finish(outcome: PipelineOutcome) -> PipelineOutcome:
        PIPELINE_RUNS.labels(outcome=outcome.value).inc()
        return outcome


def _lease_key(entry_id: int) -> str:
    return f"lease_entry_{entry_id}"


__all__ = ["EmbeddingPipeline"]

"""Prometheus metrics instrumentation."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, generate_latest

REGISTRY = CollectorRegistry()

PIPELINE_RUNS = Counter(
    "chks_pipeline_runs_total",
    "Embedding pipeline runs by outcome",
    labelnames=("outcome",),
    registry=REGISTRY,
)

RETRIES_SCHEDULED = Counter(
    "chks_pipeline_retries_total",
    "Pipeline retries scheduled, by the stage that failed",
    labelnames=("stage",),
    registry=REGISTRY,
)

CACHE_LOOKUPS = Counter(
    "chks_cache_lookups_total",
    "Cache lookups by result; reason is found, absent, marker (no chunk marker) or chunk (partial chunk set)",
    labelnames=("result", "reason"),
    registry=REGISTRY,
)

CACHE_REJECTIONS = Counter(
    "chks_cache_rejections_total",
    "Cache writes rejected for exceeding the per-entry size limit",
    registry=REGISTRY,
)

ENTRIES_DELETED = Counter(
    "chks_entries_deleted_total",
    "Entries removed by source deletion",
    registry=REGISTRY,
)

TASKS_EXECUTED = Counter(
    "chks_tasks_executed_total",
    "Scheduled tasks executed by the worker",
    labelnames=("task", "status"),
    registry=REGISTRY,
)


def render_metrics() -> bytes:
    """Return the Prometheus text exposition for the chunk-store registry."""
    return generate_latest(REGISTRY)


__all__ = [
    "REGISTRY",
    "PIPELINE_RUNS",
    "RETRIES_SCHEDULED",
    "CACHE_LOOKUPS",
    "CACHE_REJECTIONS",
    "ENTRIES_DELETED",
    "TASKS_EXECUTED",
    "render_metrics",
]

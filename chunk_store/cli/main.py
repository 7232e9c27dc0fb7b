"""CLI entrypoint for chunk-store."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import List, Optional

import typer

from chunk_store.core.config import ConfigError, Settings, get_settings
from chunk_store.core.logging import configure_logging
from chunk_store.core.metrics import render_metrics
from chunk_store.models.entities import EntryStatus, StorageBackend
from chunk_store.runtime import Runtime, build_runtime

app = typer.Typer(name="chunk-store", help="Entry store and embedding worker")


def _runtime(config: Optional[Path]) -> Runtime:
    try:
        settings = Settings.from_yaml(config) if config is not None else get_settings()
    except ConfigError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=2)
    configure_logging(settings.log_level, use_json=settings.log_json)
    return build_runtime(settings)


def _echo(payload: object) -> None:
    typer.echo(json.dumps(payload, indent=2))


ConfigOption = typer.Option(None, "--config", help="Path to a YAML config file")


@app.command()
def init(config: Optional[Path] = ConfigOption) -> None:
    """Create or upgrade the database schema."""
    runtime = _runtime(config)
    try:
        _echo({"db_path": str(runtime.settings.db_path), "schema_version": runtime.db.schema_version()})
    finally:
        runtime.close()


@app.command()
def add(
    source_id: str = typer.Argument(..., help="Identifier of the originating content"),
    content_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File holding the entry content"),
    title: str = typer.Option("", "--title", help="Entry title"),
    token_count: int = typer.Option(0, "--tokens", help="Informational token count"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Insert an entry and schedule its embedding."""
    runtime = _runtime(config)
    try:
        entry_id = runtime.store.insert(
            {
                "source_id": source_id,
                "title": title,
                "content": content_file.read_text(encoding="utf-8"),
                "token_count": token_count,
            }
        )
        runtime.pipeline.enqueue(entry_id)
        _echo({"id": entry_id, "status": EntryStatus.SCHEDULED.value})
    finally:
        runtime.close()


@app.command()
def work(
    loop: bool = typer.Option(False, "--loop", help="Keep polling for due tasks"),
    interval: float = typer.Option(5.0, "--interval", help="Seconds between polls when looping"),
    metrics_file: Optional[Path] = typer.Option(None, "--metrics-file", help="Write Prometheus metrics here after each poll"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Run scheduled tasks that are due."""
    runtime = _runtime(config)
    try:
        while True:
            ran = runtime.scheduler.run_pending()
            if metrics_file is not None:
                metrics_file.write_bytes(render_metrics())
            if not loop:
                _echo({"ran": ran, "pending": len(runtime.scheduler.pending())})
                return
            time.sleep(interval)
    except KeyboardInterrupt:
        raise typer.Exit(code=0)
    finally:
        runtime.close()


@app.command()
def stats(config: Optional[Path] = ConfigOption) -> None:
    """Show entry counts."""
    runtime = _runtime(config)
    try:
        _echo(
            {
                "entries": runtime.store.count(),
                "scheduled": len(runtime.store.get_by_status(EntryStatus.SCHEDULED)),
                "processed": len(runtime.store.get_by_status(EntryStatus.PROCESSED)),
                "active_backend": runtime.selector.active_backend().value,
                "pending_tasks": len(runtime.scheduler.pending()),
                "failed_tasks": len(runtime.scheduler.failed()),
            }
        )
    finally:
        runtime.close()


@app.command()
def delete(
    source_ids: List[str] = typer.Argument(..., help="Sources whose entries should be removed"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Delete entries for sources; large requests continue in the background."""
    runtime = _runtime(config)
    try:
        _echo(runtime.deletion.delete_sources(source_ids).to_dict())
    finally:
        runtime.close()


@app.command()
def prune(
    limit: Optional[int] = typer.Option(None, "--limit", help="Entries to keep (defaults to chunks_limit)"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Delete sources whose entries fall beyond the retention cap."""
    runtime = _runtime(config)
    try:
        _echo(runtime.deletion.prune_over_limit(limit).to_dict())
    finally:
        runtime.close()


@app.command()
def rehome(
    to: StorageBackend = typer.Option(..., "--to", help="Backend to move entries to"),
    from_: StorageBackend = typer.Option(..., "--from", help="Backend to move entries from"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Reassign the backend of every entry on one backend to another."""
    runtime = _runtime(config)
    try:
        _echo({"moved": runtime.selector.update_backend(to, from_)})
    finally:
        runtime.close()


if __name__ == "__main__":
    app()

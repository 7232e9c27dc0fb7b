"""Logging setup for chunk-store processes."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import IO, Any

import orjson

_DEFAULT_LEVEL = os.environ.get("CHKS_LOG_LEVEL", "INFO")
_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# HTTP client chatter from the embedding and vector index adapters.
_QUIET_LOGGERS = ("urllib3", "requests")


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Extras passed as ``extra={"ctx_entry_id": 7}`` are copied into the
    payload, so entry ids and task names stay queryable.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        payload.update({key: value for key, value in vars(record).items() if key.startswith("ctx_")})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


def configure_logging(
    level: str | int = _DEFAULT_LEVEL,
    use_json: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """Send every record to ``stream`` (stderr by default).

    stdout is left to command output.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter() if use_json else logging.Formatter(_TEXT_FORMAT))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.WARNING))
    logging.captureWarnings(True)


def get_logger(name: str = "chunk_store") -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_logging", "get_logger"]

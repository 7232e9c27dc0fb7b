"""Tests for text helpers and JSON logging."""

from __future__ import annotations

import io
import logging

import orjson

from chunk_store.core.logging import JsonFormatter, configure_logging
from chunk_store.utils.text import normalize, strip_markup
from chunk_store.utils.time import from_db_datetime, to_db_datetime, utc_now


def test_strip_markup_drops_tags_and_scripts(sample_html: str) -> None:
    assert strip_markup(sample_html) == "Hello world"
    assert strip_markup("") == ""
    assert strip_markup("no markup") == "no markup"


def test_normalize_collapses_whitespace() -> None:
    assert normalize("  a \n\t b  ") == "a b"


def test_db_datetime_round_trip() -> None:
    now = utc_now()
    assert from_db_datetime(to_db_datetime(now)) == now


def test_json_formatter_includes_context_fields() -> None:
    record = logging.LogRecord("chunk_store.test", logging.INFO, __file__, 1, "processed %s", (3,), None)
    record.ctx_entry_id = 3
    payload = orjson.loads(JsonFormatter().format(record))
    assert payload["message"] == "processed 3"
    assert payload["level"] == "INFO"
    assert payload["ctx_entry_id"] == 3


def test_configure_logging_targets_stream_and_quiets_http_clients() -> None:
    stream = io.StringIO()
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers, root.level
    try:
        configure_logging("DEBUG", use_json=True, stream=stream)
        logging.getLogger("chunk_store.test").info("hello", extra={"ctx_task": "process_entry"})
        payload = orjson.loads(stream.getvalue().splitlines()[-1])
        assert payload["ctx_task"] == "process_entry"
        assert payload["timestamp"].endswith("+00:00")
        assert logging.getLogger("urllib3").level == logging.WARNING
    finally:
        root.handlers, root.level = saved_handlers, saved_level

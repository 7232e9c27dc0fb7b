"""SQLite connection handling and versioned schema management."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Sequence

from chunk_store.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA foreign_keys=ON;",
    "PRAGMA temp_store=MEMORY;",
    "PRAGMA busy_timeout=5000;",
)

SCHEMA_VERSION = "1.1.0"
SCHEMA_VERSION_OPTION = "entries_db_version"

# Column definitions used to bring an older entries table up to date.
ENTRY_COLUMN_DDL = {
    "date": "TEXT NOT NULL DEFAULT ''",
    "modified": "TEXT NOT NULL DEFAULT ''",
    "post_id": "TEXT NOT NULL DEFAULT ''",
    "post_title": "TEXT NOT NULL DEFAULT ''",
    "post_content": "TEXT NOT NULL DEFAULT ''",
    "embeddings": "TEXT NOT NULL DEFAULT ''",
    "token_count": "INTEGER NOT NULL DEFAULT 0",
    "post_status": "TEXT NOT NULL DEFAULT 'scheduled'",
    "storage": "TEXT NOT NULL DEFAULT 'local'",
}


class SQLiteDatabase:
    """Lazily opened sqlite3 connection shared by the store, cache and queue."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path).expanduser()
        self._connection: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        if self._connection is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.db_path)
            self._connection.row_factory = sqlite3.Row
            for pragma in DEFAULT_PRAGMAS:
                self._connection.execute(pragma)
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> "SQLiteDatabase":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()
        elif self._connection is not None:
            self._connection.rollback()
        self.close()

    def commit(self) -> None:
        if self._connection is not None:
            self._connection.commit()

    def executescript(self, script: str) -> None:
        self.connect().executescript(script)

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
        return self.connect().execute(sql, params or [])

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()

    # Schema management ------------------------------------------------

    def table_exists(self, name: str) -> bool:
        row = self.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
            [name],
        ).fetchone()
        return row is not None

    def get_option(self, name: str) -> str | None:
        if not self.table_exists("options"):
            return None
        row = self.execute("SELECT value FROM options WHERE name = ?", [name]).fetchone()
        return row["value"] if row else None

    def set_option(self, name: str, value: str) -> None:
        self.execute(
            "INSERT INTO options (name, value) VALUES (?, ?) "
            "ON CONFLICT(name) DO UPDATE SET value = excluded.value",
            [name, value],
        )
        self.commit()

    def schema_version(self) -> str | None:
        return self.get_option(SCHEMA_VERSION_OPTION)

    def ensure_schema(self, schema_sql: str | None = None, version: str = SCHEMA_VERSION) -> bool:
        """Create or upgrade the schema; return True when anything was applied.

        Runs only when the entries table is missing or the recorded version
        is older than ``version``.
        """
        current = self.schema_version()
        if self.table_exists("entries") and current is not None and _parse_version(version) <= _parse_version(current):
            return False
        if schema_sql is None:
            schema_path = Path(__file__).with_name("schema.sql")
            schema_sql = schema_path.read_text(encoding="utf-8")
        if self.table_exists("entries"):
            self._add_missing_entry_columns()
        self.executescript(schema_sql)
        self.set_option(SCHEMA_VERSION_OPTION, version)
        logger.info("Entries schema at version %s (was %s)", version, current or "none")
        return True

    def _add_missing_entry_columns(self) -> None:
        existing = {row["name"] for row in self.query("PRAGMA table_info(entries)")}
        for column, ddl in ENTRY_COLUMN_DDL.items():
            if column not in existing:
                self.execute(f"ALTER TABLE entries ADD COLUMN {column} {ddl}")
                logger.info("Added column %s to entries", column)
        self.commit()


def _parse_version(value: str) -> tuple[int, ...]:
    parts: list[int] = []
    for piece in value.split("."):
        digits = "".join(ch for ch in piece if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return tuple(parts)


__all__ = ["SCHEMA_VERSION", "SQLiteDatabase"]

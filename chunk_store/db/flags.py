"""Per-source metadata flags owned by the hosting application."""

from __future__ import annotations

from chunk_store.db.sqlite import SQLiteDatabase


class SourceFlags:
    """Key/value flags attached to a source id (``added``, ``needs_update``, ...)."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def set(self, source_id: str, flag: str, value: str = "1") -> None:
        self.db.execute(
            "INSERT INTO source_flags (source_id, flag, value) VALUES (?, ?, ?) "
            "ON CONFLICT(source_id, flag) DO UPDATE SET value = excluded.value",
            [str(source_id), flag, value],
        )
        self.db.commit()

    def get(self, source_id: str, flag: str) -> str | None:
        row = self.db.execute(
            "SELECT value FROM source_flags WHERE source_id = ? AND flag = ?",
            [str(source_id), flag],
        ).fetchone()
        return row["value"] if row else None

    def clear(self, source_id: str, flag: str) -> bool:
        cursor = self.db.execute(
            "DELETE FROM source_flags WHERE source_id = ? AND flag = ?",
            [str(source_id), flag],
        )
        self.db.commit()
        return cursor.rowcount > 0


__all__ = ["SourceFlags"]

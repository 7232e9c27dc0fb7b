"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timezone

DB_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime truncated to whole seconds."""
    return datetime.now(tz=timezone.utc).replace(microsecond=0)


def to_db_datetime(value: datetime) -> str:
    """Format a datetime as the UTC text stored in the entries table."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(DB_DATETIME_FORMAT)


def from_db_datetime(value: str) -> datetime:
    """Parse UTC text from the entries table."""
    return datetime.strptime(value, DB_DATETIME_FORMAT).replace(tzinfo=timezone.utc)

"""Datetime helpers."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def elapsed_ms(started_at: datetime, finished_at: datetime | None = None) -> int:
    """Return whole milliseconds between two datetimes."""
    finished_at = finished_at or utc_now()
    return int((finished_at - started_at).total_seconds() * 1000)

"""Datetime utilities for common operations."""

from datetime import datetime, timezone


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def is_aware(dt: datetime) -> bool:
    """True if ``dt`` carries a usable UTC offset."""
    return dt.tzinfo is not None and dt.tzinfo.utcoffset(dt) is not None


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to UTC.

    Naive values are assumed to already be UTC, which is how SQLite hands
    back timezone-aware columns.

    Args:
        dt: Datetime to normalize

    Returns:
        Aware datetime in UTC
    """
    if not is_aware(dt):
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_future(dt: datetime, reference: datetime | None = None) -> bool:
    """
    Check if datetime is strictly after ``reference`` (default: now).

    Args:
        dt: Aware datetime to check
        reference: Point in time to compare against

    Returns:
        True if in the future
    """
    return dt > (reference or now())


def to_iso(dt: datetime | None) -> str | None:
    return ensure_utc(dt).isoformat() if dt else None


def from_iso(value: str | None) -> datetime | None:
    return ensure_utc(datetime.fromisoformat(value)) if value else None

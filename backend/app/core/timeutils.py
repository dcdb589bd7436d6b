"""
Datetime helpers.

Timestamps are written as naive UTC; PostgreSQL hands them back timezone-aware
and SQLite hands them back naive, so comparisons go through `as_naive_utc`.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise an aware or naive datetime to naive UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

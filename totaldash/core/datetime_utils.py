"""Datetime utilities for consistent timezone handling across the application."""

from datetime import datetime, timezone
from typing import Optional


def utc_now_naive() -> datetime:
    """Get current UTC time as naive datetime for database operations.

    Note:
        Columns are TIMESTAMP WITHOUT TIME ZONE and always hold UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_unix_naive(timestamp: Optional[int]) -> Optional[datetime]:
    """Convert a provider unix timestamp (seconds) into a naive UTC datetime."""
    if timestamp is None:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).replace(tzinfo=None)

"""Time utilities for timestamps exchanged through the cache and the broker."""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Make a datetime timezone-aware.

    Naive values (e.g. read back from SQLite) are assumed to be UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts the trailing "Z" designator used by JavaScript producers.

    Raises:
        ValueError: If the string is not ISO-8601
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 in UTC."""
    return ensure_utc(value).isoformat()

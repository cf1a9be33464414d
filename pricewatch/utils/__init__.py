"""Utilities package initialization."""
from pricewatch.utils.time import utc_now, ensure_utc, parse_timestamp, format_timestamp

__all__ = [
    "utc_now",
    "ensure_utc",
    "parse_timestamp",
    "format_timestamp"
]

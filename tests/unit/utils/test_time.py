"""Unit tests for Time Utils."""
import pytest
from datetime import datetime, timedelta, timezone

from pricewatch.utils.time import ensure_utc, format_timestamp, parse_timestamp, utc_now


@pytest.mark.unit
class TestTimeUtils:
    """Test timestamp helpers."""

    def test_utc_now_is_aware(self):
        """✅ utc_now returns an aware UTC datetime."""
        assert utc_now().tzinfo == timezone.utc

    def test_ensure_utc_naive(self):
        """✅ Naive datetimes are assumed UTC."""
        value = ensure_utc(datetime(2025, 1, 1, 12, 0))
        assert value == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_ensure_utc_converts_offset(self):
        """✅ Other offsets are converted to UTC."""
        plus_two = timezone(timedelta(hours=2))
        value = ensure_utc(datetime(2025, 1, 1, 14, 0, tzinfo=plus_two))
        assert value == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert value.tzinfo == timezone.utc

    def test_parse_round_trip(self):
        """✅ format_timestamp output parses back to the same instant."""
        original = datetime(2025, 1, 15, 14, 30, 5, 123456, tzinfo=timezone.utc)
        assert parse_timestamp(format_timestamp(original)) == original

    def test_parse_invalid(self):
        """✅ Garbage → ValueError."""
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")

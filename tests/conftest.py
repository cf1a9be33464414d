"""Shared pytest fixtures for price watch tests."""
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Tuple
from unittest.mock import MagicMock
import fakeredis.aioredis

from pricewatch.messaging import topic_matches
from pricewatch.models.quote import Quote


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingBus:
    """In-process bus: records publishes and dispatches them to subscribers."""

    def __init__(self):
        self.published: List[Tuple[str, str, Dict[str, Any]]] = []
        self.handlers = []

    async def publish(self, topic: str, routing_key: str, payload: Dict[str, Any]) -> str:
        self.published.append((topic, routing_key, payload))
        for sub_topic, pattern, handler in list(self.handlers):
            if sub_topic == topic and topic_matches(pattern, routing_key):
                await handler(payload)
        return f"{len(self.published)}-0"

    async def subscribe(self, topic: str, pattern: str, handler):
        self.handlers.append((topic, pattern, handler))
        return MagicMock()

    def payloads(self, routing_key: str) -> List[Dict[str, Any]]:
        return [p for _, key, p in self.published if key == routing_key]


@pytest.fixture
def start_time():
    """Fixed reference time for deterministic tests."""
    return datetime(2025, 1, 15, 14, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(start_time):
    """Manually advanced clock."""
    return FakeClock(start_time)


@pytest.fixture
def recording_bus():
    """In-process event bus."""
    return RecordingBus()


@pytest.fixture
async def fake_redis():
    """Create a FakeRedis instance for testing."""
    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()


def make_quote(price: str, observed_at: datetime, currency: str = "USD", source: str = "metals.live") -> Quote:
    """Factory function to create Quote instances for testing."""
    return Quote(
        price=Decimal(price),
        currency=currency,
        observed_at=observed_at,
        source=source
    )


@pytest.fixture
def sample_quote(start_time):
    """Typical gold quote."""
    return make_quote("1950.25", start_time)


@pytest.fixture
def quote_factory():
    """Expose make_quote to tests."""
    return make_quote

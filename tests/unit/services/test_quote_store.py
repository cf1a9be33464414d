"""Unit tests for QuoteStore."""
import pytest
from decimal import Decimal

from pricewatch.services.quote_store import QuoteStore


@pytest.fixture
def store(fake_redis, clock):
    """QuoteStore on fake Redis with a controllable clock."""
    return QuoteStore(fake_redis, key="test_gold_price", clock=clock)


@pytest.mark.unit
@pytest.mark.asyncio
class TestQuoteStore:
    """Test TTL-bounded cache semantics."""

    async def test_empty_get(self, store):
        """✅ Nothing cached → None."""
        assert await store.get() is None

    async def test_put_then_get(self, store, sample_quote):
        """✅ Quote survives a put/get cycle unchanged."""
        await store.put(sample_quote, 300)

        cached = await store.get()

        assert cached == sample_quote
        assert isinstance(cached.price, Decimal)

    async def test_expires_at_deadline(self, store, sample_quote, clock):
        """✅ Readable before the deadline, gone at the deadline."""
        await store.put(sample_quote, 300)

        clock.advance(seconds=299)
        assert await store.get() == sample_quote

        clock.advance(seconds=1)
        assert await store.get() is None

    async def test_put_replaces(self, store, quote_factory, start_time, clock):
        """✅ Later put replaces the quote and its deadline."""
        await store.put(quote_factory("1900", start_time), 10)
        clock.advance(seconds=5)
        await store.put(quote_factory("1910", clock()), 10)

        clock.advance(seconds=8)
        cached = await store.get()

        assert cached.price == Decimal("1910")

    @pytest.mark.parametrize("ttl", [0, -1])
    async def test_non_positive_ttl(self, store, sample_quote, ttl):
        """✅ ttl <= 0 → ValueError, nothing stored."""
        with pytest.raises(ValueError):
            await store.put(sample_quote, ttl)

        assert await store.get() is None

    async def test_invalidate(self, store, sample_quote):
        """✅ invalidate() removes the entry."""
        await store.put(sample_quote, 300)
        await store.invalidate()

        assert await store.get() is None

    async def test_invalidate_empty(self, store):
        """✅ invalidate() on empty cache is a no-op."""
        await store.invalidate()
        assert await store.get() is None

    async def test_corrupt_entry(self, store, fake_redis):
        """✅ Unreadable cache entry → None."""
        await fake_redis.set("test_gold_price", "{not json")

        assert await store.get() is None

    async def test_redis_ttl_set(self, store, sample_quote, fake_redis):
        """✅ Redis key carries a matching expiry."""
        await store.put(sample_quote, 300)

        ttl = await fake_redis.ttl("test_gold_price")
        assert 0 < ttl <= 300

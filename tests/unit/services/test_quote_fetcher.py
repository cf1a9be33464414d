"""Unit tests for QuoteFetcher.

Covers cache-aside reads, forced refresh, and the independence of the cache
write from event publishing.
"""
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock

from pricewatch.core.exceptions import BrokerUnavailable, UpstreamError
from pricewatch.messaging import PRICE_UPDATED, PRICES_TOPIC
from pricewatch.services.quote_fetcher import QuoteFetcher
from pricewatch.services.quote_store import QuoteStore


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def store(fake_redis, clock):
    return QuoteStore(fake_redis, key="test_gold_price", clock=clock)


@pytest.fixture
def provider(quote_factory, clock):
    """Provider returning an increasing price on every call."""
    mock = AsyncMock()
    prices = iter(["1950", "1951", "1952", "1953"])

    async def _quote():
        return quote_factory(next(prices), clock())

    mock.get_spot_price.side_effect = _quote
    return mock


@pytest.fixture
def fetcher(provider, store, recording_bus):
    return QuoteFetcher(provider, store, recording_bus, cache_ttl=300)


# ============================================================================
# Tests for fetch_and_cache
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestFetchAndCache:
    """Test fetch_and_cache."""

    async def test_caches_and_publishes(self, fetcher, store, recording_bus):
        """✅ Fresh quote is cached and announced once."""
        quote = await fetcher.fetch_and_cache()

        assert await store.get() == quote
        assert recording_bus.published == [(PRICES_TOPIC, PRICE_UPDATED, quote.to_payload())]

    async def test_upstream_error_leaves_cache(self, fetcher, provider, store, sample_quote, recording_bus):
        """✅ UpstreamError propagates; previous cache entry untouched, nothing published."""
        await store.put(sample_quote, 300)
        provider.get_spot_price.side_effect = UpstreamError("HTTP 500")

        with pytest.raises(UpstreamError):
            await fetcher.fetch_and_cache()

        assert await store.get() == sample_quote
        assert recording_bus.published == []

    async def test_publish_failure_keeps_cache(self, provider, store):
        """✅ Broker failure is logged; quote stays cached and is returned."""
        bus = AsyncMock()
        bus.publish.side_effect = BrokerUnavailable("broker down")
        fetcher = QuoteFetcher(provider, store, bus, cache_ttl=300)

        quote = await fetcher.fetch_and_cache()

        assert await store.get() == quote
        bus.publish.assert_awaited_once()


# ============================================================================
# Tests for get_current_quote
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.critical
class TestGetCurrentQuote:
    """Test cache-aside reads."""

    async def test_two_reads_one_fetch(self, fetcher, provider):
        """✅ Second read within TTL served from cache."""
        first = await fetcher.get_current_quote()
        second = await fetcher.get_current_quote()

        assert first == second
        assert provider.get_spot_price.await_count == 1

    async def test_refetch_after_ttl(self, fetcher, provider, clock):
        """✅ Read after TTL expiry triggers exactly one refetch."""
        first = await fetcher.get_current_quote()

        clock.advance(seconds=301)
        second = await fetcher.get_current_quote()
        third = await fetcher.get_current_quote()

        assert provider.get_spot_price.await_count == 2
        assert first.price == Decimal("1950")
        assert second.price == Decimal("1951")
        assert third == second

    async def test_cold_cache_upstream_error(self, fetcher, provider):
        """✅ Cold cache plus upstream failure → UpstreamError."""
        provider.get_spot_price.side_effect = UpstreamError("timeout")

        with pytest.raises(UpstreamError):
            await fetcher.get_current_quote()


# ============================================================================
# Tests for invalidate_and_refetch
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestInvalidateAndRefetch:
    """Test forced refresh."""

    async def test_bypasses_cache(self, fetcher, provider, recording_bus):
        """✅ Forced refresh fetches even with a live cache entry."""
        await fetcher.get_current_quote()
        refreshed = await fetcher.invalidate_and_refetch()

        assert refreshed.price == Decimal("1951")
        assert provider.get_spot_price.await_count == 2
        assert len(recording_bus.payloads(PRICE_UPDATED)) == 2

    async def test_failure_leaves_cache_empty(self, fetcher, provider, store):
        """✅ Refresh failure after invalidation → cache empty, error raised."""
        await fetcher.get_current_quote()
        provider.get_spot_price.side_effect = UpstreamError("HTTP 503")

        with pytest.raises(UpstreamError):
            await fetcher.invalidate_and_refetch()

        assert await store.get() is None

"""Cache-aside price fetcher."""
import logging
from typing import Optional

from pricewatch.core.config import settings
from pricewatch.core.exceptions import UpstreamError
from pricewatch.messaging import PRICE_UPDATED, PRICES_TOPIC, EventBus
from pricewatch.models.quote import Quote
from pricewatch.providers import PriceProvider
from pricewatch.services.quote_store import QuoteStore

logger = logging.getLogger(__name__)


class QuoteFetcher:
    """Fetches quotes from the provider, caches them and announces updates."""

    def __init__(
        self,
        provider: PriceProvider,
        store: QuoteStore,
        bus: EventBus,
        cache_ttl: Optional[int] = None
    ):
        self.provider = provider
        self.store = store
        self.bus = bus
        self.cache_ttl = cache_ttl or settings.quote_cache_ttl_seconds

    async def fetch_and_cache(self) -> Quote:
        """
        Fetch a fresh quote, cache it and publish `price.updated`.

        The cache write and the event are independent side effects: a failed
        publish is logged and the cached quote is kept.

        Raises:
            UpstreamError: If the price source fails (cache left as is)
        """
        try:
            quote = await self.provider.get_spot_price()
        except UpstreamError as e:
            logger.error(f"Error fetching price: {e}")
            raise

        await self.store.put(quote, self.cache_ttl)
        logger.info(f"Price fetched and cached: {quote.price} {quote.currency} from {quote.source}")

        try:
            await self.bus.publish(PRICES_TOPIC, PRICE_UPDATED, quote.to_payload())
        except Exception as e:
            logger.error(f"Failed to publish {PRICE_UPDATED}: {e}", exc_info=True)

        return quote

    async def get_current_quote(self) -> Quote:
        """Return the cached quote, fetching on a miss or after expiry."""
        cached = await self.store.get()
        if cached is not None:
            logger.debug("Price from cache")
            return cached

        logger.info("Price cache empty or expired, fetching")
        return await self.fetch_and_cache()

    async def invalidate_and_refetch(self) -> Quote:
        """Bypass the cache: drop the cached quote and fetch a fresh one."""
        await self.store.invalidate()
        return await self.fetch_and_cache()

"""TTL-bounded single-key quote cache backed by Redis."""
import json
import logging
from datetime import timedelta
from typing import Optional

import redis.asyncio as redis

from pricewatch.core.config import settings
from pricewatch.models.quote import Quote
from pricewatch.utils.time import Clock, format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)


class QuoteStore:
    """Holds at most one live Quote together with its expiry deadline."""

    def __init__(self, redis_client: redis.Redis, key: Optional[str] = None, clock: Clock = utc_now):
        self.redis = redis_client
        self.key = key or settings.quote_cache_key
        self._clock = clock

    async def put(self, quote: Quote, ttl: int) -> None:
        """
        Replace the cached quote.

        Args:
            quote: Quote to cache
            ttl: Lifetime in seconds (must be positive)
        """
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")

        expires_at = self._clock() + timedelta(seconds=ttl)
        record = {
            "quote": {
                "price": str(quote.price),
                "currency": quote.currency,
                "timestamp": format_timestamp(quote.observed_at),
                "source": quote.source
            },
            "expires_at": format_timestamp(expires_at)
        }
        # Single SET with EX: the quote and its deadline are replaced together
        await self.redis.set(self.key, json.dumps(record), ex=ttl)
        logger.debug(f"Cached quote {quote.price} {quote.currency} until {record['expires_at']}")

    async def get(self) -> Optional[Quote]:
        """Return the cached quote, or None if missing or expired."""
        raw = await self.redis.get(self.key)
        if not raw:
            return None

        try:
            record = json.loads(raw)
            expires_at = parse_timestamp(record["expires_at"])
            quote = Quote.from_payload(record["quote"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable cache entry {self.key}: {e}")
            return None

        if self._clock() >= expires_at:
            logger.debug(f"Cached quote expired at {record['expires_at']}")
            return None

        return quote

    async def invalidate(self) -> None:
        """Remove the cached quote unconditionally."""
        await self.redis.delete(self.key)
        logger.info("Price cache invalidated")

"""metals.live spot price provider implementation."""
import httpx
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)
import logging
from pricewatch.providers import PriceProvider, UpstreamError
from pricewatch.models.quote import Quote
from pricewatch.core.config import settings
from pricewatch.utils.time import Clock, utc_now


logger = logging.getLogger(__name__)


class MetalsLiveProvider(PriceProvider):
    """HTTP JSON spot price feed (metals.live response shape by default)."""

    USER_AGENT = "Gold Price Alert Service"

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        price_field: Optional[str] = None,
        currency: Optional[str] = None,
        source: Optional[str] = None,
        clock: Clock = utc_now
    ):
        self.url = url or settings.upstream_price_url
        self.price_field = price_field or settings.upstream_price_field
        self.currency = currency or settings.quote_currency
        self.source = source or settings.upstream_source
        self.clock = clock
        self.client = httpx.AsyncClient(
            timeout=timeout or settings.fetch_timeout_seconds,
            headers={"User-Agent": self.USER_AGENT}
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    async def _make_request(self) -> Any:
        """Make HTTP request with retry logic for transient failures.

        Retries up to 3 times with exponential backoff for:
        - Timeout errors
        - Connection errors

        The last transport error is re-raised once attempts run out.

        Does NOT retry for:
        - HTTP errors (4xx, 5xx) - surfaced as UpstreamError
        """
        response = await self.client.get(self.url)
        response.raise_for_status()
        return response.json()

    async def get_spot_price(self) -> Quote:
        """
        Fetch the spot price and normalize it into a Quote.

        Includes retry logic for transient network failures.
        """
        try:
            data = await self._make_request()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"Price API returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Price API timeout after retries: {str(e)}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Price API connection error: {str(e)}") from e
        except ValueError as e:
            raise UpstreamError(f"Price API returned invalid JSON: {str(e)}") from e

        price = self._parse_price(data)

        return Quote(
            price=price,
            currency=self.currency,
            observed_at=self.clock(),
            source=self.source
        )

    def _parse_price(self, data: Any) -> Decimal:
        """Extract the price from a dict or a list of dicts."""
        candidates = data if isinstance(data, list) else [data]

        for item in candidates:
            if not isinstance(item, dict):
                continue
            for field in (self.price_field, "price"):
                if field in item:
                    return self._to_decimal(item[field])

        raise UpstreamError(
            f"Price API response has no '{self.price_field}' field: {str(data)[:200]}"
        )

    @staticmethod
    def _to_decimal(value: Any) -> Decimal:
        """Validate a raw price value."""
        if isinstance(value, bool):
            raise UpstreamError(f"Price API returned non-numeric price: {value!r}")
        try:
            price = Decimal(str(value))
        except InvalidOperation as e:
            raise UpstreamError(f"Price API returned non-numeric price: {value!r}") from e

        if not price.is_finite() or price <= 0:
            raise UpstreamError(f"Price API returned invalid price: {value!r}")
        return price

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

"""Abstract interface for spot price providers."""
from abc import ABC, abstractmethod
from pricewatch.core.exceptions import UpstreamError
from pricewatch.models.quote import Quote


class PriceProvider(ABC):
    """Abstract base class for upstream price sources."""

    @abstractmethod
    async def get_spot_price(self) -> Quote:
        """
        Fetch the current spot price.

        Returns:
            Quote observed now

        Raises:
            UpstreamError: If the source is unreachable or the response is unusable
        """
        pass

    async def close(self):
        """Release network resources."""
        pass


__all__ = ["PriceProvider", "UpstreamError"]

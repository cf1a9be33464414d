"""Quote model for the latest observed price."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping

from pricewatch.utils.time import format_timestamp, parse_timestamp


@dataclass(frozen=True)
class Quote:
    """Immutable price observation from the upstream feed."""
    price: Decimal
    currency: str
    observed_at: datetime
    source: str

    def to_payload(self) -> Dict[str, Any]:
        """Serialize as a `price.updated` event payload."""
        return {
            "price": float(self.price),
            "currency": self.currency,
            "timestamp": format_timestamp(self.observed_at),
            "source": self.source
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Quote":
        """
        Build a Quote from a `price.updated` payload or a cached record.

        Raises:
            ValueError: If the payload is not an object, or a field is missing or malformed
        """
        if not isinstance(payload, Mapping):
            raise ValueError(f"Quote payload must be an object, got {type(payload).__name__}")

        try:
            price = Decimal(str(payload["price"]))
            timestamp = payload["timestamp"]
        except KeyError as e:
            raise ValueError(f"Quote payload missing field: {e}") from e
        except InvalidOperation as e:
            raise ValueError(f"Quote price is not numeric: {payload.get('price')!r}") from e

        if not price.is_finite():
            raise ValueError(f"Quote price is not finite: {price}")

        return cls(
            price=price,
            currency=str(payload.get("currency", "")),
            observed_at=parse_timestamp(str(timestamp)),
            source=str(payload.get("source", ""))
        )

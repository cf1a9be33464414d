"""Alert domain models and trigger events."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pricewatch.utils.time import format_timestamp


class AlertStatus(str, Enum):
    """Lifecycle state of an alert."""
    ACTIVE = "active"
    PAUSED = "paused"
    DELETED = "deleted"


@dataclass
class Alert:
    """User-defined price threshold alert."""
    id: int
    owner_id: str
    min_price: Optional[Decimal]
    max_price: Optional[Decimal]
    status: AlertStatus
    created_at: datetime
    updated_at: datetime
    last_triggered_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    def is_triggered_by(self, current_price: Decimal) -> bool:
        """Check whether a price crosses either bound (boundaries inclusive)."""
        below_min = self.min_price is not None and current_price <= self.min_price
        above_max = self.max_price is not None and current_price >= self.max_price
        return below_min or above_max

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses."""
        return {
            "id": self.id,
            "userId": self.owner_id,
            "minPrice": _as_number(self.min_price),
            "maxPrice": _as_number(self.max_price),
            "status": self.status.value,
            "lastTriggeredAt": format_timestamp(self.last_triggered_at) if self.last_triggered_at else None,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "deletedAt": format_timestamp(self.deleted_at) if self.deleted_at else None
        }


@dataclass(frozen=True)
class TriggerEvent:
    """Fact that an alert fired for a given price."""
    alert_id: int
    owner_id: str
    current_price: Decimal
    min_price: Optional[Decimal]
    max_price: Optional[Decimal]
    triggered_at: datetime

    def to_payload(self) -> Dict[str, Any]:
        """Serialize as an `alert.triggered` event payload."""
        return {
            "alertId": self.alert_id,
            "userId": self.owner_id,
            "currentPrice": float(self.current_price),
            "minPrice": _as_number(self.min_price),
            "maxPrice": _as_number(self.max_price),
            "triggeredAt": format_timestamp(self.triggered_at)
        }


def _as_number(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None

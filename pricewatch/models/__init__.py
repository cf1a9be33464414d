"""Models package initialization."""
from pricewatch.models.quote import Quote
from pricewatch.models.alert import Alert, AlertStatus, TriggerEvent
from pricewatch.models.alert_record import AlertRecord

__all__ = [
    "Quote",
    "Alert",
    "AlertStatus",
    "TriggerEvent",
    "AlertRecord"
]

"""Messaging package initialization."""
from pricewatch.messaging.backoff import BackoffPolicy
from pricewatch.messaging.event_bus import EventBus, Subscription, topic_matches

# Topics and routing keys exchanged between the fetcher, the evaluator and notifiers
PRICES_TOPIC = "prices"
PRICE_UPDATED = "price.updated"
ALERTS_TOPIC = "alerts"
ALERT_TRIGGERED = "alert.triggered"

__all__ = [
    "BackoffPolicy",
    "EventBus",
    "Subscription",
    "topic_matches",
    "PRICES_TOPIC",
    "PRICE_UPDATED",
    "ALERTS_TOPIC",
    "ALERT_TRIGGERED"
]

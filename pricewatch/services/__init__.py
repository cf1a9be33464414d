"""Services package initialization."""
from pricewatch.services.quote_store import QuoteStore
from pricewatch.services.quote_fetcher import QuoteFetcher
from pricewatch.services.alert_repository import AlertRepository, InMemoryAlertRepository, SqlAlertRepository
from pricewatch.services.alert_registry import AlertRegistry
from pricewatch.services.alert_evaluator import AlertEvaluator

__all__ = [
    "QuoteStore",
    "QuoteFetcher",
    "AlertRepository",
    "InMemoryAlertRepository",
    "SqlAlertRepository",
    "AlertRegistry",
    "AlertEvaluator"
]

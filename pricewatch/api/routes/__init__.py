"""API routes package initialization."""
from pricewatch.api.routes import alerts, health, prices

__all__ = ["alerts", "health", "prices"]

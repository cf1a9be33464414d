"""Core package initialization."""
from pricewatch.core.config import settings
from pricewatch.core.database import Base, create_engine, create_session_factory, init_db
from pricewatch.core.redis import create_redis

__all__ = ["settings", "Base", "create_engine", "create_session_factory", "init_db", "create_redis"]

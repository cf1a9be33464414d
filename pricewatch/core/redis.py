"""Redis client factories for the quote cache and the event broker."""
import logging
import redis.asyncio as redis
from pricewatch.core.config import settings

logger = logging.getLogger(__name__)


def create_redis(url: str | None = None, **kwargs) -> redis.Redis:
    """
    Create a pooled async Redis client.

    Clients are handed to the components that need them instead of being
    shared through module state.

    Args:
        url: Redis connection string (defaults to settings.redis_url)
        **kwargs: Extra connection options (e.g. socket_timeout)
    """
    url = url or settings.redis_url
    logger.debug(f"Creating Redis client for {mask_redis_url(url)}")
    return redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
        **kwargs
    )


def mask_redis_url(url: str) -> str:
    """Mask password in a Redis URL for safe logging."""
    if "@" not in url:
        return url
    scheme, _, rest = url.partition("://")
    credentials, _, host = rest.rpartition("@")
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:****@{host}"

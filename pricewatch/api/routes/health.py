"""Health check endpoints for the API and its backing services."""
from fastapi import APIRouter, Depends
from redis.exceptions import RedisError
import logging

from pricewatch.api.deps import get_service
from pricewatch.main import PriceWatchService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "pricewatch"}


@router.get("/health/dependencies")
async def check_dependencies(service: PriceWatchService = Depends(get_service)):
    """
    Ping the quote cache and the event broker.

    Example response:
    {
        "status": "healthy",
        "cache": "ok",
        "broker": "ok"
    }
    """
    checks = {}

    try:
        await service.store.redis.ping()
        checks["cache"] = "ok"
    except (RedisError, OSError) as e:
        logger.error(f"Quote cache health check failed: {e}")
        checks["cache"] = f"error: {e}"

    if not service.bus.connected:
        checks["broker"] = "disconnected"
    else:
        try:
            client = await service.bus.connect()
            await client.ping()
            checks["broker"] = "ok"
        except (RedisError, OSError) as e:
            logger.error(f"Event broker health check failed: {e}")
            checks["broker"] = f"error: {e}"

    healthy = all(value == "ok" for value in checks.values())
    return {"status": "healthy" if healthy else "unhealthy", **checks}

"""Price read and manual refresh API routes."""
from fastapi import APIRouter, Depends, HTTPException, status
import logging

from pricewatch.api.deps import get_fetcher
from pricewatch.core.exceptions import UpstreamError
from pricewatch.services import QuoteFetcher

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/prices", tags=["prices"])


@router.get("/current")
async def get_current_price(fetcher: QuoteFetcher = Depends(get_fetcher)):
    """Get the current price (served from cache while fresh)."""
    try:
        quote = await fetcher.get_current_quote()
    except UpstreamError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e)
        )

    return {"success": True, "data": quote.to_payload()}


@router.post("/refresh")
async def refresh_price(fetcher: QuoteFetcher = Depends(get_fetcher)):
    """Bypass the cache and fetch a fresh price (operations/testing)."""
    try:
        quote = await fetcher.invalidate_and_refetch()
    except UpstreamError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e)
        )

    logger.info(f"Price refreshed manually: {quote.price}")
    return {
        "success": True,
        "data": quote.to_payload(),
        "message": "Price refreshed successfully"
    }

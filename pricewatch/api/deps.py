"""Request dependencies resolving the running service's components."""
from fastapi import Depends, Header, HTTPException, Request, status

from pricewatch.main import PriceWatchService
from pricewatch.services import AlertRegistry, QuoteFetcher


def get_service(request: Request) -> PriceWatchService:
    """The service instance attached at startup."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting"
        )
    return service


def get_fetcher(service: PriceWatchService = Depends(get_service)) -> QuoteFetcher:
    return service.fetcher


def get_registry(service: PriceWatchService = Depends(get_service)) -> AlertRegistry:
    return service.registry


def get_owner_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    """
    Caller identity.

    Token verification happens upstream (gateway); it forwards the user id.
    """
    owner_id = x_user_id.strip()
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user id"
        )
    return owner_id

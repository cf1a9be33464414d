"""Alert management API routes."""
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from pricewatch.api.deps import get_owner_id, get_registry
from pricewatch.core.exceptions import NotFound, ValidationError
from pricewatch.models.alert import Alert
from pricewatch.services import AlertRegistry

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


class CreateAlertRequest(BaseModel):
    """Request to create an alert; at least one bound is required."""
    model_config = ConfigDict(populate_by_name=True)

    min_price: Optional[Decimal] = Field(default=None, alias="minPrice")
    max_price: Optional[Decimal] = Field(default=None, alias="maxPrice")


class UpdateAlertRequest(BaseModel):
    """Partial update; omitted fields are unchanged, null clears a bound."""
    model_config = ConfigDict(populate_by_name=True)

    min_price: Optional[Decimal] = Field(default=None, alias="minPrice")
    max_price: Optional[Decimal] = Field(default=None, alias="maxPrice")
    status: Optional[str] = None


async def _get_owned_alert(registry: AlertRegistry, alert_id: int, owner_id: str) -> Alert:
    """Fetch an alert, hiding other users' alerts as not found."""
    try:
        alert = await registry.get(alert_id)
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    if alert.owner_id != owner_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Alert {alert_id} not found")
    return alert


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_alert(
    request: CreateAlertRequest,
    owner_id: str = Depends(get_owner_id),
    registry: AlertRegistry = Depends(get_registry)
):
    """Create a price alert for the calling user."""
    try:
        alert = await registry.create(owner_id, request.min_price, request.max_price)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {"success": True, "data": alert.to_dict()}


@router.get("")
async def list_alerts(
    owner_id: str = Depends(get_owner_id),
    registry: AlertRegistry = Depends(get_registry)
):
    """List the calling user's alerts (deleted alerts excluded)."""
    alerts = await registry.list_by_owner(owner_id)
    return {
        "success": True,
        "data": [alert.to_dict() for alert in alerts],
        "total": len(alerts)
    }


@router.get("/{alert_id}")
async def get_alert(
    alert_id: int,
    owner_id: str = Depends(get_owner_id),
    registry: AlertRegistry = Depends(get_registry)
):
    """Get one alert."""
    alert = await _get_owned_alert(registry, alert_id, owner_id)
    return {"success": True, "data": alert.to_dict()}


@router.put("/{alert_id}")
async def update_alert(
    alert_id: int,
    request: UpdateAlertRequest,
    owner_id: str = Depends(get_owner_id),
    registry: AlertRegistry = Depends(get_registry)
):
    """Update bounds or pause/resume an alert."""
    await _get_owned_alert(registry, alert_id, owner_id)

    patch = request.model_dump(exclude_unset=True, by_alias=False)
    try:
        alert = await registry.update(alert_id, patch)
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {"success": True, "data": alert.to_dict()}


@router.delete("/{alert_id}")
async def delete_alert(
    alert_id: int,
    owner_id: str = Depends(get_owner_id),
    registry: AlertRegistry = Depends(get_registry)
):
    """Soft delete an alert."""
    await _get_owned_alert(registry, alert_id, owner_id)

    try:
        alert = await registry.soft_delete(alert_id)
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return {"success": True, "data": alert.to_dict(), "message": "Alert deleted"}

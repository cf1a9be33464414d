"""Alert registry: validated CRUD over the alert repository."""
import logging
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional

from pricewatch.core.exceptions import NotFound, ValidationError
from pricewatch.models.alert import Alert, AlertStatus
from pricewatch.services.alert_repository import AlertRepository
from pricewatch.utils.time import Clock, utc_now

logger = logging.getLogger(__name__)

# Fields a patch may change
PATCHABLE_FIELDS = {"min_price", "max_price", "status"}

# Statuses reachable through update(); deletion goes through soft_delete()
UPDATABLE_STATUSES = {AlertStatus.ACTIVE, AlertStatus.PAUSED}


def parse_bound(name: str, value: Any) -> Optional[Decimal]:
    """
    Validate one price bound.

    Raises:
        ValidationError: If the value is not a finite number >= 0
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        bound = Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"{name} must be a number") from e
    if not bound.is_finite():
        raise ValidationError(f"{name} must be a finite number")
    if bound < 0:
        raise ValidationError(f"{name} must be greater than or equal to 0")
    return bound


def validate_bounds(min_price: Any, max_price: Any) -> tuple[Optional[Decimal], Optional[Decimal]]:
    """Validate a bound pair: each >= 0 and at least one set."""
    parsed_min = parse_bound("min_price", min_price)
    parsed_max = parse_bound("max_price", max_price)
    if parsed_min is None and parsed_max is None:
        raise ValidationError("At least one of min_price or max_price is required")
    return parsed_min, parsed_max


class AlertRegistry:
    """Service for alert management."""

    def __init__(self, repository: AlertRepository, clock: Clock = utc_now):
        self.repository = repository
        self._clock = clock

    async def create(self, owner_id: str, min_price: Any = None, max_price: Any = None) -> Alert:
        """
        Create an active alert.

        Args:
            owner_id: User ID owning the alert
            min_price: Trigger when price falls to or below this
            max_price: Trigger when price rises to or above this

        Raises:
            ValidationError: If the bounds are invalid
        """
        if not owner_id:
            raise ValidationError("owner_id is required")
        parsed_min, parsed_max = validate_bounds(min_price, max_price)

        now = self._clock()
        alert = await self.repository.add(Alert(
            id=0,
            owner_id=owner_id,
            min_price=parsed_min,
            max_price=parsed_max,
            status=AlertStatus.ACTIVE,
            created_at=now,
            updated_at=now
        ))
        logger.info(f"Alert {alert.id} created for {owner_id}: min={parsed_min} max={parsed_max}")
        return alert

    async def list_by_owner(self, owner_id: str, include_deleted: bool = False) -> List[Alert]:
        """Get an owner's alerts, hiding soft-deleted ones unless asked."""
        alerts = await self.repository.list_by_owner(owner_id)
        if not include_deleted:
            alerts = [a for a in alerts if a.status != AlertStatus.DELETED]
        logger.debug(f"Retrieved {len(alerts)} alerts for user {owner_id}")
        return alerts

    async def get(self, alert_id: int) -> Alert:
        """
        Get a live alert.

        Raises:
            NotFound: If absent or soft-deleted
        """
        alert = await self.repository.get(alert_id)
        if alert is None or alert.status == AlertStatus.DELETED:
            raise NotFound(alert_id)
        return alert

    async def update(self, alert_id: int, patch: Mapping[str, Any]) -> Alert:
        """
        Apply a partial update.

        Patch keys: min_price / max_price (None clears the bound) and status
        (active or paused). The bounds invariant is checked after merging.

        Raises:
            NotFound: If absent or soft-deleted
            ValidationError: If the patch or the merged bounds are invalid
        """
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        alert = await self.get(alert_id)

        min_price = patch["min_price"] if "min_price" in patch else alert.min_price
        max_price = patch["max_price"] if "max_price" in patch else alert.max_price
        parsed_min, parsed_max = validate_bounds(min_price, max_price)

        status = alert.status
        if "status" in patch:
            try:
                status = AlertStatus(patch["status"])
            except ValueError as e:
                raise ValidationError(f"Invalid status: {patch['status']!r}") from e
            if status not in UPDATABLE_STATUSES:
                raise ValidationError("status must be 'active' or 'paused'")

        updated = await self.repository.save(replace(
            alert,
            min_price=parsed_min,
            max_price=parsed_max,
            status=status,
            updated_at=self._clock()
        ))
        logger.info(f"Alert {alert_id} updated: min={parsed_min} max={parsed_max} status={status.value}")
        return updated

    async def soft_delete(self, alert_id: int) -> Alert:
        """
        Mark an alert deleted, keeping the record.

        Raises:
            NotFound: If absent or already deleted
        """
        alert = await self.get(alert_id)
        now = self._clock()
        deleted = await self.repository.save(replace(
            alert,
            status=AlertStatus.DELETED,
            deleted_at=now,
            updated_at=now
        ))
        logger.info(f"Alert {alert_id} soft deleted")
        return deleted

    async def list_active(self) -> List[Alert]:
        """All active alerts, for evaluation."""
        return await self.repository.list_by_status(AlertStatus.ACTIVE)

"""Alert persistence interface and its in-memory and SQL backends."""
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from itertools import count
from typing import Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pricewatch.models.alert import Alert, AlertStatus
from pricewatch.models.alert_record import AlertRecord
from pricewatch.utils.time import ensure_utc


class AlertRepository(ABC):
    """Storage for alerts; the registry and evaluator depend only on this."""

    @abstractmethod
    async def add(self, alert: Alert) -> Alert:
        """
        Store a new alert.

        Args:
            alert: Alert whose id is ignored

        Returns:
            The stored alert with its assigned id
        """
        pass

    @abstractmethod
    async def get(self, alert_id: int) -> Optional[Alert]:
        """Get an alert by id regardless of status."""
        pass

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> List[Alert]:
        """All alerts of an owner, oldest first."""
        pass

    @abstractmethod
    async def list_by_status(self, status: AlertStatus) -> List[Alert]:
        """All alerts in a status, oldest first."""
        pass

    @abstractmethod
    async def save(self, alert: Alert) -> Alert:
        """
        Overwrite an existing alert.

        Raises:
            KeyError: If the alert was never added
        """
        pass

    @abstractmethod
    async def mark_triggered(self, alert_id: int, triggered_at: datetime) -> Optional[Alert]:
        """
        Record a trigger on an alert that is still active.

        Only last_triggered_at and updated_at are written; every other field
        keeps its current stored value.

        Returns:
            The updated alert, or None if it is missing or no longer active
        """
        pass


class InMemoryAlertRepository(AlertRepository):
    """Process-local repository; stores copies so callers cannot alias state."""

    def __init__(self):
        self._alerts: Dict[int, Alert] = {}
        self._ids = count(1)

    async def add(self, alert: Alert) -> Alert:
        stored = replace(alert, id=next(self._ids))
        self._alerts[stored.id] = stored
        return replace(stored)

    async def get(self, alert_id: int) -> Optional[Alert]:
        alert = self._alerts.get(alert_id)
        return replace(alert) if alert else None

    async def list_by_owner(self, owner_id: str) -> List[Alert]:
        return [replace(a) for a in self._alerts.values() if a.owner_id == owner_id]

    async def list_by_status(self, status: AlertStatus) -> List[Alert]:
        return [replace(a) for a in self._alerts.values() if a.status == status]

    async def save(self, alert: Alert) -> Alert:
        if alert.id not in self._alerts:
            raise KeyError(alert.id)
        self._alerts[alert.id] = replace(alert)
        return replace(alert)

    async def mark_triggered(self, alert_id: int, triggered_at: datetime) -> Optional[Alert]:
        stored = self._alerts.get(alert_id)
        if stored is None or stored.status != AlertStatus.ACTIVE:
            return None
        stored = replace(stored, last_triggered_at=triggered_at, updated_at=triggered_at)
        self._alerts[alert_id] = stored
        return replace(stored)


class SqlAlertRepository(AlertRepository):
    """Repository backed by the `alerts` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def add(self, alert: Alert) -> Alert:
        record = AlertRecord(
            owner_id=alert.owner_id,
            min_price=alert.min_price,
            max_price=alert.max_price,
            status=alert.status.value,
            last_triggered_at=alert.last_triggered_at,
            created_at=alert.created_at,
            updated_at=alert.updated_at,
            deleted_at=alert.deleted_at
        )
        async with self.session_factory() as db:
            db.add(record)
            await db.commit()
            await db.refresh(record)
            return _to_domain(record)

    async def get(self, alert_id: int) -> Optional[Alert]:
        async with self.session_factory() as db:
            record = await db.get(AlertRecord, alert_id)
            return _to_domain(record) if record else None

    async def list_by_owner(self, owner_id: str) -> List[Alert]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(AlertRecord)
                .where(AlertRecord.owner_id == owner_id)
                .order_by(AlertRecord.id)
            )
            return [_to_domain(r) for r in result.scalars().all()]

    async def list_by_status(self, status: AlertStatus) -> List[Alert]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(AlertRecord)
                .where(AlertRecord.status == status.value)
                .order_by(AlertRecord.id)
            )
            return [_to_domain(r) for r in result.scalars().all()]

    async def save(self, alert: Alert) -> Alert:
        async with self.session_factory() as db:
            record = await db.get(AlertRecord, alert.id)
            if record is None:
                raise KeyError(alert.id)

            record.min_price = alert.min_price
            record.max_price = alert.max_price
            record.status = alert.status.value
            record.last_triggered_at = alert.last_triggered_at
            record.updated_at = alert.updated_at
            record.deleted_at = alert.deleted_at

            await db.commit()
            await db.refresh(record)
            return _to_domain(record)

    async def mark_triggered(self, alert_id: int, triggered_at: datetime) -> Optional[Alert]:
        async with self.session_factory() as db:
            # Conditional on status so a concurrent pause/delete is never overwritten
            result = await db.execute(
                update(AlertRecord)
                .where(AlertRecord.id == alert_id)
                .where(AlertRecord.status == AlertStatus.ACTIVE.value)
                .values(last_triggered_at=triggered_at, updated_at=triggered_at)
            )
            await db.commit()
            if result.rowcount == 0:
                return None

            record = await db.get(AlertRecord, alert_id)
            return _to_domain(record) if record else None


def _to_domain(record: AlertRecord) -> Alert:
    """Map a row to an Alert, restoring UTC on naive timestamps."""
    return Alert(
        id=record.id,
        owner_id=record.owner_id,
        min_price=record.min_price,
        max_price=record.max_price,
        status=AlertStatus(record.status),
        created_at=ensure_utc(record.created_at),
        updated_at=ensure_utc(record.updated_at),
        last_triggered_at=ensure_utc(record.last_triggered_at) if record.last_triggered_at else None,
        deleted_at=ensure_utc(record.deleted_at) if record.deleted_at else None
    )

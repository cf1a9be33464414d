"""Alert table model for the SQL repository backend."""
from sqlalchemy import Column, String, DateTime, Integer, Numeric
from datetime import datetime, timezone
from pricewatch.core.database import Base


class AlertRecord(Base):
    """Persisted form of an Alert."""

    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String, nullable=False, index=True)
    min_price = Column(Numeric(18, 4), nullable=True)
    max_price = Column(Numeric(18, 4), nullable=True)
    status = Column(String, default="active", nullable=False, index=True)
    last_triggered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

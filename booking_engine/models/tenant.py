# booking_engine/models/tenant.py
"""
Tenant reference data.

Tenants are created and edited by the surrounding platform; the engine only
reads the industry type, timezone and operating hours.
"""

from typing import Any, Optional

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import IndustryType
from ..database import Base
from .types import JSONType

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class Tenant(Base):
    """A business operating one vertical (restaurant, salon, ...)."""

    __tablename__ = "tenants"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(255), nullable=False)
    industry_type = Column(String(30), nullable=False, default=IndustryType.SALON.value)
    timezone = Column(String(64), nullable=False, default="UTC")

    # {"monday": {"is_open": true, "open": "09:00", "close": "17:00"}, ...}
    operating_hours = Column(JSONType, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    resources = relationship("BookableResource", back_populates="tenant")

    def hours_for_weekday(self, weekday: int) -> Optional[dict[str, Any]]:
        """Operating-hours entry for a weekday (0=Monday), or None if not configured."""
        hours = self.operating_hours or {}
        entry = hours.get(WEEKDAY_NAMES[weekday])
        return dict(entry) if isinstance(entry, dict) else None

    def __repr__(self) -> str:
        return f"<Tenant {self.id}: {self.name} ({self.industry_type})>"

# booking_engine/models/resource.py
"""
Bookable resources and their recurring weekly working windows.

A resource is anything a booking can occupy: a staff member, a table, a
room or a venue. Resources are never deleted, only deactivated, so that
historical bookings keep a valid reference.
"""

from enum import Enum
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import JSONType


class ResourceStatus(str, Enum):
    """Resource availability status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"


class ResourceType(str, Enum):
    """What kind of thing the resource is."""

    STAFF = "staff"
    TABLE = "table"
    ROOM = "room"
    VENUE = "venue"
    EQUIPMENT = "equipment"
    OTHER = "other"


class BookableResource(Base):
    """Schedulable entity with capacity bounds, capability tags and quality signals."""

    __tablename__ = "bookable_resources"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    resource_type = Column(String(20), nullable=False, default=ResourceType.STAFF.value)
    role = Column(String(50), nullable=True)
    specializations = Column(JSONType, nullable=True)

    # Capacity bounds (party size for tables/rooms, 1..1 for staff)
    min_capacity = Column(Integer, nullable=False, default=1)
    max_capacity = Column(Integer, nullable=False, default=1)

    # Maximum number of active bookings per day; NULL means unlimited
    max_concurrent_assignments = Column(Integer, nullable=True)
    buffer_minutes = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default=ResourceStatus.ACTIVE.value, index=True)
    is_reservable = Column(Boolean, nullable=False, default=True)

    # Ranking signals
    rating = Column(Float, nullable=True)
    experience_years = Column(Integer, nullable=True)
    commission_rate = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    tenant = relationship("Tenant", back_populates="resources")
    working_windows = relationship(
        "WeeklyWorkingWindow",
        back_populates="resource",
        cascade="all, delete-orphan",
        order_by="WeeklyWorkingWindow.weekday",
    )

    __table_args__ = (
        CheckConstraint("min_capacity >= 0", name="ck_resources_min_capacity"),
        CheckConstraint("max_capacity >= min_capacity", name="ck_resources_capacity_range"),
        CheckConstraint("buffer_minutes >= 0", name="ck_resources_buffer_non_negative"),
        CheckConstraint(
            "status IN ('active', 'inactive', 'on_leave')",
            name="ck_resources_status",
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == ResourceStatus.ACTIVE.value

    @property
    def capability_tags(self) -> set[str]:
        tags = {str(tag).lower() for tag in (self.specializations or [])}
        return tags

    def deactivate(self) -> None:
        self.status = ResourceStatus.INACTIVE.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "resource_type": self.resource_type,
            "role": self.role,
            "specializations": list(self.specializations or []),
            "min_capacity": self.min_capacity,
            "max_capacity": self.max_capacity,
            "max_concurrent_assignments": self.max_concurrent_assignments,
            "buffer_minutes": self.buffer_minutes,
            "status": self.status,
            "is_reservable": self.is_reservable,
        }

    def __repr__(self) -> str:
        return f"<BookableResource {self.id}: {self.name} [{self.status}]>"


class WeeklyWorkingWindow(Base):
    """Default working hours for one weekday (0=Monday), with optional breaks."""

    __tablename__ = "weekly_working_windows"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    resource_id = Column(
        String(26), ForeignKey("bookable_resources.id", ondelete="CASCADE"), nullable=False
    )
    weekday = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    # [{"start": "13:00", "end": "14:00"}]
    breaks = Column(JSONType, nullable=True)

    resource = relationship("BookableResource", back_populates="working_windows")

    __table_args__ = (
        UniqueConstraint("resource_id", "weekday", name="uq_working_window_resource_weekday"),
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_working_window_weekday"),
    )

    def __repr__(self) -> str:
        return (
            f"<WeeklyWorkingWindow {self.resource_id} weekday={self.weekday} "
            f"{self.start_time}-{self.end_time}>"
        )


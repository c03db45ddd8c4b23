# booking_engine/models/schedule.py
"""
Shift templates and dated shift assignments.

An assignment pins a resource to a template for one date and supersedes the
resource's weekday window. Templates of type ``leave`` mark a day off.
"""

from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Time, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import JSONType


class ShiftType(str, Enum):
    REGULAR = "regular"
    LEAVE = "leave"


class ShiftTemplate(Base):
    """Reusable shift definition (start/end/breaks) owned by a tenant."""

    __tablename__ = "shift_templates"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    shift_type = Column(String(20), nullable=False, default=ShiftType.REGULAR.value)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    breaks = Column(JSONType, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_leave(self) -> bool:
        return self.shift_type == ShiftType.LEAVE.value

    def __repr__(self) -> str:
        return f"<ShiftTemplate {self.id}: {self.name} ({self.shift_type})>"


class ShiftAssignment(Base):
    """A resource working a template on a specific date."""

    __tablename__ = "shift_assignments"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    resource_id = Column(
        String(26), ForeignKey("bookable_resources.id"), nullable=False, index=True
    )
    template_id = Column(String(26), ForeignKey("shift_templates.id"), nullable=False)
    shift_date = Column(Date, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    template = relationship("ShiftTemplate", lazy="joined")

    __table_args__ = (
        UniqueConstraint("resource_id", "shift_date", name="uq_shift_assignment_resource_date"),
    )

    def __repr__(self) -> str:
        return f"<ShiftAssignment {self.resource_id} {self.shift_date} template={self.template_id}>"

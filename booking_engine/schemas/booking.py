# booking_engine/schemas/booking.py
"""
Booking request schemas.

A BookingRequest is transient input: it is either rejected with a
ValidationResult or becomes a Booking. It names its resource explicitly, or
leaves the choice to the resource matcher via request_type/capability_tags.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from ..core.config import settings
from ..core.enums import ActorRole
from ..utils.time_window import TimeWindow
from ._strict_base import StrictRequestModel


class BookingRequest(StrictRequestModel):
    """Input for validate/create."""

    tenant_id: str = Field(..., min_length=1)

    # Explicit target, or auto-assignment inputs
    resource_id: Optional[str] = None
    request_type: Optional[str] = Field(None, max_length=50)
    capability_tags: List[str] = Field(default_factory=list)
    preferred_resource_id: Optional[str] = None

    start: datetime = Field(..., description="Tenant wall-clock start")
    end: Optional[datetime] = Field(None, description="Exclusive end; derived from duration if omitted")
    duration_minutes: Optional[int] = Field(None, ge=1, le=24 * 60)

    party_size: int = Field(1, ge=1)
    requester_name: Optional[str] = Field(None, max_length=255)
    requester_phone: Optional[str] = Field(None, max_length=50)
    requester_email: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=2000)
    priority: Optional[str] = Field(None, max_length=20)
    total_price: Optional[Decimal] = Field(None, ge=0)

    actor_role: ActorRole = ActorRole.CUSTOMER
    actor_id: Optional[str] = None

    @field_validator("capability_tags")
    @classmethod
    def _normalize_tags(cls, v: List[str]) -> List[str]:
        return sorted({tag.strip().lower() for tag in v if tag and tag.strip()})

    @field_validator("start", "end")
    @classmethod
    def _wall_clock(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Bookings are stored in tenant wall-clock time; drop any offset."""
        if v is not None and v.tzinfo is not None:
            return v.replace(tzinfo=None)
        return v

    @model_validator(mode="after")
    def _resolve_window(self) -> "BookingRequest":
        if self.end is None:
            minutes = self.duration_minutes or settings.default_service_duration_minutes
            # object.__setattr__ avoids re-running validation on assignment
            object.__setattr__(self, "end", self.start + timedelta(minutes=minutes))
        if self.end <= self.start:
            raise ValueError("end must be after start")
        if self.resource_id is None and self.request_type is None and not self.capability_tags:
            raise ValueError("Provide resource_id, or request_type/capability_tags for matching")
        return self

    @property
    def window(self) -> TimeWindow:
        assert self.end is not None
        return TimeWindow(self.start, self.end)

    def audit_payload(self) -> dict:
        return self.model_dump(mode="json", exclude={"actor_role", "actor_id"})


class RescheduleRequest(StrictRequestModel):
    """Move an existing booking to a new window, keeping its duration by default."""

    new_start: datetime
    new_end: Optional[datetime] = None
    reason: Optional[str] = Field(None, max_length=1000)
    actor_role: ActorRole = ActorRole.CUSTOMER
    actor_id: Optional[str] = None

    @field_validator("new_start", "new_end")
    @classmethod
    def _wall_clock(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is not None:
            return v.replace(tzinfo=None)
        return v

    @model_validator(mode="after")
    def _check_order(self) -> "RescheduleRequest":
        if self.new_end is not None and self.new_end <= self.new_start:
            raise ValueError("new_end must be after new_start")
        return self

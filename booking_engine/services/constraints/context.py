# booking_engine/services/constraints/context.py
"""
What a validation sees: the operation being attempted plus the data the
rules need, loaded once per call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from ...core.enums import ActorRole, OperationType
from ...utils.time_window import TimeWindow

if TYPE_CHECKING:
    from ...models.booking import Booking
    from ...models.resource import BookableResource
    from ...models.tenant import Tenant
    from ...schemas.booking import BookingRequest
    from ...schemas.matching import MatchResult
    from ..schedule_service import WorkingWindow
    from .catalog import RuleCatalog


@dataclass
class ValidationOperation:
    """A new booking request or a lifecycle mutation against an existing booking."""

    operation_type: OperationType
    tenant: "Tenant"
    window: Optional[TimeWindow] = None
    resource_id: Optional[str] = None
    party_size: int = 1
    booking: Optional["Booking"] = None
    request_type: Optional[str] = None
    capability_tags: List[str] = field(default_factory=list)
    preferred_resource_id: Optional[str] = None
    actor_role: ActorRole = ActorRole.CUSTOMER

    @classmethod
    def for_request(
        cls,
        request: "BookingRequest",
        tenant: "Tenant",
        operation_type: OperationType = OperationType.CREATE,
    ) -> "ValidationOperation":
        return cls(
            operation_type=operation_type,
            tenant=tenant,
            window=request.window,
            resource_id=request.resource_id,
            party_size=request.party_size,
            request_type=request.request_type,
            capability_tags=list(request.capability_tags),
            preferred_resource_id=request.preferred_resource_id,
            actor_role=request.actor_role,
        )

    @classmethod
    def for_booking(
        cls,
        booking: "Booking",
        tenant: "Tenant",
        operation_type: OperationType,
        *,
        new_window: Optional[TimeWindow] = None,
        actor_role: ActorRole = ActorRole.CUSTOMER,
    ) -> "ValidationOperation":
        """Mutation of an existing booking; reschedules carry the new window."""
        return cls(
            operation_type=operation_type,
            tenant=tenant,
            window=new_window or TimeWindow(booking.start_at, booking.end_at),
            resource_id=booking.resource_id,
            party_size=booking.party_size,
            booking=booking,
            request_type=booking.request_type,
            actor_role=actor_role,
        )

    @property
    def is_booking_write(self) -> bool:
        return self.operation_type in (OperationType.CREATE, OperationType.RESCHEDULE)


@dataclass
class ValidationContext:
    operation: ValidationOperation
    catalog: "RuleCatalog"
    now: datetime
    resource: Optional["BookableResource"] = None
    match: Optional["MatchResult"] = None
    working: Optional["WorkingWindow"] = None
    has_schedule: bool = False
    buffer_minutes: int = 0
    conflicts: List["Booking"] = field(default_factory=list)
    day_assignment_count: int = 0

    @property
    def tenant(self) -> "Tenant":
        return self.operation.tenant

    @property
    def window(self) -> Optional[TimeWindow]:
        return self.operation.window

    @property
    def booking(self) -> Optional["Booking"]:
        return self.operation.booking

    @property
    def party_size(self) -> int:
        return self.operation.party_size

    @property
    def operation_type(self) -> OperationType:
        return self.operation.operation_type

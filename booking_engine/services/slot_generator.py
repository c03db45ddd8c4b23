# booking_engine/services/slot_generator.py
"""
Slot Generator.

Walks a resource's working window in fixed granularity steps and labels each
candidate [start, start + duration) as available, booked or blocked. Slots
are recomputed on every call; the authoritative conflict check is always
against active bookings.
"""

from datetime import date, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ValidationException
from ..models.booking import Booking
from ..models.resource import BookableResource
from ..repositories.factory import RepositoryFactory
from ..schemas.slot import Slot, SlotStatus
from ..utils.time_window import TimeWindow, any_overlap, covered_by
from .base import BaseService
from .schedule_service import ScheduleService

logger = logging.getLogger(__name__)


class SlotGenerator(BaseService):
    """Computes bookable slots and answers point availability questions."""

    def __init__(self, db: Session, schedule_service: Optional[ScheduleService] = None):
        super().__init__(db)
        self.schedule_service = schedule_service or ScheduleService(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("generate_slots")
    def generate_slots(
        self,
        resource: BookableResource,
        day: date,
        service_duration_minutes: int,
        granularity_minutes: Optional[int] = None,
        buffer_minutes: Optional[int] = None,
    ) -> List[Slot]:
        """
        Ordered slots for a resource/date.

        Args:
            resource: Resource to generate slots for
            day: Date in tenant wall-clock time
            service_duration_minutes: Length of each candidate
            granularity_minutes: Step between candidate starts (settings default)
            buffer_minutes: Buffer around each candidate (resource default)

        Returns:
            Slots ordered by start; empty when the resource does not work that day
            or its breaks cover the whole working window

        Raises:
            ValidationException: If duration or granularity is not positive
        """
        granularity = granularity_minutes or settings.slot_granularity_minutes
        if service_duration_minutes <= 0 or granularity <= 0:
            raise ValidationException(
                "Service duration and granularity must be positive",
                details={"duration": service_duration_minutes, "granularity": granularity},
            )
        buffer = resource.buffer_minutes if buffer_minutes is None else buffer_minutes

        working = self.schedule_service.working_window(resource, day)
        if working is None or working.window.is_empty:
            return []
        if covered_by(working.window, working.breaks):
            return []

        occupied = [
            TimeWindow(b.occupied_start, b.occupied_end)
            for b in self.conflicting_bookings(resource.id, working.window, buffer)
        ]

        duration = timedelta(minutes=service_duration_minutes)
        step = timedelta(minutes=granularity)
        slots: List[Slot] = []
        current = working.window.start
        while current + duration <= working.window.end:
            candidate = TimeWindow(current, current + duration)
            if any_overlap(candidate, working.breaks):
                status = SlotStatus.BLOCKED
            elif any_overlap(candidate.expand(buffer), occupied):
                status = SlotStatus.BOOKED
            else:
                status = SlotStatus.AVAILABLE
            slots.append(
                Slot(resource_id=resource.id, start=candidate.start, end=candidate.end, status=status)
            )
            current += step

        self.logger.debug(
            "Generated %d slots for resource %s on %s (%d available)",
            len(slots),
            resource.id,
            day,
            sum(1 for slot in slots if slot.is_available),
        )
        return slots

    def conflicting_bookings(
        self,
        resource_id: str,
        window: TimeWindow,
        buffer_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """Active bookings whose occupied window overlaps the buffered request."""
        occupied = window.expand(buffer_minutes)
        return self.booking_repository.find_overlapping(
            resource_id, occupied.start, occupied.end, exclude_booking_id=exclude_booking_id
        )

    def is_window_available(
        self,
        resource: BookableResource,
        window: TimeWindow,
        buffer_minutes: Optional[int] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """True when no active booking conflicts with the buffered window."""
        buffer = resource.buffer_minutes if buffer_minutes is None else buffer_minutes
        return not self.conflicting_bookings(resource.id, window, buffer, exclude_booking_id)

# booking_engine/schemas/slot.py
"""Derived slot value objects. Slots are never persisted."""

from datetime import datetime
from enum import Enum

from ._strict_base import StrictModel


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"  # overlaps an active booking (after buffer)
    BLOCKED = "blocked"  # intersects a break


class Slot(StrictModel):
    resource_id: str
    start: datetime
    end: datetime
    status: SlotStatus

    @property
    def is_available(self) -> bool:
        return self.status == SlotStatus.AVAILABLE

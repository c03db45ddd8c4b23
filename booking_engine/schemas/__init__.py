from .booking import BookingRequest, RescheduleRequest
from .matching import MatchResult, RankedResource
from .slot import Slot, SlotStatus
from .validation import FinancialImpact, ValidationResult, Violation

__all__ = [
    "BookingRequest",
    "FinancialImpact",
    "MatchResult",
    "RankedResource",
    "RescheduleRequest",
    "Slot",
    "SlotStatus",
    "ValidationResult",
    "Violation",
]

# booking_engine/models/__init__.py
"""
Database models for the booking engine.

Importing this package registers every table on Base.metadata.
"""

from .booking import ACTIVE_STATUSES, Booking, BookingStatus
from .booking_operation import BookingOperation
from .constraint import ConstraintRule, TenantConstraintOverride
from .resource import BookableResource, ResourceStatus, ResourceType, WeeklyWorkingWindow
from .schedule import ShiftAssignment, ShiftTemplate, ShiftType
from .tenant import Tenant

__all__ = [
    "ACTIVE_STATUSES",
    "BookableResource",
    "Booking",
    "BookingOperation",
    "BookingStatus",
    "ConstraintRule",
    "ResourceStatus",
    "ResourceType",
    "ShiftAssignment",
    "ShiftTemplate",
    "ShiftType",
    "Tenant",
    "TenantConstraintOverride",
    "WeeklyWorkingWindow",
]

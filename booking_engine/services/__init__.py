# booking_engine/services/__init__.py
"""
Service layer: business logic and transaction ownership.
"""

from .base import BaseService
from .booking_lifecycle_service import BookingLifecycleService
from .constraints import ConstraintValidator, RuleCatalog, load_rule_catalog
from .resource_matcher import ResourceMatcher
from .schedule_service import ScheduleService
from .slot_generator import SlotGenerator

__all__ = [
    "BaseService",
    "BookingLifecycleService",
    "ConstraintValidator",
    "ResourceMatcher",
    "RuleCatalog",
    "ScheduleService",
    "SlotGenerator",
    "load_rule_catalog",
]

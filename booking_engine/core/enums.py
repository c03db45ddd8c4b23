# booking_engine/core/enums.py
"""
Core enums for the booking engine.

Status enums that belong to a single table live next to their model
(see models.booking.BookingStatus); the ones here are shared across
models, services and the rule registry.
"""

from enum import Enum


class IndustryType(str, Enum):
    """Business verticals a tenant can operate in."""

    SALON = "salon"
    RESTAURANT = "restaurant"
    EVENT = "event"
    REALESTATE = "realestate"
    RETAIL = "retail"
    PROFESSIONAL = "professional"
    HEALTHCARE = "healthcare"
    FITNESS = "fitness"
    AUTOMOTIVE = "automotive"
    HOME_SERVICES = "home_services"
    EDUCATION = "education"
    RECREATION = "recreation"


class ActorRole(str, Enum):
    """Who performed a lifecycle operation."""

    CUSTOMER = "customer"
    STAFF = "staff"
    SYSTEM = "system"
    ADMIN = "admin"


class RuleFamily(str, Enum):
    """Families a constraint rule can belong to."""

    AVAILABILITY = "availability"
    TIMING = "timing"
    CAPACITY = "capacity"
    POLICY = "policy"


class OperationType(str, Enum):
    """Lifecycle operations recorded in the audit trail."""

    CREATE = "create"
    CONFIRM = "confirm"
    START = "start"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"
    NO_SHOW = "no_show"
    COMPLETE = "complete"


class OperationOutcome(str, Enum):
    """Result of a lifecycle attempt."""

    SUCCEEDED = "succeeded"
    REJECTED = "rejected"
    CONFLICT = "conflict"
    ERROR = "error"

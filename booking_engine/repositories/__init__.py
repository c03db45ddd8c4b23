# booking_engine/repositories/__init__.py
"""
Repository layer: all SQL lives here, transactions are owned by services.
"""

from .base_repository import BaseRepository
from .booking_operation_repository import BookingOperationRepository
from .booking_repository import BookingRepository
from .constraint_repository import ConstraintRepository
from .factory import RepositoryFactory
from .resource_repository import ResourceRepository
from .schedule_repository import ScheduleRepository

__all__ = [
    "BaseRepository",
    "BookingOperationRepository",
    "BookingRepository",
    "ConstraintRepository",
    "RepositoryFactory",
    "ResourceRepository",
    "ScheduleRepository",
]

# booking_engine/repositories/factory.py
"""
Repository Factory for the booking engine.

Centralizes repository creation so services never construct repositories
with ad-hoc arguments.
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_operation_repository import BookingOperationRepository
    from .booking_repository import BookingRepository
    from .constraint_repository import ConstraintRepository
    from .resource_repository import ResourceRepository
    from .schedule_repository import ScheduleRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_base_repository(db: Session, model: Any) -> BaseRepository:
        """Create a generic base repository for any model."""
        return BaseRepository(db, model)

    @staticmethod
    def create_resource_repository(db: Session) -> "ResourceRepository":
        from .resource_repository import ResourceRepository

        return ResourceRepository(db)

    @staticmethod
    def create_schedule_repository(db: Session) -> "ScheduleRepository":
        from .schedule_repository import ScheduleRepository

        return ScheduleRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_constraint_repository(db: Session) -> "ConstraintRepository":
        from .constraint_repository import ConstraintRepository

        return ConstraintRepository(db)

    @staticmethod
    def create_booking_operation_repository(db: Session) -> "BookingOperationRepository":
        """Create repository for the append-only audit trail."""
        from .booking_operation_repository import BookingOperationRepository

        return BookingOperationRepository(db)

# booking_engine/repositories/booking_repository.py
"""
Booking Repository.

All conflict queries compare against the stored occupied window
[start - buffer, end + buffer) of active bookings, half-open.
"""

from datetime import date, datetime, time, timedelta
import logging
from typing import Any, List, Optional, cast

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..database.session_utils import supports_row_locks
from ..models.booking import ACTIVE_STATUSES, Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def create(self, **kwargs: Any) -> Booking:
        """Create a booking, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def get_for_tenant(self, tenant_id: str, booking_id: str) -> Optional[Booking]:
        return self.find_one_by(id=booking_id, tenant_id=tenant_id)

    def find_overlapping(
        self,
        resource_id: str,
        occupied_start: datetime,
        occupied_end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Active bookings on the resource whose occupied window overlaps the given one.

        Args:
            resource_id: The resource ID
            occupied_start: Start of the buffer-expanded window
            occupied_end: End of the buffer-expanded window
            exclude_booking_id: Booking to ignore (the one being rescheduled)
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.resource_id == resource_id,
                Booking.status.in_(sorted(ACTIVE_STATUSES)),
                Booking.occupied_start < occupied_end,
                Booking.occupied_end > occupied_start,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return cast(List[Booking], query.order_by(Booking.start_at, Booking.id).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking booking overlap: {str(e)}")
            raise RepositoryException(f"Failed to check conflict: {str(e)}")

    def count_active_on_day(
        self, resource_id: str, day: date, exclude_booking_id: Optional[str] = None
    ) -> int:
        """Number of active bookings starting on the day (per-day assignment cap)."""
        day_start = datetime.combine(day, time.min)
        query = self.db.query(func.count(Booking.id)).filter(
            Booking.resource_id == resource_id,
            Booking.status.in_(sorted(ACTIVE_STATUSES)),
            Booking.start_at >= day_start,
            Booking.start_at < day_start + timedelta(days=1),
        )
        if exclude_booking_id:
            query = query.filter(Booking.id != exclude_booking_id)
        return int(self._execute_scalar(query) or 0)

    def lock_for_update(self, booking_id: str) -> Optional[Booking]:
        """Re-read the booking, holding a row lock where the dialect supports it."""
        try:
            query = self.db.query(Booking).filter(Booking.id == booking_id)
            if supports_row_locks(self.db):
                query = query.with_for_update()
            return query.populate_existing().one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock booking: {str(e)}") from e

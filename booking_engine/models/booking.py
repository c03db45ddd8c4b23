# booking_engine/models/booking.py
"""
Booking model for the booking engine.

A booking stores its own resource, window and snapshot of the buffer that
applied when it was made. The occupied window ([start - buffer, end + buffer))
is persisted so that the no-overlap rule can be enforced by the database
itself on PostgreSQL.

Bookings are never hard-deleted: cancellation and no-show are statuses.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import Any, Optional

from sqlalchemy import (
    DDL,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"  # seated / service started
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses that hold the resource's time window
ACTIVE_STATUSES: frozenset[str] = frozenset(
    {BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value, BookingStatus.IN_PROGRESS.value}
)

# Allowed direct transitions. Reschedule (confirmed -> pending) is handled by
# the lifecycle service and is not a plain status change.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    BookingStatus.PENDING.value: frozenset(
        {
            BookingStatus.CONFIRMED.value,
            BookingStatus.CANCELLED.value,
            BookingStatus.NO_SHOW.value,
        }
    ),
    BookingStatus.CONFIRMED.value: frozenset(
        {
            BookingStatus.IN_PROGRESS.value,
            BookingStatus.COMPLETED.value,
            BookingStatus.CANCELLED.value,
            BookingStatus.NO_SHOW.value,
        }
    ),
    BookingStatus.IN_PROGRESS.value: frozenset({BookingStatus.COMPLETED.value}),
    BookingStatus.COMPLETED.value: frozenset(),
    BookingStatus.CANCELLED.value: frozenset(),
    BookingStatus.NO_SHOW.value: frozenset(),
}

RESCHEDULABLE_STATUSES: frozenset[str] = frozenset(
    {BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value}
)


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class Booking(Base):
    """Persistent reservation of one resource for one [start, end) window."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    resource_id = Column(String(26), ForeignKey("bookable_resources.id"), nullable=False)
    request_type = Column(String(50), nullable=True)

    # Tenant wall-clock times (naive)
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    buffer_minutes = Column(Integer, nullable=False, default=0)
    occupied_start = Column(DateTime, nullable=False)
    occupied_end = Column(DateTime, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    party_size = Column(Integer, nullable=False, default=1)

    # Requester snapshot
    requester_name = Column(String(255), nullable=True)
    requester_phone = Column(String(50), nullable=True)
    requester_email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    priority = Column(String(20), nullable=True)
    total_price = Column(Numeric(10, 2), nullable=True)

    reschedule_count = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    no_show_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation tracking
    cancelled_by_role = Column(String(20), nullable=True)
    cancelled_by_id = Column(String(26), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    resource = relationship("BookableResource")
    tenant = relationship("Tenant")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show')",
            name="ck_bookings_status",
        ),
        CheckConstraint("end_at > start_at", name="check_time_order"),
        CheckConstraint("party_size > 0", name="check_party_size_positive"),
        CheckConstraint("buffer_minutes >= 0", name="check_buffer_non_negative"),
        CheckConstraint(
            "total_price IS NULL OR total_price >= 0", name="check_price_non_negative"
        ),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING.value
        if self.buffer_minutes is None:
            self.buffer_minutes = 0
        if self.reschedule_count is None:
            self.reschedule_count = 0
        if self.start_at is not None and self.end_at is not None and self.occupied_start is None:
            self.set_window(self.start_at, self.end_at, self.buffer_minutes)

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: resource={self.resource_id}, "
            f"window={self.start_at}-{self.end_at}, status={self.status}>"
        )

    def set_window(self, start_at: datetime, end_at: datetime, buffer_minutes: int) -> None:
        """Move the booking and recompute the occupied window."""
        delta = timedelta(minutes=buffer_minutes or 0)
        self.start_at = start_at
        self.end_at = end_at
        self.buffer_minutes = buffer_minutes or 0
        self.occupied_start = start_at - delta
        self.occupied_end = end_at + delta

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def duration_minutes(self) -> int:
        return int((self.end_at - self.start_at).total_seconds() // 60)

    def confirm(self) -> None:
        self.status = BookingStatus.CONFIRMED.value
        self.confirmed_at = datetime.now(timezone.utc)
        logger.info(f"Booking {self.id} confirmed")

    def start(self) -> None:
        self.status = BookingStatus.IN_PROGRESS.value
        self.started_at = datetime.now(timezone.utc)
        logger.info(f"Booking {self.id} started")

    def complete(self) -> None:
        self.status = BookingStatus.COMPLETED.value
        self.completed_at = datetime.now(timezone.utc)
        logger.info(f"Booking {self.id} marked as completed")

    def cancel(
        self,
        actor_role: str,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = datetime.now(timezone.utc)
        self.cancelled_by_role = actor_role
        self.cancelled_by_id = actor_id
        self.cancellation_reason = reason
        logger.info(f"Booking {self.id} cancelled by {actor_role}")

    def mark_no_show(self) -> None:
        self.status = BookingStatus.NO_SHOW.value
        self.no_show_at = datetime.now(timezone.utc)
        logger.info(f"Booking {self.id} marked as no-show")

    def snapshot(self) -> dict[str, Any]:
        """State captured before/after a transition for the audit trail."""
        return {
            "status": self.status,
            "resource_id": self.resource_id,
            "start_at": self.start_at.isoformat() if self.start_at else None,
            "end_at": self.end_at.isoformat() if self.end_at else None,
            "buffer_minutes": self.buffer_minutes,
            "party_size": self.party_size,
            "reschedule_count": self.reschedule_count,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "resource_id": self.resource_id,
            "request_type": self.request_type,
            "start_at": self.start_at.isoformat() if self.start_at else None,
            "end_at": self.end_at.isoformat() if self.end_at else None,
            "buffer_minutes": self.buffer_minutes,
            "status": self.status,
            "party_size": self.party_size,
            "requester_name": self.requester_name,
            "requester_phone": self.requester_phone,
            "requester_email": self.requester_email,
            "notes": self.notes,
            "priority": self.priority,
            "total_price": float(self.total_price) if self.total_price is not None else None,
            "reschedule_count": self.reschedule_count,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "cancellation_reason": self.cancellation_reason,
        }


Index(
    "ix_bookings_resource_occupied",
    Booking.resource_id,
    Booking.occupied_start,
    Booking.occupied_end,
)


# Database-level guarantee of the no-overlap rule (PostgreSQL only; SQLite
# relies on the transactional re-check in the lifecycle service).
NO_OVERLAP_CONSTRAINT = "bookings_no_overlap_per_resource"

event.listen(
    Booking.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"""
        ALTER TABLE bookings
          ADD CONSTRAINT {NO_OVERLAP_CONSTRAINT}
          EXCLUDE USING gist (
            resource_id WITH =,
            tsrange(occupied_start, occupied_end, '[)') WITH &&
          )
          WHERE (status IN ('pending', 'confirmed', 'in_progress'))
        """
    ).execute_if(dialect="postgresql"),
)

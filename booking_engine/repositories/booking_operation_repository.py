# booking_engine/repositories/booking_operation_repository.py
"""
Append-only persistence for booking operation audit rows.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models.booking_operation import BookingOperation
from ..monitoring.prometheus_metrics import prometheus_metrics


class BookingOperationRepository:
    """Persist and query booking operation audit entries. Rows are never updated."""

    def __init__(self, db: Session):
        self.db = db

    def write(self, operation: BookingOperation) -> None:
        """Persist a new audit row inside the active transaction."""
        self.db.add(operation)
        prometheus_metrics.record_audit_write(operation.operation_type, operation.outcome)
        self.db.flush()

    def list_for_booking(
        self, booking_id: str, *, limit: int = 100, offset: int = 0
    ) -> list[BookingOperation]:
        """Audit rows for a booking, oldest first."""
        stmt = (
            select(BookingOperation)
            .where(BookingOperation.booking_id == booking_id)
            .order_by(BookingOperation.created_at, BookingOperation.id)
            .offset(max(0, offset))
            .limit(max(0, limit))
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_for_tenant(
        self, tenant_id: str, *, operation_type: Optional[str] = None, limit: int = 50
    ) -> list[BookingOperation]:
        stmt = select(BookingOperation).where(BookingOperation.tenant_id == tenant_id)
        if operation_type:
            stmt = stmt.where(BookingOperation.operation_type == operation_type)
        stmt = stmt.order_by(BookingOperation.created_at.desc()).limit(max(0, limit))
        return list(self.db.execute(stmt).scalars().all())

    def count_for_booking(self, booking_id: str) -> int:
        stmt = select(func.count()).select_from(BookingOperation).where(
            BookingOperation.booking_id == booking_id
        )
        return int(self.db.execute(stmt).scalar_one())

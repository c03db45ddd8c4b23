# booking_engine/models/booking_operation.py
"""
Append-only audit trail of lifecycle operations.

One row per attempt, successful or not. Rejected creates have no booking id.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import JSONType


def _now_utc() -> datetime:
    """Return timezone-aware UTC timestamp for defaults."""
    return datetime.now(timezone.utc)


class BookingOperation(Base):
    """Persistence model for booking operation audit entries."""

    __tablename__ = "booking_operations"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    # Deliberately not a foreign key: failed creates are audited too
    booking_id = Column(String(26), nullable=True, index=True)
    tenant_id = Column(String(26), nullable=True, index=True)
    resource_id = Column(String(26), nullable=True)

    operation_type = Column(String(20), nullable=False)
    actor_role = Column(String(20), nullable=False)
    actor_id = Column(String(26), nullable=True)
    outcome = Column(String(20), nullable=False)

    payload = Column(JSONType, nullable=True)
    previous_state = Column(JSONType, nullable=True)
    new_state = Column(JSONType, nullable=True)
    constraints_evaluated = Column(JSONType, nullable=True)
    violations = Column(JSONType, nullable=True)
    warnings = Column(JSONType, nullable=True)
    constraints_passed = Column(Boolean, nullable=False, default=True)
    financial_impact = Column(JSONType, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        server_default=func.now(),
    )

    @classmethod
    def from_attempt(
        cls,
        *,
        operation_type: str,
        actor_role: str,
        outcome: str,
        booking_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        payload: Optional[Mapping[str, Any]] = None,
        previous_state: Optional[Mapping[str, Any]] = None,
        new_state: Optional[Mapping[str, Any]] = None,
        constraints_evaluated: Optional[Iterable[str]] = None,
        violations: Optional[Iterable[Mapping[str, Any]]] = None,
        warnings: Optional[Iterable[Mapping[str, Any]]] = None,
        financial_impact: Optional[Mapping[str, Any]] = None,
        error_message: Optional[str] = None,
    ) -> "BookingOperation":
        """Factory helper to build an audit row from the result of an attempt."""
        violation_rows = [dict(v) for v in violations or []]
        return cls(
            operation_type=operation_type,
            actor_role=actor_role,
            actor_id=actor_id,
            outcome=outcome,
            booking_id=booking_id,
            tenant_id=tenant_id,
            resource_id=resource_id,
            payload=dict(payload) if payload is not None else None,
            previous_state=dict(previous_state) if previous_state is not None else None,
            new_state=dict(new_state) if new_state is not None else None,
            constraints_evaluated=list(constraints_evaluated or []),
            violations=violation_rows,
            warnings=[dict(w) for w in warnings or []],
            constraints_passed=not any(v.get("mandatory") for v in violation_rows),
            financial_impact=dict(financial_impact) if financial_impact is not None else None,
            error_message=error_message,
        )

    def __repr__(self) -> str:
        return f"<BookingOperation {self.operation_type} booking={self.booking_id} {self.outcome}>"

# booking_engine/services/booking_lifecycle_service.py
"""
Booking Lifecycle Controller.

Executes approved transitions atomically and appends an audit record for
every attempt:

    pending -> confirmed -> in_progress -> completed
    pending | confirmed -> cancelled | no_show
    pending | confirmed -> pending (reschedule, new window re-validated first)

Create and reschedule lock the resource row, re-read overlapping active
bookings and write in one transaction. On PostgreSQL the exclusion
constraint on the occupied window backs this up. File-backed SQLite opens
every transaction with BEGIN IMMEDIATE, so writers are serialized instead.
Losing a race comes back as a ValidationResult with failure_type="conflict".
"""

from contextlib import contextmanager
from datetime import date
import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import ActorRole, OperationOutcome, OperationType
from ..core.exceptions import BookingConflictException, NotFoundException, ServiceException
from ..models.booking import NO_OVERLAP_CONSTRAINT, Booking, BookingStatus
from ..models.booking_operation import BookingOperation
from ..models.tenant import Tenant
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingRequest, RescheduleRequest
from ..schemas.matching import MatchResult
from ..schemas.slot import Slot
from ..schemas.validation import ValidationResult, Violation
from ..utils.time_window import TimeWindow
from .base import BaseService
from .constraints.catalog import RuleCatalog, load_rule_catalog
from .constraints.context import ValidationOperation
from .constraints.validator import ConstraintValidator
from .resource_matcher import ResourceMatcher
from .schedule_service import ScheduleService
from .slot_generator import SlotGenerator

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "This time slot is no longer available"
CONFLICT_SQLSTATES = frozenset({"40P01", "40001"})  # deadlock, serialization failure

BookingOutcome = Union[Booking, ValidationResult]


def _is_conflict_error(exc: Optional[BaseException]) -> bool:
    """Storage errors that mean another writer won the slot."""
    if isinstance(exc, IntegrityError):
        orig = getattr(exc, "orig", None)
        diag = getattr(orig, "diag", None)
        constraint_name = getattr(diag, "constraint_name", None) or ""
        return constraint_name == NO_OVERLAP_CONSTRAINT or NO_OVERLAP_CONSTRAINT in str(orig)
    if isinstance(exc, OperationalError):
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if pgcode in CONFLICT_SQLSTATES:
            return True
        return "deadlock detected" in str(exc).lower()
    return False


class BookingLifecycleService(BaseService):
    """Entry point used by the surrounding request handlers."""

    def __init__(
        self,
        db: Session,
        validator: Optional[ConstraintValidator] = None,
        catalog_loader: Callable[[Session, Tenant], RuleCatalog] = load_rule_catalog,
    ):
        super().__init__(db)
        self.schedule_service = ScheduleService(db)
        self.slot_generator = SlotGenerator(db, self.schedule_service)
        self.resource_matcher = ResourceMatcher(db, self.schedule_service, self.slot_generator)
        self.validator = validator or ConstraintValidator(
            db, self.schedule_service, self.slot_generator, self.resource_matcher
        )
        self.catalog_loader = catalog_loader
        self.tenant_repository = RepositoryFactory.create_base_repository(db, Tenant)
        self.resource_repository = RepositoryFactory.create_resource_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.operation_repository = RepositoryFactory.create_booking_operation_repository(db)

    # Queries

    @BaseService.measure_operation("get_slots")
    def get_slots(
        self,
        tenant_id: str,
        resource_id: str,
        day: date,
        service_duration_minutes: Optional[int] = None,
        granularity_minutes: Optional[int] = None,
        catalog: Optional[RuleCatalog] = None,
    ) -> List[Slot]:
        """
        Slots for one resource and date.

        Raises:
            NotFoundException: If the tenant or resource does not exist
        """
        tenant = self._get_tenant(tenant_id)
        resource = self.resource_repository.get_for_tenant(tenant.id, resource_id)
        if resource is None:
            raise NotFoundException(f"Resource {resource_id} not found", code="RESOURCE_NOT_FOUND")
        catalog = catalog or self.catalog_loader(self.db, tenant)
        return self.slot_generator.generate_slots(
            resource,
            day,
            service_duration_minutes or settings.default_service_duration_minutes,
            granularity_minutes=granularity_minutes,
            buffer_minutes=catalog.buffer_minutes_for(resource),
        )

    @BaseService.measure_operation("match_resources")
    def match_resources(
        self,
        tenant_id: str,
        request_type: Optional[str],
        window: TimeWindow,
        capability_tags: Iterable[str] = (),
        preferred_resource_id: Optional[str] = None,
    ) -> MatchResult:
        tenant = self._get_tenant(tenant_id)
        return self.resource_matcher.match_resources(
            tenant.id,
            request_type,
            window,
            capability_tags,
            preferred_resource_id=preferred_resource_id,
            catalog=self.catalog_loader(self.db, tenant),
        )

    @BaseService.measure_operation("validate_booking_request")
    def validate_booking_request(
        self, request: BookingRequest, catalog: Optional[RuleCatalog] = None
    ) -> ValidationResult:
        tenant = self._get_tenant(request.tenant_id)
        catalog = catalog or self.catalog_loader(self.db, tenant)
        return self.validator.validate(ValidationOperation.for_request(request, tenant), catalog)

    def list_operations(self, booking_id: str) -> List[BookingOperation]:
        """Audit trail for a booking, oldest first."""
        return self.operation_repository.list_for_booking(booking_id)

    # Transitions

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self, request: BookingRequest, catalog: Optional[RuleCatalog] = None
    ) -> BookingOutcome:
        """
        Validate and insert a pending booking.

        Returns:
            The new Booking, or the ValidationResult that rejected it
        """
        tenant = self._get_tenant(request.tenant_id)
        catalog = catalog or self.catalog_loader(self.db, tenant)
        self.log_operation(
            "create_booking",
            tenant_id=tenant.id,
            resource_id=request.resource_id,
            start=request.start.isoformat(),
        )

        result = self.validator.validate(ValidationOperation.for_request(request, tenant), catalog)
        audit: Dict[str, Any] = {
            "operation_type": OperationType.CREATE.value,
            "actor_role": request.actor_role.value,
            "actor_id": request.actor_id,
            "tenant_id": tenant.id,
            "resource_id": result.resource_id,
            "payload": request.audit_payload(),
        }
        if not result.is_valid:
            self._audit_separately(result, OperationOutcome.REJECTED, **audit)
            return result

        assert result.resource_id is not None
        try:
            with self._atomic():
                booking = self._insert_booking(tenant, request, result.resource_id, catalog)
                self._audit(
                    result,
                    OperationOutcome.SUCCEEDED,
                    booking_id=booking.id,
                    new_state=booking.snapshot(),
                    **audit,
                )
        except BookingConflictException as exc:
            conflict = self._conflict_result(result, exc)
            self._audit_separately(conflict, OperationOutcome.CONFLICT, **audit)
            return conflict
        except Exception as exc:
            self._audit_separately(result, OperationOutcome.ERROR, error_message=str(exc), **audit)
            raise

        self.logger.info(f"Booking {booking.id} created on resource {booking.resource_id}")
        return booking

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(
        self,
        tenant_id: str,
        booking_id: str,
        actor_role: ActorRole = ActorRole.STAFF,
        actor_id: Optional[str] = None,
    ) -> BookingOutcome:
        return self._transition(
            tenant_id, booking_id, OperationType.CONFIRM, actor_role, actor_id, lambda b: b.confirm()
        )

    @BaseService.measure_operation("start_booking")
    def start_booking(
        self,
        tenant_id: str,
        booking_id: str,
        actor_role: ActorRole = ActorRole.STAFF,
        actor_id: Optional[str] = None,
    ) -> BookingOutcome:
        """Seat the party / start the service."""
        return self._transition(
            tenant_id, booking_id, OperationType.START, actor_role, actor_id, lambda b: b.start()
        )

    @BaseService.measure_operation("complete_booking")
    def complete_booking(
        self,
        tenant_id: str,
        booking_id: str,
        actor_role: ActorRole = ActorRole.STAFF,
        actor_id: Optional[str] = None,
    ) -> BookingOutcome:
        return self._transition(
            tenant_id, booking_id, OperationType.COMPLETE, actor_role, actor_id, lambda b: b.complete()
        )

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self,
        tenant_id: str,
        booking_id: str,
        reason: Optional[str] = None,
        actor_role: ActorRole = ActorRole.CUSTOMER,
        actor_id: Optional[str] = None,
        catalog: Optional[RuleCatalog] = None,
    ) -> BookingOutcome:
        """
        Cancel a pending or confirmed booking.

        A late cancellation still goes through; its fee annotation is recorded
        on the audit row.
        """
        return self._transition(
            tenant_id,
            booking_id,
            OperationType.CANCEL,
            actor_role,
            actor_id,
            lambda b: b.cancel(actor_role.value, actor_id, reason),
            payload={"reason": reason},
            catalog=catalog,
        )

    @BaseService.measure_operation("mark_no_show")
    def mark_no_show(
        self,
        tenant_id: str,
        booking_id: str,
        actor_role: ActorRole = ActorRole.SYSTEM,
        actor_id: Optional[str] = None,
        catalog: Optional[RuleCatalog] = None,
    ) -> BookingOutcome:
        """
        Record an observed no-show.

        Rejected until the no-show policy's grace period after the start has
        passed; a configured no-show fee is recorded on the audit row.
        """
        return self._transition(
            tenant_id,
            booking_id,
            OperationType.NO_SHOW,
            actor_role,
            actor_id,
            lambda b: b.mark_no_show(),
            catalog=catalog,
        )

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self,
        tenant_id: str,
        booking_id: str,
        reschedule: RescheduleRequest,
        catalog: Optional[RuleCatalog] = None,
    ) -> BookingOutcome:
        """
        Move a booking to a new window and reset it to pending.

        The new window is validated as a fresh booking. On any failure the
        original booking is left exactly as it was.
        """
        tenant = self._get_tenant(tenant_id)
        booking = self._get_booking(tenant, booking_id)
        catalog = catalog or self.catalog_loader(self.db, tenant)

        new_end = reschedule.new_end or reschedule.new_start + (booking.end_at - booking.start_at)
        new_window = TimeWindow(reschedule.new_start, new_end)
        previous_state = booking.snapshot()
        operation = ValidationOperation.for_booking(
            booking,
            tenant,
            OperationType.RESCHEDULE,
            new_window=new_window,
            actor_role=reschedule.actor_role,
        )
        result = self.validator.validate(operation, catalog)
        audit: Dict[str, Any] = {
            "operation_type": OperationType.RESCHEDULE.value,
            "actor_role": reschedule.actor_role.value,
            "actor_id": reschedule.actor_id,
            "tenant_id": tenant.id,
            "resource_id": booking.resource_id,
            "booking_id": booking.id,
            "payload": reschedule.model_dump(mode="json", exclude={"actor_role", "actor_id"}),
            "previous_state": previous_state,
        }
        if not result.is_valid:
            self._audit_separately(result, OperationOutcome.REJECTED, **audit)
            return result

        try:
            with self._atomic():
                locked = self._lock_unchanged(booking, previous_state["status"])
                resource = self.resource_repository.lock_for_update(locked.resource_id)
                if resource is None:
                    raise NotFoundException(f"Resource {locked.resource_id} not found")
                buffer = catalog.buffer_minutes_for(resource)
                self._ensure_free(resource.id, new_window, buffer, exclude_booking_id=locked.id)

                locked.set_window(new_window.start, new_window.end, buffer)
                locked.status = BookingStatus.PENDING.value
                locked.confirmed_at = None
                locked.reschedule_count = (locked.reschedule_count or 0) + 1
                self.booking_repository.flush()
                self._audit(
                    result, OperationOutcome.SUCCEEDED, new_state=locked.snapshot(), **audit
                )
        except BookingConflictException as exc:
            conflict = self._conflict_result(result, exc)
            self._audit_separately(conflict, OperationOutcome.CONFLICT, **audit)
            return conflict
        except Exception as exc:
            self._audit_separately(result, OperationOutcome.ERROR, error_message=str(exc), **audit)
            raise

        self.logger.info(f"Booking {booking.id} rescheduled to {new_window}")
        return locked

    # Internals

    def _transition(
        self,
        tenant_id: str,
        booking_id: str,
        operation_type: OperationType,
        actor_role: ActorRole,
        actor_id: Optional[str],
        apply: Callable[[Booking], None],
        payload: Optional[Dict[str, Any]] = None,
        catalog: Optional[RuleCatalog] = None,
    ) -> BookingOutcome:
        """Validate, apply a status change and audit it in one transaction."""
        tenant = self._get_tenant(tenant_id)
        booking = self._get_booking(tenant, booking_id)
        catalog = catalog or self.catalog_loader(self.db, tenant)
        previous_state = booking.snapshot()
        self.log_operation(
            operation_type.value, booking_id=booking.id, actor_role=actor_role.value
        )

        operation = ValidationOperation.for_booking(
            booking, tenant, operation_type, actor_role=actor_role
        )
        result = self.validator.validate(operation, catalog)
        audit: Dict[str, Any] = {
            "operation_type": operation_type.value,
            "actor_role": actor_role.value,
            "actor_id": actor_id,
            "tenant_id": tenant.id,
            "resource_id": booking.resource_id,
            "booking_id": booking.id,
            "payload": payload,
            "previous_state": previous_state,
        }
        if not result.is_valid:
            self._audit_separately(result, OperationOutcome.REJECTED, **audit)
            return result

        try:
            with self._atomic():
                locked = self._lock_unchanged(booking, previous_state["status"])
                apply(locked)
                self.booking_repository.flush()
                self._audit(
                    result, OperationOutcome.SUCCEEDED, new_state=locked.snapshot(), **audit
                )
        except BookingConflictException as exc:
            conflict = self._conflict_result(result, exc)
            self._audit_separately(conflict, OperationOutcome.CONFLICT, **audit)
            return conflict
        except Exception as exc:
            self._audit_separately(result, OperationOutcome.ERROR, error_message=str(exc), **audit)
            raise
        return locked

    def _insert_booking(
        self, tenant: Tenant, request: BookingRequest, resource_id: str, catalog: RuleCatalog
    ) -> Booking:
        resource = self.resource_repository.lock_for_update(resource_id)
        if resource is None:
            raise NotFoundException(f"Resource {resource_id} not found")
        buffer = catalog.buffer_minutes_for(resource)
        window = request.window
        self._ensure_free(resource.id, window, buffer)
        return self.booking_repository.create(
            tenant_id=tenant.id,
            resource_id=resource.id,
            request_type=request.request_type,
            start_at=window.start,
            end_at=window.end,
            buffer_minutes=buffer,
            status=BookingStatus.PENDING.value,
            party_size=request.party_size,
            requester_name=request.requester_name,
            requester_phone=request.requester_phone,
            requester_email=request.requester_email,
            notes=request.notes,
            priority=request.priority,
            total_price=request.total_price,
        )

    def _ensure_free(
        self,
        resource_id: str,
        window: TimeWindow,
        buffer: int,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        """Re-check inside the transaction, after the resource lock is held."""
        occupied = window.expand(buffer)
        clashes = self.booking_repository.find_overlapping(
            resource_id, occupied.start, occupied.end, exclude_booking_id=exclude_booking_id
        )
        if clashes:
            raise BookingConflictException(
                SLOT_TAKEN_MESSAGE,
                details={
                    "resource_id": resource_id,
                    "start": window.start.isoformat(),
                    "end": window.end.isoformat(),
                    "conflicting_booking_ids": [b.id for b in clashes],
                },
            )

    def _lock_unchanged(self, booking: Booking, expected_status: str) -> Booking:
        """Re-read the booking under lock; a concurrent transition counts as a conflict."""
        locked = self.booking_repository.lock_for_update(booking.id)
        if locked is None or locked.status != expected_status:
            raise BookingConflictException(
                "This booking was changed by another request",
                details={"booking_id": booking.id, "expected_status": expected_status},
            )
        return locked

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        """self.transaction() with lost races surfaced as BookingConflictException."""
        try:
            with self.transaction():
                yield
        except ServiceException as exc:
            if _is_conflict_error(exc.__cause__):
                raise BookingConflictException(SLOT_TAKEN_MESSAGE) from exc
            raise

    @staticmethod
    def _conflict_result(result: ValidationResult, exc: BookingConflictException) -> ValidationResult:
        return ValidationResult(
            is_valid=False,
            violations=[
                Violation(
                    constraint_name="time_slot_availability",
                    violation_type="slot_taken",
                    message=exc.message,
                    priority=1,
                    mandatory=True,
                    suggested_action="Please select a different time slot",
                )
            ],
            warnings=result.warnings,
            constraints_checked=result.constraints_checked,
            processing_time_ms=result.processing_time_ms,
            failure_type="conflict",
            resource_id=result.resource_id,
        )

    def _audit(
        self, result: ValidationResult, outcome: OperationOutcome, **fields: Any
    ) -> Optional[BookingOperation]:
        """Append an audit row inside the current transaction."""
        prometheus_metrics.record_booking_operation(fields["operation_type"], outcome.value)
        if not settings.audit_enabled:
            return None
        impact = result.financial_impact
        record = BookingOperation.from_attempt(
            outcome=outcome.value,
            constraints_evaluated=self._constraint_names(result),
            violations=[v.model_dump(mode="json") for v in result.violations],
            warnings=[w.model_dump(mode="json") for w in result.warnings],
            financial_impact=impact.model_dump(mode="json") if impact is not None else None,
            **fields,
        )
        self.operation_repository.write(record)
        return record

    def _audit_separately(
        self, result: ValidationResult, outcome: OperationOutcome, **fields: Any
    ) -> None:
        """Best-effort audit in its own transaction after a rejection or rollback."""
        try:
            with self.transaction():
                self._audit(result, outcome, **fields)
        except ServiceException as exc:
            self.logger.error(
                f"Failed to record {fields.get('operation_type')} audit row: {exc}",
                extra={"booking_id": fields.get("booking_id"), "outcome": outcome.value},
            )

    @staticmethod
    def _constraint_names(result: ValidationResult) -> List[str]:
        names = [v.constraint_name for v in (*result.violations, *result.warnings)]
        return sorted(set(names))

    def _get_tenant(self, tenant_id: str) -> Tenant:
        tenant = self.tenant_repository.get_by_id(tenant_id, load_relationships=False)
        if tenant is None:
            raise NotFoundException(f"Tenant {tenant_id} not found", code="TENANT_NOT_FOUND")
        return tenant

    def _get_booking(self, tenant: Tenant, booking_id: str) -> Booking:
        booking = self.booking_repository.get_for_tenant(tenant.id, booking_id)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

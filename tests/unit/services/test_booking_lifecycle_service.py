from datetime import datetime
from decimal import Decimal
from unittest.mock import patch

from freezegun import freeze_time
import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from booking_engine.core.config import settings
from booking_engine.core.enums import ActorRole, OperationOutcome
from booking_engine.core.exceptions import NotFoundException
from booking_engine.models.booking import NO_OVERLAP_CONSTRAINT, Booking, BookingStatus
from booking_engine.schemas.booking import BookingRequest, RescheduleRequest
from booking_engine.schemas.validation import ValidationResult
from booking_engine.services.booking_lifecycle_service import BookingLifecycleService
from booking_engine.services.constraints.catalog import RuleCatalog

from .._calendar import TUESDAY, at


@pytest.fixture
def service(unit_db):
    return BookingLifecycleService(unit_db)


def _request(tenant, resource, start: datetime, **kwargs) -> BookingRequest:
    kwargs.setdefault("duration_minutes", 60)
    return BookingRequest(tenant_id=tenant.id, resource_id=resource.id, start=start, **kwargs)


def _outcomes(service, tenant) -> list:
    return sorted(op.outcome for op in service.operation_repository.list_for_tenant(tenant.id))


@pytest.mark.usefixtures("frozen_now")
class TestCreateBooking:
    def test_creates_pending_booking_and_audits(self, service, salon, stylist):
        booking = service.create_booking(_request(salon, stylist, at(TUESDAY, 10), total_price=Decimal("80")))

        assert isinstance(booking, Booking)
        assert booking.status == BookingStatus.PENDING.value
        assert booking.start_at == at(TUESDAY, 10)
        assert booking.end_at == at(TUESDAY, 11)

        operations = service.list_operations(booking.id)
        assert len(operations) == 1
        assert operations[0].outcome == OperationOutcome.SUCCEEDED.value
        assert operations[0].constraints_passed is True
        assert operations[0].new_state["status"] == "pending"

    def test_stores_occupied_window_with_buffer(self, service, salon, make_resource):
        resource = make_resource(salon, buffer_minutes=15)
        booking = service.create_booking(_request(salon, resource, at(TUESDAY, 10)))

        assert booking.buffer_minutes == 15
        assert booking.occupied_start == at(TUESDAY, 9, 45)
        assert booking.occupied_end == at(TUESDAY, 11, 15)

    def test_second_booking_for_same_slot_is_rejected(self, service, salon, stylist):
        service.create_booking(_request(salon, stylist, at(TUESDAY, 10)))

        result = service.create_booking(_request(salon, stylist, at(TUESDAY, 10, 30)))

        assert isinstance(result, ValidationResult)
        assert not result.is_valid
        assert result.failure_type == "validation"
        assert result.violation_types == ["booking_conflict"]
        assert _outcomes(service, salon) == ["rejected", "succeeded"]

    def test_auto_assigns_resource(self, service, salon, stylist):
        booking = service.create_booking(
            BookingRequest(tenant_id=salon.id, request_type="styling", start=at(TUESDAY, 15), duration_minutes=60)
        )
        assert isinstance(booking, Booking)
        assert booking.resource_id == stylist.id
        assert booking.request_type == "styling"

    def test_rejected_request_is_audited_without_booking(self, service, salon, stylist):
        result = service.create_booking(_request(salon, stylist, at(TUESDAY, 19)))

        assert result.violation_types == ["outside_working_hours"]
        [operation] = service.operation_repository.list_for_tenant(salon.id)
        assert operation.booking_id is None
        assert operation.outcome == OperationOutcome.REJECTED.value
        assert operation.constraints_passed is False
        assert operation.constraints_evaluated == ["resource_working_hours"]

    def test_lost_race_after_validation_is_a_conflict(self, service, salon, stylist, make_booking):
        make_booking(stylist, at(TUESDAY, 10), at(TUESDAY, 11))
        approved = ValidationResult(is_valid=True, resource_id=stylist.id)

        with patch.object(service.validator, "validate", return_value=approved):
            result = service.create_booking(_request(salon, stylist, at(TUESDAY, 10)))

        assert isinstance(result, ValidationResult)
        assert result.failure_type == "conflict"
        assert result.violation_types == ["slot_taken"]
        assert result.violations[0].message == "This time slot is no longer available"
        assert _outcomes(service, salon) == ["conflict"]
        assert service.booking_repository.count() == 1

    @pytest.mark.parametrize(
        "error",
        [
            IntegrityError(
                "INSERT INTO bookings",
                {},
                Exception(f'conflicting key value violates exclusion constraint "{NO_OVERLAP_CONSTRAINT}"'),
            ),
            OperationalError("INSERT INTO bookings", {}, Exception("deadlock detected")),
        ],
    )
    def test_storage_conflicts_become_conflict_results(self, service, salon, stylist, error):
        with patch.object(service.booking_repository, "create", side_effect=error):
            result = service.create_booking(_request(salon, stylist, at(TUESDAY, 10)))

        assert result.failure_type == "conflict"
        assert result.violation_types == ["slot_taken"]
        assert _outcomes(service, salon) == ["conflict"]
        assert service.booking_repository.count() == 0

    def test_unexpected_errors_are_audited_and_raised(self, service, salon, stylist):
        with patch.object(service.booking_repository, "create", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                service.create_booking(_request(salon, stylist, at(TUESDAY, 10)))

        [operation] = service.operation_repository.list_for_tenant(salon.id)
        assert operation.outcome == OperationOutcome.ERROR.value
        assert operation.error_message == "boom"

    def test_unknown_tenant(self, service):
        with pytest.raises(NotFoundException):
            service.create_booking(
                BookingRequest(tenant_id="missing", resource_id="r", start=at(TUESDAY, 10))
            )

    def test_audit_can_be_disabled(self, service, salon, stylist):
        with patch.object(settings, "audit_enabled", False):
            booking = service.create_booking(_request(salon, stylist, at(TUESDAY, 10)))

        assert isinstance(booking, Booking)
        assert service.list_operations(booking.id) == []


@pytest.mark.usefixtures("frozen_now")
class TestStatusTransitions:
    @pytest.fixture
    def booking(self, service, salon, stylist):
        return service.create_booking(
            _request(salon, stylist, at(TUESDAY, 10), total_price=Decimal("80.00"))
        )

    def test_happy_path(self, service, salon, booking):
        confirmed = service.confirm_booking(salon.id, booking.id)
        assert confirmed.status == BookingStatus.CONFIRMED.value
        assert confirmed.confirmed_at is not None

        started = service.start_booking(salon.id, booking.id)
        assert started.status == BookingStatus.IN_PROGRESS.value

        completed = service.complete_booking(salon.id, booking.id)
        assert completed.status == BookingStatus.COMPLETED.value
        assert completed.completed_at is not None

        operations = service.list_operations(booking.id)
        assert len(operations) == 4
        assert {op.operation_type for op in operations} == {"create", "confirm", "start", "complete"}
        assert all(op.outcome == "succeeded" for op in operations)

    def test_complete_from_pending_is_rejected(self, service, salon, booking):
        result = service.complete_booking(salon.id, booking.id)

        assert isinstance(result, ValidationResult)
        assert result.violation_types == ["invalid_state_transition"]
        assert service.booking_repository.get_by_id(booking.id).status == BookingStatus.PENDING.value
        assert service.operation_repository.count_for_booking(booking.id) == 2

    def test_cancel_twice(self, service, salon, booking):
        cancelled = service.cancel_booking(salon.id, booking.id, reason="Change of plans", actor_id="cust-1")

        assert cancelled.status == BookingStatus.CANCELLED.value
        assert cancelled.cancelled_by_role == ActorRole.CUSTOMER.value
        assert cancelled.cancelled_by_id == "cust-1"
        assert cancelled.cancellation_reason == "Change of plans"

        again = service.cancel_booking(salon.id, booking.id)
        assert isinstance(again, ValidationResult)
        assert again.violation_types == ["already_cancelled"]

    def test_cancelled_booking_frees_the_slot(self, service, salon, stylist, booking):
        service.cancel_booking(salon.id, booking.id)

        replacement = service.create_booking(_request(salon, stylist, at(TUESDAY, 10)))
        assert isinstance(replacement, Booking)

    def test_no_show_after_grace_period(self, service, salon, booking, frozen_now):
        service.confirm_booking(salon.id, booking.id)
        frozen_now.move_to("2026-10-20 10:20:00")
        result = service.mark_no_show(salon.id, booking.id)

        assert result.status == BookingStatus.NO_SHOW.value
        assert result.no_show_at is not None

    def test_no_show_before_grace_period_is_rejected(self, service, salon, booking, frozen_now):
        service.confirm_booking(salon.id, booking.id)
        frozen_now.move_to("2026-10-20 10:05:00")
        result = service.mark_no_show(salon.id, booking.id)

        assert isinstance(result, ValidationResult)
        assert result.violation_types == ["no_show_too_early"]
        assert service.booking_repository.get_by_id(booking.id).status == BookingStatus.CONFIRMED.value
        assert _outcomes(service, salon) == ["rejected", "succeeded", "succeeded"]

    def test_no_show_fee_is_recorded(self, service, salon, booking, frozen_now):
        catalog = RuleCatalog.defaults_for("salon").with_override(
            "no_show_policy", parameters={"fee_structure": "percentage", "fee_percentage": 100}
        )
        frozen_now.move_to("2026-10-20 10:30:00")
        result = service.mark_no_show(salon.id, booking.id, catalog=catalog)

        assert result.status == BookingStatus.NO_SHOW.value
        [operation] = [op for op in service.list_operations(booking.id) if op.operation_type == "no_show"]
        assert operation.constraints_passed is True
        assert operation.financial_impact == {"type": "fee", "amount": 80.0, "reason": "No-show"}

    def test_unknown_booking(self, service, salon):
        with pytest.raises(NotFoundException):
            service.confirm_booking(salon.id, "missing")

    def test_booking_from_another_tenant_is_not_found(self, service, make_tenant, booking):
        other = make_tenant(name="Other")
        with pytest.raises(NotFoundException):
            service.cancel_booking(other.id, booking.id)


class TestLateCancellation:
    def test_fee_is_recorded_and_cancellation_proceeds(
        self, service, salon, stylist, make_booking
    ):
        booking = make_booking(stylist, at(TUESDAY, 10), at(TUESDAY, 11), total_price=Decimal("80.00"))

        with freeze_time("2026-10-20 08:00:00"):
            cancelled = service.cancel_booking(salon.id, booking.id)

        assert isinstance(cancelled, Booking)
        assert cancelled.status == BookingStatus.CANCELLED.value

        [operation] = service.list_operations(booking.id)
        assert operation.outcome == OperationOutcome.SUCCEEDED.value
        assert operation.constraints_passed is True
        assert operation.warnings[0]["violation_type"] == "late_cancellation"
        assert operation.financial_impact["type"] == "fee"
        assert operation.financial_impact["amount"] == 40.0
        assert operation.previous_state["status"] == "confirmed"
        assert operation.new_state["status"] == "cancelled"


@pytest.mark.usefixtures("frozen_now")
class TestReschedule:
    @pytest.fixture
    def booking(self, stylist, make_booking):
        return make_booking(stylist, at(TUESDAY, 10), at(TUESDAY, 11), confirmed_at=datetime(2026, 10, 18, 9))

    def test_moves_booking_and_resets_to_pending(self, service, salon, booking):
        moved = service.reschedule_booking(salon.id, booking.id, RescheduleRequest(new_start=at(TUESDAY, 15)))

        assert isinstance(moved, Booking)
        assert moved.start_at == at(TUESDAY, 15)
        assert moved.end_at == at(TUESDAY, 16)
        assert moved.status == BookingStatus.PENDING.value
        assert moved.confirmed_at is None
        assert moved.reschedule_count == 1

        [operation] = service.list_operations(booking.id)
        assert operation.operation_type == "reschedule"
        assert operation.previous_state["start_at"] == "2026-10-20T10:00:00"
        assert operation.new_state["start_at"] == "2026-10-20T15:00:00"

    def test_overlapping_only_itself_is_allowed(self, service, salon, booking):
        moved = service.reschedule_booking(
            salon.id,
            booking.id,
            RescheduleRequest(new_start=at(TUESDAY, 10, 30), new_end=at(TUESDAY, 11, 30)),
        )
        assert moved.start_at == at(TUESDAY, 10, 30)
        assert moved.end_at == at(TUESDAY, 11, 30)

    def test_conflict_leaves_original_untouched(self, service, salon, stylist, booking, make_booking):
        make_booking(stylist, at(TUESDAY, 15), at(TUESDAY, 16))

        result = service.reschedule_booking(salon.id, booking.id, RescheduleRequest(new_start=at(TUESDAY, 15)))

        assert isinstance(result, ValidationResult)
        assert result.violation_types == ["booking_conflict"]
        original = service.booking_repository.get_by_id(booking.id)
        assert original.start_at == at(TUESDAY, 10)
        assert original.status == BookingStatus.CONFIRMED.value
        assert original.reschedule_count == 0

    def test_failure_mid_write_rolls_back(self, service, salon, booking):
        with patch.object(
            service.operation_repository,
            "write",
            side_effect=[RuntimeError("audit store unavailable"), None],
        ):
            with pytest.raises(RuntimeError):
                service.reschedule_booking(
                    salon.id, booking.id, RescheduleRequest(new_start=at(TUESDAY, 15))
                )

        reloaded = service.booking_repository.get_by_id(booking.id)
        assert reloaded.start_at == at(TUESDAY, 10)
        assert reloaded.occupied_start == at(TUESDAY, 10)
        assert reloaded.reschedule_count == 0
        assert reloaded.status == BookingStatus.CONFIRMED.value

    def test_cancelled_booking_cannot_be_rescheduled(self, service, salon, stylist, make_booking):
        cancelled = make_booking(
            stylist, at(TUESDAY, 16), at(TUESDAY, 17), status=BookingStatus.CANCELLED.value
        )
        result = service.reschedule_booking(
            salon.id, cancelled.id, RescheduleRequest(new_start=at(TUESDAY, 15))
        )
        assert result.violation_types == ["invalid_state_transition"]


@pytest.mark.usefixtures("frozen_now")
class TestQueries:
    def test_get_slots(self, service, salon, stylist):
        slots = service.get_slots(salon.id, stylist.id, TUESDAY, service_duration_minutes=60)

        assert slots[0].start == at(TUESDAY, 10)
        assert all(slot.resource_id == stylist.id for slot in slots)

    def test_get_slots_unknown_resource(self, service, salon):
        with pytest.raises(NotFoundException):
            service.get_slots(salon.id, "missing", TUESDAY)

    def test_validate_does_not_write(self, service, salon, stylist):
        result = service.validate_booking_request(_request(salon, stylist, at(TUESDAY, 10)))

        assert result.is_valid
        assert service.booking_repository.count() == 0
        assert service.operation_repository.list_for_tenant(salon.id) == []

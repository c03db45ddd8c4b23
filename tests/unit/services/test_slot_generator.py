import pytest

from booking_engine.core.exceptions import ValidationException
from booking_engine.models.booking import BookingStatus
from booking_engine.schemas.slot import SlotStatus
from booking_engine.services.slot_generator import SlotGenerator
from booking_engine.utils.time_window import TimeWindow

from .._calendar import SUNDAY, TUESDAY, at


def _status_at(slots, hour, minute=0):
    start = at(TUESDAY, hour, minute)
    return next(slot.status for slot in slots if slot.start == start)


class TestSlotGenerator:
    def test_working_day_with_break(self, unit_db, stylist):
        """10:00-18:00, break 13:00-14:00, 60-minute service every 30 minutes."""
        slots = SlotGenerator(unit_db).generate_slots(stylist, TUESDAY, 60, granularity_minutes=30)

        assert len(slots) == 15
        assert slots[0].start == at(TUESDAY, 10)
        assert slots[-1].end == at(TUESDAY, 18)
        assert _status_at(slots, 12) == SlotStatus.AVAILABLE
        assert _status_at(slots, 12, 30) == SlotStatus.BLOCKED
        assert _status_at(slots, 13) == SlotStatus.BLOCKED
        assert _status_at(slots, 13, 30) == SlotStatus.BLOCKED
        assert _status_at(slots, 14) == SlotStatus.AVAILABLE

    def test_booked_slots(self, unit_db, stylist, make_booking):
        make_booking(stylist, at(TUESDAY, 15), at(TUESDAY, 16))

        slots = SlotGenerator(unit_db).generate_slots(stylist, TUESDAY, 60, granularity_minutes=30)
        assert _status_at(slots, 14) == SlotStatus.AVAILABLE
        assert _status_at(slots, 14, 30) == SlotStatus.BOOKED
        assert _status_at(slots, 15) == SlotStatus.BOOKED
        assert _status_at(slots, 15, 30) == SlotStatus.BOOKED
        assert _status_at(slots, 16) == SlotStatus.AVAILABLE

    def test_buffer_applies_on_both_sides(self, unit_db, stylist, make_booking):
        make_booking(stylist, at(TUESDAY, 15), at(TUESDAY, 16), buffer_minutes=15)

        slots = SlotGenerator(unit_db).generate_slots(
            stylist, TUESDAY, 60, granularity_minutes=30, buffer_minutes=15
        )
        assert _status_at(slots, 14) == SlotStatus.BOOKED
        assert _status_at(slots, 16) == SlotStatus.BOOKED
        assert _status_at(slots, 16, 30) == SlotStatus.AVAILABLE

    def test_cancelled_bookings_free_the_slot(self, unit_db, stylist, make_booking):
        make_booking(
            stylist, at(TUESDAY, 15), at(TUESDAY, 16), status=BookingStatus.CANCELLED.value
        )
        slots = SlotGenerator(unit_db).generate_slots(stylist, TUESDAY, 60, granularity_minutes=30)
        assert _status_at(slots, 15) == SlotStatus.AVAILABLE

    def test_day_off_yields_no_slots(self, unit_db, stylist):
        assert SlotGenerator(unit_db).generate_slots(stylist, SUNDAY, 60) == []

    def test_default_granularity(self, unit_db, stylist):
        slots = SlotGenerator(unit_db).generate_slots(stylist, TUESDAY, 60)
        assert slots[1].start - slots[0].start == at(TUESDAY, 10, 15) - at(TUESDAY, 10)

    @pytest.mark.parametrize("duration,granularity", [(0, 15), (60, -5)])
    def test_rejects_non_positive_inputs(self, unit_db, stylist, duration, granularity):
        with pytest.raises(ValidationException):
            SlotGenerator(unit_db).generate_slots(
                stylist, TUESDAY, duration, granularity_minutes=granularity
            )

    def test_available_slot_agrees_with_point_check(self, unit_db, stylist, make_booking):
        make_booking(stylist, at(TUESDAY, 11), at(TUESDAY, 12))
        generator = SlotGenerator(unit_db)

        for slot in generator.generate_slots(stylist, TUESDAY, 60, granularity_minutes=30):
            if slot.status is SlotStatus.BLOCKED:
                continue
            window = TimeWindow(slot.start, slot.end)
            assert generator.is_window_available(stylist, window) == slot.is_available

    def test_is_window_available_excludes_booking(self, unit_db, stylist, make_booking):
        booking = make_booking(stylist, at(TUESDAY, 11), at(TUESDAY, 12))
        window = TimeWindow(at(TUESDAY, 11, 30), at(TUESDAY, 12, 30))
        generator = SlotGenerator(unit_db)

        assert not generator.is_window_available(stylist, window)
        assert generator.is_window_available(stylist, window, exclude_booking_id=booking.id)


class TestSlotGeneratorEdges:
    def test_break_covering_whole_day_yields_no_slots(self, unit_db, salon, make_resource):
        resource = make_resource(
            salon, hours=("10:00", "12:00"), breaks=[{"start": "09:00", "end": "13:00"}]
        )
        slots = SlotGenerator(unit_db).generate_slots(resource, TUESDAY, 60, granularity_minutes=30)
        assert slots == []

    def test_adjacent_breaks_covering_whole_day_yield_no_slots(self, unit_db, salon, make_resource):
        resource = make_resource(
            salon,
            hours=("10:00", "12:00"),
            breaks=[{"start": "11:00", "end": "12:00"}, {"start": "10:00", "end": "11:00"}],
        )
        assert SlotGenerator(unit_db).generate_slots(resource, TUESDAY, 30) == []

    def test_partial_break_still_reports_blocked_slots(self, unit_db, salon, make_resource):
        resource = make_resource(
            salon, hours=("10:00", "12:00"), breaks=[{"start": "10:00", "end": "11:00"}]
        )
        slots = SlotGenerator(unit_db).generate_slots(resource, TUESDAY, 60, granularity_minutes=30)
        assert [slot.status for slot in slots] == [
            SlotStatus.BLOCKED,
            SlotStatus.BLOCKED,
            SlotStatus.AVAILABLE,
        ]

    def test_zero_length_working_window_yields_no_slots(self, unit_db, salon, make_resource):
        resource = make_resource(salon, hours=("10:00", "10:00"))
        assert SlotGenerator(unit_db).generate_slots(resource, TUESDAY, 60) == []

    def test_duration_longer_than_working_window_yields_no_slots(self, unit_db, stylist):
        assert SlotGenerator(unit_db).generate_slots(stylist, TUESDAY, 600) == []

    def test_duration_equal_to_working_window_yields_one_slot(self, unit_db, salon, make_resource):
        resource = make_resource(salon, hours=("10:00", "12:00"))
        slots = SlotGenerator(unit_db).generate_slots(resource, TUESDAY, 120)
        assert [(slot.start, slot.end) for slot in slots] == [(at(TUESDAY, 10), at(TUESDAY, 12))]

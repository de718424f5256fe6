"""
Tests for the Availability Engine

Test Coverage:
1. Status precedence: maintenance > occupied > booked_soon > available
2. Status counts paid bookings only; conflicts count every live booking
3. Day schedule slots, labels, past flags and restartable iteration
4. Start-time suggestions for a session length
"""

from datetime import date, datetime, timedelta

import pytest

from app.config import Settings
from app.services.availability_engine import AvailabilityEngine
from app.services.bed_status import derive_bed_status
from app.services.exceptions import NotFoundError

from conftest import make_bed, make_customer, make_allocation

DAY = date(2026, 3, 5)


def at(hour, minute=0, second=0):
    return datetime(2026, 3, 5, hour, minute, second)


class TestDeriveBedStatus:

    @pytest.mark.parametrize("stored,current,upcoming,expected", [
        ("maintenance", True, True, "maintenance"),
        ("maintenance", False, False, "maintenance"),
        ("available", True, True, "occupied"),
        ("booked_soon", True, False, "occupied"),
        ("occupied", False, True, "booked_soon"),
        ("occupied", False, False, "available"),
    ])
    def test_precedence(self, stored, current, upcoming, expected):
        assert derive_bed_status(stored, current, upcoming) == expected


class TestStatusView:

    def test_booked_soon_then_occupied(self, db, settings):
        bed = make_bed(db)
        make_allocation(db, bed, at(10), at(11))
        engine = AvailabilityEngine(db, settings)

        assert engine.status_of(bed, at(9, 29)) == "available"
        assert engine.status_of(bed, at(9, 40)) == "booked_soon"
        assert engine.status_of(bed, at(10, 5)) == "occupied"
        assert engine.status_of(bed, at(11, 1)) == "available"

    def test_unpaid_hold_shows_available_but_blocks(self, db, settings):
        bed = make_bed(db)
        make_allocation(db, bed, at(10), at(11), payment_status="unpaid")
        engine = AvailabilityEngine(db, settings)

        assert engine.status_of(bed, at(10, 30)) == "available"
        assert engine.is_available(bed.id, at(10, 30), at(11, 30)) is False

    def test_maintenance_wins_over_occupancy(self, db, settings):
        bed = make_bed(db, status="maintenance")
        make_allocation(db, bed, at(10), at(11))

        assert AvailabilityEngine(db, settings).status_of(bed, at(10, 30)) == "maintenance"

    def test_list_with_status_includes_current_booking(self, db, settings):
        bed = make_bed(db)
        idle = make_bed(db)
        customer = make_customer(db, name="Ruwan Jayasuriya")
        allocation = make_allocation(db, bed, at(10), at(11), customer=customer)

        beds = {b["id"]: b for b in AvailabilityEngine(db, settings).list_with_status(at(10, 30))}

        assert beds[bed.id]["status"] == "occupied"
        assert beds[bed.id]["current_allocation"]["id"] == allocation.id
        assert beds[bed.id]["current_allocation"]["customer_name"] == "Ruwan Jayasuriya"
        assert beds[idle.id]["status"] == "available"
        assert beds[idle.id]["current_allocation"] is None

    def test_deleted_beds_are_not_listed(self, db, settings):
        bed = make_bed(db)
        bed.is_deleted = True
        db.commit()

        assert AvailabilityEngine(db, settings).list_with_status(at(10)) == []

    def test_status_snapshot_matches_status_of(self, db, settings):
        beds = [make_bed(db) for _ in range(3)]
        make_allocation(db, beds[0], at(10), at(11))
        make_allocation(db, beds[1], at(10, 20), at(11))
        engine = AvailabilityEngine(db, settings)

        snapshot = engine.status_snapshot(at(10))
        assert snapshot == {bed.id: engine.status_of(bed, at(10)) for bed in beds}
        assert snapshot == {beds[0].id: "occupied", beds[1].id: "booked_soon", beds[2].id: "available"}


class TestConflictView:

    def test_check_availability_lists_conflicts(self, db, settings):
        bed = make_bed(db)
        allocation = make_allocation(db, bed, at(10), at(11))

        result = AvailabilityEngine(db, settings).check_availability(bed.id, at(10, 30), at(11, 30))
        assert result.is_available is False
        assert result.in_maintenance is False
        assert [c["id"] for c in result.conflicts] == [allocation.id]

    def test_touching_booking_is_available(self, db, settings):
        bed = make_bed(db)
        make_allocation(db, bed, at(10), at(11))

        assert AvailabilityEngine(db, settings).is_available(bed.id, at(11), at(12)) is True

    def test_maintenance_bed_is_never_available(self, db, settings):
        bed = make_bed(db, status="maintenance")

        result = AvailabilityEngine(db, settings).check_availability(bed.id, at(10), at(11))
        assert result.is_available is False
        assert result.in_maintenance is True

    def test_unknown_bed_raises(self, db, settings):
        with pytest.raises(NotFoundError):
            AvailabilityEngine(db, settings).check_availability(42, at(10), at(11))

    def test_available_resources(self, db, settings):
        free = make_bed(db)
        busy = make_bed(db)
        make_bed(db, status="maintenance")
        make_allocation(db, busy, at(10), at(11), payment_status="unpaid")

        assert AvailabilityEngine(db, settings).available_resources(at(10), at(11)) == [free.id]


class TestDaySchedule:

    def test_slot_grid_covers_business_hours(self, db, settings):
        bed = make_bed(db)
        schedule = AvailabilityEngine(db, settings).day_schedule(bed.id, DAY, now=at(0))
        slots = list(schedule)

        assert len(schedule) == 28
        assert len(slots) == 28
        assert (slots[0].start_label, slots[0].end_label) == ("08:00", "08:30")
        assert (slots[-1].start_label, slots[-1].end_label) == ("21:30", "22:00")
        assert all(slot.is_available for slot in slots)

    def test_iteration_is_restartable(self, db, settings):
        bed = make_bed(db)
        make_allocation(db, bed, at(10), at(11))
        schedule = AvailabilityEngine(db, settings).day_schedule(bed.id, DAY, now=at(0))

        first = [slot.to_dict() for slot in schedule]
        second = [slot.to_dict() for slot in schedule]
        assert first == second

    def test_booked_slots_carry_the_booking(self, db, settings):
        bed = make_bed(db)
        customer = make_customer(db, name="Dilani Fernando")
        allocation = make_allocation(db, bed, at(10), at(11), customer=customer, payment_status="unpaid")

        slots = {s.start_label: s for s in AvailabilityEngine(db, settings).day_schedule(bed.id, DAY, now=at(0))}

        for label in ("10:00", "10:30"):
            assert slots[label].is_available is False
            assert slots[label].allocation["id"] == allocation.id
            assert slots[label].allocation["customer_name"] == "Dilani Fernando"
        assert slots["11:00"].is_available is True
        assert slots["09:30"].allocation is None

    def test_booking_across_closing_and_midnight(self, db, settings):
        bed = make_bed(db)
        overnight = make_allocation(db, bed, at(21), datetime(2026, 3, 6, 9))
        engine = AvailabilityEngine(db, settings)

        evening = {s.start_label: s for s in engine.day_schedule(bed.id, DAY, now=at(0))}
        assert evening["21:00"].allocation["id"] == overnight.id
        assert evening["21:30"].allocation["id"] == overnight.id
        assert evening["20:30"].is_available is True

        morning = {s.start_label: s for s in engine.day_schedule(bed.id, date(2026, 3, 6), now=at(0))}
        assert morning["08:00"].allocation["id"] == overnight.id
        assert morning["08:30"].allocation["id"] == overnight.id
        assert morning["08:30"].is_available is False
        assert morning["09:00"].allocation is None
        assert morning["09:00"].is_available is True

    def test_past_slots_are_unavailable(self, db, settings):
        bed = make_bed(db)
        slots = {s.start_label: s for s in AvailabilityEngine(db, settings).day_schedule(bed.id, DAY, now=at(12, 10))}

        assert slots["12:00"].is_past is True
        assert slots["12:00"].is_available is False
        assert slots["12:30"].is_past is False
        assert slots["12:30"].is_available is True

    def test_slot_prefers_booking_covering_its_start(self, db, settings):
        bed = make_bed(db)
        first = make_allocation(db, bed, at(9, 45), at(10, 15))
        second = make_allocation(db, bed, at(10, 15), at(10, 45))

        slots = {s.start_label: s for s in AvailabilityEngine(db, settings).day_schedule(bed.id, DAY, now=at(0))}
        assert slots["10:00"].allocation["id"] == first.id
        assert slots["10:30"].allocation["id"] == second.id

    def test_slot_falls_back_to_earliest_overlap(self, db, settings):
        bed = make_bed(db)
        inner = make_allocation(db, bed, at(10, 10), at(10, 20))

        slots = {s.start_label: s for s in AvailabilityEngine(db, settings).day_schedule(bed.id, DAY, now=at(0))}
        assert slots["10:00"].allocation["id"] == inner.id

    def test_cancelled_bookings_leave_slots_free(self, db, settings):
        bed = make_bed(db)
        make_allocation(db, bed, at(10), at(11), status="cancelled")

        slots = {s.start_label: s for s in AvailabilityEngine(db, settings).day_schedule(bed.id, DAY, now=at(0))}
        assert slots["10:00"].is_available is True

    def test_business_window_uses_venue_timezone(self, db):
        colombo = Settings(VENUE_TIMEZONE="Asia/Colombo")
        start, end = AvailabilityEngine(db, colombo).business_window(DAY)

        # 08:00 and 22:00 at UTC+05:30
        assert start == at(2, 30)
        assert end == at(16, 30)


class TestStartTimes:

    def test_sessions_fit_around_bookings(self, db, settings):
        bed = make_bed(db)
        make_allocation(db, bed, at(10), at(11))

        starts = AvailabilityEngine(db, settings).available_start_times(bed.id, DAY, 60, now=at(0))
        start_times = [s["start_time"] for s in starts]

        assert at(9) in start_times
        assert at(9, 30) not in start_times
        assert at(10, 30) not in start_times
        assert at(11) in start_times
        assert start_times[-1] == at(21)
        assert len(starts) == 24

    def test_display_time_is_twelve_hour(self, db, settings):
        bed = make_bed(db)
        starts = AvailabilityEngine(db, settings).available_start_times(bed.id, DAY, 60, now=at(0))

        assert starts[0]["display_time"] == "08:00 AM - 09:00 AM"
        assert starts[0]["end_time"] == starts[0]["start_time"] + timedelta(minutes=60)

    def test_past_starts_are_skipped(self, db, settings):
        bed = make_bed(db)
        starts = AvailabilityEngine(db, settings).available_start_times(bed.id, DAY, 30, now=at(21, 10))

        assert [s["start_time"] for s in starts] == [at(21, 30)]


class TestOverview:

    def test_window_conflicts_and_day_bookings(self, db, settings):
        bed = make_bed(db)
        other = make_bed(db)
        allocation = make_allocation(db, bed, at(10), at(11))

        overview = {
            entry["id"]: entry
            for entry in AvailabilityEngine(db, settings).beds_with_availability(DAY, at(10, 30), at(11, 30), now=at(10, 30))
        }

        assert overview[bed.id]["is_available"] is False
        assert overview[bed.id]["current_status"] == "occupied"
        assert [c["id"] for c in overview[bed.id]["conflicting_bookings"]] == [allocation.id]
        assert overview[bed.id]["day_bookings"][0]["status"] == "confirmed"
        assert overview[other.id]["is_available"] is True
        assert overview[other.id]["day_bookings"] == []

"""
Tests for the Booking Lifecycle Reconciler

Test Coverage:
1. confirmed -> in_progress -> completed as time passes
2. Auto-cancellation of unpaid bookings at the 15 minute boundary; paid ones are kept
3. Qualifying invoices suppress auto-cancellation
4. Persisted bed status matches the live status view; second run is a no-op
5. Maintenance survives every sweep
6. One failing record does not abort the batch
"""

from datetime import datetime

from app.services.availability_engine import AvailabilityEngine
from app.services.lifecycle_reconciler import LifecycleReconciler, ReconciliationResult, AUTO_CANCEL_NOTE

from conftest import make_bed, make_allocation, make_invoice


def at(hour, minute=0, second=0):
    return datetime(2026, 3, 5, hour, minute, second)


def persisted_statuses(db, beds):
    for bed in beds:
        db.refresh(bed)
    return {bed.id: bed.status for bed in beds}


class TestLifecycleTransitions:

    def test_activation_then_completion(self, db, settings):
        bed = make_bed(db)
        allocation = make_allocation(db, bed, at(10), at(11))
        reconciler = LifecycleReconciler(db, settings)

        result = reconciler.run(at(10, 5))
        db.refresh(allocation)
        db.refresh(bed)
        assert result.activated == 1
        assert allocation.status == "in_progress"
        assert bed.status == "occupied"

        # end is inclusive for occupancy, exclusive for completion
        result = reconciler.run(at(11))
        db.refresh(allocation)
        assert result.completed == 0
        assert allocation.status == "in_progress"

        result = reconciler.run(at(11, 0, 1))
        db.refresh(allocation)
        db.refresh(bed)
        assert result.completed == 1
        assert allocation.status == "completed"
        assert bed.status == "available"

    def test_booked_soon_window(self, db, settings):
        make_bed(db)
        bed = make_bed(db)
        allocation = make_allocation(db, bed, at(10, 5), at(11, 5))
        reconciler = LifecycleReconciler(db, settings)

        reconciler.run(at(9, 40))
        db.refresh(bed)
        assert bed.status == "booked_soon"

        result = reconciler.run(at(10, 6))
        db.refresh(bed)
        db.refresh(allocation)
        assert result.activated == 1
        assert allocation.status == "in_progress"
        assert bed.status == "occupied"
        assert AvailabilityEngine(db, settings).status_of(bed, at(10, 6)) == "occupied"

    def test_unpaid_booking_does_not_occupy_bed(self, db, settings):
        bed = make_bed(db)
        make_allocation(db, bed, at(10), at(11), payment_status="unpaid")

        LifecycleReconciler(db, settings).run(at(10, 5))
        db.refresh(bed)
        assert bed.status == "available"


class TestAutoCancellation:

    def test_cancel_boundary(self, db, settings):
        bed = make_bed(db)
        # Short sessions that ended without being picked up stay "confirmed"
        overdue = make_allocation(
            db, bed, at(11, 44, 59), at(11, 55), payment_status="unpaid", notes="Walk-in"
        )
        recent = make_allocation(db, bed, at(11, 46), at(11, 58), payment_status="unpaid")

        result = LifecycleReconciler(db, settings).run(at(12))
        db.refresh(overdue)
        db.refresh(recent)

        assert result.auto_cancelled == 1
        assert overdue.status == "cancelled"
        assert overdue.notes == "Walk-in | " + AUTO_CANCEL_NOTE.format(minutes=15)
        assert recent.status == "confirmed"
        assert recent.notes is None

    def test_note_without_previous_notes(self, db, settings):
        bed = make_bed(db)
        overdue = make_allocation(db, bed, at(9), at(9, 30), payment_status="unpaid")

        LifecycleReconciler(db, settings).run(at(12))
        db.refresh(overdue)
        assert overdue.notes == "Auto-cancelled: No payment received within 15 minutes."

    def test_qualifying_invoice_suppresses_cancel(self, db, settings):
        bed = make_bed(db)
        missed = make_allocation(db, bed, at(9), at(9, 30), payment_status="unpaid")
        make_invoice(db, missed, status="completed", payment_status="paid")

        result = LifecycleReconciler(db, settings).run(at(12))
        db.refresh(missed)
        assert result.auto_cancelled == 0
        assert missed.status == "confirmed"

    def test_unpaid_invoice_does_not_suppress_cancel(self, db, settings):
        bed = make_bed(db)
        missed = make_allocation(db, bed, at(9), at(9, 30), payment_status="partially_paid")
        make_invoice(db, missed, status="pending", payment_status="unpaid")

        LifecycleReconciler(db, settings).run(at(12))
        db.refresh(missed)
        assert missed.status == "cancelled"

    def test_paid_booking_missed_between_sweeps_is_kept(self, db, settings):
        bed = make_bed(db)
        missed = make_allocation(db, bed, at(9), at(9, 30), payment_status="paid")

        result = LifecycleReconciler(db, settings).run(at(12))
        db.refresh(missed)
        assert result.auto_cancelled == 0
        assert missed.status == "confirmed"
        assert missed.notes is None

    def test_booking_inside_window_is_activated_not_cancelled(self, db, settings):
        bed = make_bed(db)
        allocation = make_allocation(db, bed, at(10), at(12), payment_status="unpaid")

        result = LifecycleReconciler(db, settings).run(at(10, 30))
        db.refresh(allocation)
        assert result.activated == 1
        assert result.auto_cancelled == 0
        assert allocation.status == "in_progress"


class TestStatusRefresh:

    def test_persisted_status_matches_live_view(self, db, settings):
        beds = [make_bed(db) for _ in range(4)]
        make_allocation(db, beds[0], at(10), at(11))
        make_allocation(db, beds[1], at(10, 20), at(11))
        make_allocation(db, beds[2], at(10), at(11), payment_status="unpaid")
        beds[3].status = "maintenance"
        db.commit()

        LifecycleReconciler(db, settings).run(at(10))

        assert persisted_statuses(db, beds) == AvailabilityEngine(db, settings).status_snapshot(at(10))
        assert persisted_statuses(db, beds) == {
            beds[0].id: "occupied",
            beds[1].id: "booked_soon",
            beds[2].id: "available",
            beds[3].id: "maintenance",
        }

    def test_second_run_is_a_no_op(self, db, settings):
        beds = [make_bed(db) for _ in range(2)]
        make_allocation(db, beds[0], at(10), at(11))
        make_allocation(db, beds[1], at(9), at(9, 30), payment_status="unpaid")
        reconciler = LifecycleReconciler(db, settings)

        first = reconciler.run(at(10, 5))
        snapshot = persisted_statuses(db, beds)
        second = reconciler.run(at(10, 5))

        assert first.total_changes > 0
        assert second.total_changes == 0
        assert second.failed == 0
        assert persisted_statuses(db, beds) == snapshot

    def test_maintenance_is_never_overwritten(self, db, settings):
        bed = make_bed(db, status="maintenance")
        allocation = make_allocation(db, bed, at(10), at(11))

        result = LifecycleReconciler(db, settings).run(at(10, 5))
        db.refresh(bed)
        db.refresh(allocation)

        assert bed.status == "maintenance"
        assert result.status_changes == 0
        # The booking itself still moves forward
        assert allocation.status == "in_progress"

    def test_refresh_bed_statuses_counts_changes(self, db, settings):
        bed = make_bed(db)
        make_allocation(db, bed, at(10), at(11))
        reconciler = LifecycleReconciler(db, settings)

        assert reconciler.refresh_bed_statuses(at(10, 30)) == 1
        assert reconciler.refresh_bed_statuses(at(10, 30)) == 0


class TestFailureIsolation:

    def test_failing_record_does_not_abort_batch(self, db, settings, monkeypatch):
        bed_a = make_bed(db)
        bed_b = make_bed(db)
        broken = make_allocation(db, bed_a, at(10), at(11))
        healthy = make_allocation(db, bed_b, at(10), at(11))

        reconciler = LifecycleReconciler(db, settings)
        real_transition = reconciler.store.transition

        def flaky_transition(allocation, new_status):
            if allocation.id == broken.id:
                raise RuntimeError("simulated write failure")
            return real_transition(allocation, new_status)

        monkeypatch.setattr(reconciler.store, "transition", flaky_transition)

        result = reconciler.run(at(10, 5))
        db.refresh(broken)
        db.refresh(healthy)

        assert result.failed == 1
        assert result.activated == 1
        assert broken.status == "confirmed"
        assert healthy.status == "in_progress"

    def test_next_run_repairs_the_skipped_record(self, db, settings, monkeypatch):
        bed = make_bed(db)
        allocation = make_allocation(db, bed, at(10), at(11))

        def failing_transition(allocation, new_status):
            raise RuntimeError("boom")

        reconciler = LifecycleReconciler(db, settings)
        monkeypatch.setattr(reconciler.store, "transition", failing_transition)
        assert reconciler.run(at(10, 5)).failed == 1

        result = LifecycleReconciler(db, settings).run(at(10, 6))
        db.refresh(allocation)
        assert result.activated == 1
        assert allocation.status == "in_progress"


class TestReconciliationResult:

    def test_to_dict(self):
        result = ReconciliationResult(completed=1, activated=2, auto_cancelled=3, status_changes=4)
        data = result.to_dict()

        assert result.total_changes == 10
        assert data["completed"] == 1
        assert data["auto_cancelled"] == 3
        assert data["skipped"] is False

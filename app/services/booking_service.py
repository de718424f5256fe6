"""
Booking Intake Service

Validates and records bookings against the availability engine. The bed row
is locked for the duration of the check-then-insert so two requests for the
same slot cannot both pass the overlap check.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..models.bed import Bed
from ..models.bed_allocation import BedAllocation, PaymentStatus, TERMINAL_STATUSES
from ..models.customer import Customer
from ..models.package import Package
from ..utils.clock import utc_now, to_naive_utc
from ..utils.db_helpers import acquire_row_lock
from .allocation_store import AllocationStore, validate_window
from .availability_engine import AvailabilityEngine
from .exceptions import ConflictError, InvalidWindowError, NotFoundError, SchedulingError
from .lifecycle_reconciler import LifecycleReconciler

logger = logging.getLogger(__name__)


class BookingService:

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.store = AllocationStore(db, self.settings)
        self.engine = AvailabilityEngine(db, self.settings)

    def _lock_bed(self, bed_id: int) -> Bed:
        try:
            bed = acquire_row_lock(
                self.db, Bed,
                (Bed.id == bed_id) & (Bed.is_deleted == False),  # noqa: E712
                nowait=True
            )
        except OperationalError as e:
            logger.warning(f"Lock contention on bed {bed_id}: {e}")
            self.db.rollback()
            raise ConflictError("Bed is busy with another request, please retry")

        if not bed:
            raise NotFoundError("Bed", bed_id)
        return bed

    def _ensure_bookable(
        self,
        bed_id: int,
        start_time: datetime,
        end_time: datetime,
        excluding_id: Optional[int] = None
    ) -> None:
        availability = self.engine.check_availability(bed_id, start_time, end_time, excluding_id)
        if availability.in_maintenance:
            self.db.rollback()
            raise ConflictError("Bed is under maintenance")
        if not availability.is_available:
            self.db.rollback()
            raise ConflictError(
                "This time slot already has a booking for the selected bed",
                conflicts=availability.conflicts
            )

    def _refresh_statuses(self, now: datetime) -> None:
        LifecycleReconciler(self.db, self.settings).refresh_bed_statuses(now)

    def create_booking(
        self,
        bed_id: int,
        start_time: datetime,
        end_time: datetime,
        customer_id: Optional[int] = None,
        package_id: Optional[int] = None,
        membership_package_id: Optional[int] = None,
        payment_status: str = PaymentStatus.UNPAID.value,
        total_amount: Optional[Decimal] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BedAllocation:
        """
        Create a confirmed booking.

        Raises:
            InvalidWindowError: window empty/inverted or already started
            NotFoundError: bed, customer or package missing
            ConflictError: bed in maintenance or slot overlaps another booking
        """
        now = now or utc_now()
        start_time = to_naive_utc(start_time)
        end_time = to_naive_utc(end_time)

        validate_window(start_time, end_time)
        if start_time <= now:
            raise InvalidWindowError("start_time must be in the future")

        if customer_id is None and membership_package_id is None:
            raise SchedulingError("Either customer_id or membership_package_id is required")

        if customer_id is not None and self.db.get(Customer, customer_id) is None:
            raise NotFoundError("Customer", customer_id)

        package = None
        if package_id is not None:
            package = self.db.get(Package, package_id)
            if package is None or not package.is_active:
                raise NotFoundError("Package", package_id)

        # Lock, then check overlap (safe now because the bed row is locked)
        self._lock_bed(bed_id)
        self._ensure_bookable(bed_id, start_time, end_time)

        if total_amount is None:
            total_amount = package.price if package is not None else Decimal("0")

        allocation = self.store.create(
            bed_id=bed_id,
            customer_id=customer_id,
            start_time=start_time,
            end_time=end_time,
            package_id=package_id,
            membership_package_id=membership_package_id,
            payment_status=payment_status,
            total_amount=total_amount,
            notes=notes,
            now=now,
        )

        self._refresh_statuses(now)
        return allocation

    def _get_mutable(self, allocation_id: int) -> BedAllocation:
        allocation = self.store.get(allocation_id)
        if allocation.status in TERMINAL_STATUSES:
            raise SchedulingError(
                f"Booking {allocation.booking_number} is {allocation.status} and can no longer change"
            )
        return allocation

    def update_status(self, allocation_id: int, status: str, now: Optional[datetime] = None) -> BedAllocation:
        self._get_mutable(allocation_id)
        allocation = self.store.set_status(allocation_id, status)
        self._refresh_statuses(now or utc_now())
        return allocation

    def update_payment_status(
        self,
        allocation_id: int,
        payment_status: str,
        now: Optional[datetime] = None
    ) -> BedAllocation:
        self._get_mutable(allocation_id)
        allocation = self.store.set_payment_status(allocation_id, payment_status)
        self._refresh_statuses(now or utc_now())
        return allocation

    def reschedule(
        self,
        allocation_id: int,
        start_time: datetime,
        end_time: datetime,
        now: Optional[datetime] = None
    ) -> BedAllocation:
        """Move a booking; it is re-checked against every other booking on its bed"""
        now = now or utc_now()
        start_time = to_naive_utc(start_time)
        end_time = to_naive_utc(end_time)
        validate_window(start_time, end_time)

        allocation = self._get_mutable(allocation_id)
        self._lock_bed(allocation.bed_id)
        self._ensure_bookable(allocation.bed_id, start_time, end_time, excluding_id=allocation_id)

        allocation = self.store.reschedule(allocation_id, start_time, end_time)
        self._refresh_statuses(now)
        return allocation

    def cancel(self, allocation_id: int, reason: Optional[str] = None, now: Optional[datetime] = None) -> BedAllocation:
        self._get_mutable(allocation_id)
        allocation = self.store.cancel(allocation_id, reason)
        self._refresh_statuses(now or utc_now())
        return allocation

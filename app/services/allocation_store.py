"""
Allocation Store

Owns bed allocation records: creation, overlap lookups, the paid-occupancy
views used for bed status, and the predicates the reconciler sweeps over.

Windows are half-open [start, end): an allocation ending at T does not
overlap one starting at T.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import and_, exists, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..config import Settings, get_settings

from ..models.bed_allocation import BedAllocation, AllocationStatus, PaymentStatus, ACTIVE_STATUSES
from ..models.invoice import Invoice, InvoicePaymentStatus, QUALIFYING_INVOICE_STATUSES
from ..utils.clock import utc_now, utc_to_venue_local
from ..utils.logging_config import get_logger
from .exceptions import ConflictError, NotFoundError, InvalidWindowError

logger = logging.getLogger(__name__)
structured_logger = get_logger(__name__)

BOOKING_NUMBER_PREFIX = "BK"
NOTE_SEPARATOR = " | "

# Concurrent creates on different beds can race for the same sequence number
BOOKING_NUMBER_ATTEMPTS = 3


def validate_window(start_time: datetime, end_time: datetime) -> None:
    if start_time is None or end_time is None:
        raise InvalidWindowError("start_time and end_time are required")
    if end_time <= start_time:
        raise InvalidWindowError("end_time must be after start_time")


def qualifying_invoice_clause():
    """
    EXISTS an invoice for the allocation in draft/pending/completed whose own
    payment_status is not unpaid. Independent of the allocation's payment_status.
    """
    return exists().where(
        and_(
            Invoice.allocation_id == BedAllocation.id,
            Invoice.status.in_(QUALIFYING_INVOICE_STATUSES),
            Invoice.payment_status != InvoicePaymentStatus.UNPAID.value,
        )
    )


class AllocationStore:

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def _query(self):
        return self.db.query(BedAllocation).options(joinedload(BedAllocation.customer))

    def _not_cancelled(self):
        return BedAllocation.status != AllocationStatus.CANCELLED.value

    # ------------------------------------------------------------------
    # Creation / lookup
    # ------------------------------------------------------------------

    def next_booking_number(self, on: Optional[datetime] = None) -> str:
        """
        BK + yymmdd + sequence within the venue-local day.

        The sequence is zero-padded to 4 digits and widens past 9999, so the
        latest number is the longest one, then the highest.
        """
        local_day = utc_to_venue_local(on or utc_now(), self.settings.venue_timezone)
        prefix = f"{BOOKING_NUMBER_PREFIX}{local_day.strftime('%y%m%d')}"
        last = self.db.query(BedAllocation.booking_number).filter(
            BedAllocation.booking_number.like(f"{prefix}%")
        ).order_by(
            func.length(BedAllocation.booking_number).desc(),
            BedAllocation.booking_number.desc()
        ).first()

        sequence = int(last[0][len(prefix):]) + 1 if last else 1
        return f"{prefix}{sequence:04d}"

    def create(
        self,
        bed_id: int,
        customer_id: Optional[int],
        start_time: datetime,
        end_time: datetime,
        package_id: Optional[int] = None,
        membership_package_id: Optional[int] = None,
        payment_status: str = PaymentStatus.UNPAID.value,
        total_amount: Decimal = Decimal("0"),
        notes: Optional[str] = None,
        booking_number: Optional[str] = None,
        status: str = AllocationStatus.CONFIRMED.value,
        now: Optional[datetime] = None,
    ) -> BedAllocation:
        """
        Validate the window and persist. Overlap checks belong to booking intake.

        A generated booking number that loses a race is regenerated; each
        insert runs in a SAVEPOINT so the caller's bed lock is kept.

        Raises:
            InvalidWindowError: window empty or inverted
            ConflictError: booking number already taken
        """
        validate_window(start_time, end_time)

        for attempt in range(1, BOOKING_NUMBER_ATTEMPTS + 1):
            allocation = BedAllocation(
                booking_number=booking_number or self.next_booking_number(now),
                bed_id=bed_id,
                customer_id=customer_id,
                package_id=package_id,
                membership_package_id=membership_package_id,
                start_time=start_time,
                end_time=end_time,
                status=AllocationStatus(status).value,
                payment_status=PaymentStatus(payment_status).value,
                total_amount=total_amount,
                notes=notes,
            )
            try:
                with self.db.begin_nested():
                    self.db.add(allocation)
                break
            except IntegrityError as e:
                logger.warning(
                    f"Booking number {allocation.booking_number} already taken "
                    f"(attempt {attempt}/{BOOKING_NUMBER_ATTEMPTS}): {e.orig}"
                )
                if booking_number or attempt == BOOKING_NUMBER_ATTEMPTS:
                    self.db.rollback()
                    raise ConflictError("Booking number already taken, please retry")

        self.db.commit()
        self.db.refresh(allocation)

        structured_logger.allocation_created(allocation.id, allocation.booking_number, bed_id)
        return allocation

    def get(self, allocation_id: int) -> BedAllocation:
        allocation = self._query().filter(BedAllocation.id == allocation_id).first()
        if not allocation:
            raise NotFoundError("Allocation", allocation_id)
        return allocation

    # ------------------------------------------------------------------
    # Overlap queries (payment status ignored: unpaid holds still block)
    # ------------------------------------------------------------------

    def find_overlapping(
        self,
        bed_id: int,
        start_time: datetime,
        end_time: datetime,
        excluding_id: Optional[int] = None
    ) -> List[BedAllocation]:
        query = self._query().filter(
            BedAllocation.bed_id == bed_id,
            self._not_cancelled(),
            BedAllocation.start_time < end_time,
            BedAllocation.end_time > start_time,
        )
        if excluding_id is not None:
            query = query.filter(BedAllocation.id != excluding_id)
        return query.order_by(BedAllocation.start_time, BedAllocation.id).all()

    def overlapping_bed_ids(self, start_time: datetime, end_time: datetime) -> set:
        rows = self.db.query(BedAllocation.bed_id).filter(
            self._not_cancelled(),
            BedAllocation.start_time < end_time,
            BedAllocation.end_time > start_time,
        ).distinct().all()
        return {row[0] for row in rows}

    def for_bed_in_window(self, bed_id: int, start_time: datetime, end_time: datetime) -> List[BedAllocation]:
        """Non-cancelled allocations touching a window, earliest first (day schedule input)"""
        return self.find_overlapping(bed_id, start_time, end_time)

    # ------------------------------------------------------------------
    # Paid occupancy views (bed status)
    # ------------------------------------------------------------------

    def _paid_active_query(self):
        return self._query().filter(
            BedAllocation.status.in_(ACTIVE_STATUSES),
            BedAllocation.payment_status == PaymentStatus.PAID.value,
        )

    @staticmethod
    def _group_by_bed(allocations: List[BedAllocation]) -> Dict[int, List[BedAllocation]]:
        grouped: Dict[int, List[BedAllocation]] = defaultdict(list)
        for allocation in allocations:
            grouped[allocation.bed_id].append(allocation)
        return dict(grouped)

    def active_at(self, instant: datetime) -> Dict[int, List[BedAllocation]]:
        """Paid, confirmed/in-progress allocations covering `instant`, keyed by bed"""
        allocations = self._paid_active_query().filter(
            BedAllocation.start_time <= instant,
            BedAllocation.end_time >= instant,
        ).order_by(BedAllocation.start_time, BedAllocation.id).all()
        return self._group_by_bed(allocations)

    def upcoming_within(self, instant: datetime, horizon_minutes: int) -> Dict[int, List[BedAllocation]]:
        """Paid, confirmed/in-progress allocations starting in (instant, instant + horizon]"""
        allocations = self._paid_active_query().filter(
            BedAllocation.start_time > instant,
            BedAllocation.start_time <= instant + timedelta(minutes=horizon_minutes),
        ).order_by(BedAllocation.start_time, BedAllocation.id).all()
        return self._group_by_bed(allocations)

    # ------------------------------------------------------------------
    # Reconciler sweep predicates
    # ------------------------------------------------------------------

    def ended_in_progress(self, now: datetime) -> List[BedAllocation]:
        return self.db.query(BedAllocation).filter(
            BedAllocation.status == AllocationStatus.IN_PROGRESS.value,
            BedAllocation.end_time < now,
        ).order_by(BedAllocation.id).all()

    def started_confirmed(self, now: datetime) -> List[BedAllocation]:
        return self.db.query(BedAllocation).filter(
            BedAllocation.status == AllocationStatus.CONFIRMED.value,
            BedAllocation.start_time <= now,
            BedAllocation.end_time > now,
        ).order_by(BedAllocation.id).all()

    def overdue_unpaid(self, now: datetime, grace_minutes: int) -> List[BedAllocation]:
        """
        Still-confirmed allocations past start + grace that are not paid and
        have no qualifying invoice. The two payment checks stay independent.
        """
        return self.db.query(BedAllocation).filter(
            BedAllocation.status == AllocationStatus.CONFIRMED.value,
            BedAllocation.start_time < now - timedelta(minutes=grace_minutes),
            BedAllocation.payment_status != PaymentStatus.PAID.value,
            ~qualifying_invoice_clause(),
        ).order_by(BedAllocation.id).all()

    def has_qualifying_invoice(self, allocation_id: int) -> bool:
        return self.db.query(
            self.db.query(Invoice).filter(
                Invoice.allocation_id == allocation_id,
                Invoice.status.in_(QUALIFYING_INVOICE_STATUSES),
                Invoice.payment_status != InvoicePaymentStatus.UNPAID.value,
            ).exists()
        ).scalar()

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def transition(self, allocation: BedAllocation, new_status: str) -> str:
        """Set lifecycle status without committing; returns the old status"""
        old_status = allocation.status
        allocation.status = AllocationStatus(new_status).value
        allocation.updated_at = datetime.utcnow()
        structured_logger.allocation_status_changed(
            allocation.id, allocation.booking_number, old_status, allocation.status
        )
        return old_status

    @staticmethod
    def append_note(allocation: BedAllocation, note: str) -> None:
        allocation.notes = f"{allocation.notes}{NOTE_SEPARATOR}{note}" if allocation.notes else note

    def set_payment_status(self, allocation_id: int, payment_status: str) -> BedAllocation:
        allocation = self.get(allocation_id)
        allocation.payment_status = PaymentStatus(payment_status).value
        allocation.updated_at = datetime.utcnow()
        self.db.commit()
        return allocation

    def set_status(self, allocation_id: int, new_status: str) -> BedAllocation:
        allocation = self.get(allocation_id)
        if allocation.status != new_status:
            self.transition(allocation, new_status)
            self.db.commit()
        return allocation

    def reschedule(self, allocation_id: int, start_time: datetime, end_time: datetime) -> BedAllocation:
        validate_window(start_time, end_time)
        allocation = self.get(allocation_id)
        allocation.start_time = start_time
        allocation.end_time = end_time
        allocation.updated_at = datetime.utcnow()
        self.db.commit()
        return allocation

    def cancel(self, allocation_id: int, reason: Optional[str] = None) -> BedAllocation:
        allocation = self.get(allocation_id)
        if allocation.status != AllocationStatus.CANCELLED.value:
            self.transition(allocation, AllocationStatus.CANCELLED.value)
            if reason:
                self.append_note(allocation, reason)
            self.db.commit()
        return allocation

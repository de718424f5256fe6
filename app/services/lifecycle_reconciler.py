"""
Booking Lifecycle Reconciler

Sweeps bed allocations forward in time. Runs once a minute as a background
job; every run re-derives state from scratch, so a missed or half-finished
run is corrected by the next one.

Steps, in order (later steps see earlier results):
1. in_progress bookings past their end       -> completed
2. confirmed bookings whose window has begun -> in_progress
3. confirmed bookings 15 min past start with no qualifying invoice -> cancelled
4. bed status column re-derived for every non-maintenance bed
"""

import logging
import threading
import time
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..models.bed_allocation import BedAllocation, AllocationStatus
from ..utils.clock import utc_now
from ..utils.db_helpers import try_advisory_xact_lock
from ..utils.logging_config import get_logger
from .allocation_store import AllocationStore
from .bed_catalog import BedCatalog
from .bed_status import derive_bed_status

logger = logging.getLogger(__name__)
structured_logger = get_logger(__name__)

AUTO_CANCEL_NOTE = "Auto-cancelled: No payment received within {minutes} minutes."

# One sweep at a time per process; PostgreSQL adds an advisory lock across processes
_run_lock = threading.Lock()


@dataclass
class ReconciliationResult:
    completed: int = 0
    activated: int = 0
    auto_cancelled: int = 0
    status_changes: int = 0
    failed: int = 0
    skipped: bool = False
    ran_at: Optional[datetime] = None

    @property
    def total_changes(self) -> int:
        return self.completed + self.activated + self.auto_cancelled + self.status_changes

    def to_dict(self) -> dict:
        return asdict(self)


class LifecycleReconciler:
    """
    Booking lifecycle sweep.

    Stateless between runs. Each record is updated inside its own SAVEPOINT;
    a failing record is logged and counted, the rest of the batch continues.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.store = AllocationStore(db, self.settings)
        self.catalog = BedCatalog(db)

    def run(self, now: Optional[datetime] = None) -> ReconciliationResult:
        """
        Run one sweep against a single snapshot of `now`.

        Returns a result with skipped=True when another sweep holds the lock.
        """
        now = now or utc_now()

        if not _run_lock.acquire(blocking=False):
            logger.warning("Reconciliation already running in this process, skipping")
            return ReconciliationResult(skipped=True, ran_at=now)

        try:
            if not try_advisory_xact_lock(self.db):
                self.db.rollback()
                return ReconciliationResult(skipped=True, ran_at=now)

            started = time.time()
            result = ReconciliationResult(ran_at=now)

            # 1. Completion
            result.completed = self._apply_each(
                self.store.ended_in_progress(now), self._complete, result
            )

            # 2. Activation
            result.activated = self._apply_each(
                self.store.started_confirmed(now), self._activate, result
            )

            # 3. Auto-cancellation of unpaid holds
            result.auto_cancelled = self._apply_each(
                self.store.overdue_unpaid(now, self.settings.auto_cancel_grace_minutes),
                self._auto_cancel,
                result
            )

            # 4. Bed status refresh
            result.status_changes = self._refresh(now, result)

            self.db.commit()

            if result.total_changes or result.failed:
                structured_logger.reconciliation_finished(
                    result.to_dict(), duration_ms=round((time.time() - started) * 1000, 2)
                )
            return result

        except Exception:
            self.db.rollback()
            raise
        finally:
            _run_lock.release()

    def refresh_bed_statuses(self, now: Optional[datetime] = None) -> int:
        """Re-derive and persist bed statuses outside a full sweep (after booking changes)"""
        now = now or utc_now()
        changes = self._refresh(now, ReconciliationResult(ran_at=now))
        self.db.commit()
        return changes

    # ------------------------------------------------------------------
    # Record actions
    # ------------------------------------------------------------------

    def _complete(self, allocation: BedAllocation):
        self.store.transition(allocation, AllocationStatus.COMPLETED.value)

    def _activate(self, allocation: BedAllocation):
        self.store.transition(allocation, AllocationStatus.IN_PROGRESS.value)

    def _auto_cancel(self, allocation: BedAllocation):
        self.store.transition(allocation, AllocationStatus.CANCELLED.value)
        self.store.append_note(
            allocation,
            AUTO_CANCEL_NOTE.format(minutes=self.settings.auto_cancel_grace_minutes)
        )
        logger.info(
            f"Auto-cancelled unpaid booking {allocation.booking_number} "
            f"(bed {allocation.bed_id}, start {allocation.start_time})"
        )

    def _apply_each(
        self,
        allocations: List[BedAllocation],
        action: Callable[[BedAllocation], None],
        result: ReconciliationResult
    ) -> int:
        applied = 0
        for allocation in allocations:
            try:
                with self.db.begin_nested():
                    action(allocation)
                applied += 1
            except Exception as e:
                result.failed += 1
                logger.error(f"Error reconciling allocation {allocation.id}: {e}")
        return applied

    def _refresh(self, now: datetime, result: ReconciliationResult) -> int:
        """Full re-derivation, never a diff against the previous run"""
        current = self.store.active_at(now)
        upcoming = self.store.upcoming_within(now, self.settings.booked_soon_minutes)

        changes = 0
        for bed in self.catalog.list_bookable():
            new_status = derive_bed_status(bed.status, bed.id in current, bed.id in upcoming)
            try:
                with self.db.begin_nested():
                    changed = self.catalog.apply_status(bed, new_status)
                if changed:
                    changes += 1
            except Exception as e:
                result.failed += 1
                logger.error(f"Error refreshing status of bed {bed.id}: {e}")
        return changes

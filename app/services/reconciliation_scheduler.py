"""
Reconciliation Scheduler Service

Runs the booking lifecycle sweep on a fixed interval (every minute by
default) inside the API process.

Uses APScheduler; max_instances=1 and coalesce keep runs from overlapping or
piling up after a stall.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from ..config import settings
from ..database import SessionLocal
from .lifecycle_reconciler import LifecycleReconciler

logger = logging.getLogger(__name__)

JOB_ID = "booking_lifecycle_sweep"

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None
_last_run_time: Optional[datetime] = None
_last_run_result: Optional[Dict] = None


def run_reconciliation(now: Optional[datetime] = None, db: Optional[Session] = None) -> Dict:
    """
    Run one sweep and record the outcome.

    Uses `db` when given (manual trigger from a request), otherwise a
    dedicated session.

    Returns:
        Dict with keys: completed, activated, auto_cancelled, status_changes,
        failed, skipped, ran_at
    """
    global _last_run_time, _last_run_result

    if db is not None:
        result = LifecycleReconciler(db).run(now=now).to_dict()
    else:
        own_db = SessionLocal()
        try:
            result = LifecycleReconciler(own_db).run(now=now).to_dict()
        finally:
            own_db.close()

    _last_run_time = datetime.utcnow()
    _last_run_result = result
    return result


async def run_reconciliation_job():
    """Job function called by the scheduler. Errors are logged; the next tick retries."""
    try:
        run_reconciliation()
    except Exception as e:
        logger.error(f"Scheduled reconciliation failed: {e}")


def start_reconciliation_scheduler() -> bool:
    """
    Start the sweep on `RECONCILE_INTERVAL_SECONDS`.

    Returns:
        True if scheduler started successfully, False otherwise
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Reconciliation scheduler is already running")
        return True

    try:
        _scheduler = AsyncIOScheduler(timezone="UTC")
        _scheduler.add_job(
            run_reconciliation_job,
            IntervalTrigger(seconds=settings.reconcile_interval_seconds),
            id=JOB_ID,
            name="Booking lifecycle sweep",
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        _scheduler.start()

        logger.info(
            f"Reconciliation scheduler started (every {settings.reconcile_interval_seconds}s)"
        )
        return True

    except Exception as e:
        logger.error(f"Failed to start reconciliation scheduler: {e}")
        return False


def stop_reconciliation_scheduler() -> bool:
    global _scheduler

    if _scheduler is None:
        return True

    try:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Reconciliation scheduler stopped")
        return True
    except Exception as e:
        logger.error(f"Failed to stop reconciliation scheduler: {e}")
        return False


def get_scheduler_status() -> Dict:
    status = {
        "running": False,
        "interval_seconds": settings.reconcile_interval_seconds,
        "next_run": None,
        "last_run": None,
        "last_run_result": None,
    }

    if _scheduler is not None and _scheduler.running:
        status["running"] = True
        job = _scheduler.get_job(JOB_ID)
        if job and job.next_run_time:
            status["next_run"] = job.next_run_time.isoformat()

    if _last_run_time:
        status["last_run"] = _last_run_time.isoformat()

    if _last_run_result:
        status["last_run_result"] = _last_run_result

    return status

#!/usr/bin/env python
"""
Reconciliation Worker

Background process that runs the booking lifecycle sweep on a fixed
interval, for deployments that keep the API process free of schedulers
(set RECONCILER_ENABLED=false on the API when using this).

Run with:
    python worker.py

Or with environment:
    RECONCILE_INTERVAL_SECONDS=60 python worker.py
"""

import os
import sys
import time
import logging
import signal

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.config import settings
from app.database import SessionLocal, create_tables
from app.services.lifecycle_reconciler import LifecycleReconciler
from app.utils.logging_config import setup_logging

setup_logging(settings.log_level, json_format=settings.log_json, include_uvicorn=False)
logger = logging.getLogger("worker")

POLL_INTERVAL = settings.reconcile_interval_seconds
RUNNING = True


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully"""
    global RUNNING
    logger.info("Received shutdown signal, finishing current sweep...")
    RUNNING = False


def run_once():
    db = SessionLocal()
    try:
        return LifecycleReconciler(db).run()
    finally:
        db.close()


def run_worker():
    """Main worker loop"""
    logger.info("=" * 50)
    logger.info("Starting Reconciliation Worker")
    logger.info(f"Poll interval: {POLL_INTERVAL}s")
    logger.info("=" * 50)

    create_tables()
    cycle = 0

    while RUNNING:
        cycle += 1
        start_time = time.time()

        try:
            result = run_once()
            if result.skipped:
                logger.info(f"Cycle {cycle}: another sweep in progress, skipped")
            elif result.total_changes or result.failed:
                duration = time.time() - start_time
                logger.info(
                    f"Cycle {cycle}: "
                    f"completed {result.completed} | activated {result.activated} | "
                    f"auto-cancelled {result.auto_cancelled} | bed changes {result.status_changes} | "
                    f"failed {result.failed} | {duration:.2f}s"
                )
        except Exception as e:
            logger.error(f"Error in cycle {cycle}: {e}")

        # Sleep until the next tick, keeping a fixed cadence
        if RUNNING:
            time.sleep(max(0.0, POLL_INTERVAL - (time.time() - start_time)))

    logger.info("Worker shutdown complete")


if __name__ == "__main__":
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        run_worker()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.critical(f"Worker crashed: {e}")
        sys.exit(1)

"""
Health Check Endpoints

- /health/live - Liveness check (is process running)
- /health/ready - Readiness check (is service ready to accept traffic)
- /health/detailed - Component checks, including the reconciliation scheduler
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import text
from datetime import datetime, timezone
import time

from ..database import get_db
from ..config import settings
from ..services.reconciliation_scheduler import get_scheduler_status

router = APIRouter(prefix="/health", tags=["Health"])

APP_VERSION = "1.0.0"


def get_db_health(db: Session) -> dict:
    """Check database connectivity and latency"""
    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        latency_ms = (time.time() - start) * 1000
        return {
            "status": "up",
            "latency_ms": round(latency_ms, 2),
            "type": db.bind.dialect.name
        }
    except Exception as e:
        return {
            "status": "down",
            "error": str(e)[:100]
        }


def get_reconciler_health() -> dict:
    if not settings.reconciler_enabled:
        return {"status": "disabled"}

    scheduler = get_scheduler_status()
    result = scheduler.get("last_run_result") or {}
    if not scheduler["running"]:
        return {"status": "down", **scheduler}
    if result.get("failed"):
        return {"status": "degraded", **scheduler}
    return {"status": "up", **scheduler}


@router.get("/live")
@router.get("/live/")
async def liveness_check():
    """
    Liveness check - is the process running?
    Used by load balancers and orchestrators.
    """
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/ready")
@router.get("/ready/")
async def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness check - is the service ready to accept traffic?
    Checks database connectivity.
    """
    db_health = get_db_health(db)

    if db_health["status"] == "up":
        return {
            "status": "ready",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={
            "status": "not_ready",
            "reason": "database_unavailable",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )


@router.get("/detailed")
@router.get("/detailed/")
async def detailed_health_check(db: Session = Depends(get_db)):
    db_health = get_db_health(db)
    reconciler_health = get_reconciler_health()

    checks = {
        "database": db_health,
        "reconciler": reconciler_health,
    }

    if db_health["status"] == "down":
        overall_status = "unhealthy"
    elif any(c.get("status") in ("degraded", "down") for c in checks.values()):
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    return {
        "status": overall_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": APP_VERSION,
        "environment": settings.environment,
        "checks": checks,
        "config": {
            "venue_timezone": settings.venue_timezone,
            "reconcile_interval_seconds": settings.reconcile_interval_seconds,
        }
    }


@router.get("")
@router.get("/")
async def simple_health_check():
    """Basic status without any dependency checks."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": APP_VERSION
    }

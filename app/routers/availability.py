from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date, datetime

from ..database import get_db
from ..schemas.availability import (
    AvailabilityCheckResponse, AvailableBedsResponse, TimeSlotResponse,
    StartTimeOption, ReconciliationResponse
)
from ..services.availability_engine import AvailabilityEngine
from ..services.reconciliation_scheduler import run_reconciliation, get_scheduler_status
from ..utils.clock import to_naive_utc, venue_local_to_utc

router = APIRouter(prefix="/api", tags=["Availability"])


def _optional_now(now: Optional[datetime]) -> Optional[datetime]:
    return to_naive_utc(now) if now else None


@router.get("/availability/check", response_model=AvailabilityCheckResponse)
async def check_availability(
    bed_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_booking_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """Can this bed take a booking in [start_time, end_time)? Unpaid holds count."""
    result = AvailabilityEngine(db).check_availability(
        bed_id, to_naive_utc(start_time), to_naive_utc(end_time), exclude_booking_id
    )

    if result.in_maintenance:
        message = "Bed is under maintenance"
    elif result.is_available:
        message = "Bed is available for booking"
    else:
        message = "This time overlaps another booking"

    return AvailabilityCheckResponse(
        bed_id=result.bed_id,
        start_time=result.start_time,
        end_time=result.end_time,
        available=result.is_available,
        in_maintenance=result.in_maintenance,
        conflicts=result.conflicts,
        message=message,
    )


@router.get("/availability/beds", response_model=AvailableBedsResponse)
async def available_beds(
    start_time: datetime,
    end_time: datetime,
    db: Session = Depends(get_db)
):
    start_time, end_time = to_naive_utc(start_time), to_naive_utc(end_time)
    return AvailableBedsResponse(
        start_time=start_time,
        end_time=end_time,
        bed_ids=AvailabilityEngine(db).available_resources(start_time, end_time),
    )


@router.get("/availability/overview")
async def beds_overview(
    day: date,
    start: Optional[str] = Query(None, pattern=r"^\d{2}:\d{2}$", description="Venue-local HH:MM"),
    end: Optional[str] = Query(None, pattern=r"^\d{2}:\d{2}$", description="Venue-local HH:MM"),
    db: Session = Depends(get_db)
):
    """Booking screen overview: each bed's status, conflicts for an optional window, and the day's bookings"""
    engine = AvailabilityEngine(db)
    start_time = end_time = None
    if start and end:
        tz_name = engine.settings.venue_timezone
        start_time = venue_local_to_utc(day, datetime.strptime(start, "%H:%M").time(), tz_name)
        end_time = venue_local_to_utc(day, datetime.strptime(end, "%H:%M").time(), tz_name)
    return engine.beds_with_availability(day, start_time, end_time)


@router.get("/availability/beds/{bed_id}/schedule", response_model=List[TimeSlotResponse])
async def day_schedule(
    bed_id: int,
    day: date,
    now: Optional[datetime] = None,
    db: Session = Depends(get_db)
):
    schedule = AvailabilityEngine(db).day_schedule(bed_id, day, _optional_now(now))
    return [slot.to_dict() for slot in schedule]


@router.get("/availability/beds/{bed_id}/slots", response_model=List[StartTimeOption])
async def available_start_times(
    bed_id: int,
    day: date,
    duration_minutes: int = Query(..., gt=0, le=24 * 60),
    now: Optional[datetime] = None,
    db: Session = Depends(get_db)
):
    """Start times where a session of `duration_minutes` fits on this bed"""
    return AvailabilityEngine(db).available_start_times(bed_id, day, duration_minutes, _optional_now(now))


@router.post("/reconciliation/run", response_model=ReconciliationResponse)
async def trigger_reconciliation(
    now: Optional[datetime] = None,
    db: Session = Depends(get_db)
):
    """Run one lifecycle sweep immediately (optionally at a given instant, for testing)"""
    return run_reconciliation(now=_optional_now(now), db=db)


@router.get("/reconciliation/status")
async def reconciliation_status():
    return get_scheduler_status()

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime

from ..database import get_db
from ..schemas.bed import BedCreate, BedUpdate, BedResponse, BedWithStatus
from ..services.availability_engine import AvailabilityEngine
from ..services.bed_catalog import BedCatalog
from ..utils.clock import to_naive_utc

router = APIRouter(prefix="/api/beds", tags=["Beds"])


@router.get("", response_model=List[BedResponse])
@router.get("/", response_model=List[BedResponse])
async def list_beds(db: Session = Depends(get_db)):
    """All beds in floor-grid order"""
    return BedCatalog(db).list_bookable()


@router.get("/status", response_model=List[BedWithStatus])
@router.get("/status/", response_model=List[BedWithStatus])
async def list_beds_with_status(
    now: Optional[datetime] = None,
    db: Session = Depends(get_db)
):
    """
    Live status of every bed (available / occupied / booked_soon / maintenance).

    `now` may be overridden for what-if views; defaults to the server clock.
    """
    return AvailabilityEngine(db).list_with_status(to_naive_utc(now) if now else None)


@router.get("/{bed_id}", response_model=BedResponse)
async def get_bed(bed_id: int, db: Session = Depends(get_db)):
    return BedCatalog(db).get(bed_id)


@router.post("", response_model=BedResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=BedResponse, status_code=status.HTTP_201_CREATED)
async def create_bed(bed_data: BedCreate, db: Session = Depends(get_db)):
    return BedCatalog(db).create_bed(
        bed_number=bed_data.bed_number,
        display_name=bed_data.display_name,
        grid_row=bed_data.grid_row,
        grid_col=bed_data.grid_col,
        bed_type=bed_data.bed_type,
        hourly_rate=bed_data.hourly_rate,
        description=bed_data.description,
        status=bed_data.status.value,
    )


@router.put("/{bed_id}", response_model=BedResponse)
async def update_bed(bed_id: int, bed_data: BedUpdate, db: Session = Depends(get_db)):
    return BedCatalog(db).update_bed(bed_id, **bed_data.model_dump(exclude_unset=True))


@router.delete("/{bed_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bed(bed_id: int, db: Session = Depends(get_db)):
    BedCatalog(db).delete_bed(bed_id)


@router.post("/{bed_id}/maintenance", response_model=BedResponse)
async def start_maintenance(bed_id: int, db: Session = Depends(get_db)):
    """Take a bed out of service. Automatic status updates leave it alone until cleared."""
    return BedCatalog(db).set_maintenance(bed_id)


@router.delete("/{bed_id}/maintenance", response_model=BedResponse)
async def end_maintenance(bed_id: int, db: Session = Depends(get_db)):
    return BedCatalog(db).clear_maintenance(bed_id)

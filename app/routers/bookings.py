from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.bed_allocation import BedAllocation
from ..schemas.booking import (
    BookingCreate, BookingResponse, BookingStatusUpdate,
    BookingPaymentStatusUpdate, BookingReschedule, BookingCancel
)
from ..services.allocation_store import AllocationStore
from ..services.booking_service import BookingService

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])


def to_booking_response(allocation: BedAllocation) -> BookingResponse:
    return BookingResponse.model_validate(allocation)


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(booking_data: BookingCreate, db: Session = Depends(get_db)):
    """
    Create a booking after checking the bed is free.

    Overlapping bookings come back as 409 with the list of conflicting
    bookings so the front desk can tell the customer what is in the way.
    """
    allocation = BookingService(db).create_booking(
        bed_id=booking_data.bed_id,
        start_time=booking_data.start_time,
        end_time=booking_data.end_time,
        customer_id=booking_data.customer_id,
        package_id=booking_data.package_id,
        membership_package_id=booking_data.membership_package_id,
        payment_status=booking_data.payment_status.value,
        total_amount=booking_data.total_amount,
        notes=booking_data.notes,
    )
    return to_booking_response(allocation)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: int, db: Session = Depends(get_db)):
    return to_booking_response(AllocationStore(db).get(booking_id))


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: int,
    status_data: BookingStatusUpdate,
    db: Session = Depends(get_db)
):
    allocation = BookingService(db).update_status(booking_id, status_data.status.value)
    return to_booking_response(allocation)


@router.patch("/{booking_id}/payment-status", response_model=BookingResponse)
async def update_booking_payment_status(
    booking_id: int,
    payment_data: BookingPaymentStatusUpdate,
    db: Session = Depends(get_db)
):
    allocation = BookingService(db).update_payment_status(booking_id, payment_data.payment_status.value)
    return to_booking_response(allocation)


@router.patch("/{booking_id}/reschedule", response_model=BookingResponse)
async def reschedule_booking(
    booking_id: int,
    window: BookingReschedule,
    db: Session = Depends(get_db)
):
    allocation = BookingService(db).reschedule(booking_id, window.start_time, window.end_time)
    return to_booking_response(allocation)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    cancel_data: BookingCancel,
    db: Session = Depends(get_db)
):
    allocation = BookingService(db).cancel(booking_id, cancel_data.reason)
    return to_booking_response(allocation)

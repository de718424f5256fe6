from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum
import re


class AllocationStatus(str, Enum):
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class AllocationSummary(BaseModel):
    id: int
    booking_number: str
    customer_name: str
    start_time: datetime
    end_time: datetime


class BookingCreate(BaseModel):
    bed_id: int
    customer_id: Optional[int] = None
    membership_package_id: Optional[int] = None
    package_id: Optional[int] = None
    start_time: datetime
    end_time: datetime
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    total_amount: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator('notes', mode='before')
    @classmethod
    def sanitize_text_fields(cls, v):
        """Strip script tags and inline event handlers"""
        if isinstance(v, str):
            v = re.sub(r'<script[^>]*>.*?</script>', '', v, flags=re.IGNORECASE | re.DOTALL)
            v = re.sub(r'on\w+\s*=', '', v, flags=re.IGNORECASE)
        return v

    @model_validator(mode='after')
    def validate_customer(self):
        if self.customer_id is None and self.membership_package_id is None:
            raise ValueError('Either customer_id or membership_package_id is required')
        return self


class BookingStatusUpdate(BaseModel):
    status: AllocationStatus


class BookingPaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class BookingReschedule(BaseModel):
    start_time: datetime
    end_time: datetime


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingResponse(BaseModel):
    id: int
    booking_number: str
    bed_id: int
    customer_id: Optional[int] = None
    customer_name: str = "Unknown"
    package_id: Optional[int] = None
    membership_package_id: Optional[int] = None
    start_time: datetime
    end_time: datetime
    status: AllocationStatus
    payment_status: PaymentStatus
    total_amount: Decimal = Decimal("0")
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum

from .booking import AllocationSummary


class BedStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    BOOKED_SOON = "booked_soon"
    MAINTENANCE = "maintenance"


class BedCreate(BaseModel):
    bed_number: str = Field(..., min_length=1, max_length=20)
    display_name: Optional[str] = Field(None, max_length=100)
    grid_row: int = Field(..., ge=1)
    grid_col: int = Field(..., ge=1)
    bed_type: str = Field("standard", max_length=30)
    hourly_rate: Decimal = Field(Decimal("0"), ge=0)
    description: Optional[str] = Field(None, max_length=2000)
    status: BedStatus = BedStatus.AVAILABLE


class BedUpdate(BaseModel):
    bed_number: Optional[str] = Field(None, min_length=1, max_length=20)
    display_name: Optional[str] = Field(None, max_length=100)
    grid_row: Optional[int] = Field(None, ge=1)
    grid_col: Optional[int] = Field(None, ge=1)
    bed_type: Optional[str] = Field(None, max_length=30)
    hourly_rate: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=2000)


class BedResponse(BaseModel):
    id: int
    bed_number: str
    display_name: Optional[str] = None
    label: str
    grid_row: int
    grid_col: int
    bed_type: str
    hourly_rate: Decimal
    description: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BedWithStatus(BaseModel):
    """Live status for the floor grid"""
    id: int
    bed_number: str
    display_name: str
    grid_row: int
    grid_col: int
    bed_type: str
    status: BedStatus
    current_allocation: Optional[AllocationSummary] = None

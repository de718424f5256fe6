from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from .booking import AllocationSummary


class AvailabilityCheckResponse(BaseModel):
    bed_id: int
    start_time: datetime
    end_time: datetime
    available: bool
    in_maintenance: bool = False
    conflicts: List[AllocationSummary] = []
    message: str


class AvailableBedsResponse(BaseModel):
    start_time: datetime
    end_time: datetime
    bed_ids: List[int]


class SlotAllocation(BaseModel):
    id: int
    booking_number: str
    customer_name: str


class TimeSlotResponse(BaseModel):
    slot_start: datetime
    slot_end: datetime
    start_time: str
    end_time: str
    is_available: bool
    is_past: bool
    allocation: Optional[SlotAllocation] = None


class StartTimeOption(BaseModel):
    start_time: datetime
    end_time: datetime
    display_time: str


class ReconciliationResponse(BaseModel):
    completed: int
    activated: int
    auto_cancelled: int
    status_changes: int
    failed: int
    skipped: bool
    ran_at: Optional[datetime] = None

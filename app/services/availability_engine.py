"""
Availability Engine

Answers "which bed is free when" from the catalog, the allocation store and an
explicit `now`. Holds no state of its own between calls.

Two views with deliberately different payment rules:
- status (available / occupied / booked_soon / maintenance) only counts PAID
  allocations, so an unpaid hold still shows the bed as available;
- conflict checks count every non-cancelled allocation, so an unpaid hold
  still blocks the slot.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterator, List, Optional

from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..models.bed import Bed
from ..models.bed_allocation import BedAllocation
from ..utils.clock import utc_now, utc_to_venue_local, venue_local_to_utc
from .allocation_store import AllocationStore
from .bed_catalog import BedCatalog
from .bed_status import derive_bed_status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityResult:
    bed_id: int
    start_time: datetime
    end_time: datetime
    is_available: bool
    in_maintenance: bool = False
    conflicts: List[dict] = field(default_factory=list)


@dataclass(frozen=True)
class TimeSlot:
    slot_start: datetime
    slot_end: datetime
    start_label: str
    end_label: str
    is_available: bool
    is_past: bool
    allocation: Optional[dict] = None

    def to_dict(self) -> dict:
        return {
            "slot_start": self.slot_start,
            "slot_end": self.slot_end,
            "start_time": self.start_label,
            "end_time": self.end_label,
            "is_available": self.is_available,
            "is_past": self.is_past,
            "allocation": self.allocation,
        }


class DaySchedule:
    """
    Fixed slots across one business day for one bed.

    Boundaries and allocations are captured when the schedule is built; each
    iteration walks them again from the first slot.
    """

    def __init__(
        self,
        bed_id: int,
        day: date,
        window_start: datetime,
        window_end: datetime,
        slot_minutes: int,
        allocations: List[BedAllocation],
        now: datetime,
        tz_name: str,
    ):
        self.bed_id = bed_id
        self.day = day
        self.window_start = window_start
        self.window_end = window_end
        self.slot_minutes = slot_minutes
        self.now = now
        self.tz_name = tz_name
        self._allocations = sorted(allocations, key=lambda a: (a.start_time, a.id))

    def __iter__(self) -> Iterator[TimeSlot]:
        step = timedelta(minutes=self.slot_minutes)
        slot_start = self.window_start
        while slot_start < self.window_end:
            slot_end = min(slot_start + step, self.window_end)
            yield self._build_slot(slot_start, slot_end)
            slot_start = slot_end

    def __len__(self) -> int:
        total = (self.window_end - self.window_start).total_seconds()
        return math.ceil(total / (self.slot_minutes * 60))

    def _pick_allocation(self, slot_start: datetime, slot_end: datetime) -> Optional[BedAllocation]:
        overlapping = [a for a in self._allocations if a.overlaps(slot_start, slot_end)]
        if not overlapping:
            return None
        for allocation in overlapping:
            if allocation.start_time <= slot_start < allocation.end_time:
                return allocation
        return overlapping[0]

    def _label(self, value: datetime) -> str:
        return utc_to_venue_local(value, self.tz_name).strftime("%H:%M")

    def _build_slot(self, slot_start: datetime, slot_end: datetime) -> TimeSlot:
        allocation = self._pick_allocation(slot_start, slot_end)
        is_past = slot_start < self.now
        summary = None
        if allocation is not None:
            summary = {
                "id": allocation.id,
                "booking_number": allocation.booking_number,
                "customer_name": allocation.customer_name,
            }
        return TimeSlot(
            slot_start=slot_start,
            slot_end=slot_end,
            start_label=self._label(slot_start),
            end_label=self._label(slot_end),
            is_available=allocation is None and not is_past,
            is_past=is_past,
            allocation=summary,
        )


class AvailabilityEngine:

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.catalog = BedCatalog(db)
        self.store = AllocationStore(db, self.settings)

    # ------------------------------------------------------------------
    # Status view
    # ------------------------------------------------------------------

    def status_of(self, bed: Bed, now: Optional[datetime] = None) -> str:
        now = now or utc_now()
        current = self.store.active_at(now).get(bed.id)
        upcoming = self.store.upcoming_within(now, self.settings.booked_soon_minutes).get(bed.id)
        return derive_bed_status(bed.status, bool(current), bool(upcoming))

    def list_with_status(self, now: Optional[datetime] = None) -> List[dict]:
        """Every bookable bed with its live status; two queries for the whole floor"""
        now = now or utc_now()
        current = self.store.active_at(now)
        upcoming = self.store.upcoming_within(now, self.settings.booked_soon_minutes)

        beds = []
        for bed in self.catalog.list_bookable():
            current_allocation = current.get(bed.id, [None])[0]
            beds.append({
                "id": bed.id,
                "bed_number": bed.bed_number,
                "display_name": bed.label,
                "grid_row": bed.grid_row,
                "grid_col": bed.grid_col,
                "bed_type": bed.bed_type,
                "status": derive_bed_status(bed.status, bed.id in current, bed.id in upcoming),
                "current_allocation": current_allocation.summary() if current_allocation else None,
            })
        return beds

    # ------------------------------------------------------------------
    # Conflict view
    # ------------------------------------------------------------------

    def check_availability(
        self,
        bed_id: int,
        start_time: datetime,
        end_time: datetime,
        excluding_id: Optional[int] = None
    ) -> AvailabilityResult:
        bed = self.catalog.get(bed_id)
        if bed.is_under_maintenance:
            return AvailabilityResult(bed_id, start_time, end_time, is_available=False, in_maintenance=True)

        conflicts = self.store.find_overlapping(bed_id, start_time, end_time, excluding_id)
        return AvailabilityResult(
            bed_id,
            start_time,
            end_time,
            is_available=not conflicts,
            conflicts=[c.summary() for c in conflicts],
        )

    def is_available(
        self,
        bed_id: int,
        start_time: datetime,
        end_time: datetime,
        excluding_id: Optional[int] = None
    ) -> bool:
        return self.check_availability(bed_id, start_time, end_time, excluding_id).is_available

    def available_resources(self, start_time: datetime, end_time: datetime) -> List[int]:
        busy = self.store.overlapping_bed_ids(start_time, end_time)
        return [
            bed.id for bed in self.catalog.list_bookable()
            if not bed.is_under_maintenance and bed.id not in busy
        ]

    # ------------------------------------------------------------------
    # Day views
    # ------------------------------------------------------------------

    def business_window(self, day: date) -> tuple:
        """Venue-local opening hours of `day` as naive UTC bounds"""
        start = venue_local_to_utc(day, time(self.settings.business_open_hour), self.settings.venue_timezone)
        hours = self.settings.business_close_hour - self.settings.business_open_hour
        return start, start + timedelta(hours=hours)

    def day_schedule(self, bed_id: int, day: date, now: Optional[datetime] = None) -> DaySchedule:
        now = now or utc_now()
        self.catalog.get(bed_id)
        window_start, window_end = self.business_window(day)
        allocations = self.store.for_bed_in_window(bed_id, window_start, window_end)
        return DaySchedule(
            bed_id=bed_id,
            day=day,
            window_start=window_start,
            window_end=window_end,
            slot_minutes=self.settings.slot_minutes,
            allocations=allocations,
            now=now,
            tz_name=self.settings.venue_timezone,
        )

    def available_start_times(
        self,
        bed_id: int,
        day: date,
        duration_minutes: int,
        now: Optional[datetime] = None
    ) -> List[dict]:
        """Grid-aligned starts where a session of `duration_minutes` fits without clashing"""
        now = now or utc_now()
        self.catalog.get(bed_id)
        window_start, window_end = self.business_window(day)
        allocations = self.store.for_bed_in_window(bed_id, window_start, window_end)

        duration = timedelta(minutes=duration_minutes)
        step = timedelta(minutes=self.settings.slot_minutes)
        tz_name = self.settings.venue_timezone

        starts = []
        slot_start = window_start
        while slot_start + duration <= window_end:
            slot_end = slot_start + duration
            clashes = any(a.overlaps(slot_start, slot_end) for a in allocations)
            if not clashes and slot_start >= now:
                local_start = utc_to_venue_local(slot_start, tz_name)
                local_end = utc_to_venue_local(slot_end, tz_name)
                starts.append({
                    "start_time": slot_start,
                    "end_time": slot_end,
                    "display_time": f"{local_start.strftime('%I:%M %p')} - {local_end.strftime('%I:%M %p')}",
                })
            slot_start += step
        return starts

    def beds_with_availability(
        self,
        day: date,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        now: Optional[datetime] = None
    ) -> List[dict]:
        """Per-bed overview for the booking screen: live status, window conflicts, the day's bookings"""
        now = now or utc_now()
        current = self.store.active_at(now)
        upcoming = self.store.upcoming_within(now, self.settings.booked_soon_minutes)
        window_start, window_end = self.business_window(day)

        overview = []
        for bed in self.catalog.list_bookable():
            entry = {
                "id": bed.id,
                "bed_number": bed.bed_number,
                "display_name": bed.label,
                "grid_row": bed.grid_row,
                "grid_col": bed.grid_col,
                "bed_type": bed.bed_type,
                "current_status": derive_bed_status(bed.status, bed.id in current, bed.id in upcoming),
                "is_available": not bed.is_under_maintenance,
                "conflicting_bookings": [],
            }

            if start_time and end_time:
                conflicts = self.store.find_overlapping(bed.id, start_time, end_time)
                entry["is_available"] = entry["is_available"] and not conflicts
                entry["conflicting_bookings"] = [c.summary() for c in conflicts]

            entry["day_bookings"] = [
                dict(a.summary(), status=a.status)
                for a in self.store.for_bed_in_window(bed.id, window_start, window_end)
            ]
            overview.append(entry)
        return overview

    def status_snapshot(self, now: datetime) -> Dict[int, str]:
        """bed_id -> derived status for every bookable bed"""
        return {bed["id"]: bed["status"] for bed in self.list_with_status(now)}

# Services package
from .exceptions import SchedulingError, NotFoundError, InvalidWindowError, ConflictError
from .bed_catalog import BedCatalog
from .allocation_store import AllocationStore
from .bed_status import derive_bed_status
from .availability_engine import AvailabilityEngine, AvailabilityResult, DaySchedule, TimeSlot
from .lifecycle_reconciler import LifecycleReconciler, ReconciliationResult
from .booking_service import BookingService

__all__ = [
    "SchedulingError", "NotFoundError", "InvalidWindowError", "ConflictError",
    "BedCatalog",
    "AllocationStore",
    "derive_bed_status",
    "AvailabilityEngine", "AvailabilityResult", "DaySchedule", "TimeSlot",
    "LifecycleReconciler", "ReconciliationResult",
    "BookingService"
]

"""
Scheduling Error Classes

Raised by the catalog, the allocation store and booking intake.
Routers translate them into HTTP responses.
"""

from typing import List, Optional


class SchedulingError(Exception):
    """Base class for scheduling errors."""
    pass


class NotFoundError(SchedulingError):
    """Raised when a referenced bed, allocation or customer does not exist."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidWindowError(SchedulingError):
    """Raised when a booking window is empty, inverted or otherwise not bookable."""
    pass


class ConflictError(SchedulingError):
    """
    Raised when a requested window overlaps existing bookings on the bed.

    `conflicts` holds allocation summaries (id, booking_number,
    customer_name, start_time, end_time) so the caller can explain the clash.
    """

    def __init__(self, message: str, conflicts: Optional[List[dict]] = None):
        self.conflicts = conflicts or []
        super().__init__(message)

"""
Bed status derivation.

The one rule shared by the live status view and the reconciler's persisted
refresh, so the two can never disagree:

    maintenance > occupied > booked_soon > available
"""

from ..models.bed import BedStatus


def derive_bed_status(stored_status: str, has_current_paid: bool, has_upcoming_paid: bool) -> str:
    if stored_status == BedStatus.MAINTENANCE.value:
        return BedStatus.MAINTENANCE.value
    if has_current_paid:
        return BedStatus.OCCUPIED.value
    if has_upcoming_paid:
        return BedStatus.BOOKED_SOON.value
    return BedStatus.AVAILABLE.value

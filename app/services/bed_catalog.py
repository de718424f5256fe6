"""
Bed Catalog

Owns bed records and their stored status column.

Maintenance is sticky: automatic updates go through `set_status`, which never
replaces "maintenance". Only `clear_maintenance` takes a bed out of it.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.bed import Bed, BedStatus
from ..utils.logging_config import get_logger
from .exceptions import NotFoundError, SchedulingError

logger = logging.getLogger(__name__)
structured_logger = get_logger(__name__)


class BedCatalog:

    def __init__(self, db: Session):
        self.db = db

    def _query_bookable(self):
        return self.db.query(Bed).filter(Bed.is_deleted == False)  # noqa: E712

    def list_bookable(self) -> List[Bed]:
        """All non-deleted beds in floor-grid order (maintenance beds included)"""
        return self._query_bookable().order_by(Bed.grid_row, Bed.grid_col, Bed.id).all()

    def get(self, bed_id: int) -> Bed:
        bed = self._query_bookable().filter(Bed.id == bed_id).first()
        if not bed:
            raise NotFoundError("Bed", bed_id)
        return bed

    def set_status(self, bed_id: int, status: str) -> bool:
        """
        Write a derived status onto the bed.

        Returns False (and changes nothing) when the bed is in maintenance and
        the requested status is anything else.
        """
        bed = self.get(bed_id)
        return self.apply_status(bed, status)

    def apply_status(self, bed: Bed, status: str) -> bool:
        status = BedStatus(status).value
        if bed.status == BedStatus.MAINTENANCE.value and status != BedStatus.MAINTENANCE.value:
            logger.debug(f"Bed {bed.bed_number} is in maintenance, keeping it")
            return False

        if bed.status == status:
            return False

        old_status = bed.status
        bed.status = status
        bed.updated_at = datetime.utcnow()
        structured_logger.bed_status_changed(bed.id, bed.bed_number, old_status, status)
        return True

    def set_maintenance(self, bed_id: int) -> Bed:
        bed = self.get(bed_id)
        self.apply_status(bed, BedStatus.MAINTENANCE.value)
        self.db.commit()
        return bed

    def clear_maintenance(self, bed_id: int) -> Bed:
        """Operator takes the bed out of maintenance; the next sweep derives its real status"""
        bed = self.get(bed_id)
        if bed.status == BedStatus.MAINTENANCE.value:
            structured_logger.bed_status_changed(bed.id, bed.bed_number, bed.status, BedStatus.AVAILABLE.value)
            bed.status = BedStatus.AVAILABLE.value
            bed.updated_at = datetime.utcnow()
            self.db.commit()
        return bed

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def _ensure_unique_number(self, bed_number: str, exclude_id: Optional[int] = None):
        query = self.db.query(Bed).filter(Bed.bed_number == bed_number)
        if exclude_id is not None:
            query = query.filter(Bed.id != exclude_id)
        if query.first():
            raise SchedulingError(f"Bed number {bed_number} already exists")

    def create_bed(
        self,
        bed_number: str,
        grid_row: int,
        grid_col: int,
        display_name: Optional[str] = None,
        bed_type: str = "standard",
        hourly_rate=0,
        description: Optional[str] = None,
        status: str = BedStatus.AVAILABLE.value,
    ) -> Bed:
        self._ensure_unique_number(bed_number)
        bed = Bed(
            bed_number=bed_number,
            display_name=display_name,
            grid_row=grid_row,
            grid_col=grid_col,
            bed_type=bed_type,
            hourly_rate=hourly_rate,
            description=description,
            status=BedStatus(status).value,
        )
        self.db.add(bed)
        self.db.commit()
        self.db.refresh(bed)
        logger.info(f"Bed {bed.bed_number} created at ({grid_row}, {grid_col})")
        return bed

    def update_bed(self, bed_id: int, **fields) -> Bed:
        """Update presentation fields. Status changes go through the maintenance methods."""
        bed = self.get(bed_id)
        if fields.get("bed_number") and fields["bed_number"] != bed.bed_number:
            self._ensure_unique_number(fields["bed_number"], exclude_id=bed_id)

        for key in ("bed_number", "display_name", "grid_row", "grid_col", "bed_type", "hourly_rate", "description"):
            if key in fields and fields[key] is not None:
                setattr(bed, key, fields[key])

        bed.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(bed)
        return bed

    def delete_bed(self, bed_id: int) -> None:
        bed = self.get(bed_id)
        bed.is_deleted = True
        bed.deleted_at = datetime.utcnow()
        self.db.commit()
        logger.info(f"Bed {bed.bed_number} retired")

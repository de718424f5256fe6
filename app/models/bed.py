from datetime import datetime
from sqlalchemy import Column, Integer, String, Numeric, Text, DateTime, Boolean, Index
from sqlalchemy.orm import relationship
from ..database import Base
import enum


class BedStatus(str, enum.Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    BOOKED_SOON = "booked_soon"
    MAINTENANCE = "maintenance"  # operator-controlled, never set by the reconciler


class BedType(str, enum.Enum):
    STANDARD = "standard"
    VIP = "vip"


class Bed(Base):
    """A bookable therapy bed (seat) shown on the floor grid"""
    __tablename__ = "beds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bed_number = Column(String(20), nullable=False, unique=True)
    display_name = Column(String(100), nullable=True)
    grid_row = Column(Integer, nullable=False, default=1)
    grid_col = Column(Integer, nullable=False, default=1)
    bed_type = Column(String(30), default=BedType.STANDARD.value)
    hourly_rate = Column(Numeric(10, 2), default=0)
    description = Column(Text, nullable=True)

    # Cached value of the derived status; refreshed by the reconciler
    status = Column(String(20), default=BedStatus.AVAILABLE.value, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Soft Delete
    is_deleted = Column(Boolean, default=False, index=True)
    deleted_at = Column(DateTime, nullable=True)

    allocations = relationship("BedAllocation", back_populates="bed")

    __table_args__ = (
        Index("ix_bed_grid", "grid_row", "grid_col"),
    )

    @property
    def label(self) -> str:
        return self.display_name or f"Table {self.bed_number}"

    @property
    def is_under_maintenance(self) -> bool:
        return self.status == BedStatus.MAINTENANCE.value

    def __repr__(self):
        return f"<Bed {self.bed_number} ({self.status})>"

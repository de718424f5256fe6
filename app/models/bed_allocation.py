from datetime import datetime
from sqlalchemy import Column, Integer, String, Numeric, Text, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship
from ..database import Base
import enum


class AllocationStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    """Only PAID is meaningful to availability; the rest belong to the POS side"""
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


# Statuses that hold a bed for status display
ACTIVE_STATUSES = [AllocationStatus.CONFIRMED.value, AllocationStatus.IN_PROGRESS.value]
TERMINAL_STATUSES = [AllocationStatus.COMPLETED.value, AllocationStatus.CANCELLED.value]


class BedAllocation(Base):
    """A time-boxed reservation of a bed by a customer"""
    __tablename__ = "bed_allocations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_number = Column(String(20), nullable=False, unique=True)
    bed_id = Column(Integer, ForeignKey("beds.id", ondelete="CASCADE"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="SET NULL"), nullable=True)
    membership_package_id = Column(Integer, nullable=True)

    # Naive UTC
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)

    status = Column(String(20), default=AllocationStatus.CONFIRMED.value, nullable=False)
    payment_status = Column(String(20), default=PaymentStatus.UNPAID.value, nullable=False)
    total_amount = Column(Numeric(10, 2), default=0)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    bed = relationship("Bed", back_populates="allocations")
    customer = relationship("Customer", back_populates="allocations")
    package = relationship("Package")
    invoices = relationship("Invoice", back_populates="allocation")

    __table_args__ = (
        Index("ix_allocation_bed_window", "bed_id", "start_time", "end_time"),
        Index("ix_allocation_status_start", "status", "start_time"),
    )

    @property
    def customer_name(self) -> str:
        return self.customer.name if self.customer and self.customer.name else "Unknown"

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open overlap: touching windows do not conflict"""
        return self.start_time < end and self.end_time > start

    def summary(self) -> dict:
        return {
            "id": self.id,
            "booking_number": self.booking_number,
            "customer_name": self.customer_name,
            "start_time": self.start_time,
            "end_time": self.end_time,
        }

    def __repr__(self):
        return f"<BedAllocation {self.booking_number} bed={self.bed_id} {self.status}>"

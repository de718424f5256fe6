from datetime import datetime
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship
from ..database import Base
import enum


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InvoicePaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


# An invoice in one of these states with some payment keeps an overdue booking alive
QUALIFYING_INVOICE_STATUSES = [
    InvoiceStatus.DRAFT.value,
    InvoiceStatus.PENDING.value,
    InvoiceStatus.COMPLETED.value,
]


class Invoice(Base):
    """POS invoice; owned by the payment side, read here for auto-cancellation"""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_number = Column(String(20), nullable=False, unique=True)
    allocation_id = Column(Integer, ForeignKey("bed_allocations.id", ondelete="SET NULL"), nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), default=InvoiceStatus.DRAFT.value, nullable=False)
    payment_status = Column(String(20), default=InvoicePaymentStatus.UNPAID.value, nullable=False)
    total_amount = Column(Numeric(10, 2), default=0)
    paid_amount = Column(Numeric(10, 2), default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    allocation = relationship("BedAllocation", back_populates="invoices")

    __table_args__ = (
        Index("ix_invoice_allocation", "allocation_id"),
    )

    def __repr__(self):
        return f"<Invoice {self.invoice_number} {self.status}/{self.payment_status}>"

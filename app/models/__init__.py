# Models package
from .bed import Bed, BedStatus, BedType
from .bed_allocation import (
    BedAllocation,
    AllocationStatus,
    PaymentStatus,
    ACTIVE_STATUSES,
    TERMINAL_STATUSES
)
from .customer import Customer
from .package import Package
from .invoice import Invoice, InvoiceStatus, InvoicePaymentStatus, QUALIFYING_INVOICE_STATUSES

__all__ = [
    "Bed", "BedStatus", "BedType",
    "BedAllocation", "AllocationStatus", "PaymentStatus", "ACTIVE_STATUSES", "TERMINAL_STATUSES",
    "Customer",
    "Package",
    "Invoice", "InvoiceStatus", "InvoicePaymentStatus", "QUALIFYING_INVOICE_STATUSES"
]

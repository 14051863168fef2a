"""Invoice use cases"""
from .persist_compute_output import PersistComputeOutput
from .mark_overdue_invoices import MarkOverdueInvoices
from .update_invoice import UpdateInvoice
from .dtos import (
    PersistComputeOutputResponseDTO,
    MarkOverdueResultDTO,
    UpdateInvoiceCommandDTO,
    InvoiceResponseDTO,
)

__all__ = [
    "PersistComputeOutput",
    "MarkOverdueInvoices",
    "UpdateInvoice",
    "PersistComputeOutputResponseDTO",
    "MarkOverdueResultDTO",
    "UpdateInvoiceCommandDTO",
    "InvoiceResponseDTO",
]

from .queue_repository import QueueRepository
from .invoice_repository import InvoiceRepository
from .invoice_error_repository import InvoiceErrorRepository
from .customer_repository import CustomerRepository
from .consolidated_invoice_repository import ConsolidatedInvoiceRepository

__all__ = [
    "QueueRepository",
    "InvoiceRepository",
    "InvoiceErrorRepository",
    "CustomerRepository",
    "ConsolidatedInvoiceRepository",
]

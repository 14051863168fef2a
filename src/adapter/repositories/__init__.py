from .queue_repository import SqlAlchemyQueueRepository
from .invoice_repository import SqlAlchemyInvoiceRepository, generate_document_number
from .invoice_error_repository import SqlAlchemyInvoiceErrorRepository
from .customer_repository import SqlAlchemyCustomerRepository
from .consolidated_invoice_repository import SqlAlchemyConsolidatedInvoiceRepository

__all__ = [
    "SqlAlchemyQueueRepository",
    "SqlAlchemyInvoiceRepository",
    "generate_document_number",
    "SqlAlchemyInvoiceErrorRepository",
    "SqlAlchemyCustomerRepository",
    "SqlAlchemyConsolidatedInvoiceRepository",
]

from .base import BaseModel, IdentityType
from .queue_entry import QueueEntry
from .invoice import Invoice, InvoiceStatus, can_transition
from .invoice_error import InvoiceError, ErrorStatus, OperatorMatchErrorType
from .customer import Customer, CustomerStatus, BillingPeriodType
from .consolidated_invoice import ConsolidatedInvoice, ConsolidationTotals, calculate_period_totals
from .billing_period import BillingPeriod, BillingPeriodCalculator

__all__ = [
    "BaseModel",
    "IdentityType",
    "QueueEntry",
    "Invoice",
    "InvoiceStatus",
    "can_transition",
    "InvoiceError",
    "ErrorStatus",
    "OperatorMatchErrorType",
    "Customer",
    "CustomerStatus",
    "BillingPeriodType",
    "ConsolidatedInvoice",
    "ConsolidationTotals",
    "calculate_period_totals",
    "BillingPeriod",
    "BillingPeriodCalculator",
]

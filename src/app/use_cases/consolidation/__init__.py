"""Consolidated billing use cases"""
from .generate_consolidated_invoice import GenerateConsolidatedInvoice
from .generate_for_all_customers import GenerateConsolidatedInvoicesForAllCustomers
from .recalculate_consolidated_invoice import RecalculateConsolidatedInvoice
from .dtos import (
    ConsolidationStatus,
    GenerateConsolidatedInvoiceCommandDTO,
    ConsolidatedInvoiceSummaryDTO,
    ConsolidationResultDTO,
    ConsolidationErrorDTO,
    ConsolidationMetricsDTO,
    RecalculationResultDTO,
)

__all__ = [
    "GenerateConsolidatedInvoice",
    "GenerateConsolidatedInvoicesForAllCustomers",
    "RecalculateConsolidatedInvoice",
    "ConsolidationStatus",
    "GenerateConsolidatedInvoiceCommandDTO",
    "ConsolidatedInvoiceSummaryDTO",
    "ConsolidationResultDTO",
    "ConsolidationErrorDTO",
    "ConsolidationMetricsDTO",
    "RecalculationResultDTO",
]

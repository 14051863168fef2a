"""Consolidated Invoice Repository Interface"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from src.domain.consolidated_invoice import ConsolidatedInvoice
from src.domain.customer import BillingPeriodType


class ConsolidatedInvoiceRepository(ABC):
    """
    Repository interface for ConsolidatedInvoice persistence

    One row per (operator_id, billing_period_start, billing_period_end).
    """

    @abstractmethod
    async def create(self, consolidated_invoice: ConsolidatedInvoice) -> ConsolidatedInvoice:
        """
        Create a consolidated invoice

        Args:
            consolidated_invoice: Entity to persist

        Returns:
            Created ConsolidatedInvoice with generated ID

        Raises:
            sqlalchemy.exc.IntegrityError: if the period tuple already exists
        """
        pass

    @abstractmethod
    async def get_by_id(self, consolidated_invoice_id: int) -> Optional[ConsolidatedInvoice]:
        """Retrieve consolidated invoice by ID"""
        pass

    @abstractmethod
    async def update(self, consolidated_invoice: ConsolidatedInvoice) -> ConsolidatedInvoice:
        """Persist changes to an existing consolidated invoice"""
        pass

    @abstractmethod
    async def find_for_period(
        self, operator_id: int, billing_period_start: date, billing_period_end: date
    ) -> Optional[ConsolidatedInvoice]:
        """
        Find the consolidated invoice for an exact period tuple

        Args:
            operator_id: Customer identifier
            billing_period_start: Period start date
            billing_period_end: Period end date

        Returns:
            ConsolidatedInvoice if the period was already consolidated, None otherwise
        """
        pass

    @abstractmethod
    async def generate_invoice_number(
        self, prefix: str, period_type: BillingPeriodType, period_start: date
    ) -> str:
        """
        Generate the next consolidated invoice number for a period

        Format: {prefix}-YYYY-WNN-SSS (weekly) or {prefix}-YYYY-MNN-SSS (monthly)

        Returns:
            Unique consolidated invoice number
        """
        pass

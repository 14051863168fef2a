"""Invoice Repository Interface

Defines the contract for invoice persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Sequence
from src.domain.invoice import Invoice


class InvoiceRepository(ABC):
    """
    Repository interface for Invoice persistence

    Used by the invoice writer, consolidation and overdue marking.
    """

    @abstractmethod
    async def create(self, invoice: Invoice) -> Invoice:
        """
        Create a new invoice

        Args:
            invoice: Invoice entity to persist

        Returns:
            Created Invoice with generated ID
        """
        pass

    @abstractmethod
    async def get_by_id(self, invoice_id: int) -> Optional[Invoice]:
        """
        Retrieve invoice by ID

        Args:
            invoice_id: Invoice ID

        Returns:
            Invoice if found, None otherwise
        """
        pass

    @abstractmethod
    async def update(self, invoice: Invoice) -> Invoice:
        """
        Update an existing invoice

        Args:
            invoice: Invoice entity with updated values

        Returns:
            Updated Invoice
        """
        pass

    @abstractmethod
    async def exists_for_flight_fir(self, flight_id: int, fir_name: Optional[str]) -> bool:
        """
        Check whether an invoice already exists for a flight's FIR crossing

        Used to skip duplicate invoices when a flight is redelivered.

        Args:
            flight_id: Upstream flight identifier
            fir_name: FIR name (None matches invoices without a FIR name)

        Returns:
            True if an invoice exists, False otherwise
        """
        pass

    @abstractmethod
    async def find_unconsolidated(
        self, operator_id: int, issued_from: datetime, issued_before: datetime
    ) -> List[Invoice]:
        """
        Find an operator's invoices issued in [issued_from, issued_before)
        that are not linked to a consolidated invoice yet

        Args:
            operator_id: Customer identifier
            issued_from: Inclusive lower bound on issue date
            issued_before: Exclusive upper bound on issue date

        Returns:
            List of invoices ordered by issue date
        """
        pass

    @abstractmethod
    async def find_by_consolidated_id(self, consolidated_invoice_id: int) -> List[Invoice]:
        """
        Retrieve invoices linked to a consolidated invoice

        Args:
            consolidated_invoice_id: Consolidated invoice ID

        Returns:
            List of linked invoices
        """
        pass

    @abstractmethod
    async def link_to_consolidated(
        self, invoice_ids: Sequence[int], consolidated_invoice_id: int
    ) -> int:
        """
        Link invoices to a consolidated invoice

        Only invoices that are not linked yet are updated.

        Args:
            invoice_ids: Invoice IDs to link
            consolidated_invoice_id: Consolidated invoice ID

        Returns:
            Number of invoices linked
        """
        pass

    @abstractmethod
    async def find_overdue_ids(self, now: datetime) -> List[int]:
        """
        Find PENDING invoices whose due date is before ``now``

        Returns:
            Invoice IDs ordered by due date (oldest first)
        """
        pass

    @abstractmethod
    async def get_many(self, invoice_ids: Sequence[int]) -> List[Invoice]:
        """Retrieve invoices by IDs"""
        pass

    @abstractmethod
    async def mark_overdue(self, invoice_ids: Sequence[int], now: datetime) -> int:
        """
        Move invoices to OVERDUE

        Only rows still PENDING are updated, so re-running is harmless.

        Returns:
            Number of invoices actually updated
        """
        pass

    @abstractmethod
    async def generate_invoice_number(self) -> str:
        """
        Generate a fresh invoice number

        Format: INV-YYYYMMDD-XXXXXXXXXX

        Returns:
            Unique invoice number string
        """
        pass

"""Invoice Error Repository Interface"""

from abc import ABC, abstractmethod
from typing import List
from src.domain.invoice_error import InvoiceError


class InvoiceErrorRepository(ABC):
    """Repository interface for InvoiceError persistence"""

    @abstractmethod
    async def create(self, invoice_error: InvoiceError) -> InvoiceError:
        """
        Create a new error record

        Args:
            invoice_error: InvoiceError entity to persist

        Returns:
            Created InvoiceError with generated ID
        """
        pass

    @abstractmethod
    async def get_by_flight_id(self, flight_id: int) -> List[InvoiceError]:
        """Retrieve error records for a flight"""
        pass

    @abstractmethod
    async def generate_invoice_number(self) -> str:
        """
        Generate a fresh error record number

        Format: ERR-YYYYMMDD-XXXXXXXXXX
        """
        pass

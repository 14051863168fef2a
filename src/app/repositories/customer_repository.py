"""Customer Repository Interface

Operator identity lookups and billing configuration reads.
"""

from abc import ABC, abstractmethod
from typing import Optional, List
from src.domain.customer import Customer


class CustomerRepository(ABC):
    """Repository interface for Customer reads"""

    @abstractmethod
    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        """
        Retrieve customer by ID

        Args:
            customer_id: Customer ID

        Returns:
            Customer if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_iba_id(self, iba_id: str) -> Optional[Customer]:
        """Exact match on the external IBA operator identifier"""
        pass

    @abstractmethod
    async def get_by_jetnet_id(self, jetnet_id: str) -> Optional[Customer]:
        """Exact match on the external JetNet operator identifier"""
        pass

    @abstractmethod
    async def get_by_name(self, name: str) -> Optional[Customer]:
        """
        Case-insensitive exact match on legal name or trading name

        Args:
            name: Operator name from the compute output

        Returns:
            First matching customer, None otherwise
        """
        pass

    @abstractmethod
    async def get_billing_enabled(self) -> List[Customer]:
        """
        Retrieve customers eligible for consolidated billing

        Returns:
            APPROVED customers with billing_period_enabled and a period type
        """
        pass

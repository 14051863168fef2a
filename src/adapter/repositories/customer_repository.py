"""SQLAlchemy implementation of CustomerRepository"""

from typing import List, Optional
from sqlmodel import select, func, or_
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.customer_repository import CustomerRepository
from src.domain.customer import Customer, CustomerStatus


class SqlAlchemyCustomerRepository(CustomerRepository):
    """
    SQLAlchemy implementation of CustomerRepository

    Identifier lookups are exact; name lookups are case-insensitive on the
    legal name and the trading name.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        stmt = select(Customer).where(Customer.id == customer_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_iba_id(self, iba_id: str) -> Optional[Customer]:
        stmt = select(Customer).where(Customer.iba_id == iba_id).order_by(Customer.id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_jetnet_id(self, jetnet_id: str) -> Optional[Customer]:
        stmt = select(Customer).where(Customer.jetnet_id == jetnet_id).order_by(Customer.id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_name(self, name: str) -> Optional[Customer]:
        needle = name.strip().lower()
        stmt = (
            select(Customer)
            .where(
                or_(
                    func.lower(Customer.full_legal_name) == needle,
                    func.lower(Customer.trading_brand_name) == needle,
                )
            )
            .order_by(Customer.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_billing_enabled(self) -> List[Customer]:
        stmt = (
            select(Customer)
            .where(Customer.billing_period_enabled.is_(True))
            .where(Customer.status == CustomerStatus.APPROVED)
            .where(Customer.billing_period_type.is_not(None))
            .order_by(Customer.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

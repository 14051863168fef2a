"""SQLAlchemy implementation of InvoiceErrorRepository"""

from typing import List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.adapter.repositories.invoice_repository import generate_document_number
from src.app.repositories.invoice_error_repository import InvoiceErrorRepository
from src.domain.invoice_error import InvoiceError


class SqlAlchemyInvoiceErrorRepository(InvoiceErrorRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, invoice_error: InvoiceError) -> InvoiceError:
        self.session.add(invoice_error)
        await self.session.flush()
        await self.session.refresh(invoice_error)
        return invoice_error

    async def get_by_flight_id(self, flight_id: int) -> List[InvoiceError]:
        stmt = (
            select(InvoiceError)
            .where(InvoiceError.flight_id == flight_id)
            .order_by(InvoiceError.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def generate_invoice_number(self) -> str:
        return generate_document_number("ERR")

"""SQLAlchemy Invoice Repository Implementation

Implements invoice persistence using SQLAlchemy async session.
"""

import uuid
from typing import Optional, List, Sequence
from datetime import datetime
from sqlalchemy import update
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.invoice_repository import InvoiceRepository
from src.domain.invoice import Invoice, InvoiceStatus


def generate_document_number(prefix: str) -> str:
    """{prefix}-YYYYMMDD-<10 hex chars>, unique without a database round trip"""
    return f"{prefix}-{datetime.utcnow():%Y%m%d}-{uuid.uuid4().hex[:10].upper()}"


class SqlAlchemyInvoiceRepository(InvoiceRepository):
    """
    SQLAlchemy implementation of InvoiceRepository

    Uses async session for database operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, invoice: Invoice) -> Invoice:
        """
        Create a new invoice

        Args:
            invoice: Invoice entity to persist

        Returns:
            Created Invoice with generated ID
        """
        self.session.add(invoice)
        await self.session.flush()
        await self.session.refresh(invoice)
        return invoice

    async def get_by_id(self, invoice_id: int) -> Optional[Invoice]:
        statement = select(Invoice).where(Invoice.id == invoice_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def update(self, invoice: Invoice) -> Invoice:
        """
        Update an existing invoice

        Args:
            invoice: Invoice entity with updated values

        Returns:
            Updated Invoice
        """
        invoice.updated_at = datetime.utcnow()
        self.session.add(invoice)
        await self.session.flush()
        await self.session.refresh(invoice)
        return invoice

    async def exists_for_flight_fir(self, flight_id: int, fir_name: Optional[str]) -> bool:
        statement = (
            select(func.count())
            .select_from(Invoice)
            .where(Invoice.flight_id == flight_id)
        )
        if fir_name is None:
            statement = statement.where(Invoice.fir_name.is_(None))
        else:
            statement = statement.where(Invoice.fir_name == fir_name)

        result = await self.session.execute(statement)
        return result.scalar_one() > 0

    async def find_unconsolidated(
        self, operator_id: int, issued_from: datetime, issued_before: datetime
    ) -> List[Invoice]:
        """
        Find an operator's unlinked invoices issued in [issued_from, issued_before)

        CANCELLED invoices are never consolidated.
        """
        statement = (
            select(Invoice)
            .where(Invoice.operator_id == operator_id)
            .where(Invoice.issue_date >= issued_from)
            .where(Invoice.issue_date < issued_before)
            .where(Invoice.included_in_consolidated_invoice_id.is_(None))
            .where(Invoice.status != InvoiceStatus.CANCELLED)
            .order_by(Invoice.issue_date, Invoice.id)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def find_by_consolidated_id(self, consolidated_invoice_id: int) -> List[Invoice]:
        statement = (
            select(Invoice)
            .where(Invoice.included_in_consolidated_invoice_id == consolidated_invoice_id)
            .order_by(Invoice.issue_date, Invoice.id)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def link_to_consolidated(
        self, invoice_ids: Sequence[int], consolidated_invoice_id: int
    ) -> int:
        """
        Link invoices to a consolidated invoice

        The link is set once: rows already linked elsewhere are left alone.
        """
        if not invoice_ids:
            return 0
        statement = (
            update(Invoice)
            .where(Invoice.id.in_(list(invoice_ids)))
            .where(Invoice.included_in_consolidated_invoice_id.is_(None))
            .values(
                included_in_consolidated_invoice_id=consolidated_invoice_id,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(statement)
        return result.rowcount

    async def find_overdue_ids(self, now: datetime) -> List[int]:
        statement = (
            select(Invoice.id)
            .where(Invoice.status == InvoiceStatus.PENDING)
            .where(Invoice.due_date.is_not(None))
            .where(Invoice.due_date < now)
            .order_by(Invoice.due_date)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def get_many(self, invoice_ids: Sequence[int]) -> List[Invoice]:
        if not invoice_ids:
            return []
        statement = select(Invoice).where(Invoice.id.in_(list(invoice_ids))).order_by(Invoice.id)
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def mark_overdue(self, invoice_ids: Sequence[int], now: datetime) -> int:
        """
        Move invoices to OVERDUE

        The status condition makes the update a no-op for rows paid or
        cancelled since they were selected.
        """
        if not invoice_ids:
            return 0
        statement = (
            update(Invoice)
            .where(Invoice.id.in_(list(invoice_ids)))
            .where(Invoice.status == InvoiceStatus.PENDING)
            .values(status=InvoiceStatus.OVERDUE, updated_at=now)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(statement)
        return result.rowcount

    async def generate_invoice_number(self) -> str:
        """
        Generate a unique invoice number

        Format: INV-YYYYMMDD-XXXXXXXXXX (e.g., INV-20250114-3F9A1B2C4D)
        """
        return generate_document_number("INV")

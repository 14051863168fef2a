"""SQLAlchemy implementation of ConsolidatedInvoiceRepository

Provides persistence for ConsolidatedInvoice entities with the
one-per-period guarantee enforced by a unique constraint on
(operator_id, billing_period_start, billing_period_end).
"""

from datetime import date, datetime
from typing import Optional
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.consolidated_invoice_repository import ConsolidatedInvoiceRepository
from src.domain.consolidated_invoice import ConsolidatedInvoice
from src.domain.customer import BillingPeriodType


class SqlAlchemyConsolidatedInvoiceRepository(ConsolidatedInvoiceRepository):
    """
    SQLAlchemy implementation of ConsolidatedInvoiceRepository

    Features:
    - Period uniqueness enforced by the database
    - Period-scoped sequential invoice numbers
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, consolidated_invoice: ConsolidatedInvoice) -> ConsolidatedInvoice:
        """
        Create a consolidated invoice

        Raises:
            IntegrityError: If the period tuple or invoice number already exists
        """
        self.session.add(consolidated_invoice)
        await self.session.flush()
        await self.session.refresh(consolidated_invoice)
        return consolidated_invoice

    async def get_by_id(self, consolidated_invoice_id: int) -> Optional[ConsolidatedInvoice]:
        stmt = select(ConsolidatedInvoice).where(ConsolidatedInvoice.id == consolidated_invoice_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update(self, consolidated_invoice: ConsolidatedInvoice) -> ConsolidatedInvoice:
        consolidated_invoice.updated_at = datetime.utcnow()
        self.session.add(consolidated_invoice)
        await self.session.flush()
        await self.session.refresh(consolidated_invoice)
        return consolidated_invoice

    async def find_for_period(
        self, operator_id: int, billing_period_start: date, billing_period_end: date
    ) -> Optional[ConsolidatedInvoice]:
        stmt = (
            select(ConsolidatedInvoice)
            .where(ConsolidatedInvoice.operator_id == operator_id)
            .where(ConsolidatedInvoice.billing_period_start == billing_period_start)
            .where(ConsolidatedInvoice.billing_period_end == billing_period_end)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def generate_invoice_number(
        self, prefix: str, period_type: BillingPeriodType, period_start: date
    ) -> str:
        """
        Generate the next consolidated invoice number for a period

        Format: {prefix}-YYYY-WNN-SSS (ISO week) or {prefix}-YYYY-MNN-SSS,
        sequence continuing from the highest existing number with the same stem.
        """
        if period_type == BillingPeriodType.WEEKLY:
            iso_year, iso_week, _ = period_start.isocalendar()
            stem = f"{prefix}-{iso_year}-W{iso_week:02d}-"
        else:
            stem = f"{prefix}-{period_start.year}-M{period_start.month:02d}-"

        # Suffixes are digits after a fixed stem, so longer sorts higher ("1000" > "999")
        stmt = (
            select(ConsolidatedInvoice.invoice_number)
            .where(ConsolidatedInvoice.invoice_number.like(f"{stem}%"))
            .order_by(
                func.length(ConsolidatedInvoice.invoice_number).desc(),
                ConsolidatedInvoice.invoice_number.desc(),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        max_number = result.scalar_one_or_none()

        sequence = 1
        if max_number:
            last = max_number.rsplit("-", 1)[-1]
            if last.isdigit():
                sequence = int(last) + 1

        return f"{stem}{sequence:03d}"

"""MarkOverdueInvoices Use Case

Time-driven PENDING -> OVERDUE transition. Safe to run repeatedly.
"""

import logging
import time
from datetime import datetime
from typing import Optional
from libs.result import Result, Return, Error
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.services.unit_of_work import UnitOfWork
from .dtos import MarkOverdueResultDTO

logger = logging.getLogger(__name__)


class MarkOverdueInvoices:
    """
    Use Case: Mark PENDING invoices past their due date as OVERDUE

    Business Rules:
    1. Only PENDING invoices move to OVERDUE (DRAFT, PAID, CANCELLED and
       already OVERDUE invoices are untouched)
    2. The update is conditional on the row still being PENDING, so a
       concurrent payment is never overwritten
    3. found != updated is reported as a concurrent modification warning
    """

    def __init__(self, uow: UnitOfWork, invoice_repo: InvoiceRepository):
        self.uow = uow
        self.invoice_repo = invoice_repo

    async def execute(self, now: Optional[datetime] = None) -> Result[MarkOverdueResultDTO]:
        """
        Execute overdue marking

        Args:
            now: Reference time (defaults to current UTC time)

        Returns:
            Result[MarkOverdueResultDTO]: Run metrics or MARK_OVERDUE_FAILED
        """
        started = time.monotonic()
        now = now or datetime.utcnow()
        errors = []

        logger.info("Starting overdue invoice marking process")

        try:
            overdue_ids = await self.invoice_repo.find_overdue_ids(now)
            logger.info(f"Found {len(overdue_ids)} overdue invoices")

            if not overdue_ids:
                return Return.ok(
                    MarkOverdueResultDTO(
                        total_found=0,
                        total_updated=0,
                        execution_time_ms=self._elapsed_ms(started),
                        timestamp=now,
                    )
                )

            for invoice in await self.invoice_repo.get_many(overdue_ids):
                logger.info(
                    f"Overdue invoice {invoice.invoice_number} ({invoice.client_name}) "
                    f"due {invoice.due_date}, status {invoice.status.value}"
                )

            updated = await self.invoice_repo.mark_overdue(overdue_ids, now)
            await self.uow.commit()

            if updated < len(overdue_ids):
                warning = (
                    f"Some invoices were not updated (found: {len(overdue_ids)}, updated: {updated}). "
                    f"This may indicate concurrent modifications."
                )
                logger.warning(warning)
                errors.append(warning)

            result = MarkOverdueResultDTO(
                total_found=len(overdue_ids),
                total_updated=updated,
                execution_time_ms=self._elapsed_ms(started),
                timestamp=now,
                errors=errors,
            )
            logger.info(
                f"Overdue invoice marking completed: found={result.total_found}, "
                f"updated={result.total_updated} in {result.execution_time_ms}ms"
            )
            return Return.ok(result)

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Error marking overdue invoices: {e}")
            return Return.err(
                Error(
                    code="MARK_OVERDUE_FAILED",
                    message="Failed to mark overdue invoices",
                    reason=str(e),
                )
            )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

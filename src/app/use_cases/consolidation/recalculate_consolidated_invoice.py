"""RecalculateConsolidatedInvoice Use Case

Keeps a consolidated invoice a live aggregate of its linked invoices.
"""

import logging
from typing import Optional
from libs.result import Result, Return, Error
from src.app.repositories.consolidated_invoice_repository import ConsolidatedInvoiceRepository
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.services.unit_of_work import UnitOfWork
from src.domain.consolidated_invoice import ConsolidatedInvoice, calculate_period_totals
from src.domain.errors import ConsolidatedInvoiceNotFoundError
from .dtos import RecalculationResultDTO

logger = logging.getLogger(__name__)


class RecalculateConsolidatedInvoice:
    """
    Use Case: Recompute and overwrite consolidated totals

    Totals are replaced, never accumulated. A consolidated invoice with no
    linked invoices left is kept unchanged.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        invoice_repo: InvoiceRepository,
        consolidated_invoice_repo: ConsolidatedInvoiceRepository,
    ):
        self.uow = uow
        self.invoice_repo = invoice_repo
        self.consolidated_invoice_repo = consolidated_invoice_repo

    async def recalculate(self, consolidated_invoice_id: int) -> Optional[ConsolidatedInvoice]:
        """
        Recompute totals inside the caller's transaction (no commit)

        Returns:
            Updated ConsolidatedInvoice, or None when nothing is linked to it

        Raises:
            ConsolidatedInvoiceNotFoundError: if the consolidated invoice does not exist
        """
        consolidated = await self.consolidated_invoice_repo.get_by_id(consolidated_invoice_id)
        if not consolidated:
            raise ConsolidatedInvoiceNotFoundError(f"Consolidated invoice {consolidated_invoice_id} not found")

        invoices = await self.invoice_repo.find_by_consolidated_id(consolidated_invoice_id)
        if not invoices:
            logger.warning(
                f"No invoices found for consolidated invoice {consolidated_invoice_id} during recalculation"
            )
            return None

        consolidated.apply_totals(calculate_period_totals(invoices))
        consolidated = await self.consolidated_invoice_repo.update(consolidated)

        logger.info(
            f"Recalculated consolidated invoice {consolidated.invoice_number}: "
            f"{consolidated.total_flights} flights, ${consolidated.total_usd} USD"
        )
        return consolidated

    async def execute(self, consolidated_invoice_id: int) -> Result[RecalculationResultDTO]:
        try:
            consolidated = await self.recalculate(consolidated_invoice_id)
            if consolidated is None:
                consolidated = await self.consolidated_invoice_repo.get_by_id(consolidated_invoice_id)
            await self.uow.commit()

            return Return.ok(
                RecalculationResultDTO(
                    consolidated_invoice_id=consolidated.id,
                    total_invoices=consolidated.total_invoices,
                    total_flights=consolidated.total_flights,
                    total_usd=consolidated.total_usd,
                )
            )

        except ConsolidatedInvoiceNotFoundError as e:
            return Return.err(
                Error(code="CONSOLIDATED_INVOICE_NOT_FOUND", message=str(e))
            )
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Error recalculating consolidated invoice {consolidated_invoice_id}: {e}")
            return Return.err(
                Error(
                    code="CONSOLIDATION_FAILED",
                    message="Failed to recalculate consolidated invoice",
                    reason=str(e),
                )
            )

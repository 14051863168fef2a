"""UpdateInvoice Use Case

Status transitions and fee edits on a single invoice.
"""

import logging
from datetime import datetime
from libs.result import Result, Return, Error
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.services.unit_of_work import UnitOfWork
from src.app.use_cases.consolidation.recalculate_consolidated_invoice import RecalculateConsolidatedInvoice
from src.domain.errors import InvalidStatusTransitionError
from src.domain.invoice import Invoice
from .dtos import InvoiceResponseDTO, UpdateInvoiceCommandDTO

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "fee_amount",
    "other_fees_amount",
    "fx_rate",
    "total_usd_amount",
    "fee_description",
    "due_date",
)


class UpdateInvoice:
    """
    Use Case: Update an invoice

    Business Rules:
    1. Status changes must follow DRAFT -> PENDING/CANCELLED,
       PENDING -> PAID/OVERDUE/CANCELLED, OVERDUE -> PAID/CANCELLED
    2. Only supplied fields change
    3. If the invoice is part of a consolidated invoice, the consolidated
       totals are recalculated in the same transaction
    """

    def __init__(
        self,
        uow: UnitOfWork,
        invoice_repo: InvoiceRepository,
        recalculate_consolidated: RecalculateConsolidatedInvoice,
    ):
        self.uow = uow
        self.invoice_repo = invoice_repo
        self.recalculate_consolidated = recalculate_consolidated

    async def execute(self, command: UpdateInvoiceCommandDTO) -> Result[InvoiceResponseDTO]:
        """
        Execute invoice update

        Args:
            command: Invoice id plus fields to change

        Returns:
            Result[InvoiceResponseDTO]: Updated invoice or error
        """
        try:
            invoice = await self.invoice_repo.get_by_id(command.invoice_id)
            if not invoice:
                return Return.err(
                    Error(
                        code="INVOICE_NOT_FOUND",
                        message=f"Invoice {command.invoice_id} not found",
                    )
                )

            if command.status is not None and command.status != invoice.status:
                invoice.transition_to(command.status)

            changes = command.model_dump(include=set(EDITABLE_FIELDS), exclude_unset=True)
            for field, value in changes.items():
                setattr(invoice, field, value)
            if "fee_amount" in changes or "other_fees_amount" in changes:
                invoice.total_original_amount = self._original_total(invoice)
            invoice.updated_at = datetime.utcnow()

            invoice = await self.invoice_repo.update(invoice)

            recalculated = False
            if invoice.included_in_consolidated_invoice_id:
                consolidated = await self.recalculate_consolidated.recalculate(
                    invoice.included_in_consolidated_invoice_id
                )
                recalculated = consolidated is not None

            await self.uow.commit()

            logger.info(f"Invoice {invoice.invoice_number} updated (status={invoice.status.value})")
            return Return.ok(self._to_response_dto(invoice, recalculated))

        except InvalidStatusTransitionError as e:
            await self.uow.rollback()
            return Return.err(
                Error(
                    code="INVALID_STATUS_TRANSITION",
                    message=str(e),
                )
            )
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Error updating invoice {command.invoice_id}: {e}")
            return Return.err(
                Error(
                    code="UPDATE_INVOICE_FAILED",
                    message="Failed to update invoice",
                    reason=str(e),
                )
            )

    @staticmethod
    def _original_total(invoice: Invoice):
        if invoice.fee_amount is None:
            return None
        return invoice.fee_amount + (invoice.other_fees_amount or 0)

    @staticmethod
    def _to_response_dto(invoice: Invoice, recalculated: bool) -> InvoiceResponseDTO:
        return InvoiceResponseDTO(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            flight_id=invoice.flight_id,
            status=invoice.status,
            operator_id=invoice.operator_id,
            fee_amount=invoice.fee_amount,
            other_fees_amount=invoice.other_fees_amount,
            total_usd_amount=invoice.total_usd_amount,
            due_date=invoice.due_date,
            included_in_consolidated_invoice_id=invoice.included_in_consolidated_invoice_id,
            consolidated_totals_recalculated=recalculated,
        )

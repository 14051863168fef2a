"""GenerateConsolidatedInvoice Use Case

Rolls a customer's unconsolidated invoices for one billing period up into a
single ConsolidatedInvoice.
"""

import logging
from datetime import datetime, timedelta
from sqlalchemy.exc import IntegrityError
from libs.result import Result, Return, Error
from src.app.repositories.consolidated_invoice_repository import ConsolidatedInvoiceRepository
from src.app.repositories.customer_repository import CustomerRepository
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.services.unit_of_work import UnitOfWork
from src.domain.billing_period import BillingPeriod, BillingPeriodCalculator
from src.domain.consolidated_invoice import ConsolidatedInvoice, calculate_period_totals
from src.domain.customer import Customer, CustomerStatus
from src.domain.invoice import InvoiceStatus
from .dtos import (
    ConsolidatedInvoiceSummaryDTO,
    ConsolidationResultDTO,
    ConsolidationStatus,
    GenerateConsolidatedInvoiceCommandDTO,
)

logger = logging.getLogger(__name__)


class GenerateConsolidatedInvoice:
    """
    Use Case: Generate the consolidated invoice for one customer and period

    Business Rules:
    1. Customer must exist and have a billing period type (errors otherwise)
    2. Billing disabled or customer not APPROVED: skipped, not an error
    3. Idempotency: one ConsolidatedInvoice per (customer, start, end); a re-run
       returns ALREADY_CONSOLIDATED, and so does losing the unique-constraint
       race against a concurrent writer
    4. No unconsolidated invoices in the period: NOTHING_TO_CONSOLIDATE
    5. Totals are computed from the linked invoices; due date is issue date
       plus payment terms

    Flow:
    1. Load and check customer
    2. Resolve period (explicit bounds or the period containing reference_date)
    3. Check for an existing consolidated invoice
    4. Fetch unconsolidated invoices issued in the period
    5. Compute totals, mint number, create row, link invoices
    6. Commit
    """

    def __init__(
        self,
        uow: UnitOfWork,
        customer_repo: CustomerRepository,
        invoice_repo: InvoiceRepository,
        consolidated_invoice_repo: ConsolidatedInvoiceRepository,
        payment_terms_days: int = 30,
        invoice_number_prefix: str = "CONS",
    ):
        self.uow = uow
        self.customer_repo = customer_repo
        self.invoice_repo = invoice_repo
        self.consolidated_invoice_repo = consolidated_invoice_repo
        self.payment_terms_days = payment_terms_days
        self.invoice_number_prefix = invoice_number_prefix

    async def execute(
        self, command: GenerateConsolidatedInvoiceCommandDTO
    ) -> Result[ConsolidationResultDTO]:
        """
        Execute consolidated invoice generation

        Args:
            command: Customer, optional period bounds and reference date

        Returns:
            Result[ConsolidationResultDTO]: Generated or skipped result, or error
        """
        try:
            customer = await self.customer_repo.get_by_id(command.customer_id)
            if not customer:
                return Return.err(
                    Error(
                        code="CUSTOMER_NOT_FOUND",
                        message=f"Customer {command.customer_id} not found",
                    )
                )

            if not customer.billing_period_enabled:
                return Return.ok(
                    self._skipped(
                        customer,
                        ConsolidationStatus.BILLING_DISABLED,
                        "Customer does not have consolidated billing enabled",
                    )
                )

            if customer.status != CustomerStatus.APPROVED:
                return Return.ok(
                    self._skipped(
                        customer,
                        ConsolidationStatus.NOT_APPROVED,
                        f"Customer status is {customer.status.value}, must be APPROVED",
                    )
                )

            if not customer.billing_period_type:
                return Return.err(
                    Error(
                        code="BILLING_PERIOD_NOT_CONFIGURED",
                        message="Customer billing period type not configured",
                    )
                )

            try:
                period = self._resolve_period(customer, command)
            except ValueError as e:
                return Return.err(
                    Error(
                        code="BILLING_PERIOD_NOT_CONFIGURED",
                        message="Customer billing period configuration is invalid",
                        reason=str(e),
                    )
                )

            logger.info(
                f"Generating consolidated invoice for customer {customer.id} "
                f"({customer.full_legal_name}), period {period.start} - {period.end} "
                f"({period.type.value})"
            )

            existing = await self.consolidated_invoice_repo.find_for_period(
                customer.id, period.start, period.end
            )
            if existing:
                logger.warning(
                    f"Period already consolidated for customer {customer.id}: "
                    f"{existing.invoice_number} - skipping"
                )
                return Return.ok(
                    self._skipped(
                        customer,
                        ConsolidationStatus.ALREADY_CONSOLIDATED,
                        f"Period already consolidated: {existing.invoice_number}",
                    )
                )

            invoices = await self.invoice_repo.find_unconsolidated(
                customer.id, period.start_at, period.end_before
            )
            if not invoices:
                logger.info(
                    f"No unconsolidated invoices found for customer {customer.id} "
                    f"in {period.start} - {period.end} - skipping"
                )
                return Return.ok(
                    self._skipped(
                        customer,
                        ConsolidationStatus.NOTHING_TO_CONSOLIDATE,
                        "No unconsolidated invoices found for period",
                    )
                )

            totals = calculate_period_totals(invoices)
            invoice_number = await self.consolidated_invoice_repo.generate_invoice_number(
                self.invoice_number_prefix, customer.billing_period_type, period.start
            )
            issue_date = datetime.utcnow()

            consolidated = ConsolidatedInvoice(
                invoice_number=invoice_number,
                operator_id=customer.id,
                billing_period_start=period.start,
                billing_period_end=period.end,
                billing_period_type=customer.billing_period_type,
                issue_date=issue_date,
                due_date=issue_date + timedelta(days=self.payment_terms_days),
                billed_to_name=customer.full_legal_name,
                billed_to_address=customer.billing_address,
                status=InvoiceStatus.PENDING,
                auto_generated=True,
            )
            consolidated.apply_totals(totals)

            try:
                consolidated = await self.consolidated_invoice_repo.create(consolidated)
            except IntegrityError as e:
                await self.uow.rollback()
                # Only a committed row for the same period makes this a replay
                winner = await self.consolidated_invoice_repo.find_for_period(
                    customer.id, period.start, period.end
                )
                if not winner:
                    logger.error(
                        f"Consolidated invoice {invoice_number} for customer {customer.id} "
                        f"rejected by the database: {e}"
                    )
                    return Return.err(
                        Error(
                            code="CONSOLIDATION_FAILED",
                            message=f"Consolidated invoice {invoice_number} could not be stored",
                            reason=str(e),
                        )
                    )
                logger.warning(
                    f"Consolidated invoice for customer {customer.id} "
                    f"{period.start} - {period.end} created concurrently - skipping"
                )
                return Return.ok(
                    self._skipped(
                        customer,
                        ConsolidationStatus.ALREADY_CONSOLIDATED,
                        f"Period already consolidated: {winner.invoice_number}",
                    )
                )

            linked = await self.invoice_repo.link_to_consolidated(
                [invoice.id for invoice in invoices], consolidated.id
            )
            await self.uow.commit()

            logger.info(
                f"Consolidated invoice {consolidated.invoice_number} created for customer "
                f"{customer.id}: {linked} invoices, {totals.total_flights} flights, "
                f"${totals.total_usd} USD"
            )

            return Return.ok(
                ConsolidationResultDTO(
                    status=ConsolidationStatus.GENERATED,
                    customer_id=customer.id,
                    message=f"Consolidated {linked} invoices",
                    consolidated_invoice=to_summary_dto(consolidated),
                )
            )

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Error generating consolidated invoice for customer {command.customer_id}: {e}")
            return Return.err(
                Error(
                    code="CONSOLIDATION_FAILED",
                    message="Failed to generate consolidated invoice",
                    reason=str(e),
                )
            )

    @staticmethod
    def _resolve_period(
        customer: Customer, command: GenerateConsolidatedInvoiceCommandDTO
    ) -> BillingPeriod:
        if command.period_start and command.period_end:
            derived = BillingPeriodCalculator.current_period(customer, command.period_start)
            return BillingPeriod(
                start=command.period_start,
                end=command.period_end,
                type=customer.billing_period_type,
                description=derived.description,
            )
        return BillingPeriodCalculator.current_period(customer, command.reference_date)

    @staticmethod
    def _skipped(
        customer: Customer, status: ConsolidationStatus, message: str
    ) -> ConsolidationResultDTO:
        return ConsolidationResultDTO(status=status, customer_id=customer.id, message=message)


def to_summary_dto(consolidated: ConsolidatedInvoice) -> ConsolidatedInvoiceSummaryDTO:
    return ConsolidatedInvoiceSummaryDTO(
        id=consolidated.id,
        invoice_number=consolidated.invoice_number,
        operator_id=consolidated.operator_id,
        billing_period_start=consolidated.billing_period_start,
        billing_period_end=consolidated.billing_period_end,
        billing_period_type=consolidated.billing_period_type,
        total_flights=consolidated.total_flights,
        total_invoices=consolidated.total_invoices,
        total_fee_usd=consolidated.total_fee_usd,
        total_other_usd=consolidated.total_other_usd,
        total_usd=consolidated.total_usd,
        firs_crossed=list(consolidated.firs_crossed or []),
        countries=list(consolidated.countries or []),
        due_date=consolidated.due_date,
    )

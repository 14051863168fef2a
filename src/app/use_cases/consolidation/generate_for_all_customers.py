"""GenerateConsolidatedInvoicesForAllCustomers Use Case

Batch driver called by the consolidation scheduler.
"""

import logging
import time
from datetime import date, datetime
from typing import Awaitable, Callable, Optional
from libs.result import Result, Return
from src.app.repositories.customer_repository import CustomerRepository
from src.domain.billing_period import BillingPeriodCalculator
from .dtos import (
    ConsolidationErrorDTO,
    ConsolidationMetricsDTO,
    ConsolidationResultDTO,
    GenerateConsolidatedInvoiceCommandDTO,
)

logger = logging.getLogger(__name__)

GenerateForCustomer = Callable[
    [GenerateConsolidatedInvoiceCommandDTO], Awaitable[Result[ConsolidationResultDTO]]
]


class GenerateConsolidatedInvoicesForAllCustomers:
    """
    Use Case: Consolidate every billing-enabled customer whose period closes on a date

    Business Rules:
    1. Only customers whose billing period ends on reference_date are consolidated
    2. One customer's failure is recorded in metrics and never stops the others
    3. Each customer is consolidated through ``generate_for_customer``, which
       owns its own transaction

    Args (constructor):
        customer_repo: Source of billing-enabled customers
        generate_for_customer: Runs GenerateConsolidatedInvoice for one command
    """

    def __init__(
        self,
        customer_repo: CustomerRepository,
        generate_for_customer: GenerateForCustomer,
    ):
        self.customer_repo = customer_repo
        self.generate_for_customer = generate_for_customer

    async def execute(self, reference_date: Optional[date] = None) -> Result[ConsolidationMetricsDTO]:
        """
        Execute consolidation for all eligible customers

        Args:
            reference_date: Day whose closing periods are consolidated (default: today, UTC)

        Returns:
            Result[ConsolidationMetricsDTO]: Always ok; failures are listed in metrics.errors
        """
        started = time.monotonic()
        reference_date = reference_date or datetime.utcnow().date()
        metrics = ConsolidationMetricsDTO(reference_date=reference_date)

        logger.info(f"Starting consolidated invoice generation for all customers (reference date {reference_date})")

        try:
            customers = await self.customer_repo.get_billing_enabled()
        except Exception as e:
            logger.error(f"Critical error loading customers for consolidation: {e}")
            metrics.errors.append(ConsolidationErrorDTO(customer_id=0, customer_name="*", error=str(e)))
            metrics.execution_time_ms = int((time.monotonic() - started) * 1000)
            return Return.ok(metrics)

        logger.info(f"Found {len(customers)} eligible customers for consolidation")

        # Snapshot before any per-customer transaction touches the rows
        candidates = [(customer.id, customer.full_legal_name, customer) for customer in customers]

        for customer_id, customer_name, customer in candidates:
            metrics.customers_processed += 1
            try:
                if not BillingPeriodCalculator.is_period_end(customer, reference_date):
                    logger.debug(f"Not period end for customer {customer_id} ({customer_name}) - skipping")
                    continue

                result = await self.generate_for_customer(
                    GenerateConsolidatedInvoiceCommandDTO(
                        customer_id=customer_id, reference_date=reference_date
                    )
                )
            except Exception as e:
                self._record_error(metrics, customer_id, customer_name, str(e))
                continue

            if result.is_err():
                reason = f"{result.error.message}: {result.error.reason}" if result.error.reason else result.error.message
                self._record_error(metrics, customer_id, customer_name, reason)
                continue

            outcome = result.value
            if outcome.generated:
                metrics.invoices_generated += 1
                metrics.total_invoices_consolidated += outcome.consolidated_invoice.total_invoices
                logger.info(
                    f"Successfully generated consolidated invoice {outcome.consolidated_invoice.invoice_number} "
                    f"for customer {customer_id} ({customer_name}): "
                    f"{outcome.consolidated_invoice.total_flights} flights, "
                    f"${outcome.consolidated_invoice.total_usd} USD"
                )
            else:
                logger.info(f"Customer {customer_id} skipped: {outcome.status.value} ({outcome.message})")

        metrics.execution_time_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Consolidated invoice generation completed: customers={metrics.customers_processed}, "
            f"generated={metrics.invoices_generated}, consolidated={metrics.total_invoices_consolidated}, "
            f"errors={len(metrics.errors)}, {metrics.execution_time_ms}ms"
        )
        return Return.ok(metrics)

    @staticmethod
    def _record_error(
        metrics: ConsolidationMetricsDTO, customer_id: int, customer_name: str, error: str
    ) -> None:
        logger.error(f"Failed to generate consolidated invoice for customer {customer_id} ({customer_name}): {error}")
        metrics.errors.append(
            ConsolidationErrorDTO(customer_id=customer_id, customer_name=customer_name, error=error)
        )

"""Scheduled Jobs

Overdue marking and consolidated invoice generation, each wrapped in a
distributed lock so that exactly one instance acts per tick. Cron triggers
are registered with arq; jobs can also be triggered manually.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Set
from arq import cron
from arq.connections import RedisSettings
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from libs.result import Result
from src.adapter.repositories import (
    SqlAlchemyConsolidatedInvoiceRepository,
    SqlAlchemyCustomerRepository,
    SqlAlchemyInvoiceRepository,
)
from src.adapter.services import SqlAlchemyUnitOfWork, create_advisory_lock_backend
from src.app.services.distributed_lock import DistributedLock, LockExecutionResult
from src.app.use_cases.consolidation import (
    ConsolidationMetricsDTO,
    ConsolidationResultDTO,
    GenerateConsolidatedInvoice,
    GenerateConsolidatedInvoiceCommandDTO,
    GenerateConsolidatedInvoicesForAllCustomers,
)
from src.app.use_cases.invoices import MarkOverdueInvoices, MarkOverdueResultDTO

logger = logging.getLogger(__name__)

OVERDUE_JOB_LOCK_ID = "invoice-overdue-job"
CONSOLIDATION_JOB_LOCK_ID = "consolidated-invoice-generation-job"

# field name -> (arq keyword, lowest value, highest value)
CRON_FIELDS = [
    ("minute", "minute", 0, 59),
    ("hour", "hour", 0, 23),
    ("day of month", "day", 1, 31),
    ("month", "month", 1, 12),
    ("day of week", "weekday", 0, 7),
]


class ScheduledJobError(Exception):
    """A scheduled job ran but its use case reported an error"""

    def __init__(self, code: str, message: str):
        super().__init__(f"{code}: {message}")
        self.code = code


def _parse_cron_field(field: str, name: str, lowest: int, highest: int) -> Optional[Set[int]]:
    if field == "*":
        return None

    values: Set[int] = set()
    for part in field.split(","):
        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            if not step_text.isdigit() or int(step_text) < 1:
                raise ValueError(f"Invalid step in cron {name} field: {field}")
            step = int(step_text)

        if part == "*":
            start, end = lowest, highest
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            if not (start_text.isdigit() and end_text.isdigit()):
                raise ValueError(f"Invalid range in cron {name} field: {field}")
            start, end = int(start_text), int(end_text)
        elif part.isdigit():
            start = int(part)
            end = start if step == 1 else highest
        else:
            raise ValueError(f"Invalid cron {name} field: {field}")

        if start > end or start < lowest or end > highest:
            raise ValueError(f"Cron {name} field out of range {lowest}-{highest}: {field}")
        values.update(range(start, end + 1, step))

    return values


def parse_cron_expression(expression: str) -> Dict[str, Set[int]]:
    """
    Translate a five-field cron expression into arq ``cron()`` keyword arguments

    Supports ``*``, single values, comma lists, ranges and ``/n`` steps.
    Day of week follows cron (0 or 7 = Sunday) and is converted to arq's
    0=Monday numbering. Wildcard fields are omitted.

    Raises:
        ValueError: if the expression is malformed
    """
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Cron expression must have 5 fields, got {len(fields)}: '{expression}'")

    kwargs: Dict[str, Set[int]] = {}
    for field, (name, keyword, lowest, highest) in zip(fields, CRON_FIELDS):
        values = _parse_cron_field(field, name, lowest, highest)
        if values is None:
            continue
        if keyword == "weekday":
            values = {(value - 1) % 7 for value in values}
        kwargs[keyword] = values
    return kwargs


class JobScheduler:
    """
    Runs the overdue and consolidation jobs under the distributed lock

    A tick that cannot take its lock is skipped: another instance is already
    running that job. Job failures are logged and reported, never raised.
    """

    def __init__(
        self,
        session_factory,
        distributed_lock: DistributedLock,
        overdue_cron: Optional[str] = None,
        consolidation_cron: Optional[str] = None,
        overdue_lock_timeout_ms: Optional[int] = None,
        consolidation_lock_timeout_ms: Optional[int] = None,
        consolidation_enabled: Optional[bool] = None,
    ):
        self.session_factory = session_factory
        self.distributed_lock = distributed_lock
        self.overdue_cron = overdue_cron or ApplicationConfig.OVERDUE_CRON_SCHEDULE
        self.consolidation_cron = consolidation_cron or ApplicationConfig.CONSOLIDATION_CRON_SCHEDULE
        self.overdue_lock_timeout_ms = overdue_lock_timeout_ms or ApplicationConfig.OVERDUE_LOCK_TIMEOUT_MS
        self.consolidation_lock_timeout_ms = (
            consolidation_lock_timeout_ms or ApplicationConfig.CONSOLIDATION_LOCK_TIMEOUT_MS
        )
        self.consolidation_enabled = (
            consolidation_enabled
            if consolidation_enabled is not None
            else ApplicationConfig.CONSOLIDATION_ENABLED
        )
        self.last_runs: Dict[str, datetime] = {}

    async def run_overdue_job(self) -> MarkOverdueResultDTO:
        async with self.session_factory() as session:
            use_case = MarkOverdueInvoices(
                uow=SqlAlchemyUnitOfWork(session),
                invoice_repo=SqlAlchemyInvoiceRepository(session),
            )
            result = await use_case.execute()

        if result.is_err():
            raise ScheduledJobError(result.error.code, result.error.reason or result.error.message)

        metrics = result.value
        logger.info(
            f"Overdue marking completed: found={metrics.total_found}, "
            f"updated={metrics.total_updated}, {metrics.execution_time_ms}ms"
        )
        return metrics

    async def generate_for_customer(
        self, command: GenerateConsolidatedInvoiceCommandDTO
    ) -> Result[ConsolidationResultDTO]:
        """Consolidate one customer in a dedicated session"""
        async with self.session_factory() as session:
            use_case = GenerateConsolidatedInvoice(
                uow=SqlAlchemyUnitOfWork(session),
                customer_repo=SqlAlchemyCustomerRepository(session),
                invoice_repo=SqlAlchemyInvoiceRepository(session),
                consolidated_invoice_repo=SqlAlchemyConsolidatedInvoiceRepository(session),
                payment_terms_days=ApplicationConfig.CONSOLIDATION_PAYMENT_TERMS_DAYS,
                invoice_number_prefix=ApplicationConfig.CONSOLIDATION_INVOICE_NUMBER_PREFIX,
            )
            return await use_case.execute(command)

    async def run_consolidation_job(
        self, reference_date: Optional[date] = None
    ) -> ConsolidationMetricsDTO:
        """
        Consolidate every customer whose period closed on the reference date

        Args:
            reference_date: Closing day (default: yesterday, UTC, so the period is complete)
        """
        reference_date = reference_date or (datetime.utcnow().date() - timedelta(days=1))

        async with self.session_factory() as session:
            use_case = GenerateConsolidatedInvoicesForAllCustomers(
                customer_repo=SqlAlchemyCustomerRepository(session),
                generate_for_customer=self.generate_for_customer,
            )
            result = await use_case.execute(reference_date)

        metrics = result.value
        logger.info(
            f"Consolidation completed for {reference_date}: customers={metrics.customers_processed}, "
            f"generated={metrics.invoices_generated}, invoices={metrics.total_invoices_consolidated}, "
            f"errors={len(metrics.errors)}, {metrics.execution_time_ms}ms"
        )
        for error in metrics.errors:
            logger.error(
                f"Consolidation failed for customer {error.customer_id} ({error.customer_name}): {error.error}"
            )
        return metrics

    async def overdue_tick(self) -> LockExecutionResult[MarkOverdueResultDTO]:
        logger.info("Running scheduled overdue invoice check")
        outcome = await self.distributed_lock.with_lock(
            OVERDUE_JOB_LOCK_ID, self.run_overdue_job, self.overdue_lock_timeout_ms
        )
        self._record_run(OVERDUE_JOB_LOCK_ID, outcome)
        return outcome

    async def consolidation_tick(
        self, reference_date: Optional[date] = None
    ) -> Optional[LockExecutionResult[ConsolidationMetricsDTO]]:
        if not self.consolidation_enabled:
            logger.info("Consolidated invoice generation is disabled, skipping")
            return None

        logger.info("Running scheduled consolidated invoice generation")
        outcome = await self.distributed_lock.with_lock(
            CONSOLIDATION_JOB_LOCK_ID,
            lambda: self.run_consolidation_job(reference_date),
            self.consolidation_lock_timeout_ms,
        )
        self._record_run(CONSOLIDATION_JOB_LOCK_ID, outcome)
        return outcome

    async def trigger_overdue_job(self) -> LockExecutionResult[MarkOverdueResultDTO]:
        """Run the overdue job now, outside its cron schedule"""
        logger.info("Manual trigger: overdue invoice check")
        return await self.overdue_tick()

    async def trigger_consolidation_job(
        self, reference_date: Optional[date] = None
    ) -> LockExecutionResult[ConsolidationMetricsDTO]:
        """Run consolidation now, even when the scheduled job is disabled"""
        logger.info(f"Manual trigger: consolidated invoice generation (reference date {reference_date or 'yesterday'})")
        outcome = await self.distributed_lock.with_lock(
            CONSOLIDATION_JOB_LOCK_ID,
            lambda: self.run_consolidation_job(reference_date),
            self.consolidation_lock_timeout_ms,
        )
        self._record_run(CONSOLIDATION_JOB_LOCK_ID, outcome)
        return outcome

    def _record_run(self, identifier: str, outcome: LockExecutionResult) -> None:
        if not outcome.lock_acquired:
            logger.info(f"Skipped {identifier}: another instance is running it")
            return
        self.last_runs[identifier] = datetime.utcnow()
        if not outcome.success:
            logger.error(f"{identifier} failed: {outcome.error}")

    def status(self) -> Dict[str, Any]:
        return {
            "overdue_job": {
                "schedule": self.overdue_cron,
                "lock_id": OVERDUE_JOB_LOCK_ID,
                "lock_timeout_ms": self.overdue_lock_timeout_ms,
                "last_run": self.last_runs.get(OVERDUE_JOB_LOCK_ID),
            },
            "consolidation_job": {
                "enabled": self.consolidation_enabled,
                "schedule": self.consolidation_cron,
                "lock_id": CONSOLIDATION_JOB_LOCK_ID,
                "lock_timeout_ms": self.consolidation_lock_timeout_ms,
                "last_run": self.last_runs.get(CONSOLIDATION_JOB_LOCK_ID),
            },
        }


def _summarize(outcome: Optional[LockExecutionResult]) -> Dict[str, Any]:
    if outcome is None:
        return {"skipped": True, "reason": "disabled"}
    summary: Dict[str, Any] = {
        "lock_acquired": outcome.lock_acquired,
        "success": outcome.success,
    }
    if outcome.result is not None:
        summary["result"] = outcome.result.model_dump(mode="json")
    if outcome.error is not None:
        summary["error"] = str(outcome.error)
    return summary


async def mark_overdue_invoices_task(ctx: Dict[str, Any]) -> Dict[str, Any]:
    """Cron task: move PENDING invoices past their due date to OVERDUE"""
    scheduler: JobScheduler = ctx["scheduler"]
    return _summarize(await scheduler.overdue_tick())


async def generate_consolidated_invoices_task(
    ctx: Dict[str, Any], reference_date: Optional[str] = None
) -> Dict[str, Any]:
    """Cron task: consolidate customers whose billing period closed yesterday"""
    scheduler: JobScheduler = ctx["scheduler"]
    parsed = date.fromisoformat(reference_date) if reference_date else None
    return _summarize(await scheduler.consolidation_tick(parsed))


def build_scheduler(engine) -> JobScheduler:
    session_factory = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    lock = DistributedLock(create_advisory_lock_backend(engine))
    return JobScheduler(session_factory, lock)


async def startup(ctx: Dict[str, Any]) -> None:
    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ApplicationConfig.validate_required("DB_URI")

    engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)
    scheduler = build_scheduler(engine)
    ctx["engine"] = engine
    ctx["scheduler"] = scheduler
    logger.info(f"Job scheduler started: {scheduler.status()}")


async def shutdown(ctx: Dict[str, Any]) -> None:
    scheduler: Optional[JobScheduler] = ctx.get("scheduler")
    if scheduler is not None:
        await scheduler.distributed_lock.backend.close()
    engine = ctx.get("engine")
    if engine is not None:
        await engine.dispose()
    logger.info("Job scheduler shutdown complete")


def build_cron_jobs() -> List[Any]:
    jobs = [
        cron(
            mark_overdue_invoices_task,
            name="invoice-overdue",
            **parse_cron_expression(ApplicationConfig.OVERDUE_CRON_SCHEDULE),
        )
    ]
    if ApplicationConfig.CONSOLIDATION_ENABLED:
        jobs.append(
            cron(
                generate_consolidated_invoices_task,
                name="consolidated-invoice-generation",
                **parse_cron_expression(ApplicationConfig.CONSOLIDATION_CRON_SCHEDULE),
            )
        )
    return jobs


class WorkerSettings:
    functions = [mark_overdue_invoices_task, generate_consolidated_invoices_task]
    cron_jobs = build_cron_jobs()
    on_startup = startup
    on_shutdown = shutdown
    job_timeout = 3600
    redis_settings = RedisSettings.from_dsn(ApplicationConfig.REDIS_URL)


async def run_manual(job: str, reference_date: Optional[date] = None) -> Dict[str, Any]:
    """Run one job immediately through the same lock as the cron ticks"""
    ctx: Dict[str, Any] = {}
    await startup(ctx)
    scheduler: JobScheduler = ctx["scheduler"]
    try:
        if job == "overdue":
            return _summarize(await scheduler.trigger_overdue_job())
        return _summarize(await scheduler.trigger_consolidation_job(reference_date))
    finally:
        await shutdown(ctx)


def main():
    """
    Entry point for running the scheduler

    Usage:
        # Start the arq cron worker
        python -m src.worker.scheduler

        # Trigger a job once
        python -m src.worker.scheduler --run overdue
        python -m src.worker.scheduler --run consolidation --reference-date 2025-01-31
    """
    import argparse
    import sys
    from arq import run_worker
    from src.domain.errors import ConfigurationError

    parser = argparse.ArgumentParser(description="Billing Job Scheduler")
    parser.add_argument("--run", choices=["overdue", "consolidation"], help="Trigger a job once and exit")
    parser.add_argument("--reference-date", type=date.fromisoformat, help="Consolidation closing day (YYYY-MM-DD)")
    args = parser.parse_args()

    try:
        if args.run:
            summary = asyncio.run(run_manual(args.run, args.reference_date))
            print(f"Job {args.run} finished: {summary}")
        else:
            run_worker(WorkerSettings)
    except ConfigurationError as e:
        logger.critical(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()

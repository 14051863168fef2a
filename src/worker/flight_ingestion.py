"""Flight Ingestion Background Worker

Drains the flight processing queue in bounded batches and turns each flight
into invoices. Can be run once or as a standing poll loop.
"""

import asyncio
import logging
import sys
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from libs.result import Result
from src.adapter.repositories import (
    SqlAlchemyCustomerRepository,
    SqlAlchemyInvoiceErrorRepository,
    SqlAlchemyInvoiceRepository,
    SqlAlchemyQueueRepository,
)
from src.adapter.services import (
    HttpComputeEngine,
    HttpFlightSource,
    SqlAlchemyUnitOfWork,
    create_audit_trail,
)
from src.app.services.audit_trail import AuditTrail
from src.app.services.compute_engine import ComputeEngine
from src.app.services.flight_source import FlightSource
from src.app.services.operator_matching import OperatorResolver
from src.app.services.worker_pool import BoundedWorkerPool
from src.app.use_cases.ingestion import BatchReportDTO, DrainQueue, ProcessFlight, ProcessFlightResultDTO
from src.app.use_cases.invoices import PersistComputeOutput
from src.domain.errors import ConfigurationError
from src.domain.flight import TaskEnvelope

logger = logging.getLogger(__name__)


class FlightIngestionWorker:
    """
    Background worker for flight queue ingestion

    Features:
    - Batches of INGESTION_BATCH_SIZE, at most INGESTION_MAX_WORKERS flights in flight
    - Every flight runs in its own database session; the batch fetch and
      delete use a separate one
    - Session counters (batches, records scanned, invoices created)
    - Optional total scan limit that stops the loop once reached
    - Queue store failures double the next poll interval

    Usage:
        worker = FlightIngestionWorker()
        await worker.run_once()

        worker = FlightIngestionWorker()
        await worker.run_forever()
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        batch_size: Optional[int] = None,
        max_workers: Optional[int] = None,
        poll_interval_seconds: Optional[float] = None,
        total_scan_limit: Optional[int] = None,
        flight_source: Optional[FlightSource] = None,
        compute_engine: Optional[ComputeEngine] = None,
        audit_trail: Optional[AuditTrail] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            batch_size: Entries per cycle (defaults to config)
            max_workers: Concurrent flights per cycle (defaults to config)
            poll_interval_seconds: Sleep between cycles (defaults to config)
            total_scan_limit: Stop after this many records (defaults to config, None = unlimited)
            flight_source: Flight source (defaults to HTTP broker client)
            compute_engine: Compute engine (defaults to HTTP client)
            audit_trail: Processed record sink (defaults to log + daily file)
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI
        self.batch_size = batch_size or ApplicationConfig.INGESTION_BATCH_SIZE
        self.max_workers = max_workers or ApplicationConfig.INGESTION_MAX_WORKERS
        self.poll_interval_seconds = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else ApplicationConfig.INGESTION_POLL_INTERVAL_SECONDS
        )
        self.total_scan_limit = (
            total_scan_limit
            if total_scan_limit is not None
            else ApplicationConfig.INGESTION_TOTAL_SCAN_LIMIT
        )
        self.service_name = ApplicationConfig.INGESTION_SERVICE_NAME

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        self.flight_source = flight_source or HttpFlightSource(
            ApplicationConfig.FLIGHT_SOURCE_URL,
            table=ApplicationConfig.FLIGHT_SOURCE_TABLE,
            timeout=ApplicationConfig.HTTP_TIMEOUT_SECONDS,
        )
        self.compute_engine = compute_engine or HttpComputeEngine(
            ApplicationConfig.COMPUTE_ENGINE_URL,
            timeout=ApplicationConfig.HTTP_TIMEOUT_SECONDS,
        )
        self.audit_trail = audit_trail or create_audit_trail(ApplicationConfig.AUDIT_TRAIL_DIR)

        self.running = False
        self.batches_run = 0
        self.records_scanned = 0
        self.invoices_created = 0

        logger.info(
            f"FlightIngestionWorker initialized with batch_size={self.batch_size}, "
            f"max_workers={self.max_workers}, poll_interval={self.poll_interval_seconds}s, "
            f"scan_limit={self.total_scan_limit or 'unlimited'}"
        )

    @property
    def scan_limit_reached(self) -> bool:
        return self.total_scan_limit is not None and self.records_scanned >= self.total_scan_limit

    def _next_batch_size(self) -> int:
        if self.total_scan_limit is None:
            return self.batch_size
        return max(0, min(self.batch_size, self.total_scan_limit - self.records_scanned))

    async def process_task(self, task: TaskEnvelope) -> Result[ProcessFlightResultDTO]:
        """Run the per-flight pipeline in a dedicated session"""
        async with self.async_session_factory() as session:
            uow = SqlAlchemyUnitOfWork(session)
            persist_output = PersistComputeOutput(
                uow=uow,
                invoice_repo=SqlAlchemyInvoiceRepository(session),
                invoice_error_repo=SqlAlchemyInvoiceErrorRepository(session),
                operator_resolver=OperatorResolver.default(SqlAlchemyCustomerRepository(session)),
                audit_trail=self.audit_trail,
                payment_terms_days=ApplicationConfig.INVOICE_PAYMENT_TERMS_DAYS,
                deduplicate=ApplicationConfig.INVOICE_DEDUPLICATION_ENABLED,
            )
            use_case = ProcessFlight(
                flight_source=self.flight_source,
                compute_engine=self.compute_engine,
                persist_output=persist_output,
                audit_trail=self.audit_trail,
            )
            return await use_case.execute(task)

    async def run_once(self) -> Result[BatchReportDTO]:
        """
        Run one drain cycle

        Returns:
            Result[BatchReportDTO] from DrainQueue
        """
        batch_size = self._next_batch_size()

        async with self.async_session_factory() as session:
            use_case = DrainQueue(
                uow=SqlAlchemyUnitOfWork(session),
                queue_repo=SqlAlchemyQueueRepository(session),
                process_task=self.process_task,
                worker_pool=BoundedWorkerPool(self.max_workers),
                service_name=self.service_name,
            )
            result = await use_case.execute(batch_size)

        if result.is_err():
            logger.error(f"Ingestion cycle failed: {result.error.message} ({result.error.reason})")
            return result

        report = result.value
        if report.attempted:
            self.batches_run += 1
            self.records_scanned += report.attempted
            self.invoices_created += report.invoices_created
            logger.info(
                f"Batch #{self.batches_run} done. Total scanned this session: "
                f"{self.records_scanned}/{self.total_scan_limit or 'unlimited'}"
            )
        else:
            logger.debug("No flights in processing queue")

        return result

    async def run_forever(self):
        """Poll the queue until stopped or the scan limit is reached"""
        self.running = True
        logger.info(f"Starting flight ingestion with {self.poll_interval_seconds}s interval")

        while self.running:
            if self.scan_limit_reached:
                logger.info(
                    f"Scan limit of {self.total_scan_limit} reached ({self.records_scanned}). "
                    "Stopping ingestion."
                )
                break

            interval = self.poll_interval_seconds
            try:
                result = await self.run_once()
                if result.is_err():
                    # Queue store unavailable: back off
                    interval = self.poll_interval_seconds * 2
            except Exception as e:
                logger.error(f"Ingestion cycle failed - will retry: {e}")

            if not self.running or self.scan_limit_reached:
                continue
            await asyncio.sleep(interval)

        self.running = False
        self.log_summary()

    def stop(self):
        self.running = False

    def log_summary(self):
        logger.info(
            f"Flight ingestion session summary: flights scanned={self.records_scanned}, "
            f"invoices created={self.invoices_created}, batches={self.batches_run}"
        )

    async def shutdown(self):
        """Cleanup resources"""
        self.stop()
        await self.engine.dispose()
        logger.info("FlightIngestionWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run continuously
        python -m src.worker.flight_ingestion

        # Drain a single batch
        python -m src.worker.flight_ingestion --once
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Flight Ingestion Worker")
    parser.add_argument("--once", action="store_true", help="Drain a single batch and exit")
    parser.add_argument("--batch-size", type=int, help="Entries per cycle")
    parser.add_argument("--max-workers", type=int, help="Concurrent flights per cycle")
    args = parser.parse_args()

    try:
        ApplicationConfig.validate_required("DB_URI", "FLIGHT_SOURCE_URL", "COMPUTE_ENGINE_URL")
    except ConfigurationError as e:
        logger.critical(str(e))
        sys.exit(1)

    worker = FlightIngestionWorker(batch_size=args.batch_size, max_workers=args.max_workers)

    try:
        if args.once:
            result = await worker.run_once()
            if result.is_err():
                print(f"Ingestion failed: {result.error.message}")
                return
            report = result.value
            print(f"Ingestion complete:")
            print(f"  Attempted: {report.attempted}")
            print(f"  Succeeded: {report.succeeded}")
            print(f"  Failed: {report.failed}")
            print(f"  Invoices created: {report.invoices_created}")
            print(f"  Error invoices created: {report.error_invoices_created}")
        else:
            await worker.run_forever()
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())

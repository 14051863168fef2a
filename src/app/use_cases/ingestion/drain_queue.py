"""DrainQueue Use Case

One ingestion cycle: fetch a batch, process it with bounded concurrency,
delete exactly the entries that succeeded.
"""

import logging
from collections import Counter
from typing import Awaitable, Callable
from libs.result import Result, Return, Error
from src.app.repositories.queue_repository import QueueRepository
from src.app.services.unit_of_work import UnitOfWork
from src.app.services.worker_pool import BoundedWorkerPool, WorkOutcome
from src.domain.flight import TaskEnvelope
from src.domain.queue_entry import QueueEntry
from .dtos import (
    BatchItemResultDTO,
    BatchReportDTO,
    OUTCOME_BY_ERROR_CODE,
    ProcessFlightResultDTO,
    ProcessingOutcome,
)

logger = logging.getLogger(__name__)

ProcessTask = Callable[[TaskEnvelope], Awaitable[Result[ProcessFlightResultDTO]]]


class DrainQueue:
    """
    Use Case: Drain one batch of the flight processing queue

    Business Rules:
    1. Entries are fetched oldest first, at most batch_size per cycle
    2. At most max_workers flights are processed at once; one item's failure
       never affects its siblings
    3. After every item resolved, the succeeded ids are deleted in a single
       operation; failed entries stay queued and are retried next cycle
    4. ``process_task`` owns its own transaction per item; this use case's
       unit of work only covers the fetch and the delete

    Args (constructor):
        uow: Unit of work for the queue session
        queue_repo: Queue repository bound to the same session
        process_task: Runs ProcessFlight for one task envelope
        worker_pool: Bounded pool used to dispatch items
        service_name: Service tag written into task envelopes
    """

    def __init__(
        self,
        uow: UnitOfWork,
        queue_repo: QueueRepository,
        process_task: ProcessTask,
        worker_pool: BoundedWorkerPool,
        service_name: str = "automated-ingestion",
    ):
        self.uow = uow
        self.queue_repo = queue_repo
        self.process_task = process_task
        self.worker_pool = worker_pool
        self.service_name = service_name

    async def execute(self, batch_size: int) -> Result[BatchReportDTO]:
        """
        Execute one drain cycle

        Args:
            batch_size: Maximum entries to process

        Returns:
            Result[BatchReportDTO]: Cycle report, or QUEUE_FETCH_FAILED / QUEUE_DELETE_FAILED
        """
        try:
            entries = await self.queue_repo.fetch_batch(batch_size)
            # Do not hold the read transaction open while items are processed
            await self.uow.commit()
        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Failed to fetch queue batch: {e}")
            return Return.err(
                Error(
                    code="QUEUE_FETCH_FAILED",
                    message="Failed to fetch flight processing queue batch",
                    reason=str(e),
                )
            )

        report = BatchReportDTO(attempted=len(entries))
        if not entries:
            return Return.ok(report)

        logger.info(
            f"Processing batch of {len(entries)} flights with {self.worker_pool.max_workers} workers"
        )

        outcomes = await self.worker_pool.run(entries, self._process_entry)
        counter = Counter()

        for outcome in outcomes:
            item = self._to_item_result(outcome)
            counter[item.outcome] += 1
            report.items.append(item)
            report.invoices_created += item.invoices_created
            report.error_invoices_created += item.error_invoices_created
            if item.outcome.is_success:
                report.succeeded_ids.append(item.entry_id)
            else:
                report.failed_ids.append(item.entry_id)
                logger.warning(
                    f"Flight {item.flight_id} (entry {item.entry_id}) failed with "
                    f"{item.outcome.value}: {item.message} - left in queue for retry"
                )

        report.succeeded = len(report.succeeded_ids)
        report.failed = len(report.failed_ids)
        report.outcomes = dict(counter)

        if report.succeeded_ids:
            try:
                report.deleted = await self.queue_repo.delete_many(report.succeeded_ids)
                await self.uow.commit()
            except Exception as e:
                await self.uow.rollback()
                logger.error(f"Failed to delete {report.succeeded} processed queue entries: {e}")
                return Return.err(
                    Error(
                        code="QUEUE_DELETE_FAILED",
                        message="Failed to delete processed queue entries",
                        reason=str(e),
                    )
                )

        logger.info(
            f"Batch complete: attempted={report.attempted}, succeeded={report.succeeded}, "
            f"failed={report.failed}, deleted={report.deleted}, invoices={report.invoices_created}"
        )
        return Return.ok(report)

    async def _process_entry(self, entry: QueueEntry) -> Result[ProcessFlightResultDTO]:
        task = TaskEnvelope.for_flight(entry.flight_id, self.service_name)
        return await self.process_task(task)

    @staticmethod
    def _to_item_result(outcome: WorkOutcome) -> BatchItemResultDTO:
        entry: QueueEntry = outcome.item

        if not outcome.ok:
            return BatchItemResultDTO(
                entry_id=entry.id,
                flight_id=entry.flight_id,
                outcome=ProcessingOutcome.WRITE_ERROR,
                message=f"Unhandled error: {outcome.error}",
            )

        result: Result[ProcessFlightResultDTO] = outcome.value
        if result.is_err():
            return BatchItemResultDTO(
                entry_id=entry.id,
                flight_id=entry.flight_id,
                outcome=OUTCOME_BY_ERROR_CODE.get(result.error.code, ProcessingOutcome.WRITE_ERROR),
                message=result.error.reason or result.error.message,
            )

        processed = result.value
        return BatchItemResultDTO(
            entry_id=entry.id,
            flight_id=entry.flight_id,
            outcome=processed.outcome,
            invoices_created=processed.invoices_created,
            error_invoices_created=processed.error_invoices_created,
            message=processed.message,
        )

"""ProcessFlight Use Case

Per-item ingestion pipeline: fetch -> compute -> write.
"""

import logging
from pydantic import ValidationError
from libs.result import Result, Return, Error
from src.app.services.audit_trail import AuditTrail, ProcessedRecordEvent, ProcessedRecordStatus
from src.app.services.compute_engine import ComputeEngine
from src.app.services.flight_source import FlightSource
from src.app.use_cases.invoices.persist_compute_output import PersistComputeOutput
from src.domain.errors import ComputeEngineError, FetchError
from src.domain.flight import ComputeResult, FlightRecord, TaskEnvelope
from .dtos import ProcessFlightResultDTO, ProcessingOutcome

logger = logging.getLogger(__name__)


class ProcessFlight:
    """
    Use Case: Process one queued flight

    Business Rules:
    1. A pre-fetched flightData payload in the task body bypasses the flight source
    2. Source unreachable or no record: EXTERNAL_FETCH_ERROR (entry stays queued)
    3. Engine hard failure: COMPUTE_ERROR (entry stays queued)
    4. Engine soft failure "No output entries": success with zero invoices
       (NO_CROSSINGS); any structured errors are still written
    5. Other engine soft failures: structured errors are written immediately,
       then COMPUTE_ERROR is returned so the entry is retried
    6. Persistence failure: WRITE_ERROR (entry stays queued)

    Flow:
    1. Parse task body
    2. Resolve flight record (payload or source)
    3. Normalize positions and call the compute engine
    4. Persist output entries and errors
    """

    def __init__(
        self,
        flight_source: FlightSource,
        compute_engine: ComputeEngine,
        persist_output: PersistComputeOutput,
        audit_trail: AuditTrail,
    ):
        self.flight_source = flight_source
        self.compute_engine = compute_engine
        self.persist_output = persist_output
        self.audit_trail = audit_trail

    async def execute(self, task: TaskEnvelope) -> Result[ProcessFlightResultDTO]:
        """
        Execute the pipeline for one task

        Args:
            task: Internal task envelope for one flight

        Returns:
            Result[ProcessFlightResultDTO]: SUCCESS / NO_CROSSINGS, or an error whose
            code is EXTERNAL_FETCH_ERROR, COMPUTE_ERROR or WRITE_ERROR
        """
        logger.info(f"Processing task {task.message_id}")

        try:
            body = task.parse_body()
        except ValidationError as e:
            return Return.err(
                Error(
                    code="EXTERNAL_FETCH_ERROR",
                    message=f"Invalid task body for {task.message_id}",
                    reason=str(e),
                )
            )

        flight_id = body.flight_id

        try:
            if body.flight_data:
                logger.info(f"Using provided flight data for flight: {flight_id}")
                flight = FlightRecord.model_validate({**body.flight_data, "flightId": flight_id})
            else:
                flight = await self.flight_source.fetch(flight_id)
        except (FetchError, ValidationError) as e:
            logger.error(f"Failed to fetch flight {flight_id}: {e}")
            return Return.err(
                Error(
                    code="EXTERNAL_FETCH_ERROR",
                    message=f"Failed to fetch flight {flight_id}",
                    reason=str(e),
                )
            )

        flight = flight.with_normalized_positions()
        logger.info(f"Flight {flight_id} has {len(flight.positions)} position records")

        try:
            result = await self.compute_engine.process(flight)
        except ComputeEngineError as e:
            logger.error(f"Compute engine failed for flight {flight_id}: {e}")
            return Return.err(
                Error(
                    code="COMPUTE_ERROR",
                    message=f"Compute engine failed for flight {flight_id}",
                    reason=str(e),
                )
            )

        if result.success:
            return await self._persist_success(flight_id, result)
        return await self._handle_soft_failure(flight_id, result)

    async def _persist_success(self, flight_id: str, result: ComputeResult) -> Result[ProcessFlightResultDTO]:
        logger.info(
            f"Flight processing completed for {flight_id}: "
            f"{len(result.output_entries)} output entries, {len(result.errors)} data quality errors"
        )

        written = await self.persist_output.execute(result.output_entries, result.errors)
        if written.is_err():
            return Return.err(written.error)

        counts = written.value
        if not result.output_entries:
            logger.warning(f"No output entries for flight {flight_id} - no invoices created")
            await self._record_non_billable(flight_id, "No FIR crossings in compute output")
            outcome = ProcessingOutcome.NO_CROSSINGS
        else:
            outcome = ProcessingOutcome.SUCCESS

        return Return.ok(
            ProcessFlightResultDTO(
                flight_id=flight_id,
                outcome=outcome,
                invoices_created=counts.invoices_created,
                error_invoices_created=counts.error_invoices_created,
                duplicates_skipped=counts.duplicates_skipped,
            )
        )

    async def _handle_soft_failure(
        self, flight_id: str, result: ComputeResult
    ) -> Result[ProcessFlightResultDTO]:
        no_output = result.is_no_output()
        if no_output:
            logger.warning(f"Flight {flight_id} produced no output entries: {result.error_message}")
        else:
            logger.error(
                f"Flight processing failed for {flight_id}: {result.error_message}"
                + (f"\n{result.error_traceback}" if result.error_traceback else "")
            )

        error_invoices = 0
        if result.errors:
            logger.info(
                f"Creating invoices for {len(result.errors)} error(s) despite processing failure"
            )
            written = await self.persist_output.execute([], result.errors)
            if written.is_err():
                return Return.err(written.error)
            error_invoices = written.value.error_invoices_created

        if not no_output:
            return Return.err(
                Error(
                    code="COMPUTE_ERROR",
                    message=f"Compute engine reported failure for flight {flight_id}",
                    reason=result.error_message,
                )
            )

        await self._record_non_billable(flight_id, result.error_message)
        return Return.ok(
            ProcessFlightResultDTO(
                flight_id=flight_id,
                outcome=ProcessingOutcome.NO_CROSSINGS,
                error_invoices_created=error_invoices,
                message=result.error_message,
            )
        )

    async def _record_non_billable(self, flight_id: str, reason: str) -> None:
        await self.audit_trail.record_processed(
            ProcessedRecordEvent(
                flight_id=flight_id,
                status=ProcessedRecordStatus.NON_BILLABLE,
                result_type="NO_CROSSINGS",
                message=reason,
            )
        )

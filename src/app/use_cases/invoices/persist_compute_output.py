"""PersistComputeOutput Use Case

Turns one flight's compute engine output into Invoice and InvoiceError rows.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Sequence
from libs.result import Result, Return, Error
from src.app.repositories.invoice_error_repository import InvoiceErrorRepository
from src.app.repositories.invoice_repository import InvoiceRepository
from src.app.services.audit_trail import AuditTrail, ProcessedRecordEvent, ProcessedRecordStatus
from src.app.services.operator_matching import (
    OperatorCandidate,
    OperatorLookupResult,
    OperatorResolver,
)
from src.app.services.unit_of_work import UnitOfWork
from src.domain.errors import InvoiceWriteError
from src.domain.flight import ComputeErrorEntry, ComputeOutputEntry, UNKNOWN_OPERATOR
from src.domain.invoice import Invoice, InvoiceStatus
from src.domain.invoice_error import InvoiceError, UNKNOWN_ERROR_TYPE
from .dtos import PersistComputeOutputResponseDTO

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An error occurred during processing"


class PersistComputeOutput:
    """
    Use Case: Persist compute output as invoices and error records

    Business Rules:
    1. Operator resolution: IBA id, then JetNet id, then name; no match writes
       an InvoiceError (OPERATOR_ID_NOT_FOUND / OPERATOR_ID_MISMATCH) that keeps
       the computed fee and FIR fields, and no Invoice
    2. Engine errors: written as InvoiceError directly, no operator resolution
    3. Duplicate guard: an entry whose (flight_id, fir_name) already has an
       invoice is skipped (can be disabled)
    4. Rows are committed one by one; a failure stops the write and keeps the
       rows committed before it
    5. Every written entry emits one processed record event

    Flow:
    1. For each output entry: dedupe, resolve operator, write Invoice or InvoiceError
    2. For each engine error: write InvoiceError
    3. Return counts
    """

    def __init__(
        self,
        uow: UnitOfWork,
        invoice_repo: InvoiceRepository,
        invoice_error_repo: InvoiceErrorRepository,
        operator_resolver: OperatorResolver,
        audit_trail: AuditTrail,
        payment_terms_days: int = 10,
        deduplicate: bool = True,
    ):
        self.uow = uow
        self.invoice_repo = invoice_repo
        self.invoice_error_repo = invoice_error_repo
        self.operator_resolver = operator_resolver
        self.audit_trail = audit_trail
        self.payment_terms_days = payment_terms_days
        self.deduplicate = deduplicate

    async def execute(
        self,
        output_entries: Sequence[ComputeOutputEntry],
        errors: Sequence[ComputeErrorEntry] = (),
    ) -> Result[PersistComputeOutputResponseDTO]:
        """
        Execute persistence of one flight's compute output

        Args:
            output_entries: Billable FIR crossings
            errors: Structured engine errors

        Returns:
            Result[PersistComputeOutputResponseDTO]: Counts, or WRITE_ERROR
        """
        response = PersistComputeOutputResponseDTO()
        issue_date = datetime.utcnow()
        due_date = issue_date + timedelta(days=self.payment_terms_days)

        try:
            for entry in output_entries:
                await self._persist_entry(entry, issue_date, due_date, response)

            for error in errors:
                await self._persist_error(error, issue_date)
                response.error_invoices_created += 1

        except Exception as e:
            await self.uow.rollback()
            logger.error(f"Invoice write failed: {e}")
            return Return.err(
                Error(
                    code="WRITE_ERROR",
                    message="Failed to persist compute output",
                    reason=str(e),
                )
            )

        if response.invoices_created > 0:
            logger.info(
                f"INVOICE BATCH SUMMARY: {response.invoices_created} invoices saved "
                f"(out of {len(output_entries)} entries processed)"
            )

        return Return.ok(response)

    async def _persist_entry(
        self,
        entry: ComputeOutputEntry,
        issue_date: datetime,
        due_date: datetime,
        response: PersistComputeOutputResponseDTO,
    ) -> None:
        flight_id = int(entry.flight_id)
        fir_name = entry.resolved_fir_name()

        if self.deduplicate and await self.invoice_repo.exists_for_flight_fir(flight_id, fir_name):
            logger.info(f"Invoice already exists for flight {flight_id} / {fir_name}, skipping")
            response.duplicates_skipped += 1
            await self._emit(
                flight_id,
                ProcessedRecordStatus.SKIPPED,
                "DUPLICATE",
                message=f"Invoice already exists for FIR {fir_name}",
            )
            return

        candidate = OperatorCandidate.from_aircraft_data(entry.aircraft_data)
        lookup = await self.operator_resolver.resolve(candidate)

        if not lookup.matched:
            logger.warning(
                f"No operator match for flight {flight_id}, creating error invoice with type: {lookup.error.value}"
            )
            await self._persist_operator_match_error(entry, lookup, issue_date)
            response.error_invoices_created += 1
            return

        invoice = Invoice(
            invoice_number=await self.invoice_repo.generate_invoice_number(),
            flight_id=flight_id,
            status=InvoiceStatus.PENDING,
            issue_date=issue_date,
            due_date=due_date,
            client_name=candidate.name,
            operator_id=lookup.operator_id,
            iba_id=candidate.iba_id,
            jetnet_id=candidate.jetnet_id,
            flight_date=entry.flight_date or issue_date,
            **self._entry_fields(entry),
        )

        try:
            created = await self.invoice_repo.create(invoice)
            await self.uow.commit()
        except Exception as e:
            raise InvoiceWriteError(
                f"Failed to create invoice for flight {flight_id} ({entry.country}): {e}"
            ) from e

        response.invoices_created += 1
        response.invoice_numbers.append(created.invoice_number)
        logger.info(
            f"INVOICE SAVED: {created.invoice_number} | {entry.country} | "
            f"{entry.aircraft_data.registration or 'N/A'} | ${created.total_usd_amount or 0:.2f} USD"
        )
        await self._emit(
            flight_id,
            ProcessedRecordStatus.INVOICED,
            "INVOICE",
            reference_id=created.invoice_number,
            message=f"{entry.country or 'unknown country'}, operator {lookup.operator_id} via {lookup.match_method}",
        )

    async def _persist_operator_match_error(
        self,
        entry: ComputeOutputEntry,
        lookup: OperatorLookupResult,
        issue_date: datetime,
    ) -> None:
        flight_id = int(entry.flight_id)
        message = (
            f"Operator matching failed: {lookup.error.value}. "
            f"Attempted IBA ID: {lookup.attempted_iba_id or 'none'}, "
            f"JetNet ID: {lookup.attempted_jetnet_id or 'none'}"
        )
        record = InvoiceError(
            invoice_number=await self.invoice_error_repo.generate_invoice_number(),
            flight_id=flight_id,
            error_type=lookup.error.value,
            error_message=message,
            issue_date=issue_date,
            client_name=entry.aircraft_data.display_name(),
            iba_id=lookup.attempted_iba_id,
            jetnet_id=lookup.attempted_jetnet_id,
            flight_date=entry.flight_date or issue_date,
            **self._entry_fields(entry),
        )
        created = await self._create_error(record)
        await self._emit(
            flight_id,
            ProcessedRecordStatus.ERROR,
            lookup.error.value,
            reference_id=created.invoice_number,
            message=message,
        )

    async def _persist_error(self, error: ComputeErrorEntry, issue_date: datetime) -> None:
        flight_id = int(error.flight_id)
        flight_data = error.flight_data
        aircraft = error.aircraft_data
        error_type = error.error_type or error.error_type_detected or UNKNOWN_ERROR_TYPE
        message = error.error_message or error.error_details or DEFAULT_ERROR_MESSAGE

        record = InvoiceError(
            invoice_number=await self.invoice_error_repo.generate_invoice_number(),
            flight_id=flight_id,
            error_type=error_type,
            error_message=message,
            issue_date=issue_date,
            client_name=aircraft.operator_name or flight_data.get("alna") or UNKNOWN_OPERATOR,
            iba_id=aircraft.resolved_iba_id(),
            jetnet_id=aircraft.resolved_jetnet_id(),
            flight_number=flight_data.get("cs"),
            origin_icao=flight_data.get("aporgic") or flight_data.get("aptkoic"),
            destination_icao=flight_data.get("apdstic") or flight_data.get("aplngic"),
            origin_iata=flight_data.get("aporgia") or flight_data.get("aptkoia"),
            destination_iata=flight_data.get("apdstia") or flight_data.get("aplngia"),
            registration_number=error.registration or flight_data.get("acr"),
            aircraft_model_name=flight_data.get("acd"),
            aircraft_type=flight_data.get("act"),
            fir_country=error.country,
        )
        created = await self._create_error(record)
        logger.info(
            f"Created error invoice {created.invoice_number} for flight "
            f"{flight_data.get('cs') or flight_id} - {error.country or 'unknown country'}"
        )
        await self._emit(
            flight_id,
            ProcessedRecordStatus.ERROR,
            error_type,
            reference_id=created.invoice_number,
            message=message,
        )

    async def _create_error(self, record: InvoiceError) -> InvoiceError:
        try:
            created = await self.invoice_error_repo.create(record)
            await self.uow.commit()
            return created
        except Exception as e:
            raise InvoiceWriteError(
                f"Failed to create error invoice for flight {record.flight_id} ({record.error_type}): {e}"
            ) from e

    @staticmethod
    def _entry_fields(entry: ComputeOutputEntry) -> Dict[str, Any]:
        """Flight, FIR and fee columns shared by Invoice and InvoiceError"""
        fees = entry.fees()
        return {
            "flight_number": entry.flight_number(),
            "origin_icao": entry.takeoff_airport_icao,
            "destination_icao": entry.landing_airport_icao,
            "origin_iata": entry.takeoff_airport_iata,
            "destination_iata": entry.landing_airport_iata,
            "registration_number": entry.aircraft_data.registration,
            "aircraft_model_name": entry.aircraft_data.model_name(),
            "aircraft_type": entry.act or entry.flight_data.get("act"),
            "fir_name": entry.resolved_fir_name(),
            "fir_country": entry.country,
            "fir_entry_time_utc": entry.earliest_entry_time,
            "fir_exit_time_utc": entry.latest_exit_time,
            "fee_description": fees.calculation_description,
            "fee_amount": fees.fee,
            "other_fees_amount": fees.other_fees,
            "total_original_amount": fees.total_original_amount(),
            "original_currency": fees.currency,
            "fx_rate": fees.effective_fx_rate(),
            "total_usd_amount": fees.total_amount_usd,
        }

    async def _emit(
        self,
        flight_id: int,
        status: ProcessedRecordStatus,
        result_type: str,
        reference_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        await self.audit_trail.record_processed(
            ProcessedRecordEvent(
                flight_id=str(flight_id),
                status=status,
                result_type=result_type,
                reference_id=reference_id,
                message=message,
            )
        )

"""Unit tests for PersistComputeOutput use case

Tests cover:
- Invoice creation for matched operators
- Operator match errors instead of invoices
- Structured compute errors
- Duplicate guard on (flight, FIR)
- Audit events
- Write failures
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from src.app.services.audit_trail import ProcessedRecordStatus
from src.app.services.operator_matching import OperatorLookupResult
from src.app.use_cases.invoices.persist_compute_output import PersistComputeOutput
from src.domain.flight import ComputeErrorEntry, ComputeOutputEntry
from src.domain.invoice import InvoiceStatus
from src.domain.invoice_error import OperatorMatchErrorType


@pytest.fixture
def mock_invoice_repo():
    repo = MagicMock()
    repo.exists_for_flight_fir = AsyncMock(return_value=False)
    repo.generate_invoice_number = AsyncMock(side_effect=[f"INV-20250110-{n:010d}" for n in range(1, 20)])
    repo.create = AsyncMock(side_effect=lambda invoice: invoice)
    return repo


@pytest.fixture
def mock_invoice_error_repo():
    repo = MagicMock()
    repo.generate_invoice_number = AsyncMock(side_effect=[f"ERR-20250110-{n:010d}" for n in range(1, 20)])
    repo.create = AsyncMock(side_effect=lambda record: record)
    return repo


@pytest.fixture
def mock_resolver():
    resolver = MagicMock()
    resolver.resolve = AsyncMock(
        return_value=OperatorLookupResult(operator_id=7, match_method="iba_id", attempted_iba_id="IBA-7")
    )
    return resolver


@pytest.fixture
def use_case(mock_uow, mock_invoice_repo, mock_invoice_error_repo, mock_resolver, mock_audit_trail):
    return PersistComputeOutput(
        uow=mock_uow,
        invoice_repo=mock_invoice_repo,
        invoice_error_repo=mock_invoice_error_repo,
        operator_resolver=mock_resolver,
        audit_trail=mock_audit_trail,
        payment_terms_days=10,
    )


def make_entry(fir="EGTT", country="United Kingdom", **aircraft):
    return ComputeOutputEntry.model_validate(
        {
            "flight_id": 2605577812,
            "country": country,
            "fir_label": fir,
            "flight_date": "2025-01-10T08:00:00Z",
            "takeoff_airport_icao": "EGLL",
            "landing_airport_icao": "LFPG",
            "flight_data": {"cs": "BAW304", "act": "A320"},
            "fee_details": {
                "fee": "100.00",
                "other_fees": "5.00",
                "currency": "GBP",
                "fx_rate": "1.25",
                "total_amount_usd": "131.25",
                "calculation_description": "Distance based",
            },
            "aircraft_data": {"registration": "G-EUUA", "operatorName": "Acme Aviation", **aircraft},
        }
    )


@pytest.mark.asyncio
class TestInvoiceCreation:
    async def test_matched_entry_creates_pending_invoice(
        self, use_case, mock_invoice_repo, mock_uow, mock_audit_trail
    ):
        """
        Given: One output entry whose operator resolves
        When: The output is persisted
        Then: A PENDING invoice with mapped fields is created and committed
        """
        # Arrange
        entry = make_entry(ibaOperatorId="IBA-7")

        # Act
        result = await use_case.execute([entry])

        # Assert
        assert result.is_ok()
        assert result.value.invoices_created == 1
        assert result.value.error_invoices_created == 0
        assert result.value.invoice_numbers == ["INV-20250110-0000000001"]

        invoice = mock_invoice_repo.create.call_args.args[0]
        assert invoice.status == InvoiceStatus.PENDING
        assert invoice.flight_id == 2605577812
        assert invoice.operator_id == 7
        assert invoice.client_name == "Acme Aviation"
        assert invoice.fir_name == "EGTT"
        assert invoice.flight_number == "BAW304"
        assert invoice.origin_icao == "EGLL"
        assert invoice.aircraft_type == "A320"
        assert invoice.fee_amount == Decimal("100.00")
        assert invoice.total_original_amount == Decimal("105.00")
        assert invoice.total_usd_amount == Decimal("131.25")
        assert invoice.due_date - invoice.issue_date == timedelta(days=10)
        mock_uow.commit.assert_awaited()

        event = mock_audit_trail.record_processed.call_args.args[0]
        assert event.status == ProcessedRecordStatus.INVOICED
        assert event.reference_id == "INV-20250110-0000000001"

    async def test_every_entry_becomes_an_invoice(self, use_case, mock_invoice_repo):
        entries = [make_entry(fir="EGTT"), make_entry(fir="LFFF", country="France")]

        result = await use_case.execute(entries)

        assert result.value.invoices_created == 2
        assert mock_invoice_repo.create.await_count == 2


@pytest.mark.asyncio
class TestOperatorMatchErrors:
    async def test_unmatched_operator_writes_error_not_invoice(
        self, use_case, mock_resolver, mock_invoice_repo, mock_invoice_error_repo, mock_audit_trail
    ):
        """
        Given: An entry without external ids whose name matches no customer
        When: The output is persisted
        Then: One OPERATOR_ID_NOT_FOUND error is written and no invoice
        """
        # Arrange
        mock_resolver.resolve.return_value = OperatorLookupResult(
            operator_id=None,
            match_method="none",
            error=OperatorMatchErrorType.OPERATOR_ID_NOT_FOUND,
        )

        # Act
        result = await use_case.execute([make_entry()])

        # Assert
        assert result.is_ok()
        assert result.value.invoices_created == 0
        assert result.value.error_invoices_created == 1
        mock_invoice_repo.create.assert_not_called()

        record = mock_invoice_error_repo.create.call_args.args[0]
        assert record.error_type == "OPERATOR_ID_NOT_FOUND"
        assert "Attempted IBA ID: none" in record.error_message
        # Computed fees are kept for later re-resolution
        assert record.fee_amount == Decimal("100.00")
        assert record.fir_name == "EGTT"
        assert record.client_name == "Acme Aviation"

        event = mock_audit_trail.record_processed.call_args.args[0]
        assert event.status == ProcessedRecordStatus.ERROR
        assert event.result_type == "OPERATOR_ID_NOT_FOUND"

    async def test_mismatch_keeps_attempted_ids(self, use_case, mock_resolver, mock_invoice_error_repo):
        mock_resolver.resolve.return_value = OperatorLookupResult(
            operator_id=None,
            match_method="none",
            error=OperatorMatchErrorType.OPERATOR_ID_MISMATCH,
            attempted_iba_id="IBA-404",
            attempted_jetnet_id="JN-404",
        )

        await use_case.execute([make_entry(ibaOperatorId="IBA-404", jetnetOperatorId="JN-404")])

        record = mock_invoice_error_repo.create.call_args.args[0]
        assert record.error_type == "OPERATOR_ID_MISMATCH"
        assert record.iba_id == "IBA-404"
        assert record.jetnet_id == "JN-404"
        assert "JetNet ID: JN-404" in record.error_message


@pytest.mark.asyncio
class TestComputeErrors:
    async def test_structured_error_written_without_operator_lookup(
        self, use_case, mock_resolver, mock_invoice_error_repo
    ):
        error = ComputeErrorEntry.model_validate(
            {
                "flight_id": 2605577812,
                "error_type_detected": "MISSING_POSITIONS",
                "error_details": "Gap over oceanic FIR",
                "country": "Iceland",
                "flight_data": {"cs": "ICE612", "alna": "Icelandair", "aptkoic": "BIKF", "acr": "TF-FIA"},
            }
        )

        result = await use_case.execute([], [error])

        assert result.value.error_invoices_created == 1
        mock_resolver.resolve.assert_not_called()
        record = mock_invoice_error_repo.create.call_args.args[0]
        assert record.error_type == "MISSING_POSITIONS"
        assert record.error_message == "Gap over oceanic FIR"
        assert record.client_name == "Icelandair"
        assert record.origin_icao == "BIKF"
        assert record.registration_number == "TF-FIA"
        assert record.fee_amount is None

    async def test_bare_error_defaults(self, use_case, mock_invoice_error_repo):
        await use_case.execute([], [ComputeErrorEntry.model_validate({"flight_id": "42"})])

        record = mock_invoice_error_repo.create.call_args.args[0]
        assert record.error_type == "UNKNOWN_ERROR"
        assert record.error_message == "An error occurred during processing"
        assert record.client_name == "Unknown Operator"
        assert record.flight_id == 42


@pytest.mark.asyncio
class TestDuplicateGuard:
    async def test_existing_flight_fir_is_skipped(self, use_case, mock_invoice_repo, mock_audit_trail):
        """
        Given: An invoice already exists for the flight and FIR
        When: The same output is persisted again
        Then: No invoice is written and the entry is counted as a duplicate
        """
        # Arrange
        mock_invoice_repo.exists_for_flight_fir.return_value = True

        # Act
        result = await use_case.execute([make_entry()])

        # Assert
        assert result.value.invoices_created == 0
        assert result.value.duplicates_skipped == 1
        mock_invoice_repo.create.assert_not_called()
        mock_invoice_repo.exists_for_flight_fir.assert_awaited_once_with(2605577812, "EGTT")
        event = mock_audit_trail.record_processed.call_args.args[0]
        assert event.status == ProcessedRecordStatus.SKIPPED

    async def test_guard_can_be_disabled(
        self, mock_uow, mock_invoice_repo, mock_invoice_error_repo, mock_resolver, mock_audit_trail
    ):
        use_case = PersistComputeOutput(
            uow=mock_uow,
            invoice_repo=mock_invoice_repo,
            invoice_error_repo=mock_invoice_error_repo,
            operator_resolver=mock_resolver,
            audit_trail=mock_audit_trail,
            deduplicate=False,
        )

        result = await use_case.execute([make_entry()])

        assert result.value.invoices_created == 1
        mock_invoice_repo.exists_for_flight_fir.assert_not_called()


@pytest.mark.asyncio
class TestWriteFailures:
    async def test_repository_failure_returns_write_error(self, use_case, mock_invoice_repo, mock_uow):
        mock_invoice_repo.create.side_effect = Exception("unique violation")

        result = await use_case.execute([make_entry()])

        assert result.is_err()
        assert result.error.code == "WRITE_ERROR"
        assert "unique violation" in result.error.reason
        mock_uow.rollback.assert_awaited_once()

    async def test_operator_lookup_failure_returns_write_error(self, use_case, mock_resolver):
        mock_resolver.resolve.side_effect = ConnectionError("db down")

        result = await use_case.execute([make_entry()])

        assert result.is_err()
        assert result.error.code == "WRITE_ERROR"

"""Unit tests for UpdateInvoice use case

Tests cover:
- Status transitions along the invoice status graph
- Fee edits and original total recomputation
- Consolidated totals recalculation for linked invoices
"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from src.app.use_cases.invoices.dtos import UpdateInvoiceCommandDTO
from src.app.use_cases.invoices.update_invoice import UpdateInvoice
from src.domain.invoice import Invoice, InvoiceStatus


@pytest.fixture
def mock_invoice_repo():
    repo = MagicMock()
    repo.update = AsyncMock(side_effect=lambda invoice: invoice)
    return repo


@pytest.fixture
def mock_recalculate():
    recalculate = MagicMock()
    recalculate.recalculate = AsyncMock(return_value=MagicMock())
    return recalculate


@pytest.fixture
def use_case(mock_uow, mock_invoice_repo, mock_recalculate):
    return UpdateInvoice(
        uow=mock_uow,
        invoice_repo=mock_invoice_repo,
        recalculate_consolidated=mock_recalculate,
    )


def make_invoice(status=InvoiceStatus.PENDING, consolidated_id=None):
    return Invoice(
        id=1,
        invoice_number="INV-20250110-AAAAAAAAAA",
        flight_id=2605577812,
        status=status,
        fee_amount=Decimal("100.00"),
        other_fees_amount=Decimal("5.00"),
        total_original_amount=Decimal("105.00"),
        included_in_consolidated_invoice_id=consolidated_id,
    )


@pytest.mark.asyncio
class TestUpdateInvoice:
    async def test_pending_to_paid(self, use_case, mock_invoice_repo, mock_uow, mock_recalculate):
        mock_invoice_repo.get_by_id = AsyncMock(return_value=make_invoice())

        result = await use_case.execute(UpdateInvoiceCommandDTO(invoice_id=1, status=InvoiceStatus.PAID))

        assert result.is_ok()
        assert result.value.status == InvoiceStatus.PAID
        assert result.value.consolidated_totals_recalculated is False
        mock_recalculate.recalculate.assert_not_called()
        mock_uow.commit.assert_awaited_once()

    async def test_invalid_transition_is_rejected(self, use_case, mock_invoice_repo, mock_uow):
        """
        Given: A PAID invoice
        When: It is moved back to PENDING
        Then: INVALID_STATUS_TRANSITION is returned and nothing is saved
        """
        # Arrange
        mock_invoice_repo.get_by_id = AsyncMock(return_value=make_invoice(InvoiceStatus.PAID))

        # Act
        result = await use_case.execute(UpdateInvoiceCommandDTO(invoice_id=1, status=InvoiceStatus.PENDING))

        # Assert
        assert result.is_err()
        assert result.error.code == "INVALID_STATUS_TRANSITION"
        mock_invoice_repo.update.assert_not_called()
        mock_uow.rollback.assert_awaited_once()

    async def test_fee_edit_recomputes_original_total(self, use_case, mock_invoice_repo):
        invoice = make_invoice()
        mock_invoice_repo.get_by_id = AsyncMock(return_value=invoice)

        result = await use_case.execute(
            UpdateInvoiceCommandDTO(invoice_id=1, fee_amount=Decimal("80.00"))
        )

        assert result.is_ok()
        assert invoice.fee_amount == Decimal("80.00")
        assert invoice.other_fees_amount == Decimal("5.00")
        assert invoice.total_original_amount == Decimal("85.00")
        assert invoice.status == InvoiceStatus.PENDING

    async def test_linked_invoice_triggers_recalculation(
        self, use_case, mock_invoice_repo, mock_recalculate, mock_uow
    ):
        """
        Given: An invoice included in consolidated invoice 9
        When: Its fees are edited
        Then: Consolidated totals are recalculated before the single commit
        """
        # Arrange
        mock_invoice_repo.get_by_id = AsyncMock(return_value=make_invoice(consolidated_id=9))

        # Act
        result = await use_case.execute(
            UpdateInvoiceCommandDTO(invoice_id=1, total_usd_amount=Decimal("99.99"))
        )

        # Assert
        assert result.is_ok()
        assert result.value.consolidated_totals_recalculated is True
        mock_recalculate.recalculate.assert_awaited_once_with(9)
        mock_uow.commit.assert_awaited_once()

    async def test_recalculation_failure_rolls_back(self, use_case, mock_invoice_repo, mock_recalculate, mock_uow):
        mock_invoice_repo.get_by_id = AsyncMock(return_value=make_invoice(consolidated_id=9))
        mock_recalculate.recalculate.side_effect = Exception("deadlock")

        result = await use_case.execute(UpdateInvoiceCommandDTO(invoice_id=1, fee_amount=Decimal("1")))

        assert result.is_err()
        assert result.error.code == "UPDATE_INVOICE_FAILED"
        mock_uow.commit.assert_not_called()
        mock_uow.rollback.assert_awaited_once()

    async def test_missing_invoice(self, use_case, mock_invoice_repo):
        mock_invoice_repo.get_by_id = AsyncMock(return_value=None)

        result = await use_case.execute(UpdateInvoiceCommandDTO(invoice_id=404, status=InvoiceStatus.PAID))

        assert result.is_err()
        assert result.error.code == "INVOICE_NOT_FOUND"

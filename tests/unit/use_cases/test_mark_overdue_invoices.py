"""Unit tests for MarkOverdueInvoices use case"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from src.app.use_cases.invoices.mark_overdue_invoices import MarkOverdueInvoices
from src.domain.invoice import Invoice, InvoiceStatus

NOW = datetime(2025, 2, 1, 12, 0, 0)


@pytest.fixture
def mock_invoice_repo():
    repo = MagicMock()
    repo.find_overdue_ids = AsyncMock(return_value=[])
    repo.get_many = AsyncMock(return_value=[])
    repo.mark_overdue = AsyncMock(return_value=0)
    return repo


@pytest.fixture
def use_case(mock_uow, mock_invoice_repo):
    return MarkOverdueInvoices(uow=mock_uow, invoice_repo=mock_invoice_repo)


def make_pending(invoice_id):
    return Invoice(
        id=invoice_id,
        invoice_number=f"INV-{invoice_id}",
        flight_id=100 + invoice_id,
        status=InvoiceStatus.PENDING,
        due_date=datetime(2025, 1, 20),
    )


@pytest.mark.asyncio
class TestMarkOverdueInvoices:
    async def test_marks_found_invoices(self, use_case, mock_invoice_repo, mock_uow):
        """
        Given: Two PENDING invoices past their due date
        When: Overdue marking runs
        Then: Both are updated in one bulk call and the run is committed
        """
        # Arrange
        mock_invoice_repo.find_overdue_ids.return_value = [1, 2]
        mock_invoice_repo.get_many.return_value = [make_pending(1), make_pending(2)]
        mock_invoice_repo.mark_overdue.return_value = 2

        # Act
        result = await use_case.execute(now=NOW)

        # Assert
        assert result.is_ok()
        assert result.value.total_found == 2
        assert result.value.total_updated == 2
        assert result.value.errors == []
        assert result.value.timestamp == NOW
        mock_invoice_repo.find_overdue_ids.assert_awaited_once_with(NOW)
        mock_invoice_repo.mark_overdue.assert_awaited_once_with([1, 2], NOW)
        mock_uow.commit.assert_awaited_once()

    async def test_nothing_overdue(self, use_case, mock_invoice_repo, mock_uow):
        result = await use_case.execute(now=NOW)

        assert result.value.total_found == 0
        mock_invoice_repo.mark_overdue.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_concurrent_modification_is_reported(self, use_case, mock_invoice_repo):
        mock_invoice_repo.find_overdue_ids.return_value = [1, 2, 3]
        mock_invoice_repo.mark_overdue.return_value = 2

        result = await use_case.execute(now=NOW)

        assert result.is_ok()
        assert result.value.total_updated == 2
        assert len(result.value.errors) == 1
        assert "concurrent modifications" in result.value.errors[0]

    async def test_failure_rolls_back(self, use_case, mock_invoice_repo, mock_uow):
        mock_invoice_repo.find_overdue_ids.side_effect = Exception("db down")

        result = await use_case.execute(now=NOW)

        assert result.is_err()
        assert result.error.code == "MARK_OVERDUE_FAILED"
        mock_uow.rollback.assert_awaited_once()

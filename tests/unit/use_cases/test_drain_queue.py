"""Unit tests for DrainQueue use case"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from libs.result import Error, Return
from src.app.services.worker_pool import BoundedWorkerPool
from src.app.use_cases.ingestion.drain_queue import DrainQueue
from src.app.use_cases.ingestion.dtos import ProcessFlightResultDTO, ProcessingOutcome
from src.domain.queue_entry import QueueEntry


def make_entries(count):
    return [QueueEntry(id=index, flight_id=1000 + index) for index in range(1, count + 1)]


def ok(flight_id, invoices=1):
    return Return.ok(
        ProcessFlightResultDTO(
            flight_id=str(flight_id), outcome=ProcessingOutcome.SUCCESS, invoices_created=invoices
        )
    )


@pytest.fixture
def mock_queue_repo():
    repo = MagicMock()
    repo.fetch_batch = AsyncMock(return_value=[])
    repo.delete_many = AsyncMock(side_effect=lambda ids: len(ids))
    return repo


def build(mock_uow, mock_queue_repo, process_task, max_workers=5):
    return DrainQueue(
        uow=mock_uow,
        queue_repo=mock_queue_repo,
        process_task=process_task,
        worker_pool=BoundedWorkerPool(max_workers=max_workers),
    )


@pytest.mark.asyncio
class TestDrainQueue:
    async def test_all_succeeded_are_deleted(self, mock_uow, mock_queue_repo):
        """
        Given: Ten queued flights that all process successfully
        When: One drain cycle runs with five workers
        Then: All ten ids are deleted in one call
        """
        # Arrange
        mock_queue_repo.fetch_batch.return_value = make_entries(10)

        async def process_task(task):
            return ok(task.parse_body().flight_id)

        use_case = build(mock_uow, mock_queue_repo, process_task)

        # Act
        result = await use_case.execute(batch_size=10)

        # Assert
        report = result.value
        assert report.attempted == 10
        assert report.succeeded == 10
        assert report.deleted == 10
        assert report.invoices_created == 10
        mock_queue_repo.fetch_batch.assert_awaited_once_with(10)
        mock_queue_repo.delete_many.assert_awaited_once()
        assert sorted(mock_queue_repo.delete_many.call_args.args[0]) == list(range(1, 11))

    async def test_failed_entries_stay_queued(self, mock_uow, mock_queue_repo):
        mock_queue_repo.fetch_batch.return_value = make_entries(4)

        async def process_task(task):
            flight_id = task.parse_body().flight_id
            if flight_id == "1002":
                return Return.err(Error(code="COMPUTE_ERROR", message="failed", reason="engine down"))
            if flight_id == "1003":
                raise RuntimeError("unexpected")
            return ok(flight_id)

        use_case = build(mock_uow, mock_queue_repo, process_task)

        result = await use_case.execute(batch_size=10)

        report = result.value
        assert sorted(report.succeeded_ids) == [1, 4]
        assert sorted(report.failed_ids) == [2, 3]
        assert report.outcomes[ProcessingOutcome.COMPUTE_ERROR] == 1
        assert report.outcomes[ProcessingOutcome.WRITE_ERROR] == 1
        assert sorted(mock_queue_repo.delete_many.call_args.args[0]) == [1, 4]

    async def test_concurrency_is_bounded(self, mock_uow, mock_queue_repo):
        mock_queue_repo.fetch_batch.return_value = make_entries(12)
        in_flight = 0
        peak = 0

        async def process_task(task):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return ok(task.parse_body().flight_id)

        use_case = build(mock_uow, mock_queue_repo, process_task, max_workers=5)

        result = await use_case.execute(batch_size=12)

        assert result.value.succeeded == 12
        assert peak <= 5

    async def test_empty_queue(self, mock_uow, mock_queue_repo):
        use_case = build(mock_uow, mock_queue_repo, AsyncMock())

        result = await use_case.execute(batch_size=10)

        assert result.is_ok()
        assert result.value.attempted == 0
        mock_queue_repo.delete_many.assert_not_called()

    async def test_all_failed_deletes_nothing(self, mock_uow, mock_queue_repo):
        mock_queue_repo.fetch_batch.return_value = make_entries(2)
        process_task = AsyncMock(return_value=Return.err(Error(code="EXTERNAL_FETCH_ERROR", message="x")))

        result = await build(mock_uow, mock_queue_repo, process_task).execute(batch_size=10)

        assert result.value.failed == 2
        mock_queue_repo.delete_many.assert_not_called()

    async def test_fetch_failure(self, mock_uow, mock_queue_repo):
        mock_queue_repo.fetch_batch.side_effect = Exception("connection refused")

        result = await build(mock_uow, mock_queue_repo, AsyncMock()).execute(batch_size=10)

        assert result.is_err()
        assert result.error.code == "QUEUE_FETCH_FAILED"
        mock_uow.rollback.assert_awaited_once()

    async def test_delete_failure(self, mock_uow, mock_queue_repo):
        mock_queue_repo.fetch_batch.return_value = make_entries(1)
        mock_queue_repo.delete_many.side_effect = Exception("lock timeout")

        async def process_task(task):
            return ok(task.parse_body().flight_id)

        result = await build(mock_uow, mock_queue_repo, process_task).execute(batch_size=10)

        assert result.is_err()
        assert result.error.code == "QUEUE_DELETE_FAILED"

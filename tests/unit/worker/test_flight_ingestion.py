"""Unit tests for FlightIngestionWorker

Tests cover:
- Worker initialization with configuration
- run_once counters and batch sizing
- run_forever scan limit and queue failure backoff
- Shutdown and cleanup
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from libs.result import Error, Return
from src.app.use_cases.ingestion.dtos import BatchReportDTO
from src.worker.flight_ingestion import FlightIngestionWorker


@pytest.fixture
def mock_session():
    """Mock async session"""
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return session


def report(attempted, invoices=0):
    return Return.ok(
        BatchReportDTO(
            attempted=attempted,
            succeeded=attempted,
            deleted=attempted,
            invoices_created=invoices,
        )
    )


def build_worker(mock_app_config, mock_session, **overrides):
    mock_app_config.INGESTION_TOTAL_SCAN_LIMIT = None
    options = dict(
        db_uri="postgresql+asyncpg://test@localhost/db",
        batch_size=10,
        max_workers=5,
        poll_interval_seconds=1.0,
        total_scan_limit=None,
        flight_source=MagicMock(),
        compute_engine=MagicMock(),
        audit_trail=MagicMock(),
    )
    options.update(overrides)
    worker = FlightIngestionWorker(**options)
    worker.async_session_factory = MagicMock(return_value=mock_session)
    return worker


@pytest.mark.asyncio
@patch("src.worker.flight_ingestion.ApplicationConfig")
@patch("src.worker.flight_ingestion.create_async_engine")
class TestFlightIngestionWorker:
    async def test_initializes_from_config(self, mock_create_engine, mock_app_config):
        """
        Given: No explicit options
        When: The worker is initialized
        Then: Batch size, workers and scan limit come from ApplicationConfig
        """
        # Arrange
        mock_app_config.DB_URI = "postgresql+asyncpg://default@localhost/db"
        mock_app_config.INGESTION_BATCH_SIZE = 10
        mock_app_config.INGESTION_MAX_WORKERS = 5
        mock_app_config.INGESTION_POLL_INTERVAL_SECONDS = 2
        mock_app_config.INGESTION_TOTAL_SCAN_LIMIT = None
        mock_create_engine.return_value = MagicMock()

        # Act
        worker = FlightIngestionWorker(
            flight_source=MagicMock(), compute_engine=MagicMock(), audit_trail=MagicMock()
        )

        # Assert
        assert worker.db_uri == "postgresql+asyncpg://default@localhost/db"
        assert worker.batch_size == 10
        assert worker.max_workers == 5
        assert worker.total_scan_limit is None
        mock_create_engine.assert_called_once()

    @patch("src.worker.flight_ingestion.DrainQueue")
    async def test_run_once_updates_counters(
        self, mock_drain_cls, mock_create_engine, mock_app_config, mock_session
    ):
        mock_drain_cls.return_value.execute = AsyncMock(return_value=report(10, invoices=14))
        worker = build_worker(mock_app_config, mock_session)

        result = await worker.run_once()

        assert result.is_ok()
        assert worker.batches_run == 1
        assert worker.records_scanned == 10
        assert worker.invoices_created == 14
        mock_drain_cls.return_value.execute.assert_awaited_once_with(10)
        assert mock_drain_cls.call_args.kwargs["worker_pool"].max_workers == 5

    @patch("src.worker.flight_ingestion.DrainQueue")
    async def test_empty_cycle_is_not_counted(
        self, mock_drain_cls, mock_create_engine, mock_app_config, mock_session
    ):
        mock_drain_cls.return_value.execute = AsyncMock(return_value=report(0))
        worker = build_worker(mock_app_config, mock_session)

        await worker.run_once()

        assert worker.batches_run == 0

    @patch("src.worker.flight_ingestion.asyncio.sleep", new_callable=AsyncMock)
    @patch("src.worker.flight_ingestion.DrainQueue")
    async def test_run_forever_stops_at_scan_limit(
        self, mock_drain_cls, mock_sleep, mock_create_engine, mock_app_config, mock_session
    ):
        """
        Given: A scan limit of 15 and a batch size of 10
        When: The worker runs continuously
        Then: It drains 10 then 5 entries and stops
        """
        # Arrange
        mock_drain_cls.return_value.execute = AsyncMock(side_effect=[report(10), report(5)])
        worker = build_worker(mock_app_config, mock_session, total_scan_limit=15)

        # Act
        await worker.run_forever()

        # Assert
        calls = mock_drain_cls.return_value.execute.await_args_list
        assert [call.args[0] for call in calls] == [10, 5]
        assert worker.records_scanned == 15
        assert worker.running is False

    @patch("src.worker.flight_ingestion.asyncio.sleep", new_callable=AsyncMock)
    @patch("src.worker.flight_ingestion.DrainQueue")
    async def test_queue_failure_doubles_interval(
        self, mock_drain_cls, mock_sleep, mock_create_engine, mock_app_config, mock_session
    ):
        mock_drain_cls.return_value.execute = AsyncMock(
            return_value=Return.err(Error(code="QUEUE_FETCH_FAILED", message="down"))
        )
        worker = build_worker(mock_app_config, mock_session, poll_interval_seconds=3.0)
        mock_sleep.side_effect = lambda seconds: worker.stop()

        await worker.run_forever()

        mock_sleep.assert_awaited_once_with(6.0)

    async def test_shutdown_disposes_engine(self, mock_create_engine, mock_app_config, mock_session):
        mock_engine = MagicMock()
        mock_engine.dispose = AsyncMock()
        mock_create_engine.return_value = mock_engine
        worker = build_worker(mock_app_config, mock_session)

        await worker.shutdown()

        mock_engine.dispose.assert_awaited_once()
        assert worker.running is False

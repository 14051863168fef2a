"""Unit tests for DistributedLock

Tests cover:
- Lock key derivation
- Mutual exclusion across instances sharing a backend
- Timeout and retry behavior
- Guaranteed release in with_lock
- Backend failures
"""

import asyncio
import pytest
from unittest.mock import AsyncMock

from src.app.services.distributed_lock import AdvisoryLockBackend, DistributedLock, lock_key_for


class FakeAdvisoryBackend(AdvisoryLockBackend):
    """Shared lock table standing in for the database"""

    def __init__(self):
        self.locked = set()
        self.try_lock_calls = 0

    async def try_lock(self, lock_key):
        self.try_lock_calls += 1
        if lock_key in self.locked:
            return False
        self.locked.add(lock_key)
        return True

    async def unlock(self, lock_key):
        if lock_key not in self.locked:
            return False
        self.locked.discard(lock_key)
        return True


@pytest.fixture
def backend():
    return FakeAdvisoryBackend()


class TestLockKey:
    def test_known_values(self):
        assert lock_key_for("") == 0
        assert lock_key_for("a") == 97
        assert lock_key_for("ab") == 97 * 31 + 98

    def test_stable_and_non_negative(self):
        first = lock_key_for("invoice-overdue-job")
        second = lock_key_for("invoice-overdue-job")

        assert first == second
        assert 0 <= first <= 2 ** 31

    def test_job_identifiers_differ(self):
        assert lock_key_for("invoice-overdue-job") != lock_key_for("consolidated-invoice-generation-job")


@pytest.mark.asyncio
class TestTryAcquire:
    async def test_second_instance_is_refused_until_release(self, backend):
        """
        Given: Two scheduler instances sharing one advisory lock store
        When: Both try to acquire the same identifier
        Then: Only the first acquires; the second acquires after release
        """
        # Arrange
        instance_a = DistributedLock(backend, retry_interval_seconds=0.01)
        instance_b = DistributedLock(backend, retry_interval_seconds=0.01)

        # Act
        first = await instance_a.try_acquire("invoice-overdue-job", timeout_ms=50)
        second = await instance_b.try_acquire("invoice-overdue-job", timeout_ms=50)
        await instance_a.release("invoice-overdue-job")
        third = await instance_b.try_acquire("invoice-overdue-job", timeout_ms=50)

        # Assert
        assert first.acquired is True
        assert second.acquired is False
        assert third.acquired is True
        assert first.lock_key == lock_key_for("invoice-overdue-job")

    async def test_concurrent_acquires_exactly_one_wins(self, backend):
        locks = [DistributedLock(backend, retry_interval_seconds=0.01) for _ in range(5)]

        results = await asyncio.gather(
            *(lock.try_acquire("consolidated-invoice-generation-job", timeout_ms=30) for lock in locks)
        )

        assert sum(1 for result in results if result.acquired) == 1

    async def test_retries_until_timeout(self, backend):
        holder = DistributedLock(backend)
        waiter = DistributedLock(backend, retry_interval_seconds=0.01)
        await holder.try_acquire("job", timeout_ms=0)
        backend.try_lock_calls = 0

        result = await waiter.try_acquire("job", timeout_ms=60)

        assert result.acquired is False
        assert backend.try_lock_calls > 1

    async def test_zero_timeout_makes_single_attempt(self, backend):
        holder = DistributedLock(backend)
        waiter = DistributedLock(backend)
        await holder.try_acquire("job", timeout_ms=0)
        backend.try_lock_calls = 0

        result = await waiter.try_acquire("job", timeout_ms=0)

        assert result.acquired is False
        assert backend.try_lock_calls == 1

    async def test_acquired_when_released_during_retry(self, backend):
        holder = DistributedLock(backend)
        waiter = DistributedLock(backend, retry_interval_seconds=0.01)
        await holder.try_acquire("job", timeout_ms=0)

        async def release_later():
            await asyncio.sleep(0.03)
            await holder.release("job")

        result, _ = await asyncio.gather(waiter.try_acquire("job", timeout_ms=1000), release_later())

        assert result.acquired is True

    async def test_same_process_reacquire_is_refused(self):
        # Postgres advisory locks are re-entrant per session
        backend = AsyncMock(spec=AdvisoryLockBackend)
        backend.try_lock = AsyncMock(return_value=True)
        lock = DistributedLock(backend)

        first = await lock.try_acquire("job", timeout_ms=0)
        second = await lock.try_acquire("job", timeout_ms=0)

        assert first.acquired is True
        assert second.acquired is False
        assert lock.is_held("job") is True

    async def test_backend_error_reports_not_acquired(self):
        backend = AsyncMock(spec=AdvisoryLockBackend)
        backend.try_lock = AsyncMock(side_effect=ConnectionError("db down"))
        lock = DistributedLock(backend)

        result = await lock.try_acquire("job", timeout_ms=100)

        assert result.acquired is False
        assert lock.is_held("job") is False


@pytest.mark.asyncio
class TestWithLock:
    async def test_runs_callback_and_releases(self, backend):
        lock = DistributedLock(backend)
        callback = AsyncMock(return_value=42)

        outcome = await lock.with_lock("job", callback)

        assert outcome.lock_acquired is True
        assert outcome.success is True
        assert outcome.result == 42
        assert backend.locked == set()
        assert lock.is_held("job") is False

    async def test_releases_when_callback_raises(self, backend):
        """
        Given: A callback that raises
        When: It runs inside with_lock
        Then: The error is reported and the lock is released
        """
        # Arrange
        lock = DistributedLock(backend)
        callback = AsyncMock(side_effect=RuntimeError("job failed"))

        # Act
        outcome = await lock.with_lock("job", callback)

        # Assert
        assert outcome.lock_acquired is True
        assert outcome.success is False
        assert isinstance(outcome.error, RuntimeError)
        assert backend.locked == set()

    async def test_skips_callback_when_not_acquired(self, backend):
        holder = DistributedLock(backend)
        await holder.try_acquire("job", timeout_ms=0)
        lock = DistributedLock(backend, retry_interval_seconds=0.01)
        callback = AsyncMock()

        outcome = await lock.with_lock("job", callback, timeout_ms=20)

        assert outcome.lock_acquired is False
        assert outcome.success is False
        callback.assert_not_called()
        assert lock_key_for("job") in backend.locked

    async def test_release_failure_still_clears_local_state(self):
        backend = AsyncMock(spec=AdvisoryLockBackend)
        backend.try_lock = AsyncMock(return_value=True)
        backend.unlock = AsyncMock(side_effect=ConnectionError("db down"))
        lock = DistributedLock(backend)
        await lock.try_acquire("job", timeout_ms=0)

        released = await lock.release("job")

        assert released is False
        assert lock.is_held("job") is False

"""Distributed Lock

Cross-instance mutual exclusion for scheduled jobs. A string identifier is
hashed to an integer key and locked through a session-scoped advisory lock
backend (PostgreSQL ``pg_try_advisory_lock`` in production).

Lock key derivation (must stay stable across deployments, since every
instance re-derives the key on its own):

    h = 0
    for each UTF-16 code unit c of the identifier:
        h = (h * 31 + c) mod 2**32, read as a signed 32-bit integer
    key = abs(h)

This is the classic 31-multiplier string hash, so "invoice-overdue-job"
maps to the same key in any language that implements it this way.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LOCK_TIMEOUT_MS = 5000
DEFAULT_RETRY_INTERVAL_SECONDS = 0.1


def lock_key_for(identifier: str) -> int:
    """
    Derive the advisory lock key for an identifier

    Args:
        identifier: Stable job identifier (e.g., 'invoice-overdue-job')

    Returns:
        Non-negative integer in [0, 2**31]
    """
    encoded = identifier.encode("utf-16-le")
    value = 0
    for index in range(0, len(encoded), 2):
        code_unit = encoded[index] | (encoded[index + 1] << 8)
        value = (value * 31 + code_unit) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 0x100000000
    return abs(value)


class AdvisoryLockBackend(ABC):
    """Non-blocking, session-scoped lock primitive keyed by integer"""

    @abstractmethod
    async def try_lock(self, lock_key: int) -> bool:
        """
        Try to take the lock without waiting

        Returns:
            True if the lock was acquired, False if another session holds it
        """
        pass

    @abstractmethod
    async def unlock(self, lock_key: int) -> bool:
        """
        Release the lock

        Returns:
            True if the lock was held by this session and is now released
        """
        pass

    async def close(self) -> None:
        """Release backend resources; any lock still held is dropped"""
        pass


@dataclass(frozen=True)
class LockResult:
    acquired: bool
    lock_key: int


@dataclass
class LockExecutionResult(Generic[T]):
    lock_acquired: bool
    success: bool
    result: Optional[T] = None
    error: Optional[BaseException] = None


class DistributedLock:
    """
    Try-acquire with bounded retry, explicit release and a guaranteed-release
    ``with_lock`` wrapper

    "Not acquired" means another instance is already running the job; callers
    skip the cycle without treating it as an error.

    Advisory locks are re-entrant within one database session, so keys held
    by this process are also tracked locally: a second acquire of a held key
    from the same process reports not acquired until it is released.
    """

    def __init__(
        self,
        backend: AdvisoryLockBackend,
        retry_interval_seconds: float = DEFAULT_RETRY_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.retry_interval_seconds = retry_interval_seconds
        self._clock = clock
        self._held: Set[int] = set()
        self._guard = asyncio.Lock()

    def is_held(self, identifier: str) -> bool:
        return lock_key_for(identifier) in self._held

    async def _attempt(self, lock_key: int) -> bool:
        async with self._guard:
            if lock_key in self._held:
                return False
            acquired = await self.backend.try_lock(lock_key)
            if acquired:
                self._held.add(lock_key)
            return acquired

    async def try_acquire(
        self, identifier: str, timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS
    ) -> LockResult:
        """
        Acquire the lock, retrying at a fixed interval until timeout

        Args:
            identifier: Lock identifier
            timeout_ms: Maximum time to keep retrying

        Returns:
            LockResult; acquired=False after the timeout or on backend failure
        """
        lock_key = lock_key_for(identifier)
        started = self._clock()
        deadline = started + timeout_ms / 1000

        logger.info(
            f"Attempting to acquire distributed lock {identifier} "
            f"(key={lock_key}, timeout={timeout_ms}ms)"
        )

        try:
            while True:
                if await self._attempt(lock_key):
                    elapsed_ms = int((self._clock() - started) * 1000)
                    logger.info(
                        f"Distributed lock {identifier} acquired (key={lock_key}, {elapsed_ms}ms)"
                    )
                    return LockResult(acquired=True, lock_key=lock_key)

                remaining = deadline - self._clock()
                if remaining <= 0:
                    break
                await asyncio.sleep(min(self.retry_interval_seconds, remaining))
        except Exception as e:
            logger.error(f"Error acquiring distributed lock {identifier} (key={lock_key}): {e}")
            return LockResult(acquired=False, lock_key=lock_key)

        logger.warning(
            f"Failed to acquire distributed lock {identifier} - timeout of {timeout_ms}ms reached"
        )
        return LockResult(acquired=False, lock_key=lock_key)

    async def release(self, identifier: str) -> bool:
        """
        Release the lock for an identifier

        Returns:
            True if the backend reported the lock as released
        """
        lock_key = lock_key_for(identifier)
        try:
            released = await self.backend.unlock(lock_key)
        except Exception as e:
            logger.error(f"Error releasing distributed lock {identifier} (key={lock_key}): {e}")
            released = False
        finally:
            async with self._guard:
                self._held.discard(lock_key)

        if released:
            logger.info(f"Distributed lock {identifier} released (key={lock_key})")
        else:
            logger.warning(f"Lock {identifier} was not held during release (key={lock_key})")
        return released

    async def with_lock(
        self,
        identifier: str,
        fn: Callable[[], Awaitable[T]],
        timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS,
    ) -> LockExecutionResult[T]:
        """
        Run ``fn`` while holding the lock

        The lock is released on every exit path once acquired.

        Returns:
            LockExecutionResult; lock_acquired=False means the call was skipped
        """
        lock = await self.try_acquire(identifier, timeout_ms)
        if not lock.acquired:
            logger.warning(
                f"Skipping {identifier} - could not acquire lock (another instance may be running)"
            )
            return LockExecutionResult(lock_acquired=False, success=False)

        try:
            logger.info(f"Executing {identifier} within distributed lock")
            result = await fn()
            logger.info(f"{identifier} completed within distributed lock")
            return LockExecutionResult(lock_acquired=True, success=True, result=result)
        except Exception as e:
            logger.error(f"Error during {identifier} within lock: {e}")
            return LockExecutionResult(lock_acquired=True, success=False, error=e)
        finally:
            await self.release(identifier)

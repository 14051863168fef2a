"""PostgreSQL Advisory Lock Backend"""

import asyncio
import logging
from typing import Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from src.app.services.distributed_lock import AdvisoryLockBackend

logger = logging.getLogger(__name__)


class PostgresAdvisoryLockBackend(AdvisoryLockBackend):
    """
    Session-scoped ``pg_try_advisory_lock`` / ``pg_advisory_unlock``

    Advisory locks belong to the database session that took them, so one
    dedicated connection is held open for the backend's lifetime and every
    lock and unlock goes through it. Closing the connection releases any
    lock still held.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._connection: Optional[AsyncConnection] = None
        self._guard = asyncio.Lock()

    async def _get_connection(self) -> AsyncConnection:
        if self._connection is None or self._connection.closed:
            connection = await self.engine.connect()
            self._connection = await connection.execution_options(isolation_level="AUTOCOMMIT")
        return self._connection

    async def try_lock(self, lock_key: int) -> bool:
        async with self._guard:
            connection = await self._get_connection()
            result = await connection.execute(
                text("SELECT pg_try_advisory_lock(:key)"), {"key": lock_key}
            )
            return bool(result.scalar())

    async def unlock(self, lock_key: int) -> bool:
        async with self._guard:
            connection = await self._get_connection()
            result = await connection.execute(
                text("SELECT pg_advisory_unlock(:key)"), {"key": lock_key}
            )
            return bool(result.scalar())

    async def close(self) -> None:
        async with self._guard:
            if self._connection is not None:
                await self._connection.close()
                self._connection = None
                logger.info("Advisory lock connection closed")


class InProcessAdvisoryLockBackend(AdvisoryLockBackend):
    """
    Advisory lock table kept in memory

    Only serializes jobs inside one process; used for single-instance
    deployments on SQLite and in tests.
    """

    def __init__(self):
        self._locked: set[int] = set()

    async def try_lock(self, lock_key: int) -> bool:
        if lock_key in self._locked:
            return False
        self._locked.add(lock_key)
        return True

    async def unlock(self, lock_key: int) -> bool:
        if lock_key not in self._locked:
            return False
        self._locked.discard(lock_key)
        return True

    async def close(self) -> None:
        self._locked.clear()


def create_advisory_lock_backend(engine: AsyncEngine) -> AdvisoryLockBackend:
    """Pick the backend for the engine's dialect"""
    if engine.dialect.name == "postgresql":
        return PostgresAdvisoryLockBackend(engine)
    logger.warning(
        f"Dialect {engine.dialect.name} has no advisory locks - "
        "scheduled jobs are only serialized within this process"
    )
    return InProcessAdvisoryLockBackend()

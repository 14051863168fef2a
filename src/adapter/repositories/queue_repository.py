"""SQLAlchemy implementation of QueueRepository

Backs the flight processing queue with the flight_processing_queue table.
"""

from typing import List, Sequence
from sqlalchemy import delete
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.queue_repository import QueueRepository
from src.domain.queue_entry import QueueEntry


class SqlAlchemyQueueRepository(QueueRepository):
    """
    SQLAlchemy implementation of QueueRepository

    Features:
    - Oldest-first batch reads (enqueued_at, then id)
    - Single-statement batch delete
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def fetch_batch(self, limit: int) -> List[QueueEntry]:
        """
        Fetch up to ``limit`` entries, oldest first

        Args:
            limit: Maximum number of entries to return

        Returns:
            List of queue entries
        """
        stmt = (
            select(QueueEntry)
            .order_by(QueueEntry.enqueued_at, QueueEntry.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_many(self, entry_ids: Sequence[int]) -> int:
        """
        Delete entries by id in one statement

        Args:
            entry_ids: Queue entry ids to delete

        Returns:
            Number of rows deleted
        """
        if not entry_ids:
            return 0
        stmt = delete(QueueEntry).where(QueueEntry.id.in_(list(entry_ids)))
        result = await self.session.execute(stmt)
        return result.rowcount

    async def enqueue(self, flight_id: int) -> QueueEntry:
        entry = QueueEntry(flight_id=flight_id)
        self.session.add(entry)
        await self.session.flush()
        await self.session.refresh(entry)
        return entry

    async def count(self) -> int:
        stmt = select(func.count()).select_from(QueueEntry)
        result = await self.session.execute(stmt)
        return result.scalar_one()

"""Flight Processing Queue Repository Interface

Defines the contract for the durable flight backlog.
"""

from abc import ABC, abstractmethod
from typing import List, Sequence
from src.domain.queue_entry import QueueEntry


class QueueRepository(ABC):
    """
    Repository interface for QueueEntry persistence

    Entries are read oldest-first and deleted in a single batch operation.
    """

    @abstractmethod
    async def fetch_batch(self, limit: int) -> List[QueueEntry]:
        """
        Fetch up to ``limit`` entries ordered by enqueue time (oldest first)

        Args:
            limit: Maximum number of entries to return

        Returns:
            List of queue entries (may be empty)
        """
        pass

    @abstractmethod
    async def delete_many(self, entry_ids: Sequence[int]) -> int:
        """
        Delete entries by id in one statement

        Args:
            entry_ids: Queue entry ids to delete

        Returns:
            Number of rows deleted
        """
        pass

    @abstractmethod
    async def enqueue(self, flight_id: int) -> QueueEntry:
        """
        Add a flight to the backlog

        Args:
            flight_id: Upstream flight identifier

        Returns:
            Created QueueEntry
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        """Number of entries currently queued"""
        pass

"""Bounded Worker Pool

Fixed number of consumer tasks pulling from one shared asyncio queue. A new
item is only started when a consumer frees up, so at most ``max_workers``
handlers are in flight at any time.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class WorkOutcome(Generic[T, R]):
    """Result of handling one item; exactly one of value/error is meaningful"""

    item: T
    value: Optional[R] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedWorkerPool:
    """
    Work-stealing pool with a hard concurrency bound

    Usage:
        pool = BoundedWorkerPool(max_workers=5)
        outcomes = await pool.run(entries, process_entry)
    """

    def __init__(self, max_workers: int = 5):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.active = 0
        self.peak_concurrency = 0

    async def run(
        self, items: Sequence[T], handler: Callable[[T], Awaitable[R]]
    ) -> List[WorkOutcome[T, R]]:
        """
        Handle every item and wait for all of them to resolve

        A failing handler is captured in its own outcome and never stops
        sibling items.

        Returns:
            Outcomes in input order (completion order is not preserved)
        """
        if not items:
            return []

        queue: "asyncio.Queue[Tuple[int, T]]" = asyncio.Queue()
        for index, item in enumerate(items):
            queue.put_nowait((index, item))

        outcomes: List[Optional[WorkOutcome[T, R]]] = [None] * len(items)

        async def consume() -> None:
            while True:
                try:
                    index, item = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return

                self.active += 1
                self.peak_concurrency = max(self.peak_concurrency, self.active)
                try:
                    value = await handler(item)
                    outcomes[index] = WorkOutcome(item=item, value=value)
                except Exception as e:
                    logger.error(f"Worker handler failed for item #{index}: {e}")
                    outcomes[index] = WorkOutcome(item=item, error=e)
                finally:
                    self.active -= 1
                    queue.task_done()

        consumers = min(self.max_workers, len(items))
        await asyncio.gather(*(consume() for _ in range(consumers)))

        return [outcome for outcome in outcomes if outcome is not None]

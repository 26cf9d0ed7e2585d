"""
Bounded-concurrency worker pool.

N workers pull (index, item) pairs from a shared asyncio.Queue and run
each item end-to-end before taking the next. Results land in a list slot
per index, so output order is input order no matter which worker finishes
first.

Politeness: a fixed delay after every item, and a fixed delay between
batches. A failing item is logged and yields None; it never cancels its
siblings.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool(Generic[T, R]):
    """Fixed-size pool of asyncio workers sharing one queue cursor."""

    def __init__(
        self,
        concurrency: int = 4,
        per_item_delay: float = 0.15,
        batch_size: Optional[int] = None,
        batch_delay: float = 0.0,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.concurrency = concurrency
        self.per_item_delay = per_item_delay
        self.batch_size = batch_size
        self.batch_delay = batch_delay

    async def _worker(
        self,
        worker_id: int,
        queue: "asyncio.Queue",
        handler: Callable[[T], Awaitable[Optional[R]]],
        results: List[Optional[R]],
    ) -> None:
        while True:
            try:
                index, item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                results[index] = await handler(item)
            except Exception as e:
                logger.warning(f"[FAIL] worker {worker_id} item {index}: {type(e).__name__}: {e}")
                results[index] = None
            finally:
                queue.task_done()
            if self.per_item_delay > 0:
                await asyncio.sleep(self.per_item_delay)

    async def run(
        self,
        items: Sequence[T],
        handler: Callable[[T], Awaitable[Optional[R]]],
    ) -> List[R]:
        """Process every item; return the non-None results in input order."""
        items = list(items)
        if not items:
            return []

        results: List[Optional[R]] = [None] * len(items)
        size = self.batch_size or len(items)

        for batch_no, start in enumerate(range(0, len(items), size)):
            if batch_no > 0 and self.batch_delay > 0:
                logger.debug(f"Batch pause {self.batch_delay:.1f}s before item {start}")
                await asyncio.sleep(self.batch_delay)

            queue: asyncio.Queue = asyncio.Queue()
            for index in range(start, min(start + size, len(items))):
                queue.put_nowait((index, items[index]))

            workers = [
                asyncio.create_task(self._worker(i, queue, handler, results))
                for i in range(min(self.concurrency, queue.qsize()))
            ]
            await asyncio.gather(*workers)

        return [r for r in results if r is not None]

from __future__ import annotations
from typing import Awaitable, Callable, Generic, Optional, TypeVar

import anyio

from .logger import ConsoleLogger
from .queue import Queue

T = TypeVar("T")


class WorkerPool(Generic[T]):
    """Drain a queue with a fixed number of consumer tasks.

    Workers run in an anyio task group (asyncio backend, since the queue
    parks on asyncio futures). Each one loops ``get`` -> ``handler`` ->
    ``task_done``. ``run()`` returns once ``queue.join()`` does, cancelling
    the workers still parked in ``get``; the queue drops their waiters lazily.

    Pass ``feed`` to ``run()`` to produce into the queue while the workers
    consume; the pool only waits for ``join()`` once ``feed`` has returned.

    A handler exception cancels the other workers and propagates out of
    ``run()`` (as an exception group, per anyio task group semantics). The
    failed item is still acknowledged.

    Args:
        queue: The queue to consume
        handler: Coroutine function called once per item
        workers: Number of concurrent consumers
        logger: Optional logger; defaults to the queue's

    Example:
        ```python
        q: Queue[str] = Queue(maxsize=100)
        for url in urls:
            q.put_nowait(url)
        await WorkerPool(q, fetch, workers=8).run()
        ```
    """
    def __init__(self, queue: Queue[T], handler: Callable[[T], Awaitable[None]], workers: int = 1, logger: Optional[ConsoleLogger] = None):
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.queue = queue
        self.handler = handler
        self.workers = workers
        self.processed = 0
        self._logger = logger or queue.logger

    async def run(self, feed: Optional[Callable[[], Awaitable[None]]] = None) -> None:
        async with anyio.create_task_group() as tg:
            for i in range(self.workers):
                tg.start_soon(self._work, i, name=f"{self.queue.name}-worker-{i}")
            if feed is not None:
                await feed()
            await self.queue.join()
            if self._logger is not None:
                await self._logger.debug("queue joined, stopping workers", processed=self.processed)
            tg.cancel_scope.cancel()

    async def _work(self, index: int) -> None:
        while True:
            item = await self.queue.get()
            try:
                await self.handler(item)
                self.processed += 1
            except Exception as ex:
                if self._logger is not None:
                    await self._logger.error(f"worker {index} failed: {ex!r}")
                raise
            finally:
                self.queue.task_done()


async def run_workers(queue: Queue[T], handler: Callable[[T], Awaitable[None]], workers: int = 1,
                      feed: Optional[Callable[[], Awaitable[None]]] = None) -> int:
    """Run a ``WorkerPool`` until the queue is joined; return the number of items handled."""
    pool = WorkerPool(queue, handler, workers=workers)
    await pool.run(feed)
    return pool.processed

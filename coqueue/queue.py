from __future__ import annotations
import asyncio
import time
from collections import deque
from typing import Any, Callable, Deque, Generic, Optional, Tuple, TypeVar

from .logger import ConsoleLogger
from .metrics import QueueMetrics
from .storage import RingStorage, Storage
from .waiter import Waiter

T = TypeVar("T")


class QueueEmpty(Exception):
    """Raised by ``get_nowait()`` when no item is available."""


class QueueFull(Exception):
    """Raised by ``put_nowait()`` when a bounded queue has no free slot and no parked getter."""


class TooManyAcknowledgements(ValueError):
    """Raised by ``task_done()`` when called more times than items were enqueued."""


class Queue(Generic[T]):
    """A queue for coordinating producer and consumer tasks on one event loop.

    With ``maxsize == 0`` the queue is unbounded. Otherwise ``put()`` waits
    while the queue is full until a ``get()`` frees a slot. Parked getters and
    parked putters are each resumed strictly in arrival order.

    A producer that finds a consumer already parked in ``get()`` hands its
    item straight to that consumer without touching storage, whether or not
    the queue is full. A slot freed by ``get()`` is granted to the oldest
    parked putter and counts against ``maxsize`` until that putter resumes,
    so a producer arriving in between cannot take it.

    Every enqueue increments the count of unfinished tasks; consumers call
    ``task_done()`` once per item they finished, and ``join()`` waits until
    the count drops back to zero.

    Parked waiters that were cancelled or timed out are dropped lazily the
    next time the queue looks at their list. The queue never expires waiters
    on its own. A getter cancelled after it was handed an item gives the item
    back: to the next parked getter, else to the front of storage, which can
    leave storage above ``maxsize`` until consumers catch up.

    Not thread safe: all calls must come from the loop's thread.

    Args:
        maxsize: Maximum number of stored items (0 = unbounded)
        storage: Factory called with ``maxsize`` to build the item storage
        logger: Optional logger for parking, handoff and misuse events
        metrics: Optional pre-registered metrics to record into
        name: Name used in logs and ``repr``

    Example:
        ```python
        q: Queue[str] = Queue(maxsize=10)

        async def worker():
            while True:
                job = await q.get()
                try:
                    await handle(job)
                finally:
                    q.task_done()

        await q.put("job-1")
        await q.join()
        ```
    """

    def __init__(
        self,
        maxsize: int = 0,
        storage: Callable[[int], Storage[T]] = RingStorage,
        logger: Optional[ConsoleLogger] = None,
        metrics: Optional[QueueMetrics] = None,
        name: str = "queue",
    ):
        if maxsize < 0:
            raise ValueError(f"maxsize must be >= 0, got {maxsize}")
        self._maxsize = int(maxsize)
        self._storage: Storage[T] = storage(self._maxsize)
        self._getters: Deque[Waiter[T]] = deque()
        self._putters: Deque[Waiter[None]] = deque()
        self._granted = 0
        self._unfinished = 0
        self._finished = asyncio.Event()
        self._finished.set()
        self.name = name
        self._logger = logger.bind(queue=name) if logger is not None else None
        self._metrics = metrics

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self.name!r} maxsize={self._maxsize} items={list(self._storage)!r}"
            f" getters[{len(self._getters)}] putters[{len(self._putters)}] unfinished={self._unfinished}>"
        )

    # -- introspection ------------------------------------------------------

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def unfinished_tasks(self) -> int:
        return self._unfinished

    @property
    def logger(self) -> Optional[ConsoleLogger]:
        return self._logger

    def size(self) -> int:
        """Number of items held in storage (pending handoffs excluded)."""
        return len(self._storage)

    def capacity(self) -> int:
        """Number of storage slots currently allocated."""
        return self._storage.capacity

    def empty(self) -> bool:
        return len(self._storage) == 0

    def full(self) -> bool:
        """True when ``size() >= maxsize``; always False for an unbounded queue.

        A slot already granted to a woken putter that has not run yet counts
        as taken.
        """
        if self._maxsize == 0:
            return False
        return len(self._storage) + self._granted >= self._maxsize

    def parked(self) -> Tuple[int, int]:
        """Number of (getters, putters) still waiting; cancelled ones are not counted."""
        return (
            sum(1 for w in self._getters if not w.done()),
            sum(1 for w in self._putters if not w.done()),
        )

    # -- consumers ----------------------------------------------------------

    async def get(self) -> T:
        """Remove and return an item, waiting until one is available."""
        self._prune(self._putters)
        if self._putters:
            assert self.full(), "queue not full, why are putters waiting?"
        if self._storage:
            return self._dequeue()

        waiter: Waiter[T] = Waiter()
        self._getters.append(waiter)
        self._debug("getter parked", getters=len(self._getters))
        t0 = time.monotonic()
        try:
            item = await waiter.wait()
        except asyncio.CancelledError:
            if waiter.woken():
                # cancelled after an item was handed over; give it back
                self._requeue(waiter.result())  # type: ignore[arg-type]
            raise
        finally:
            self._observe_wait(t0)
        self._record_get()
        return item  # type: ignore[return-value]

    def get_nowait(self) -> T:
        """Remove and return an item if one is immediately available.

        Raises:
            QueueEmpty: If storage holds no item
        """
        self._prune(self._putters)
        if self._putters:
            assert self.full(), "queue not full, why are putters waiting?"
        if not self._storage:
            raise QueueEmpty(f"get_nowait on empty queue {self.name!r}")
        return self._dequeue()

    # -- producers ----------------------------------------------------------

    async def put(self, item: T) -> None:
        """Put an item into the queue, waiting while it is full.

        A parked getter receives the item directly, even when the queue is full.
        """
        while True:
            # re-validated after every wake-up
            self._prune(self._getters)
            if self._getters or not self.full():
                break
            waiter: Waiter[None] = Waiter()
            self._putters.append(waiter)
            self._debug("putter parked", putters=len(self._putters))
            t0 = time.monotonic()
            try:
                await waiter.wait()
            except asyncio.CancelledError:
                if waiter.woken():
                    # pass the slot we were granted to the next putter in line
                    self._granted -= 1
                    self._wake_next_putter()
                raise
            finally:
                self._observe_wait(t0)
            self._granted -= 1
        self._enqueue(item)
        # a resumed putter that handed off left its granted slot unused
        self._wake_next_putter()

    def put_nowait(self, item: T) -> None:
        """Put an item into the queue without waiting.

        Raises:
            QueueFull: If the queue is bounded, full and no getter is parked
        """
        self._prune(self._getters)
        if not self._getters and self.full():
            raise QueueFull(f"put_nowait on full queue {self.name!r} (maxsize={self._maxsize})")
        self._enqueue(item)

    # -- completion barrier -------------------------------------------------

    def task_done(self) -> None:
        """Mark one previously enqueued item as processed.

        When every enqueued item has been acknowledged, tasks blocked in
        ``join()`` resume.

        Raises:
            TooManyAcknowledgements: If called more times than items were enqueued
        """
        if self._unfinished <= 0:
            if self._logger is not None:
                self._logger.log("WARN", "task_done() called too many times")
            raise TooManyAcknowledgements("task_done() called too many times")
        self._unfinished -= 1
        if self._metrics is not None:
            self._metrics.unfinished.set(self._unfinished)
        if self._unfinished == 0:
            self._finished.set()

    async def join(self) -> None:
        """Wait until every enqueued item has been acknowledged with ``task_done()``."""
        if self._unfinished > 0:
            await self._finished.wait()

    # -- internals ----------------------------------------------------------

    @staticmethod
    def _prune(waiters: Deque[Waiter[Any]]) -> None:
        # drop waiters at the head that were cancelled or timed out
        while waiters and waiters[0].done():
            waiters.popleft()

    def _enqueue(self, item: T) -> None:
        # caller has pruned getters and checked there is room or a getter
        if self._getters:
            assert not self._storage, "queue non-empty, why are getters waiting?"
            self._getters.popleft().wake(item)
            self._debug("handed off to getter", getters=len(self._getters))
            if self._metrics is not None:
                self._metrics.handoffs.inc()
        else:
            self._storage.push(item)
        self._unfinished += 1
        self._finished.clear()
        if self._metrics is not None:
            self._metrics.puts.inc()
            self._metrics.depth.set(len(self._storage))
            self._metrics.unfinished.set(self._unfinished)

    def _dequeue(self) -> T:
        item = self._storage.pop()
        self._record_get()
        self._wake_next_putter()
        return item

    def _requeue(self, item: T) -> None:
        self._prune(self._getters)
        if self._getters:
            self._getters.popleft().wake(item)
        else:
            # may briefly hold more than maxsize; gets drain it first
            self._storage.requeue(item)
        self._debug("requeued item from cancelled getter", size=len(self._storage))
        if self._metrics is not None:
            self._metrics.depth.set(len(self._storage))

    def _wake_next_putter(self) -> None:
        self._prune(self._putters)
        if self._putters and not self.full():
            self._putters.popleft().wake()
            self._granted += 1
            self._debug("putter woken", putters=len(self._putters))

    def _record_get(self) -> None:
        if self._metrics is not None:
            self._metrics.gets.inc()
            self._metrics.depth.set(len(self._storage))

    def _observe_wait(self, t0: float) -> None:
        if self._metrics is not None:
            self._metrics.wait_seconds.observe(max(0.0, time.monotonic() - t0))

    def _debug(self, msg: str, **fields: Any) -> None:
        if self._logger is not None:
            self._logger.log("DEBUG", msg, **fields)

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Generic, Iterator, List, Optional, TypeVar

T = TypeVar("T")


class Storage(ABC, Generic[T]):
    """Item storage behind a ``Queue``.

    The queue owns all coordination (parking, handoff, the completion
    barrier); a storage only decides where an item goes on ``push`` and which
    item comes out on ``pop``. Swapping the storage changes the retrieval
    discipline without touching the queue.

    Implementations are constructed with the queue's ``maxsize`` (0 means
    unbounded) and are only asked to ``push`` when the queue has checked
    there is room. ``requeue`` returns an item a cancelled consumer was handed
    and must accept it even past ``maxsize``.
    """

    @abstractmethod
    def __len__(self) -> int: ...

    @abstractmethod
    def __iter__(self) -> Iterator[T]:
        """Iterate items in the order ``pop`` would return them."""

    @property
    @abstractmethod
    def capacity(self) -> int:
        """Number of allocated slots."""

    @abstractmethod
    def push(self, item: T) -> None: ...

    @abstractmethod
    def pop(self) -> T: ...

    @abstractmethod
    def requeue(self, item: T) -> None:
        """Put ``item`` back so that it is the next one ``pop`` returns."""


class RingStorage(Storage[T]):
    """Growable circular buffer with FIFO retrieval.

    ``start`` indexes the oldest item and ``length`` counts the stored items;
    positions wrap modulo the slot count. The buffer grows on demand to
    ``max(8, 2 * length)`` slots, clamped to ``maxsize`` when bounded, and
    never shrinks. Before growing, the occupied region is rotated so the
    oldest item sits at index 0, which keeps growth a plain extend.

    Example:
        ```python
        ring = RingStorage(maxsize=0)
        ring.push("a"); ring.push("b")
        ring.pop()  # "a"
        ```
    """

    def __init__(self, maxsize: int = 0):
        self._maxsize = max(0, int(maxsize))
        self._slots: List[Optional[T]] = []
        self._start = 0
        self._length = 0

    def __len__(self) -> int:
        return self._length

    def __iter__(self) -> Iterator[T]:
        cap = len(self._slots)
        for i in range(self._length):
            yield self._slots[(self._start + i) % cap]  # type: ignore[misc]

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def push(self, item: T) -> None:
        self._ensure_capacity()
        self._slots[(self._start + self._length) % len(self._slots)] = item
        self._length += 1

    def pop(self) -> T:
        assert self._length > 0, "pop from empty ring storage"
        item = self._slots[self._start]
        # release the reference so the ring does not keep the item alive
        self._slots[self._start] = None
        self._start += 1
        if self._start == len(self._slots):
            self._start = 0
        self._length -= 1
        return item  # type: ignore[return-value]

    def requeue(self, item: T) -> None:
        self._ensure_capacity(overflow=True)
        self._start = (self._start - 1) % len(self._slots)
        self._slots[self._start] = item
        self._length += 1

    def _ensure_capacity(self, overflow: bool = False) -> None:
        cap = len(self._slots)
        if self._length < cap:
            return
        new_cap = max(8, 2 * self._length)
        if self._maxsize > 0:
            if self._length >= self._maxsize:
                assert overflow, "ring storage grown past its bound"
                # one extra slot per returned item
                new_cap = cap + 1
            else:
                new_cap = min(new_cap, self._maxsize)
        if self._start:
            self._slots = self._slots[self._start:] + self._slots[:self._start]
            self._start = 0
        self._slots.extend([None] * (new_cap - cap))

    def __repr__(self) -> str:
        return f"RingStorage(maxsize={self._maxsize}, capacity={self.capacity}, items={list(self)!r})"

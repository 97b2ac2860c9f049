from __future__ import annotations
import asyncio
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Waiter(Generic[T]):
    """Single-assignment handle used to park a task until it is woken.

    The parked task awaits ``wait()``. Cancelling that task (directly or via a
    timeout) cancels the underlying future, which marks the waiter ``done`` so
    that queues can prune it lazily.
    """

    def __init__(self) -> None:
        self._f: asyncio.Future[Optional[T]] = asyncio.get_running_loop().create_future()

    def done(self) -> bool:
        return self._f.done()

    def woken(self) -> bool:
        # resolved by ``wake`` rather than by cancellation
        return self._f.done() and not self._f.cancelled()

    async def wait(self) -> Optional[T]:
        return await self._f

    def try_wake(self, value: Optional[T] = None) -> bool:
        if self._f.done():
            return False
        self._f.set_result(value)
        return True

    def wake(self, value: Optional[T] = None) -> None:
        if not self.try_wake(value):
            raise RuntimeError("Waiter already resolved")

    def cancel(self) -> bool:
        return self._f.cancel()

    def result(self) -> Optional[T]:
        return self._f.result()

    def __repr__(self) -> str:
        state = "pending"
        if self._f.cancelled():
            state = "cancelled"
        elif self._f.done():
            state = "woken"
        return f"<Waiter {state}>"

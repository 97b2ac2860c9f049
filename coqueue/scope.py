from __future__ import annotations
from typing import Awaitable, Callable, List

class Scope:
    """Collects async finalizers and runs them in reverse order on close.

    ``Layer.build_scoped`` registers each layer's teardown here, so closing
    the scope releases a queue before the logger and metrics it was built
    from.

    Example:
        ```python
        async with Scope() as scope:
            env = await (ConfigLayer(cfg) + QueueLayer).build_scoped(Context(), scope)
            q = env.get(Queue)
            ...
        # QueueLayer teardown has run here
        ```
    """
    def __init__(self):
        self._finalizers: List[Callable[[], Awaitable[None]]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def add_finalizer(self, fin: Callable[[], Awaitable[None]]) -> None:
        """Register ``fin``; runs it immediately if the scope is already closed."""
        if self._closed: await fin()
        else: self._finalizers.append(fin)

    async def close(self) -> None:
        """Run every finalizer, last registered first.

        All finalizers run even when some fail; the first failure is raised
        once they are done.
        """
        if self._closed: return
        self._closed = True
        first: BaseException | None = None
        while self._finalizers:
            fin = self._finalizers.pop()
            try: await fin()
            except Exception as ex:
                if first is None: first = ex
        if first is not None:
            raise first

    async def __aenter__(self) -> "Scope":
        return self

    async def __aexit__(self, et, e, tb) -> None:
        await self.close()

from __future__ import annotations
import asyncio
from typing import Awaitable, Callable, Any, TypeVar
from .context import Context
from .scope import Scope

A = TypeVar("A")


class Layer:
    """Recipe for adding services to a Context and releasing them again.

    ``acquire`` and ``release`` receive the context plus a memo dict shared by
    every layer in a composition, so a resource built once is reused and
    released once.

    Compose with ``+`` when the right layer needs services from the left one
    (``ConfigLayer(cfg) + QueueLayer``) and with ``|`` for independent layers
    (``LoggerLayer | MetricsLayer``).
    """
    def __init__(self, acquire: Callable[[Context, dict], Awaitable[Context]], release: Callable[[Context, dict], Awaitable[None]]):
        self._acquire = acquire; self._release = release

    async def build(self, parent: Context) -> Context:
        return await self._acquire(parent, {})

    async def build_memo(self, parent: Context, memo: dict) -> Context: return await self._acquire(parent, memo)

    async def build_scoped(self, parent: Context, scope: Scope, memo: dict | None = None) -> Context:
        """Build this layer and register its teardown with ``scope``."""
        memo = memo if memo is not None else {}
        ctx = await self._acquire(parent, memo)
        async def fin(): await self._release(ctx, memo)
        await scope.add_finalizer(fin)
        return ctx

    async def teardown(self, ctx: Context) -> None: await self._release(ctx, {})
    async def teardown_memo(self, ctx: Context, memo: dict) -> None: await self._release(ctx, memo)

    def __add__(self, other: "Layer") -> "Layer":
        async def acq(parent: Context, memo: dict):
            left = await self.build_memo(parent, memo)
            try:
                return await other.build_memo(left, memo)
            except BaseException:
                await self.teardown_memo(left, memo)
                raise
        async def rel(ctx: Context, memo: dict):
            try:
                await other.teardown_memo(ctx, memo)
            finally:
                await self.teardown_memo(ctx, memo)
        return Layer(acq, rel)

    def __or__(self, other: "Layer") -> "Layer":
        async def acq(parent: Context, memo: dict):
            c1, c2 = await asyncio.gather(self.build_memo(parent, memo), other.build_memo(parent, memo), return_exceptions=True)
            if isinstance(c1, BaseException) or isinstance(c2, BaseException):
                # release whichever side was built, then raise the first error
                if not isinstance(c1, BaseException): await self.teardown_memo(c1, memo)
                if not isinstance(c2, BaseException): await other.teardown_memo(c2, memo)
                raise c1 if isinstance(c1, BaseException) else c2  # type: ignore[misc]
            return c1.merge(c2)
        async def rel(ctx: Context, memo: dict):
            await asyncio.gather(self.teardown_memo(ctx, memo), other.teardown_memo(ctx, memo))
        return Layer(acq, rel)


def from_resource(t: type, mk: Callable[[Context], Awaitable[Any]], close: Callable[[Any], Awaitable[None]]) -> Layer:
    """Layer that builds one service with ``mk`` and releases it with ``close``.

    Example:
        ```python
        LoggerLayer = from_resource(ConsoleLogger, mk_logger, close_logger)
        ```
    """
    async def acquire(parent: Context, memo: dict):
        key = ('resource', t)
        if key in memo: inst = memo[key]
        else:
            inst = await mk(parent); memo[key] = inst
        return parent.add(t, inst)
    async def release(ctx: Context, memo: dict):
        key = ('resource', t)
        inst = memo.pop(key, None)
        if inst is None:
            inst = ctx.get(t)
        await close(inst)
    return Layer(acquire, release)


def provide_service(t: type[A], value: A) -> Layer:
    """Layer that adds an existing value and has nothing to release."""
    async def acquire(parent: Context, _memo: dict) -> Context:
        return parent.add(t, value)

    async def release(_ctx: Context, _memo: dict) -> None:
        return None

    return Layer(acquire, release)

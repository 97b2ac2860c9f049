from __future__ import annotations
from typing import Any, Dict, TypeVar

A = TypeVar("A")

class Context:
    """Immutable service container keyed by type.

    Layers build a Context holding the services a queue needs (its
    configuration, a logger, a metrics registry) and the queue itself.

    Example:
        ```python
        ctx = (Context()
               .add(QueueConfig, QueueConfig(maxsize=100))
               .add(ConsoleLogger, ConsoleLogger("jobs")))

        if ConsoleLogger in ctx:
            logger = ctx.get(ConsoleLogger)
        ```
    """
    def __init__(self, values: Dict[type, Any] | None = None): self._values = dict(values or {})

    def __contains__(self, t: type) -> bool:
        return t in self._values

    def get(self, t: type[A]) -> A:
        """Return the service registered under ``t``.

        Raises:
            KeyError: If no service of that type is available
        """
        if t not in self._values: raise KeyError(f"Missing service: {t}")
        return self._values[t]

    def add(self, t: type[A], v: A) -> "Context":
        """Return a new Context with ``v`` registered under ``t``; this one is unchanged."""
        c = dict(self._values); c[t] = v; return Context(c)

    def merge(self, other: "Context") -> "Context":
        """Return a new Context holding both sets of services, ``other`` winning on clashes."""
        c = dict(self._values); c.update(other._values); return Context(c)

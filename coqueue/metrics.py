from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Iterable, Tuple
import asyncio
from .layer import from_resource
from .context import Context

Labels = Tuple[Tuple[str, str], ...]


@dataclass
class Counter:
    name: str
    help: str = ""
    labels: Labels = field(default_factory=tuple)
    value: int = 0

    def inc(self, n: int = 1) -> None:
        self.value += n


@dataclass
class Gauge:
    name: str
    help: str = ""
    labels: Labels = field(default_factory=tuple)
    value: float = 0.0

    def set(self, v: float) -> None: self.value = v
    def inc(self, v: float = 1.0) -> None: self.value += v
    def dec(self, v: float = 1.0) -> None: self.value -= v


@dataclass
class Histogram:
    name: str; help: str = ""; buckets: List[float] = field(default_factory=lambda:[0.0005,0.001,0.005,0.01,0.05,0.1,0.5,1.0,5.0,10.0])
    labels: Labels = field(default_factory=tuple)
    counts: List[int] = field(init=False); sum: float = 0.0; count: int = 0
    def __post_init__(self): self.counts = [0 for _ in self.buckets] + [0]
    def observe(self, v: float) -> None:
        self.sum += v; self.count += 1
        for i, b in enumerate(self.buckets):
            if v <= b:
                self.counts[i] += 1
                return
        self.counts[-1] += 1


class MetricsRegistry:
    """In-memory registry of labelled counters, gauges and histograms.

    Lookups are keyed by name plus sorted labels, so asking twice for the same
    metric returns the same instance. Registration is async (guarded by a
    lock); the returned metric objects are then updated synchronously, which
    is what lets non-suspending queue operations record into them.
    """
    def __init__(self):
        self.counters: Dict[str, Counter] = {}
        self.gauges: Dict[str, Gauge] = {}
        self.hists: Dict[str, Histogram] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _key(name: str, labels: Iterable[Tuple[str, str]] | None) -> str:
        if not labels:
            return name
        return name + "|" + ",".join([f"{k}={v}" for k, v in sorted(labels)])

    async def counter(self, name: str, help: str = "", labels: Iterable[Tuple[str, str]] | None = None) -> Counter:
        async with self._lock:
            key = self._key(name, labels)
            c = self.counters.get(key)
            if c is None:
                c = Counter(name, help, tuple(sorted(labels or [])))
                self.counters[key] = c
            return c

    async def gauge(self, name: str, help: str = "", labels: Iterable[Tuple[str, str]] | None = None) -> Gauge:
        async with self._lock:
            key = self._key(name, labels)
            g = self.gauges.get(key)
            if g is None:
                g = Gauge(name, help, tuple(sorted(labels or [])))
                self.gauges[key] = g
            return g

    async def histogram(self, name: str, help: str = "", labels: Iterable[Tuple[str, str]] | None = None, buckets: Iterable[float] | None = None) -> Histogram:
        async with self._lock:
            key = self._key(name, labels)
            h = self.hists.get(key)
            if h is None:
                lbl = tuple(sorted(labels or []))
                h = Histogram(name, help, list(buckets), lbl) if buckets else Histogram(name, help, labels=lbl)
                self.hists[key] = h
            return h


@dataclass
class QueueMetrics:
    """The metrics a ``Queue`` records into, all labelled with the queue name."""
    puts: Counter
    gets: Counter
    handoffs: Counter
    depth: Gauge
    unfinished: Gauge
    wait_seconds: Histogram

    @staticmethod
    async def create(registry: MetricsRegistry, queue_name: str) -> "QueueMetrics":
        labels = (("queue", queue_name),)
        return QueueMetrics(
            puts=await registry.counter("queue_put_total", "Items enqueued", labels),
            gets=await registry.counter("queue_get_total", "Items dequeued", labels),
            handoffs=await registry.counter("queue_handoff_total", "Items handed straight to a parked getter", labels),
            depth=await registry.gauge("queue_depth", "Items held in storage", labels),
            unfinished=await registry.gauge("queue_unfinished", "Items enqueued but not yet acknowledged", labels),
            wait_seconds=await registry.histogram("queue_wait_seconds", "Time a get or put spent parked", labels),
        )


async def _mk(_ctx: Context) -> MetricsRegistry: return MetricsRegistry()
async def _close(_m: MetricsRegistry) -> None: return None
MetricsLayer = from_resource(MetricsRegistry, _mk, _close)

from .queue import Queue, QueueEmpty, QueueFull, TooManyAcknowledgements
from .storage import Storage, RingStorage
from .waiter import Waiter
from .context import Context
from .scope import Scope
from .layer import Layer, from_resource, provide_service
from .logger import ConsoleLogger, LoggerLayer
from .metrics import MetricsRegistry, MetricsLayer, QueueMetrics, Counter, Gauge, Histogram
from .config import QueueConfig, ConfigLayer, QueueLayer
from .workers import WorkerPool, run_workers

from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .context import Context
from .layer import Layer, from_resource, provide_service
from .logger import ConsoleLogger, _LEVELS
from .metrics import MetricsRegistry, QueueMetrics
from .queue import Queue

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class QueueConfig:
    """Settings for a queue built by ``QueueLayer``.

    Args:
        maxsize: Bound on stored items (0 = unbounded)
        name: Queue name used for log fields and metric labels
        log_level: Level of the logger created when the context has none
        json_logs: Emit JSON lines from that logger
    """
    maxsize: int = 0
    name: str = "queue"
    log_level: str = "INFO"
    json_logs: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.maxsize, int) or self.maxsize < 0:
            raise ValueError(f"maxsize must be a non-negative integer, got {self.maxsize!r}")
        if not self.name:
            raise ValueError("name must not be empty")
        if self.log_level.upper() not in _LEVELS:
            raise ValueError(f"unknown log level {self.log_level!r}, expected one of {sorted(_LEVELS)}")

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None, prefix: str = "COQUEUE_") -> "QueueConfig":
        """Read ``<prefix>MAXSIZE``, ``NAME``, ``LOG_LEVEL`` and ``JSON_LOGS``.

        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable is set to something unparseable
        """
        env = os.environ if environ is None else environ
        defaults = QueueConfig()

        raw_max = env.get(prefix + "MAXSIZE")
        try:
            maxsize = int(raw_max) if raw_max is not None else defaults.maxsize
        except ValueError:
            raise ValueError(f"{prefix}MAXSIZE must be an integer, got {raw_max!r}") from None

        raw_json = env.get(prefix + "JSON_LOGS")
        if raw_json is None:
            json_logs = defaults.json_logs
        elif raw_json.strip().lower() in _TRUE:
            json_logs = True
        elif raw_json.strip().lower() in _FALSE:
            json_logs = False
        else:
            raise ValueError(f"{prefix}JSON_LOGS must be a boolean, got {raw_json!r}")

        return QueueConfig(
            maxsize=maxsize,
            name=env.get(prefix + "NAME", defaults.name),
            log_level=env.get(prefix + "LOG_LEVEL", defaults.log_level).upper(),
            json_logs=json_logs,
        )


def ConfigLayer(config: QueueConfig) -> Layer:
    return provide_service(QueueConfig, config)


async def _mk_queue(ctx: Context) -> Queue:
    config = ctx.get(QueueConfig) if QueueConfig in ctx else QueueConfig()
    if ConsoleLogger in ctx:
        logger = ctx.get(ConsoleLogger)
    else:
        logger = ConsoleLogger(level=config.log_level, json_output=config.json_logs)
    metrics = None
    if MetricsRegistry in ctx:
        metrics = await QueueMetrics.create(ctx.get(MetricsRegistry), config.name)
    return Queue(maxsize=config.maxsize, logger=logger, metrics=metrics, name=config.name)


async def _close_queue(q: Queue) -> None:
    # parked tasks belong to their scheduler; only report what is left behind
    getters, putters = q.parked()
    if (getters or putters or q.unfinished_tasks) and q.logger is not None:
        q.logger.log("WARN", "queue released with outstanding work",
                     getters=getters, putters=putters, unfinished=q.unfinished_tasks)


QueueLayer = from_resource(Queue, _mk_queue, _close_queue)

from __future__ import annotations
import sys, datetime as _dt, json
from typing import Optional, Dict, Any
from .layer import from_resource
from .context import Context


_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


class ConsoleLogger:
    """Structured logger writing one line per record to stderr.

    Records carry a timestamp, the logger name, the level, the message and any
    bound or per-call fields. ``json_output`` switches from ``key=value`` text
    to compact JSON lines.

    Queue operations that never suspend log through the synchronous ``log``;
    coroutines can use the awaitable ``debug``/``info``/``warn``/``error``.

    Example:
        ```python
        logger = ConsoleLogger("jobs", level="DEBUG").bind(queue="jobs")
        logger.log("DEBUG", "parked getter", getters=1)
        await logger.info("drained")
        ```
    """
    def __init__(self, name: str = "coqueue", level: str = "INFO", json_output: bool = False, context: Optional[Dict[str, Any]] = None):
        self.name = name
        self.level = _LEVELS.get(level.upper(), 20)
        self.json_output = json_output
        self.context = dict(context or {})

    def set_level(self, level: str) -> None:
        self.level = _LEVELS.get(level.upper(), self.level)

    def bind(self, **fields: Any) -> "ConsoleLogger":
        ctx = dict(self.context); ctx.update(fields)
        return ConsoleLogger(self.name, level=self.level_name, json_output=self.json_output, context=ctx)

    @property
    def level_name(self) -> str:
        for k, v in _LEVELS.items():
            if v == self.level: return k
        return "INFO"

    def enabled(self, level: str) -> bool:
        return _LEVELS[level] >= self.level

    def log(self, level: str, msg: str, **fields: Any) -> None:
        if not self.enabled(level):
            return
        ts = _dt.datetime.now(_dt.timezone.utc).isoformat()
        all_fields: Dict[str, Any] = {}
        all_fields.update(self.context)
        all_fields.update(fields)
        if self.json_output:
            data: Dict[str, Any] = {"ts": ts, "name": self.name, "level": level, "msg": msg}
            if all_fields:
                data["fields"] = all_fields
            print(json.dumps(data, separators=(",", ":"), default=repr), file=sys.stderr)
        else:
            extras = "".join([f" {k}={v}" for k, v in sorted(all_fields.items())])
            print(f"[{ts}] {self.name} {level}: {msg}{extras}", file=sys.stderr)

    async def debug(self, msg: str, **fields: Any) -> None: self.log("DEBUG", msg, **fields)
    async def info(self, msg: str, **fields: Any) -> None: self.log("INFO", msg, **fields)
    async def warn(self, msg: str, **fields: Any) -> None: self.log("WARN", msg, **fields)
    async def error(self, msg: str, **fields: Any) -> None: self.log("ERROR", msg, **fields)


async def _mk_logger(_ctx: Context) -> ConsoleLogger: return ConsoleLogger()
async def _close_logger(_l: ConsoleLogger) -> None: return None
LoggerLayer = from_resource(ConsoleLogger, _mk_logger, _close_logger)

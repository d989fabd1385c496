from __future__ import annotations

import logging
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, Iterable

import orjson

DEFAULT_FORMAT = (
    "%(asctime)sZ [%(levelname)s] %(name)s:%(lineno)d "
    "(pid=%(process)d tid=%(threadName)s) | %(message)s"
)
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS: tuple[str, ...] = (
    "asyncio",
    "aiohttp.access",
    "httpx",
    "httpcore",
)

_SENTINEL = "_mintscope_stdout_handler"

_warn_once_lock = threading.Lock()
_warn_once_last_emit: dict[str, float] = {}


class UTCFormatter(logging.Formatter):
    """Formatter that renders timestamps in UTC."""

    converter = time.gmtime


_LOG_RECORD_RESERVED = set(logging.LogRecord(None, 0, "", 0, "", (), None).__dict__.keys())


class JsonFormatter(logging.Formatter):
    """Structured logging formatter producing JSON payloads."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - short summary sufficient
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .replace(tzinfo=None)
            .isoformat(timespec="milliseconds")
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "line": record.lineno,
            "msg": record.getMessage(),
            "process": record.process,
            "thread": record.threadName,
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info

        # fields passed through ``extra=``
        for key, value in record.__dict__.items():
            if key in payload or key.startswith("_") or key in _LOG_RECORD_RESERVED:
                continue
            payload[key] = value

        return orjson.dumps(payload, default=str).decode()


def setup_stdout_logging(
    *,
    level: int | str = logging.INFO,
    json: bool = False,
    fmt: str | None = None,
    datefmt: str | None = None,
    propagate_off: Iterable[str] = _NOISY_LOGGERS,
) -> logging.StreamHandler:
    """Ensure a single ``StreamHandler`` to ``sys.stdout`` exists on the root logger.

    Calling this repeatedly reuses the handler installed by the first call.
    """

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    handler = getattr(root, _SENTINEL, None)
    if not isinstance(handler, logging.StreamHandler) or handler not in root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        root.addHandler(handler)
        setattr(root, _SENTINEL, handler)

    handler.setLevel(level)
    if json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(UTCFormatter(fmt or DEFAULT_FORMAT, datefmt=datefmt or DEFAULT_DATEFMT))

    for name in propagate_off:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return handler


def warn_once_per(
    minutes: float,
    key: str,
    message: str,
    *args: Any,
    logger: logging.Logger | None = None,
    **kwargs: Any,
) -> bool:
    """Emit ``logger.warning`` for *message* at most once per *minutes* interval."""

    interval = max(0.0, minutes) * 60.0
    now = time.monotonic()

    with _warn_once_lock:
        last = _warn_once_last_emit.get(key)
        if last is not None and interval > 0 and now - last < interval:
            return False
        _warn_once_last_emit[key] = now

    (logger or logging.getLogger(__name__)).warning(message, *args, **kwargs)
    return True


__all__ = ["JsonFormatter", "UTCFormatter", "setup_stdout_logging", "warn_once_per"]

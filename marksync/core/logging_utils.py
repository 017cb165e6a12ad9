from __future__ import annotations

import datetime as dt
import json
import logging
import os
import sys
import uuid
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from typing import Any

from loguru import logger as loguru_logger

UTC = dt.UTC

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_STANDARD_FIELDS = frozenset(
    {
        "args",
        "msg",
        "name",
        "levelno",
        "levelname",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "message",
    }
)

_NOISY_LOGGERS = ("uvicorn.access", "peewee", "asyncio")

# Set per request by the API middleware; attached to every record logged meanwhile.
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    extra = {
        key: value
        for key, value in record.__dict__.items()
        if not key.startswith("_") and key not in _STANDARD_FIELDS
    }
    if extra.get("correlation_id") is None:
        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            extra["correlation_id"] = correlation_id
    return extra


class JsonFormatter(logging.Formatter):
    """JSON formatter used when loguru is switched off."""

    def __init__(self, include_location: bool = True):
        super().__init__()
        self.include_location = include_location
        self.hostname = os.uname().nodename if hasattr(os, "uname") else "unknown"

    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "timestamp": dt.datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self.hostname,
        }

        if self.include_location:
            base.update(
                {
                    "module": record.module,
                    "function": record.funcName,
                    "line": record.lineno,
                }
            )

        if record.exc_info:
            base["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        extra = _extra_fields(record)
        correlation_id = extra.pop("correlation_id", None)
        if correlation_id:
            base["correlation_id"] = correlation_id
        if extra:
            base["extra"] = extra

        return json.dumps(base, ensure_ascii=False, default=str, separators=(",", ":"))


class InterceptHandler(logging.Handler):
    """Forward stdlib records into loguru, keeping ``extra=`` fields bound."""

    def emit(self, record: logging.LogRecord) -> None:
        level: int | str
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        loguru_logger.bind(logger_name=record.name, **_extra_fields(record)).opt(
            depth=6, exception=record.exc_info
        ).log(level, record.getMessage())


def setup_json_logging(
    level: str = "INFO",
    *,
    use_loguru: bool = True,
    log_file: str | None = None,
    max_file_size: str = "50 MB",
    retention: str = "14 days",
) -> None:
    """Configure JSON logging for the server process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_loguru: Route stdlib records through loguru sinks
        log_file: Optional log file path for persistent logging
        max_file_size: Rotation size for the log file (loguru format)
        retention: Log retention period (loguru format)
    """
    lvl = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(lvl)

    if use_loguru:
        loguru_logger.remove()
        loguru_logger.add(
            sys.stdout,
            level=level.upper(),
            serialize=True,
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
        if log_file:
            loguru_logger.add(
                log_file,
                level=level.upper(),
                serialize=True,
                rotation=max_file_size,
                retention=retention,
                compression="gz",
                enqueue=True,
            )
        root.addHandler(InterceptHandler())
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(JsonFormatter())
        root.addHandler(console_handler)

        if log_file:
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=50 * 1024 * 1024,
                backupCount=5,
            )
            file_handler.setFormatter(JsonFormatter())
            root.addHandler(file_handler)

    for noisy_logger in _NOISY_LOGGERS:
        logging.getLogger(noisy_logger).setLevel(max(lvl, logging.WARNING))

    logging.getLogger(__name__).info(
        "logging_initialized",
        extra={"level": level.upper(), "use_loguru": use_loguru, "log_file": log_file},
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance by name, typically ``__name__`` of the caller."""
    return logging.getLogger(name)


def generate_correlation_id() -> str:
    """Generate a short correlation ID for tracing a request across logs."""
    return uuid.uuid4().hex[:12]


__all__ = [
    "InterceptHandler",
    "JsonFormatter",
    "correlation_id_ctx",
    "generate_correlation_id",
    "get_logger",
    "setup_json_logging",
]

from __future__ import annotations

import logging
import sys
import uuid

from loguru import logger as loguru_logger

# LogRecord attributes that are not caller-supplied ``extra`` fields.
_RECORD_FIELDS = frozenset(
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
        "message",
    }
)

_TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level> {extra}"
)


class InterceptHandler(logging.Handler):
    """Route stdlib records into loguru, carrying ``extra`` fields as bound context."""

    def emit(self, record: logging.LogRecord) -> None:
        level: int | str
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if not key.startswith("_") and key not in _RECORD_FIELDS
        }
        if "cid" in extra and "correlation_id" not in extra:
            extra["correlation_id"] = extra.pop("cid")

        loguru_logger.bind(logger_name=record.name, **extra).opt(
            depth=6, exception=record.exc_info
        ).log(level, record.getMessage())


def setup_json_logging(
    level: str = "INFO",
    *,
    json_logs: bool = True,
    log_file: str | None = None,
    max_file_size: str = "100 MB",
    retention: str = "30 days",
) -> None:
    """Configure loguru sinks and bridge stdlib logging into them.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Emit one JSON object per record instead of coloured text
        log_file: Optional log file path for persistent logging
        max_file_size: Maximum size per log file (loguru format)
        retention: Log retention period (loguru format)
    """
    lvl = level.upper()
    loguru_logger.remove()

    sink_options = {"level": lvl, "serialize": json_logs, "backtrace": True, "diagnose": False}
    if json_logs:
        loguru_logger.add(sys.stdout, **sink_options)
    else:
        loguru_logger.add(sys.stdout, format=_TEXT_FORMAT, **sink_options)

    if log_file:
        loguru_logger.add(
            log_file,
            rotation=max_file_size,
            retention=retention,
            compression="gz",
            enqueue=True,
            **{**sink_options, "serialize": True},
        )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, lvl, logging.INFO))
    root.addHandler(InterceptHandler())

    for noisy_logger in ("peewee", "httpx", "sentence_transformers", "urllib3"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    loguru_logger.info(
        "logging_initialized",
        setup_config={"level": lvl, "json_logs": json_logs, "log_file": log_file},
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance by name.

    Thin wrapper around logging.getLogger() so every module obtains loggers
    the same way.
    """
    return logging.getLogger(name)


def generate_correlation_id() -> str:
    """Generate a short correlation ID for tracing a request across logs."""
    return uuid.uuid4().hex[:12]


__all__ = [
    "InterceptHandler",
    "generate_correlation_id",
    "get_logger",
    "setup_json_logging",
]

"""Logging configuration using loguru.

Provides:
- Structured JSON logging for production (Cloud Logging compatible)
- Human-readable colored logging for development
- Request context tracking (request_id) bound by the logging middleware
- Interception of standard library logging (uvicorn, httpx, googleapiclient, slack_sdk)
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from typing import Any

from loguru import logger

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Map loguru levels to Cloud Logging severity
LEVEL_TO_SEVERITY = {
    "TRACE": "DEBUG",
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "SUCCESS": "INFO",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}

INTERCEPTED_LOGGERS = [
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "httpx",
    "httpcore",
    "googleapiclient.discovery",
    "slack_sdk",
]


def _cloud_logging_serializer(record: dict[str, Any]) -> str:
    """Serialize log record to Cloud Logging JSON format.

    Cloud Logging expects ``severity``, ``message`` and ``time``; additional
    fields from ``extra`` are included at the top level.
    """
    log_entry: dict[str, Any] = {
        "severity": LEVEL_TO_SEVERITY.get(record["level"].name, "INFO"),
        "message": record["message"],
        "time": record["time"].isoformat(),
    }

    request_id = request_id_ctx.get()
    if request_id:
        log_entry["request_id"] = request_id

    # Add location info for errors
    if record["level"].no >= 40:
        log_entry["logging.googleapis.com/sourceLocation"] = {
            "file": record["file"].path,
            "line": str(record["line"]),
            "function": record["function"],
        }

    if record["exception"] is not None:
        exc_info = record["exception"]
        tb_str = None
        if exc_info.traceback:
            tb_str = "".join(
                traceback.format_exception(exc_info.type, exc_info.value, exc_info.traceback)
            )
        log_entry["exception"] = {
            "type": exc_info.type.__name__ if exc_info.type else None,
            "value": str(exc_info.value) if exc_info.value else None,
            "traceback": tb_str,
        }

    for key, value in record.get("extra", {}).items():
        # Skip internal loguru keys
        if not key.startswith("_") and key not in log_entry:
            log_entry[key] = value

    return json.dumps(log_entry, default=str)


def _json_sink(message: Any) -> None:
    """Sink that writes serialized JSON to stdout."""
    sys.stdout.write(_cloud_logging_serializer(message.record) + "\n")
    sys.stdout.flush()


def _dev_formatter(record: dict[str, Any]) -> str:
    """Format log record for development (human-readable)."""
    request_id = request_id_ctx.get()
    context_str = f"[req={request_id[:8]}] " if request_id else ""

    return (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        + context_str.replace("{", "{{").replace("}", "}}")
        + "<level>{message}</level>\n"
        "{exception}"
    )


def configure_logging(*, is_production: bool, log_level: str = "INFO") -> None:
    """Configure loguru for the application.

    Args:
        is_production: If True, output JSON for Cloud Logging. If False, use
            human-readable colored output for development.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    logger.remove()

    if is_production:
        logger.add(
            _json_sink,
            level=log_level,
            format="{message}",  # Format is handled by the sink
            backtrace=False,
            diagnose=False,  # Don't include variable values in production
        )
    else:
        logger.add(
            sys.stderr,
            level=log_level,
            format=_dev_formatter,
            colorize=True,
            backtrace=True,
            diagnose=True,
        )

    _intercept_standard_logging(log_level)


def _intercept_standard_logging(log_level: str) -> None:
    """Route standard library logging into loguru."""

    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                level = logger.level(record.levelname).name
            except ValueError:
                level = record.levelno

            # Find caller from where the logged message originated
            frame, depth = logging.currentframe(), 2
            while frame and frame.f_code.co_filename == logging.__file__:
                frame = frame.f_back
                depth += 1

            logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())

    logging.basicConfig(handlers=[InterceptHandler()], level=log_level, force=True)

    for name in INTERCEPTED_LOGGERS:
        logging.getLogger(name).setLevel(log_level)
        logging.getLogger(name).handlers = [InterceptHandler()]


def set_request_context(request_id: str | None = None) -> None:
    """Set context for the current request."""
    if request_id:
        request_id_ctx.set(request_id)


def clear_request_context() -> None:
    """Clear request context after request completes."""
    request_id_ctx.set(None)


__all__ = [
    "logger",
    "configure_logging",
    "set_request_context",
    "clear_request_context",
    "request_id_ctx",
]

"""Structured logging for the Project Memory API.

This module provides:
- JSON-formatted log output for production environments
- Request context via ContextVar (request_id, project_id)
- Human-readable format for development
- get_logger() for per-module loggers
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
project_id_var: ContextVar[int | None] = ContextVar("project_id", default=None)

# LogRecord attributes that are not user-supplied "extra" fields
_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_var.get()


def get_project_id() -> int | None:
    """Get the project the current request operates on."""
    return project_id_var.get()


def set_request_context(
    request_id: str | None = None,
    project_id: int | None = None,
):
    """Set request context variables."""
    if request_id is not None:
        request_id_var.set(request_id)
    if project_id is not None:
        project_id_var.set(project_id)


def clear_request_context():
    """Clear all request context variables."""
    request_id_var.set(None)
    project_id_var.set(None)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production environments.

    Output format:
    {
        "timestamp": "2026-01-29T12:34:56.789Z",
        "level": "INFO",
        "logger": "services.search",
        "message": "Semantic search returned 3 results",
        "request_id": "abc-123",
        "project_id": 7,
        "extra": {...}
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        project_id = get_project_id()
        if request_id:
            log_data["request_id"] = request_id
        if project_id is not None:
            log_data["project_id"] = project_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
            log_data["exception_type"] = (
                record.exc_info[0].__name__ if record.exc_info[0] else None
            )

        # Fields passed as logger.info("msg", extra={"key": "value"})
        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Human-readable log formatter for development.

    Output format:
    2026-01-29 12:34:56.789 | INFO     | services.search | [abc-1234 p7] message
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        level = record.levelname.ljust(8)
        message = record.getMessage()

        tags = []
        request_id = get_request_id()
        if request_id:
            tags.append(request_id[:8])
        project_id = get_project_id()
        if project_id is not None:
            tags.append(f"p{project_id}")
        prefix = f"[{' '.join(tags)}] " if tags else ""

        formatted = f"{timestamp} | {level} | {record.name} | {prefix}{message}"

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
):
    """Configure the root logger with structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format. If None, JSON unless DEBUG is set.
    """
    if json_format is None:
        debug_mode = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")
        json_format = not debug_mode

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())
    root_logger.addHandler(handler)

    # Quiet the HTTP stack underneath the AI provider client
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the module.

    Relies on configure_logging() being called at startup; falls back to
    the default configuration if nothing has been configured yet.
    """
    logger = logging.getLogger(name)

    if not logging.getLogger().handlers:
        configure_logging()

    return logger


class LogContext:
    """Context manager for setting request context.

    Usage:
        async with LogContext(request_id="abc-123", project_id=7):
            logger.info("This log will include request context")
    """

    def __init__(
        self,
        request_id: str | None = None,
        project_id: int | None = None,
    ):
        self.request_id = request_id
        self.project_id = project_id
        self._tokens: list = []

    def __enter__(self):
        if self.request_id:
            self._tokens.append((request_id_var, request_id_var.set(self.request_id)))
        if self.project_id is not None:
            self._tokens.append((project_id_var, project_id_var.set(self.project_id)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
        return False

    async def __aenter__(self):
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return self.__exit__(exc_type, exc_val, exc_tb)

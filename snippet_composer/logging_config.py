"""
Structured Logging
==================

JSON log lines for Cloud Logging with severity mapping, request
correlation and the acting user attached to every entry.
"""

from __future__ import annotations

import json
import logging
import sys
import time
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Optional, TypeVar
from uuid import uuid4

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_email_var: ContextVar[str] = ContextVar("user_email", default="")

F = TypeVar("F", bound=Callable[..., Any])


class JsonLogFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    SEVERITY_MAP = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARNING",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "severity": self.SEVERITY_MAP.get(record.levelno, "DEFAULT"),
            "message": record.getMessage(),
            "logger": record.name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "logging.googleapis.com/sourceLocation": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        request_id = request_id_var.get()
        if request_id:
            entry["request_id"] = request_id
        user_email = user_email_var.get()
        if user_email:
            entry["user"] = user_email

        if hasattr(record, "extra_fields"):
            entry.update(record.extra_fields)

        if record.exc_info:
            entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else "Unknown",
                "message": str(record.exc_info[1]) if record.exc_info[1] else "",
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(entry, default=str, ensure_ascii=False)


class StructuredLogger:
    """
    Logger taking keyword fields instead of format arguments.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Draft saved", draft_id="abc123", items=4)
    """

    def __init__(self, name: str, level: int = logging.INFO) -> None:
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)

        if not self._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JsonLogFormatter())
            self._logger.addHandler(handler)
            self._logger.propagate = False

    def _log(
        self,
        level: int,
        message: str,
        exc_info: bool = False,
        **kwargs: Any
    ) -> None:
        extra = {"extra_fields": kwargs} if kwargs else {}
        self._logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log at ERROR level with the active traceback."""
        self._log(logging.ERROR, message, exc_info=True, **kwargs)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance for ``name``."""
    return StructuredLogger(name)


def set_request_context(
    request_id: Optional[str] = None,
    user_email: Optional[str] = None
) -> str:
    """
    Bind correlation data for the current request.

    Args:
        request_id: Incoming request ID. A new one is generated when absent.
        user_email: Acting user, if already known.

    Returns:
        The request ID that was set.
    """
    rid = request_id or str(uuid4())
    request_id_var.set(rid)
    user_email_var.set(user_email or "")
    return rid


def bind_user(user_email: str) -> None:
    """Attach the acting user to subsequent log entries."""
    user_email_var.set(user_email)


def log_execution_time(logger: Optional[StructuredLogger] = None) -> Callable[[F], F]:
    """
    Decorator logging duration and outcome of a call.

    Example:
        >>> @log_execution_time()
        ... def save_draft(...):
        ...     ...
    """
    def decorator(func: F) -> F:
        nonlocal logger
        if logger is None:
            logger = get_logger(func.__module__)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"{func.__qualname__} failed",
                    function=func.__qualname__,
                    duration_seconds=round(time.perf_counter() - started, 4),
                    status="error",
                    error=str(e)
                )
                raise
            logger.debug(
                f"{func.__qualname__} completed",
                function=func.__qualname__,
                duration_seconds=round(time.perf_counter() - started, 4),
                status="success"
            )
            return result

        return wrapper  # type: ignore

    return decorator

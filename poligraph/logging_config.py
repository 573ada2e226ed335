"""Structured logging configuration for the discovery pipeline."""

import logging
import json
import sys
import time
from datetime import datetime, timezone
from typing import Dict, Any, Optional
import threading
from contextlib import contextmanager


# Thread-local storage for context
_context = threading.local()

# LogRecord attributes that are never copied into the JSON payload
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "getMessage", "exc_info", "exc_text",
    "stack_info", "taskName",
})

# Third-party loggers that are too chatty at INFO
_NOISY_LOGGERS = ("urllib3", "requests", "httpx", "httpcore", "anthropic")


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per log line."""

    # Sensitive field names to redact
    SENSITIVE_FIELDS = {
        "api_key", "password", "token", "secret", "authorization",
        "access_token", "private_key", "x-api-key",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: The log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        # Fields pushed by log_context()
        if hasattr(_context, "data"):
            log_data.update(_context.data)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if self._is_sensitive_field(key):
                log_data[key] = "[REDACTED]"
            elif isinstance(value, dict) and key == "headers":
                log_data[key] = self._redact_headers(value)
            else:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)

    def _is_sensitive_field(self, field_name: str) -> bool:
        field_lower = field_name.lower()
        return any(sensitive in field_lower for sensitive in self.SENSITIVE_FIELDS)

    def _redact_headers(self, headers: Dict[str, Any]) -> Dict[str, Any]:
        return {
            key: "[REDACTED]" if self._is_sensitive_field(key) else value
            for key, value in headers.items()
        }


def setup_logging(
    format: str = "json",
    level: str = "INFO",
    log_file: Optional[str] = None
) -> None:
    """Configure logging for the CLI and the batch job.

    Args:
        format: Log format ("json" or "text")
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path to write logs to
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if format == "json":
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    # stderr keeps stdout free for command output (JSON reports)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (usually for ``__name__``)."""
    return logging.getLogger(name)


def log_event(logger_name: str, event: str, **kwargs) -> None:
    """Log a structured event.

    Args:
        logger_name: Name of the logger to use
        event: Event name, e.g. "structured_phase_completed"
        **kwargs: Additional fields to include in the log
    """
    get_logger(logger_name).info(event, extra=kwargs)


def log_error(
    logger_name: str,
    event: str,
    error: Exception,
    **kwargs
) -> None:
    """Log a structured error with its traceback.

    Args:
        logger_name: Name of the logger to use
        event: Event name
        error: The exception that occurred
        **kwargs: Additional fields to include in the log
    """
    kwargs["error_type"] = type(error).__name__
    get_logger(logger_name).error(f"{event}: {error}", exc_info=True, extra=kwargs)


def log_performance(
    logger_name: str,
    operation: str,
    duration_ms: float,
    **kwargs
) -> None:
    """Log how long an operation took."""
    kwargs["duration_ms"] = round(duration_ms, 2)
    get_logger(logger_name).info(
        f"{operation} completed in {kwargs['duration_ms']}ms", extra=kwargs
    )


@contextmanager
def log_context(**kwargs):
    """Add fields to every log emitted on this thread within the block.

    Example:
        with log_context(subject_id="p-42", phase="text"):
            logger.info("Extracting sections")
    """
    if not hasattr(_context, "data"):
        _context.data = {}

    old_context = _context.data.copy()
    _context.data.update(kwargs)

    try:
        yield
    finally:
        _context.data = old_context


class Timer:
    """Context manager for timing operations.

    Example:
        with Timer() as timer:
            engine.reconcile(candidates)
        log_performance(__name__, "reconcile", timer.duration_ms)
    """

    def __init__(self):
        self.start_time = None
        self.end_time = None
        self.duration_ms = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.time()
        self.duration_ms = (self.end_time - self.start_time) * 1000

"""Logging helpers for sqlinclude.

Every library logger lives under the ``sqlinclude`` namespace. Library code
attaches structured fields to a record through :func:`log_event`, which
stores them in ``record.extra_fields``; both formatters below render those
fields, as JSON keys or as trailing ``key=value`` pairs.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Final

import msgspec

if TYPE_CHECKING:
    from logging import LogRecord

__all__ = (
    "CorrelationIDFilter",
    "StructuredFormatter",
    "TextFormatter",
    "configure_logging",
    "correlation_id_var",
    "get_correlation_id",
    "get_logger",
    "log_event",
    "set_correlation_id",
)

ROOT_LOGGER_NAME: Final = "sqlinclude"
TEXT_FORMAT: Final = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_json_encoder = msgspec.json.Encoder(enc_hook=str)


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context.

    Args:
        correlation_id: The correlation ID to set, or None to clear
    """
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def _record_fields(record: LogRecord) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    correlation_id = getattr(record, "correlation_id", None) or get_correlation_id()
    if correlation_id:
        fields["correlation_id"] = correlation_id
    fields.update(getattr(record, "extra_fields", None) or {})
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Fixed keys come first, then the correlation ID and the record's
    ``extra_fields`` (for example ``statement``, ``files_loaded`` or
    ``duration_ms``).
    """

    def format(self, record: LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(_record_fields(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return _json_encoder.encode(entry).decode()


class TextFormatter(logging.Formatter):
    """Plain text lines with the structured fields appended as ``key=value``."""

    def __init__(self, fmt: str | None = TEXT_FORMAT, datefmt: str | None = None) -> None:
        super().__init__(fmt, datefmt)

    def format(self, record: LogRecord) -> str:
        line = super().format(record)
        fields = _record_fields(record)
        if not fields:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in fields.items())
        head, sep, tail = line.partition("\n")
        return f"{head} {pairs}{sep}{tail}"


class CorrelationIDFilter(logging.Filter):
    """Filter that adds correlation ID to log records."""

    def filter(self, record: LogRecord) -> bool:
        if correlation_id := get_correlation_id():
            record.correlation_id = correlation_id  # type: ignore[attr-defined]
        return True


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger under the ``sqlinclude`` namespace.

    Args:
        name: Logger name. If not provided, returns the root sqlinclude logger.

    Returns:
        Logger carrying a :class:`CorrelationIDFilter`.
    """
    if name is None:
        return logging.getLogger(ROOT_LOGGER_NAME)

    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIDFilter) for f in logger.filters):
        logger.addFilter(CorrelationIDFilter())
    return logger


def log_event(
    logger: logging.Logger, level: int, message: str, *args: Any, exc_info: bool = False, **fields: Any
) -> None:
    """Log ``message`` with ``fields`` attached as the record's ``extra_fields``."""
    if logger.isEnabledFor(level):
        logger.log(level, message, *args, exc_info=exc_info, extra={"extra_fields": fields}, stacklevel=2)


def configure_logging(
    level: str = "INFO",
    format_style: str = "structured",
    log_to_file: str | None = None,
    extra_handlers: list[logging.Handler] | None = None,
) -> None:
    """Route sqlinclude records to stdout (and optionally a file).

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_style: ``"structured"`` for JSON lines, ``"text"`` for plain text
        log_to_file: Optional file path; file output is always JSON
        extra_handlers: Additional handlers, kept with their own formatters
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter() if format_style == "structured" else TextFormatter())
    root_logger.addHandler(console_handler)

    if log_to_file:
        file_handler = logging.FileHandler(log_to_file)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    if extra_handlers:
        for handler in extra_handlers:
            root_logger.addHandler(handler)

    root_logger.propagate = False
    log_event(
        root_logger,
        logging.DEBUG,
        "sqlinclude logging configured",
        level=level,
        format_style=format_style,
        handlers_count=len(root_logger.handlers),
    )

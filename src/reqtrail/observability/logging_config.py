"""Service logging setup.

Configures the ``reqtrail`` logger hierarchy:
- a console handler (JSON or plain text)
- a ``SinkHandler`` that copies the service's own log records into the
  ``application``/``error`` log files as ``[timestamp] [LEVEL] message`` lines
- ``CorrelationIdFilter`` on every handler, so records carry ``request_id``
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from reqtrail.observability.correlation import UNKNOWN_REQUEST_ID, CorrelationIdFilter
from reqtrail.observability.log_sink import FALLBACK_LOGGER_NAME, LogCategory, LogSink
from reqtrail.observability.logger import CONSOLE_LOGGER_NAME
from reqtrail.utils.time_provider import format_timestamp

if TYPE_CHECKING:
    from reqtrail.config.schema import AppSettings

ROOT_LOGGER_NAME = "reqtrail"
TEXT_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RESERVED_ATTRS = frozenset(
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
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "request_id",
    }
)

_BYPASS_LOGGERS = (FALLBACK_LOGGER_NAME, CONSOLE_LOGGER_NAME, "reqtrail.sink")


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured console logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", UNKNOWN_REQUEST_ID),
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class SinkHandler(logging.Handler):
    """Routes service log records into the log sink.

    ERROR and above go to the ``error`` file, INFO and WARNING to
    ``application``. DEBUG records reach ``application`` only when
    ``include_debug`` is set (development mode).
    """

    def __init__(
        self,
        sink: LogSink,
        include_debug: bool = False,
        offset_hours: int | None = None,
        level: int = logging.NOTSET,
    ) -> None:
        super().__init__(level)
        self.sink = sink
        self.include_debug = include_debug
        self.offset_hours = offset_hours

    def category_for(self, record: logging.LogRecord) -> LogCategory | None:
        if record.name.startswith(_BYPASS_LOGGERS):
            return None
        if record.levelno >= logging.ERROR:
            return LogCategory.ERROR
        if record.levelno >= logging.INFO:
            return LogCategory.APPLICATION
        return LogCategory.APPLICATION if self.include_debug else None

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info:
            message = f"{message} {logging.Formatter().formatException(record.exc_info)}"
        timestamp = format_timestamp(record.created, self.offset_hours)
        return f"[{timestamp}] [{record.levelname}] {message}"

    def emit(self, record: logging.LogRecord) -> None:
        category = self.category_for(record)
        if category is None:
            return
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        self.sink.write(category, line)


def reset_logging() -> None:
    """Detach the handlers installed by :func:`configure_logging`."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_reqtrail_managed", False):
            logger.removeHandler(handler)
            handler.close()


def configure_logging(
    settings: AppSettings,
    sink: LogSink | None = None,
    *,
    development: bool | None = None,
) -> logging.Logger:
    """Configure the ``reqtrail`` logger from settings.

    Calling this again replaces the handlers installed by the previous call.

    Args:
        settings: Application settings
        sink: Log sink receiving service records (None to log to console only)
        development: Override for the runtime mode's development flag

    Returns:
        The configured ``reqtrail`` logger
    """
    if development is None:
        development = settings.is_development()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(settings.logging.log_level)
    reset_logging()

    correlation_filter = CorrelationIdFilter()

    console_handler = logging.StreamHandler(sys.stderr)
    if settings.logging.json_logging:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    console_handler.addFilter(correlation_filter)
    console_handler._reqtrail_managed = True  # type: ignore[attr-defined]
    logger.addHandler(console_handler)

    if sink is not None:
        sink_handler = SinkHandler(
            sink,
            include_debug=development,
            offset_hours=settings.logging.timezone_offset_hours,
        )
        sink_handler.addFilter(correlation_filter)
        sink_handler._reqtrail_managed = True  # type: ignore[attr-defined]
        logger.addHandler(sink_handler)

    return logger

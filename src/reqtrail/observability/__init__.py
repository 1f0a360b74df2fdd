"""Observability module for reqtrail.

Provides:
- Correlation ids bound to the request context
- Category-partitioned log files with rotation and retention
- Request/response access logging
- Service logging setup (JSON console logs, sink routing)
- Prometheus metrics
"""

from .correlation import (
    REQUEST_ID_HEADER,
    CorrelationIdFilter,
    get_current_request_id,
    new_correlation_id,
    request_id_context,
    resolve_correlation_id,
)
from .log_sink import DailyRotatingFileHandler, LogCategory, LogSink
from .logger import (
    ErrorRecord,
    RequestContext,
    RequestLogger,
    RequestRecord,
    ResponseRecord,
    format_log_line,
)
from .logging_config import JSONFormatter, SinkHandler, configure_logging, reset_logging
from .metrics import ObservabilityMetrics

__all__ = [
    "REQUEST_ID_HEADER",
    "CorrelationIdFilter",
    "DailyRotatingFileHandler",
    "ErrorRecord",
    "JSONFormatter",
    "LogCategory",
    "LogSink",
    "ObservabilityMetrics",
    "RequestContext",
    "RequestLogger",
    "RequestRecord",
    "ResponseRecord",
    "SinkHandler",
    "configure_logging",
    "format_log_line",
    "get_current_request_id",
    "new_correlation_id",
    "request_id_context",
    "reset_logging",
    "resolve_correlation_id",
]

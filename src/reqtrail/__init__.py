"""
reqtrail: request correlation, access logging and response envelopes.

Public API:
-----------
- create_app: FastAPI application factory with the request pipeline installed
- LogSink: Category-partitioned log files with rotation and retention
- RequestLogger: Request/response/error access log lines
- PayloadRedactor, redact: Sensitive field masking and size bounding
- format_timestamp: Canonical log timestamp rendering

Quick Start:
-----------
>>> from reqtrail import create_app
>>> app = create_app()
"""

from __future__ import annotations

__version__ = "0.1.0"

from .api.app import create_app
from .observability.log_sink import LogCategory, LogSink
from .observability.logger import RequestLogger, format_log_line
from .security.payload_scrubber import PayloadRedactor, mask_sensitive, redact
from .utils.time_provider import format_timestamp

__all__ = [
    "LogCategory",
    "LogSink",
    "PayloadRedactor",
    "RequestLogger",
    "__version__",
    "create_app",
    "format_log_line",
    "format_timestamp",
    "mask_sensitive",
    "redact",
]

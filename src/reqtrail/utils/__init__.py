"""
reqtrail utility modules.

Provides:
- Structured error codes and the API error hierarchy
- Environment variable parsing
- Time provider abstraction and timestamp formatting
"""

from .errors import (
    ApiError,
    ConfigError,
    ErrorCode,
    NotFoundError,
    ReqtrailError,
    ValidationError,
)
from .time_provider import (
    DefaultTimeProvider,
    FakeTimeProvider,
    TimeProvider,
    format_date,
    format_timestamp,
    utc_isoformat,
)

__all__ = [
    "ApiError",
    "ConfigError",
    "DefaultTimeProvider",
    "ErrorCode",
    "FakeTimeProvider",
    "NotFoundError",
    "ReqtrailError",
    "TimeProvider",
    "ValidationError",
    "format_date",
    "format_timestamp",
    "utc_isoformat",
]

"""
Time provider abstraction and canonical timestamp rendering.

This module provides a TimeProvider protocol that allows for dependency injection
of time-related functions, enabling deterministic testing by replacing real time
with controllable fake time. It also owns the display format used in every
log line, so that lines can be matched by exact string in tests.

Usage:
    # Production code - use default
    provider = DefaultTimeProvider()
    current = provider.now()

    # Test code - use fake time
    fake = FakeTimeProvider(start_time=1000.0)
    fake.advance(10.0)  # Advance by 10 seconds
    assert fake.now() == 1010.0

    format_timestamp(0, offset_hours=8)  # '1970-01-01T08:00:00'
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Protocol, Union, runtime_checkable

TimestampLike = Union[datetime, float, int, str]

DISPLAY_FORMAT = "%Y-%m-%dT%H:%M:%S"


@runtime_checkable
class TimeProvider(Protocol):
    """Protocol for time providers.

    Implementations must provide:
    - now(): Returns current time in seconds since epoch (like time.time())
    - monotonic(): Returns monotonic clock time (like time.monotonic())
    """

    def now(self) -> float:
        """Return current time in seconds since epoch."""
        ...

    def monotonic(self) -> float:
        """Return monotonic clock time in seconds."""
        ...


class DefaultTimeProvider:
    """Default time provider using the system clock."""

    def now(self) -> float:
        """Return current time in seconds since epoch."""
        return time.time()

    def monotonic(self) -> float:
        """Return monotonic clock time in seconds."""
        return time.monotonic()


class FakeTimeProvider:
    """Fake time provider for deterministic testing.

    Usage:
        fake = FakeTimeProvider(start_time=1000.0)
        assert fake.now() == 1000.0

        fake.advance(5.0)
        assert fake.now() == 1005.0
    """

    def __init__(self, start_time: float = 0.0) -> None:
        """Initialize fake time provider.

        Args:
            start_time: Initial time value (default: 0.0)
        """
        self._current_time = start_time
        self._monotonic_start = start_time

    def now(self) -> float:
        """Return current fake time."""
        return self._current_time

    def monotonic(self) -> float:
        """Return time elapsed since initialization (0-based relative time)."""
        return self._current_time - self._monotonic_start

    def advance(self, seconds: float) -> None:
        """Advance time by the specified number of seconds.

        Raises:
            ValueError: If seconds is negative
        """
        if seconds < 0:
            raise ValueError("Cannot advance time by negative amount")
        self._current_time += seconds

    def set_time(self, time_value: float) -> None:
        """Set wall-clock time to a specific value (monotonic time is unaffected)."""
        self._monotonic_start += time_value - self._current_time
        self._current_time = time_value


def _to_datetime(timestamp: TimestampLike) -> datetime:
    if isinstance(timestamp, datetime):
        return timestamp
    if isinstance(timestamp, bool):
        raise TypeError("timestamp must be a datetime, epoch seconds or ISO-8601 string")
    if isinstance(timestamp, (int, float)):
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    if isinstance(timestamp, str):
        text = timestamp.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    raise TypeError(f"Unsupported timestamp type: {type(timestamp).__name__}")


def format_timestamp(timestamp: TimestampLike, offset_hours: int | None = None) -> str:
    """Render a timestamp as ``YYYY-MM-DDTHH:mm:ss``.

    Args:
        timestamp: datetime, epoch seconds or ISO-8601 string. Naive datetimes
            are interpreted as local time.
        offset_hours: Whole hours east of UTC to render in. ``None`` renders
            in the local time zone of the process.

    Returns:
        Second-precision wall-clock string without a zone suffix.

    Raises:
        ValueError: If offset_hours is not a whole number of hours.
    """
    moment = _to_datetime(timestamp)
    if offset_hours is None:
        if moment.tzinfo is not None:
            moment = moment.astimezone()
        return moment.strftime(DISPLAY_FORMAT)

    if isinstance(offset_hours, bool) or int(offset_hours) != offset_hours:
        raise ValueError(f"offset_hours must be a whole number of hours, got {offset_hours!r}")

    shifted = moment.astimezone(timezone.utc) + timedelta(hours=int(offset_hours))
    return shifted.strftime(DISPLAY_FORMAT)


def format_date(timestamp: TimestampLike, offset_hours: int | None = None) -> str:
    """Render only the calendar date (``YYYY-MM-DD``) of a timestamp."""
    return format_timestamp(timestamp, offset_hours)[:10]


def utc_isoformat(timestamp: TimestampLike) -> str:
    """Render a timestamp as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    moment = _to_datetime(timestamp).astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

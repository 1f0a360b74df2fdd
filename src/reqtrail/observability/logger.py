"""Request/response access logging.

Every request produces one request line in the ``application`` log followed by
either a response line (``application``) or an error line (``error`` and
``application``). Lines are comma-separated::

    timestamp,correlationId,method,url,code,delayMs[,payload:..][,response:..][,error:..]

Missing fields render as ``-`` (``unknown`` for the correlation id), delays as
``<n>ms``. Payload and response sections pass through the redactor, so secrets
never reach the files.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from reqtrail.observability.correlation import UNKNOWN_REQUEST_ID
from reqtrail.observability.log_sink import LogCategory, LogSink
from reqtrail.security.payload_scrubber import PayloadRedactor
from reqtrail.utils.time_provider import DefaultTimeProvider, TimeProvider, format_timestamp

if TYPE_CHECKING:
    from reqtrail.observability.metrics import ObservabilityMetrics

CONSOLE_LOGGER_NAME = "reqtrail.console"
PLACEHOLDER = "-"


def get_console_logger() -> logging.Logger:
    """Return the non-propagating console channel used to mirror log lines."""
    console = logging.getLogger(CONSOLE_LOGGER_NAME)
    if not console.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(message)s"))
        console.addHandler(handler)
        console.setLevel(logging.INFO)
        console.propagate = False
    return console


@dataclass(frozen=True)
class RequestRecord:
    timestamp: str
    correlation_id: str | None
    method: str | None
    url: str | None
    client: str | None = None
    user_agent: str | None = None
    payload: Any = None


@dataclass(frozen=True)
class ResponseRecord:
    timestamp: str
    correlation_id: str | None
    method: str | None
    url: str | None
    status_code: int | None
    delay_ms: int | None
    response: Any = None


@dataclass(frozen=True)
class ErrorRecord:
    timestamp: str
    correlation_id: str | None
    method: str | None
    url: str | None
    status_code: int | None
    delay_ms: int | None
    payload: Any = None
    error: str | None = None


LogRecord = Union[RequestRecord, ResponseRecord, ErrorRecord]


def format_log_line(record: LogRecord, redactor: PayloadRedactor | None = None) -> str:
    """Render a record as a single comma-separated log line."""
    redactor = redactor or PayloadRedactor()
    status_code = getattr(record, "status_code", None)
    delay_ms = getattr(record, "delay_ms", None)

    parts = [
        record.timestamp,
        record.correlation_id or UNKNOWN_REQUEST_ID,
        record.method or PLACEHOLDER,
        record.url or PLACEHOLDER,
        str(status_code) if status_code is not None else PLACEHOLDER,
        f"{delay_ms}ms" if delay_ms is not None else PLACEHOLDER,
    ]

    payload = getattr(record, "payload", None)
    if payload is not None:
        parts.append(f"payload:{redactor.redact(payload)}")

    response = getattr(record, "response", None)
    if response is not None:
        parts.append(f"response:{redactor.redact(response)}")

    error = getattr(record, "error", None)
    if error:
        parts.append(f"error:{error}")

    return ",".join(parts)


@dataclass
class RequestContext:
    """Per-request state shared by the pipeline stages.

    ``started_monotonic`` is read from the time provider's monotonic clock at
    request arrival and is the reference point for ``delay_ms``.
    """

    correlation_id: str | None = None
    method: str | None = None
    url: str | None = None
    client: str | None = None
    user_agent: str | None = None
    payload: Any = None
    started_at: float = 0.0
    started_monotonic: float = 0.0
    extra: dict[str, Any] = field(default_factory=dict)


class RequestLogger:
    """Builds access log records for a request and hands them to the sink.

    Example:
        >>> sink = LogSink("logs")
        >>> access = RequestLogger(sink)
        >>> ctx = access.start("abc", "GET", "/posts")
        >>> access.log_request(ctx)
        >>> access.log_response(ctx, 200, {"success": True})
    """

    def __init__(
        self,
        sink: LogSink,
        redactor: PayloadRedactor | None = None,
        time_provider: TimeProvider | None = None,
        offset_hours: int | None = None,
        console_mirror: bool = False,
        console: logging.Logger | None = None,
        metrics: ObservabilityMetrics | None = None,
    ) -> None:
        self.sink = sink
        self.redactor = redactor or PayloadRedactor()
        self.time_provider = time_provider or DefaultTimeProvider()
        self.offset_hours = offset_hours
        self.console_mirror = console_mirror
        self._console = console
        self._metrics = metrics

    @property
    def console(self) -> logging.Logger:
        if self._console is None:
            self._console = get_console_logger()
        return self._console

    def start(
        self,
        correlation_id: str | None,
        method: str | None,
        url: str | None,
        *,
        client: str | None = None,
        user_agent: str | None = None,
        payload: Any = None,
    ) -> RequestContext:
        """Create a request context stamped with the arrival time."""
        return RequestContext(
            correlation_id=correlation_id,
            method=method,
            url=url,
            client=client,
            user_agent=user_agent,
            payload=payload,
            started_at=self.time_provider.now(),
            started_monotonic=self.time_provider.monotonic(),
        )

    def _timestamp(self) -> str:
        return format_timestamp(self.time_provider.now(), self.offset_hours)

    def _delay_ms(self, ctx: RequestContext) -> int:
        elapsed = self.time_provider.monotonic() - ctx.started_monotonic
        return max(0, int(round(elapsed * 1000)))

    def _emit(self, categories: tuple[LogCategory, ...], line: str, level: int) -> None:
        for category in categories:
            self.sink.write(category, line)
        if self.console_mirror:
            self.console.log(level, line)

    def log_request(self, ctx: RequestContext) -> RequestRecord:
        record = RequestRecord(
            timestamp=self._timestamp(),
            correlation_id=ctx.correlation_id,
            method=ctx.method,
            url=ctx.url,
            client=ctx.client,
            user_agent=ctx.user_agent,
            payload=ctx.payload,
        )
        self._emit((LogCategory.APPLICATION,), format_log_line(record, self.redactor), logging.INFO)
        return record

    def log_response(self, ctx: RequestContext, status_code: int, body: Any = None) -> ResponseRecord:
        """Write the response line for ``ctx``.

        Args:
            ctx: Context returned by :meth:`start`
            status_code: Final HTTP status
            body: Response body as sent to the client (typically the envelope)
        """
        record = ResponseRecord(
            timestamp=self._timestamp(),
            correlation_id=ctx.correlation_id,
            method=ctx.method,
            url=ctx.url,
            status_code=status_code,
            delay_ms=self._delay_ms(ctx),
            response=body,
        )
        self._emit((LogCategory.APPLICATION,), format_log_line(record, self.redactor), logging.INFO)
        if self._metrics is not None:
            self._metrics.record_request(True, status_code, record.delay_ms or 0)
        return record

    def log_error(
        self,
        ctx: RequestContext,
        status_code: int,
        envelope: Any = None,
        *,
        error: str | None = None,
    ) -> ErrorRecord:
        """Write the error line for ``ctx`` to both the error and application logs.

        The error text defaults to the envelope ``message`` and the payload to
        the envelope ``data``.
        """
        data = None
        if isinstance(envelope, dict):
            data = envelope.get("data")
            if error is None:
                error = envelope.get("message")
        elif envelope is not None:
            data = envelope

        record = ErrorRecord(
            timestamp=self._timestamp(),
            correlation_id=ctx.correlation_id,
            method=ctx.method,
            url=ctx.url,
            status_code=status_code,
            delay_ms=self._delay_ms(ctx),
            payload=data,
            error=error,
        )
        self._emit(
            (LogCategory.ERROR, LogCategory.APPLICATION),
            format_log_line(record, self.redactor),
            logging.ERROR,
        )
        if self._metrics is not None:
            self._metrics.record_request(False, status_code, record.delay_ms or 0)
        return record

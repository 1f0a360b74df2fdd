"""Request correlation identifiers.

A correlation id is assigned once per inbound request: reused verbatim from
the ``X-Request-ID`` header when the caller supplies a non-empty value,
otherwise freshly generated. The id is exposed to the rest of the request
through a context variable, so log records emitted anywhere during the
request can carry it.
"""

from __future__ import annotations

import contextvars
import logging
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager

REQUEST_ID_HEADER = "X-Request-ID"
UNKNOWN_REQUEST_ID = "unknown"

_current_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "reqtrail_request_id", default=None
)


def new_correlation_id() -> str:
    """Generate a random (UUID4) correlation id."""
    return str(uuid.uuid4())


def resolve_correlation_id(headers: Mapping[str, str]) -> str:
    """Return the inbound correlation id, or a new one if absent or blank.

    Header lookup is case-insensitive. Starlette's ``Headers`` already is; plain
    dicts are searched by lowercased key.
    """
    value = headers.get(REQUEST_ID_HEADER)
    if value is None:
        wanted = REQUEST_ID_HEADER.lower()
        for key, candidate in headers.items():
            if key.lower() == wanted:
                value = candidate
                break
    if value is not None and value.strip():
        return value
    return new_correlation_id()


def get_current_request_id() -> str | None:
    """Return the correlation id bound to the current context, if any."""
    return _current_request_id.get()


def bind_request_id(request_id: str) -> contextvars.Token[str | None]:
    """Bind ``request_id`` to the current context and return the reset token."""
    return _current_request_id.set(request_id)


def reset_request_id(token: contextvars.Token[str | None]) -> None:
    _current_request_id.reset(token)


@contextmanager
def request_id_context(request_id: str) -> Iterator[str]:
    """Bind ``request_id`` for the duration of the ``with`` block."""
    token = bind_request_id(request_id)
    try:
        yield request_id
    finally:
        reset_request_id(token)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that injects the current correlation id into log records.

    Example:
        >>> logger = logging.getLogger("reqtrail")
        >>> logger.addFilter(CorrelationIdFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = get_current_request_id() or UNKNOWN_REQUEST_ID
        return True

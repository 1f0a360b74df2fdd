"""Uniform response envelopes.

Every JSON response leaving the service has the shape::

    {"success": bool, "message": str, "code": int, "timestamp": str,
     "correlationId": str, "data": ...}

Successful results are wrapped by :func:`wrap`; exceptions are converted
exactly once by :func:`wrap_error`, either from the exception handlers
installed by :func:`register_exception_handlers` or by the pipeline
middleware for exceptions escaping the application.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from reqtrail.observability.correlation import (
    REQUEST_ID_HEADER,
    UNKNOWN_REQUEST_ID,
    get_current_request_id,
)
from reqtrail.security.payload_scrubber import PayloadRedactor, mask_sensitive
from reqtrail.utils.errors import ERROR_MESSAGES, ApiError, ErrorCode, ValidationError
from reqtrail.utils.time_provider import DefaultTimeProvider, TimeProvider, utc_isoformat

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUCCESS_MESSAGE = "success"
DEFAULT_ERROR_MESSAGE = ERROR_MESSAGES[ErrorCode.E700_INTERNAL_ERROR]
VALIDATION_MESSAGE = ERROR_MESSAGES[ErrorCode.E100_VALIDATION_ERROR]

_ENVELOPE_KEYS = frozenset({"success", "message", "code", "timestamp", "correlationId"})
_LOCATION_PREFIXES = frozenset({"body", "query", "path", "header", "cookie"})


class ResponseEnvelope(BaseModel, Generic[T]):
    """Normalized response body."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    code: int
    timestamp: str
    correlation_id: str = Field(alias="correlationId")
    data: T | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize with wire names; ``data`` is omitted when absent."""
        body = self.model_dump(by_alias=True)
        if body.get("data") is None:
            body.pop("data", None)
        return jsonable_encoder(body)


def is_envelope(body: Any) -> bool:
    """Return True if ``body`` already has the envelope shape."""
    return (
        isinstance(body, Mapping)
        and _ENVELOPE_KEYS.issubset(body.keys())
        and isinstance(body.get("success"), bool)
    )


def _now(time_provider: TimeProvider | None) -> str:
    return utc_isoformat((time_provider or DefaultTimeProvider()).now())


def wrap(
    result: Any,
    correlation_id: str | None,
    status_code: int = 200,
    *,
    time_provider: TimeProvider | None = None,
) -> ResponseEnvelope[Any]:
    """Wrap a successful result.

    Example:
        >>> wrap({"id": 1}, "abc").to_dict()["data"]
        {'id': 1}
    """
    return ResponseEnvelope[Any](
        success=True,
        message=SUCCESS_MESSAGE,
        code=status_code,
        timestamp=_now(time_provider),
        correlation_id=correlation_id or UNKNOWN_REQUEST_ID,
        data=result,
    )


def group_field_errors(errors: list[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Group pydantic/FastAPI error entries as ``[{"field", "errors": [...]}]``.

    Location prefixes such as ``body`` or ``query`` are dropped from field
    names; fields keep the order of their first error.
    """
    grouped: dict[str, list[str]] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if len(loc) > 1 and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        name = ".".join(loc) or "request"
        grouped.setdefault(name, []).append(str(err.get("msg", "Invalid value")))
    return [{"field": name, "errors": messages} for name, messages in grouped.items()]


def _describe(exc: BaseException) -> tuple[int, Any, list[dict[str, Any]] | None]:
    """Return (status, payload, field errors) for an exception."""
    if isinstance(exc, RequestValidationError):
        return 400, {"message": VALIDATION_MESSAGE}, group_field_errors(list(exc.errors()))
    if isinstance(exc, ValidationError):
        return exc.status_code, exc.payload, exc.field_errors or None
    if isinstance(exc, ApiError):
        return exc.status_code, exc.payload, None
    if isinstance(exc, StarletteHTTPException):
        return exc.status_code, exc.detail, None
    return 500, None, None


def _message_from(payload: Any) -> str:
    if isinstance(payload, Mapping):
        for key in ("message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, list) and value:
                return "; ".join(str(item) for item in value)
    elif isinstance(payload, str) and payload:
        return payload
    return DEFAULT_ERROR_MESSAGE


def _data_from(payload: Any, field_errors: list[dict[str, Any]] | None, message: str) -> Any:
    if field_errors:
        return field_errors
    if isinstance(payload, Mapping):
        for key in ("details", "errors"):
            if payload.get(key) is not None:
                return payload[key]
    elif isinstance(payload, str) and payload:
        return payload
    return message


def wrap_error(
    exc: BaseException,
    correlation_id: str | None,
    *,
    time_provider: TimeProvider | None = None,
    redactor: PayloadRedactor | None = None,
) -> tuple[int, ResponseEnvelope[Any]]:
    """Convert an exception into ``(status_code, failure envelope)``.

    Unexpected exceptions map to 500 with a generic message; their text
    never reaches the caller.
    """
    status_code, payload, field_errors = _describe(exc)
    message = _message_from(payload)
    data = _data_from(payload, field_errors, message)
    masked = redactor.mask_sensitive(data) if redactor is not None else mask_sensitive(data)
    envelope = ResponseEnvelope[Any](
        success=False,
        message=message,
        code=status_code,
        timestamp=_now(time_provider),
        correlation_id=correlation_id or UNKNOWN_REQUEST_ID,
        data=masked,
    )
    return status_code, envelope


def request_correlation_id(request: Request) -> str:
    """Correlation id assigned to ``request``, falling back to the context."""
    return (
        getattr(request.state, "request_id", None)
        or get_current_request_id()
        or UNKNOWN_REQUEST_ID
    )


def error_response(request: Request, exc: BaseException) -> JSONResponse:
    """Build the failure envelope response for ``exc`` raised while serving ``request``."""
    correlation_id = request_correlation_id(request)
    status_code, envelope = wrap_error(
        exc,
        correlation_id,
        time_provider=getattr(request.app.state, "time_provider", None),
        redactor=getattr(request.app.state, "redactor", None),
    )
    response = JSONResponse(status_code=status_code, content=envelope.to_dict())
    response.headers[REQUEST_ID_HEADER] = correlation_id
    return response


async def _handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(request, exc)


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = error_response(request, exc)
    if exc.headers:
        for key, value in exc.headers.items():
            response.headers.setdefault(key, value)
    return response


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(request, exc)


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"path": request.url.path, "method": request.method},
    )
    return error_response(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers converting exceptions into failure envelopes."""
    app.add_exception_handler(ApiError, _handle_api_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _handle_unexpected)

"""Structured error codes and error handling for reqtrail.

This module provides a standardized error code system for consistent error
reporting across the request pipeline. Exceptions raised by business code are
converted into response envelopes exactly once, at the HTTP boundary.

Error codes follow the pattern: E{category}{number}
- E1xx: Input validation errors
- E2xx: Authentication/Authorization errors
- E4xx: Resource errors
- E7xx: System/Infrastructure errors
- E8xx: Configuration errors

Example:
    >>> from reqtrail.utils.errors import NotFoundError
    >>> raise NotFoundError("Post with ID 5 not found")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ErrorCode(Enum):
    """Standardized error codes.

    Each code has a unique identifier, a default message and an HTTP status.
    """

    # E1xx: Input validation errors
    E100_VALIDATION_ERROR = "E100"
    E101_BAD_REQUEST = "E101"

    # E2xx: Authentication/Authorization errors
    E200_UNAUTHORIZED = "E200"
    E201_FORBIDDEN = "E201"

    # E4xx: Resource errors
    E400_NOT_FOUND = "E400"
    E401_CONFLICT = "E401"

    # E7xx: System/Infrastructure errors
    E700_INTERNAL_ERROR = "E700"

    # E8xx: Configuration errors
    E800_CONFIG_ERROR = "E800"
    E801_INVALID_CONFIG_FILE = "E801"
    E802_CONFIG_VALIDATION_FAILED = "E802"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.E100_VALIDATION_ERROR: "Validation failed",
    ErrorCode.E101_BAD_REQUEST: "Bad request",
    ErrorCode.E200_UNAUTHORIZED: "Unauthorized",
    ErrorCode.E201_FORBIDDEN: "Forbidden",
    ErrorCode.E400_NOT_FOUND: "Resource not found",
    ErrorCode.E401_CONFLICT: "Resource conflict",
    ErrorCode.E700_INTERNAL_ERROR: "Internal server error",
    ErrorCode.E800_CONFIG_ERROR: "Configuration error",
    ErrorCode.E801_INVALID_CONFIG_FILE: "Invalid configuration file format",
    ErrorCode.E802_CONFIG_VALIDATION_FAILED: "Configuration validation failed",
}

HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.E100_VALIDATION_ERROR: 400,
    ErrorCode.E101_BAD_REQUEST: 400,
    ErrorCode.E200_UNAUTHORIZED: 401,
    ErrorCode.E201_FORBIDDEN: 403,
    ErrorCode.E400_NOT_FOUND: 404,
    ErrorCode.E401_CONFLICT: 409,
    ErrorCode.E700_INTERNAL_ERROR: 500,
}


@dataclass
class ErrorDetails:
    """Structured error details for logging.

    Attributes:
        code: Error code enum value
        message: Human-readable error message
        status_code: HTTP status the error maps to
        details: Additional error details (field errors, identifiers, ...)
    """

    code: ErrorCode
    message: str
    status_code: int = 500
    details: Any = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error_code": self.code.value,
            "message": self.message,
            "status_code": self.status_code,
        }
        if self.details is not None:
            result["details"] = self.details
        if self.context:
            result["context"] = self.context
        return result

    def to_log_dict(self) -> dict[str, Any]:
        """Convert to a flat dictionary suitable for ``extra=`` in logging calls."""
        log_dict: dict[str, Any] = {
            "error_code": self.code.value,
            "error_message": self.message,
            "status_code": self.status_code,
        }
        for key, value in self.context.items():
            log_dict[f"ctx_{key}"] = value
        return log_dict


class ReqtrailError(Exception):
    """Base exception class with a structured error code."""

    def __init__(
        self,
        code: ErrorCode,
        message: str | None = None,
        details: Any = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, "Unknown error")
        self.error_details = ErrorDetails(
            code=code,
            message=self.message,
            status_code=HTTP_STATUS.get(code, 500),
            details=details,
            context=context or {},
        )
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def log(self, level: int = logging.ERROR) -> None:
        """Log the error with structured details."""
        logger.log(level, str(self), extra=self.error_details.to_log_dict())


class ApiError(ReqtrailError):
    """An error that is surfaced to HTTP callers as a failure envelope.

    ``payload`` mirrors the structured body a web framework would attach to an
    HTTP exception: always a ``message``, plus ``details`` when provided.
    """

    default_code = ErrorCode.E700_INTERNAL_ERROR
    expose_details = True

    def __init__(
        self,
        message: str | None = None,
        details: Any = None,
        *,
        code: ErrorCode | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(code or self.default_code, message, details, context)
        if status_code is not None:
            self.error_details.status_code = status_code

    @property
    def status_code(self) -> int:
        return self.error_details.status_code

    @property
    def payload(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.expose_details and self.error_details.details is not None:
            body["details"] = self.error_details.details
        return body


class BadRequestError(ApiError):
    default_code = ErrorCode.E101_BAD_REQUEST


class ValidationError(ApiError):
    """Input validation error carrying field-level errors.

    ``field_errors`` is a list of ``{"field": str, "errors": [str, ...]}``.
    """

    default_code = ErrorCode.E100_VALIDATION_ERROR

    def __init__(
        self,
        field_errors: list[dict[str, Any]] | None = None,
        message: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.field_errors = list(field_errors or [])

    @property
    def payload(self) -> dict[str, Any]:
        return {"message": self.message, "errors": self.field_errors}


class UnauthorizedError(ApiError):
    default_code = ErrorCode.E200_UNAUTHORIZED
    expose_details = False


class ForbiddenError(ApiError):
    default_code = ErrorCode.E201_FORBIDDEN
    expose_details = False


class NotFoundError(ApiError):
    default_code = ErrorCode.E400_NOT_FOUND


class ConflictError(ApiError):
    default_code = ErrorCode.E401_CONFLICT


class InternalServerError(ApiError):
    default_code = ErrorCode.E700_INTERNAL_ERROR


class ConfigError(ReqtrailError):
    """Configuration loading or validation error."""

    def __init__(
        self,
        message: str | None = None,
        code: ErrorCode = ErrorCode.E800_CONFIG_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(code, message, **kwargs)

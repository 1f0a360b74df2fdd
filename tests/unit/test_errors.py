"""Tests for the structured error codes and API error hierarchy."""

import logging

import pytest

from reqtrail.utils.errors import (
    ERROR_MESSAGES,
    ApiError,
    BadRequestError,
    ConfigError,
    ConflictError,
    ErrorCode,
    ErrorDetails,
    ForbiddenError,
    InternalServerError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)


class TestErrorCode:
    def test_every_code_has_a_message(self) -> None:
        for code in ErrorCode:
            assert code in ERROR_MESSAGES

    def test_codes_follow_pattern(self) -> None:
        for code in ErrorCode:
            assert code.value.startswith("E")
            assert code.value[1:].isdigit()


class TestErrorDetails:
    def test_to_dict_omits_empty_fields(self) -> None:
        details = ErrorDetails(code=ErrorCode.E400_NOT_FOUND, message="gone", status_code=404)
        assert details.to_dict() == {"error_code": "E400", "message": "gone", "status_code": 404}

    def test_to_log_dict_prefixes_context(self) -> None:
        details = ErrorDetails(
            code=ErrorCode.E700_INTERNAL_ERROR,
            message="boom",
            context={"path": "/posts"},
        )
        log_dict = details.to_log_dict()
        assert log_dict["error_code"] == "E700"
        assert log_dict["ctx_path"] == "/posts"


class TestApiErrors:
    @pytest.mark.parametrize(
        ("error_cls", "status_code"),
        [
            (BadRequestError, 400),
            (ValidationError, 400),
            (UnauthorizedError, 401),
            (ForbiddenError, 403),
            (NotFoundError, 404),
            (ConflictError, 409),
            (InternalServerError, 500),
        ],
    )
    def test_status_codes(self, error_cls: type[ApiError], status_code: int) -> None:
        assert error_cls().status_code == status_code

    def test_default_message_from_code(self) -> None:
        assert NotFoundError().message == "Resource not found"

    def test_not_found_payload(self) -> None:
        exc = NotFoundError("Post with ID 5 not found")
        assert exc.payload == {"message": "Post with ID 5 not found"}
        assert str(exc) == "[E400] Post with ID 5 not found"

    def test_details_exposed(self) -> None:
        exc = ConflictError("Duplicate", details={"email": "a@b.c"})
        assert exc.payload == {"message": "Duplicate", "details": {"email": "a@b.c"}}

    def test_auth_errors_hide_details(self) -> None:
        assert UnauthorizedError(details={"reason": "expired"}).payload == {"message": "Unauthorized"}
        assert ForbiddenError(details={"role": "user"}).payload == {"message": "Forbidden"}

    def test_status_override(self) -> None:
        exc = ApiError("Teapot", status_code=418)
        assert exc.status_code == 418

    def test_validation_error_payload(self) -> None:
        field_errors = [{"field": "email", "errors": ["invalid"]}]
        exc = ValidationError(field_errors)
        assert exc.payload == {"message": "Validation failed", "errors": field_errors}

    def test_log_uses_structured_extra(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.ERROR, logger="reqtrail.utils.errors"):
            NotFoundError("missing", context={"post_id": 5}).log()

        record = caplog.records[-1]
        assert record.getMessage() == "[E400] missing"
        assert record.error_code == "E400"  # type: ignore[attr-defined]
        assert record.ctx_post_id == 5  # type: ignore[attr-defined]


class TestConfigError:
    def test_default_code(self) -> None:
        exc = ConfigError()
        assert exc.code is ErrorCode.E800_CONFIG_ERROR
        assert exc.message == "Configuration error"

    def test_custom_code(self) -> None:
        exc = ConfigError("bad file", code=ErrorCode.E801_INVALID_CONFIG_FILE)
        assert str(exc) == "[E801] bad file"

"""
Security tests for payload redaction.

Secrets in request payloads, responses and error data must never reach the
log files verbatim, and redaction must never break logging.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from reqtrail.security.payload_scrubber import (
    DEFAULT_SENSITIVE_KEYS,
    PayloadRedactor,
    mask_sensitive,
    redact,
)


@dataclass
class LoginAttempt:
    username: str
    password: str


class TokenGrant(BaseModel):
    access_token: str
    expires_in: int


class TestMasking:
    def test_password_masked(self) -> None:
        assert redact({"password": "secret123", "name": "a"}) == '{"password":"***","name":"a"}'

    @pytest.mark.parametrize("key", sorted(DEFAULT_SENSITIVE_KEYS))
    def test_default_keys(self, key: str) -> None:
        assert json.loads(redact({key: "value"})) == {key: "***"}

    @pytest.mark.parametrize("key", ["Password", "AUTHORIZATION", "Access_Token"])
    def test_case_insensitive(self, key: str) -> None:
        assert json.loads(redact({key: "value"})) == {key: "***"}

    def test_nested_one_level(self) -> None:
        payload = {"user": {"name": "a", "token": "t-1"}}
        assert json.loads(redact(payload)) == {"user": {"name": "a", "token": "***"}}

    def test_list_of_records(self) -> None:
        payload = [{"password": "a"}, {"password": "b"}]
        assert json.loads(redact(payload)) == [{"password": "***"}, {"password": "***"}]

    def test_deeper_levels_untouched_by_default(self) -> None:
        payload = {"outer": {"inner": {"password": "deep"}}}
        assert json.loads(redact(payload)) == payload

    def test_configurable_depth(self) -> None:
        payload = {"outer": {"inner": {"password": "deep"}}}
        redactor = PayloadRedactor(max_depth=2)
        assert json.loads(redactor.redact(payload)) == {"outer": {"inner": {"password": "***"}}}

    def test_top_level_only(self) -> None:
        payload = {"password": "a", "user": {"password": "b"}}
        redactor = PayloadRedactor(max_depth=0)
        assert json.loads(redactor.redact(payload)) == {"password": "***", "user": {"password": "b"}}

    def test_negative_depth_rejected(self) -> None:
        with pytest.raises(ValueError):
            PayloadRedactor(max_depth=-1)

    def test_dataclass_and_model(self) -> None:
        assert json.loads(redact(LoginAttempt("ada", "pw"))) == {"username": "ada", "password": "***"}
        assert json.loads(redact(TokenGrant(access_token="abc", expires_in=60))) == {
            "access_token": "***",
            "expires_in": 60,
        }

    def test_input_not_mutated(self) -> None:
        payload = {"password": "secret", "user": {"token": "t"}}
        masked = mask_sensitive(payload)
        assert payload == {"password": "secret", "user": {"token": "t"}}
        assert masked == {"password": "***", "user": {"token": "***"}}

    def test_scalars_unchanged(self) -> None:
        assert mask_sensitive("password") == "password"
        assert mask_sensitive(5) == 5


class TestBounds:
    def test_long_string_truncated(self) -> None:
        result = redact("x" * 600)
        assert len(result) == 503
        assert result.endswith("...")

    def test_string_at_limit_untouched(self) -> None:
        assert redact("y" * 500) == "y" * 500

    def test_large_structure_truncated(self) -> None:
        result = redact({"items": ["value"] * 400})
        assert len(result) == 1003
        assert result.endswith("...")

    def test_none_renders_null(self) -> None:
        assert redact(None) == "null"

    def test_booleans_render_as_json_literals(self) -> None:
        assert redact(True) == "true"
        assert redact(False) == "false"
        assert redact(0) == "0"

    def test_bytes_decoded(self) -> None:
        assert redact(b"raw body") == "raw body"


class TestNeverRaises:
    def test_cyclic_structure(self) -> None:
        payload: dict[str, object] = {"name": "loop"}
        payload["self"] = payload
        result = redact(payload)
        assert isinstance(result, str)
        assert len(result) <= 1003

    def test_unserializable_values(self) -> None:
        result = redact({"when": object(), "password": "x"})
        assert '"password":"***"' in result

    def test_broken_repr(self) -> None:
        class Hostile:
            def __str__(self) -> str:
                raise RuntimeError("no")

        assert redact(Hostile()) == "[unserializable Hostile]"

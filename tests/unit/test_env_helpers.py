"""Tests for environment variable parsing helpers."""

import logging

import pytest

from reqtrail.utils.env import get_env_bool, get_env_int, get_env_str


class TestGetEnvInt:
    def test_first_valid_key_wins(self) -> None:
        env = {"A": "", "B": "42", "C": "7"}
        assert get_env_int("A", "B", "C", environ=env) == 42

    def test_missing_returns_none(self) -> None:
        assert get_env_int("MISSING", environ={}) is None

    def test_invalid_value_ignored_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="reqtrail.utils.env"):
            assert get_env_int("A", environ={"A": "abc"}) is None
        assert "Invalid int" in caplog.text

    def test_negative_rejected_by_default(self) -> None:
        assert get_env_int("A", environ={"A": "-3"}) is None

    def test_negative_allowed(self) -> None:
        assert get_env_int("A", environ={"A": "-3"}, allow_negative=True) == -3


class TestGetEnvBool:
    @pytest.mark.parametrize("raw", ["1", "true", "YES", " on "])
    def test_truthy(self, raw: str) -> None:
        assert get_env_bool("A", environ={"A": raw}) is True

    @pytest.mark.parametrize("raw", ["0", "false", "No", "off"])
    def test_falsy(self, raw: str) -> None:
        assert get_env_bool("A", environ={"A": raw}) is False

    def test_invalid_ignored(self) -> None:
        assert get_env_bool("A", environ={"A": "maybe"}) is None


class TestGetEnvStr:
    def test_strips_and_skips_blank(self) -> None:
        assert get_env_str("A", "B", environ={"A": "   ", "B": " logs "}) == "logs"

    def test_missing(self) -> None:
        assert get_env_str("A", environ={}) is None

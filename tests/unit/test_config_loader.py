"""Tests for settings loading, validation and runtime mode detection."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from reqtrail.config.loader import CONFIG_PATH_ENV, load_settings
from reqtrail.config.runtime import RuntimeMode, get_runtime_mode, parse_runtime_mode
from reqtrail.config.schema import AppSettings, LoggingSettings
from reqtrail.utils.errors import ConfigError, ErrorCode

DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config" / "default_config.yaml"


def _write(tmp_path: Path, text: str, name: str = "config.yaml") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestRuntimeMode:
    @pytest.mark.parametrize(
        ("raw", "mode"),
        [
            ("development", RuntimeMode.DEVELOPMENT),
            ("DEV", RuntimeMode.DEVELOPMENT),
            ("prod", RuntimeMode.PRODUCTION),
            ("testing", RuntimeMode.TEST),
            (" production ", RuntimeMode.PRODUCTION),
        ],
    )
    def test_parse(self, raw: str, mode: RuntimeMode) -> None:
        assert parse_runtime_mode(raw) is mode

    def test_parse_rejects_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown runtime mode"):
            parse_runtime_mode("staging")

    def test_default_is_development(self) -> None:
        assert get_runtime_mode(environ={}) is RuntimeMode.DEVELOPMENT

    def test_unknown_env_falls_back(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="reqtrail.config.runtime"):
            assert get_runtime_mode(environ={"APP_ENV": "staging"}) is RuntimeMode.DEVELOPMENT
        assert "staging" in caplog.text

    def test_only_development_is_development(self) -> None:
        assert RuntimeMode.DEVELOPMENT.is_development
        assert not RuntimeMode.TEST.is_development
        assert not RuntimeMode.PRODUCTION.is_development


class TestLoggingSettings:
    def test_defaults(self) -> None:
        settings = LoggingSettings()
        assert settings.max_file_size_bytes == 20 * 1024 * 1024
        assert settings.retention_days == 30
        assert settings.timezone_offset_hours is None
        assert "password" in settings.sensitive_keys
        assert "/metrics" in settings.exclude_paths

    def test_log_level_normalized(self) -> None:
        assert LoggingSettings(log_level=" debug ").log_level == "DEBUG"

    def test_sensitive_keys_lowercased(self) -> None:
        assert LoggingSettings(sensitive_keys=["Password", " PIN "]).sensitive_keys == ["password", "pin"]

    def test_console_mirror_follows_mode(self) -> None:
        assert AppSettings(runtime_mode="development").console_mirror_enabled()
        assert not AppSettings(runtime_mode="production").console_mirror_enabled()
        explicit = AppSettings(runtime_mode="production", logging=LoggingSettings(console_mirror=True))
        assert explicit.console_mirror_enabled()


class TestLoadSettings:
    def test_defaults_without_file(self) -> None:
        settings = load_settings(environ={})
        assert settings.service_name == "reqtrail"
        assert settings.runtime_mode is RuntimeMode.DEVELOPMENT

    def test_bundled_default_config(self) -> None:
        settings = load_settings(DEFAULT_CONFIG, environ={})
        assert settings.logging.log_dir == "logs"
        assert settings.logging.max_file_size_bytes == 20971520
        assert settings.logging.timezone_offset_hours is None

    def test_yaml_values(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            "runtime_mode: production\nlogging:\n  log_dir: /var/log/app\n  retention_days: 7\n",
        )
        settings = load_settings(path, environ={})
        assert settings.runtime_mode is RuntimeMode.PRODUCTION
        assert settings.logging.log_dir == "/var/log/app"
        assert settings.logging.retention_days == 7

    def test_path_from_environment(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "service_name: billing\n")
        settings = load_settings(environ={CONFIG_PATH_ENV: str(path)})
        assert settings.service_name == "billing"

    def test_env_overrides_file(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "logging:\n  retention_days: 7\n  log_level: INFO\n")
        env = {
            "REQTRAIL_LOG_RETENTION_DAYS": "3",
            "REQTRAIL_LOG_TZ_OFFSET": "-5",
            "REQTRAIL_LOG_LEVEL": "debug",
            "REQTRAIL_JSON_LOGGING": "true",
            "APP_ENV": "test",
        }
        settings = load_settings(path, environ=env)
        assert settings.logging.retention_days == 3
        assert settings.logging.timezone_offset_hours == -5
        assert settings.logging.log_level == "DEBUG"
        assert settings.logging.json_logging is True
        assert settings.runtime_mode is RuntimeMode.TEST

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        settings = load_settings(_write(tmp_path, ""), environ={})
        assert settings.logging.retention_days == 30

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError) as exc_info:
            load_settings(tmp_path / "absent.yaml", environ={})
        assert exc_info.value.code is ErrorCode.E801_INVALID_CONFIG_FILE

    def test_wrong_suffix(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError) as exc_info:
            load_settings(_write(tmp_path, "{}", name="config.json"), environ={})
        assert exc_info.value.code is ErrorCode.E801_INVALID_CONFIG_FILE

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(_write(tmp_path, "logging: [unclosed\n"), environ={})

    def test_non_mapping_root(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="must be a mapping"):
            load_settings(_write(tmp_path, "- a\n- b\n"), environ={})

    def test_validation_errors_listed(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "logging:\n  retention_days: -1\n  unknown_key: 1\n")
        with pytest.raises(ConfigError) as exc_info:
            load_settings(path, environ={})

        error = exc_info.value
        assert error.code is ErrorCode.E802_CONFIG_VALIDATION_FAILED
        fields = {entry["field"] for entry in error.error_details.details}
        assert fields == {"logging.retention_days", "logging.unknown_key"}

    def test_unknown_app_env_rejected(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            load_settings(environ={"APP_ENV": "staging"})
        assert exc_info.value.code is ErrorCode.E802_CONFIG_VALIDATION_FAILED

    def test_logging_section_must_be_mapping(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "logging: nope\n")
        with pytest.raises(ConfigError):
            load_settings(path, environ={"REQTRAIL_LOG_DIR": "x"})

"""Configuration schema and validation.

Settings are pydantic models so that YAML files and environment overrides are
validated in one place before anything is constructed from them.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from reqtrail.config.runtime import RuntimeMode, parse_runtime_mode
from reqtrail.security.payload_scrubber import DEFAULT_SENSITIVE_KEYS

DEFAULT_EXCLUDE_PATHS = ("/metrics", "/docs", "/openapi.json", "/redoc")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class LoggingSettings(BaseModel):
    """Log sink, access log and console logging configuration."""

    model_config = ConfigDict(extra="forbid")

    log_dir: str = Field(default="logs", min_length=1, description="Directory holding the log files.")
    max_file_size_bytes: int = Field(
        default=20 * 1024 * 1024,
        ge=1,
        description="Size ceiling of a single log file; larger files are rotated.",
    )
    retention_days: int = Field(
        default=30,
        ge=0,
        description="Log files last modified longer ago than this are deleted.",
    )
    timezone_offset_hours: int | None = Field(
        default=None,
        ge=-12,
        le=14,
        description="Hours east of UTC used to render timestamps. None uses local time.",
    )
    log_level: str = Field(default="INFO", description="Level of the service logger.")
    json_logging: bool = Field(default=False, description="Emit console logs as JSON.")
    console_mirror: bool | None = Field(
        default=None,
        description="Mirror access log lines to the console. None follows the runtime mode.",
    )
    sensitive_keys: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_SENSITIVE_KEYS),
        description="Field names masked in logged payloads (case-insensitive).",
    )
    redact_depth: int = Field(
        default=1,
        ge=0,
        le=8,
        description="Nesting levels below the top level that are scrubbed.",
    )
    exclude_paths: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATHS),
        description="Paths skipped by access logging and envelope wrapping.",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {v!r}")
        return level

    @field_validator("sensitive_keys")
    @classmethod
    def validate_sensitive_keys(cls, v: list[str]) -> list[str]:
        keys = [key.strip().lower() for key in v if key.strip()]
        if not keys:
            raise ValueError("sensitive_keys must not be empty")
        return keys


class AppSettings(BaseModel):
    """Top-level application settings."""

    model_config = ConfigDict(extra="forbid")

    service_name: str = Field(default="reqtrail", min_length=1)
    runtime_mode: RuntimeMode = RuntimeMode.DEVELOPMENT
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("runtime_mode", mode="before")
    @classmethod
    def validate_runtime_mode(cls, v: object) -> object:
        if isinstance(v, str):
            return parse_runtime_mode(v)
        return v

    def is_development(self) -> bool:
        return self.runtime_mode.is_development

    def console_mirror_enabled(self) -> bool:
        if self.logging.console_mirror is not None:
            return self.logging.console_mirror
        return self.is_development()

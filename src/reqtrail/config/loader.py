"""Settings loading with validation.

Configuration priority (highest to lowest):
1. Environment variables (``REQTRAIL_*`` and ``APP_ENV``)
2. YAML file (``config_path`` argument or ``REQTRAIL_CONFIG``)
3. Schema defaults
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from reqtrail.config.schema import AppSettings
from reqtrail.utils.env import get_env_bool, get_env_int, get_env_str
from reqtrail.utils.errors import ConfigError, ErrorCode

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "REQTRAIL_CONFIG"


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(
            f"Configuration file not found: {path}",
            code=ErrorCode.E801_INVALID_CONFIG_FILE,
            context={"path": str(path)},
        )
    if path.suffix not in (".yaml", ".yml"):
        raise ConfigError(
            f"Unsupported configuration file format: {path.name}. Only YAML (.yaml, .yml) is supported.",
            code=ErrorCode.E801_INVALID_CONFIG_FILE,
            context={"path": str(path)},
        )
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in '{path}': {e}",
            code=ErrorCode.E801_INVALID_CONFIG_FILE,
            context={"path": str(path)},
        ) from e
    except OSError as e:
        raise ConfigError(
            f"Error reading YAML file '{path}': {e}",
            code=ErrorCode.E801_INVALID_CONFIG_FILE,
            context={"path": str(path)},
        ) from e
    if not isinstance(data, dict):
        raise ConfigError(
            f"Configuration root in '{path}' must be a mapping, got {type(data).__name__}",
            code=ErrorCode.E801_INVALID_CONFIG_FILE,
            context={"path": str(path)},
        )
    return data


def _env_overrides(environ: Mapping[str, str]) -> tuple[dict[str, Any], str | None]:
    overrides: dict[str, Any] = {}

    log_dir = get_env_str("REQTRAIL_LOG_DIR", environ=environ)
    if log_dir is not None:
        overrides["log_dir"] = log_dir

    max_size = get_env_int("REQTRAIL_LOG_MAX_FILE_SIZE", environ=environ)
    if max_size is not None:
        overrides["max_file_size_bytes"] = max_size

    retention = get_env_int("REQTRAIL_LOG_RETENTION_DAYS", environ=environ)
    if retention is not None:
        overrides["retention_days"] = retention

    offset = get_env_int("REQTRAIL_LOG_TZ_OFFSET", environ=environ, allow_negative=True)
    if offset is not None:
        overrides["timezone_offset_hours"] = offset

    level = get_env_str("REQTRAIL_LOG_LEVEL", environ=environ)
    if level is not None:
        overrides["log_level"] = level

    json_logging = get_env_bool("REQTRAIL_JSON_LOGGING", environ=environ)
    if json_logging is not None:
        overrides["json_logging"] = json_logging

    return overrides, get_env_str("APP_ENV", environ=environ)


def load_settings(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppSettings:
    """Load and validate application settings.

    Args:
        config_path: Optional YAML file; defaults to ``$REQTRAIL_CONFIG``
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated settings

    Raises:
        ConfigError: If the file cannot be read or the settings are invalid
    """
    env = os.environ if environ is None else environ

    if config_path is None:
        config_path = get_env_str(CONFIG_PATH_ENV, environ=env)

    data: dict[str, Any] = {}
    if config_path is not None:
        data = _read_yaml(Path(config_path))
        logger.debug("Loaded configuration from %s", config_path)

    overrides, app_env = _env_overrides(env)
    if overrides:
        section = data.get("logging") or {}
        if not isinstance(section, dict):
            raise ConfigError(
                "Configuration key 'logging' must be a mapping",
                code=ErrorCode.E802_CONFIG_VALIDATION_FAILED,
            )
        data["logging"] = {**section, **overrides}
    if app_env is not None:
        data["runtime_mode"] = app_env

    try:
        return AppSettings.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "errors": [err["msg"]]}
            for err in e.errors()
        ]
        raise ConfigError(
            f"Configuration validation failed: {e.error_count()} error(s)",
            code=ErrorCode.E802_CONFIG_VALIDATION_FAILED,
            details=errors,
        ) from e

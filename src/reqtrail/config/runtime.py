"""
Runtime mode detection.

The runtime mode decides development-only behaviour: mirroring access log
lines to the console and writing DEBUG records to the application log.

Usage:
    from reqtrail.config.runtime import get_runtime_mode, RuntimeMode

    mode = get_runtime_mode()            # from APP_ENV, default development
    mode = get_runtime_mode("production")
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from enum import Enum

logger = logging.getLogger(__name__)

ENV_VAR = "APP_ENV"


class RuntimeMode(str, Enum):
    """Supported runtime modes."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"

    @property
    def is_development(self) -> bool:
        return self is RuntimeMode.DEVELOPMENT


_ALIASES = {
    "dev": RuntimeMode.DEVELOPMENT,
    "prod": RuntimeMode.PRODUCTION,
    "testing": RuntimeMode.TEST,
}


def parse_runtime_mode(value: str | RuntimeMode) -> RuntimeMode:
    """Parse a runtime mode name (case-insensitive, short aliases accepted).

    Raises:
        ValueError: If the value names no known mode
    """
    if isinstance(value, RuntimeMode):
        return value
    lowered = value.strip().lower()
    if lowered in _ALIASES:
        return _ALIASES[lowered]
    try:
        return RuntimeMode(lowered)
    except ValueError:
        valid = ", ".join(m.value for m in RuntimeMode)
        raise ValueError(f"Unknown runtime mode {value!r}; expected one of: {valid}") from None


def get_runtime_mode(
    value: str | RuntimeMode | None = None,
    environ: Mapping[str, str] | None = None,
) -> RuntimeMode:
    """Resolve the runtime mode from ``value`` or the ``APP_ENV`` variable.

    An unknown ``APP_ENV`` value falls back to development with a warning.
    """
    if value is not None:
        return parse_runtime_mode(value)

    env = os.environ if environ is None else environ
    raw = env.get(ENV_VAR, "").strip()
    if not raw:
        return RuntimeMode.DEVELOPMENT
    try:
        return parse_runtime_mode(raw)
    except ValueError:
        logger.warning("Unknown %s=%r; assuming development.", ENV_VAR, raw)
        return RuntimeMode.DEVELOPMENT


def is_development(environ: Mapping[str, str] | None = None) -> bool:
    """Return True when the process runs in development mode."""
    return get_runtime_mode(environ=environ).is_development

"""Environment variable parsing helpers."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

_logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def get_env_int(
    *keys: str,
    environ: Mapping[str, str] | None = None,
    allow_negative: bool = False,
) -> int | None:
    """Parse the first available integer environment variable.

    Ignores invalid (and, unless allowed, negative) values, logging a warning
    for invalid input.
    """
    env = os.environ if environ is None else environ
    for key in keys:
        value = env.get(key)
        if value is None or not value.strip():
            continue
        try:
            parsed = int(value)
        except ValueError:
            _logger.warning("Invalid int for %s=%r; ignoring.", key, value)
            continue
        if parsed < 0 and not allow_negative:
            _logger.warning("Negative value for %s=%r; ignoring.", key, value)
            continue
        return parsed
    return None


def get_env_bool(*keys: str, environ: Mapping[str, str] | None = None) -> bool | None:
    """Parse the first available boolean environment variable."""
    env = os.environ if environ is None else environ
    for key in keys:
        value = env.get(key)
        if value is None:
            continue
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        _logger.warning("Invalid bool for %s=%r; ignoring.", key, value)
    return None


def get_env_str(*keys: str, environ: Mapping[str, str] | None = None) -> str | None:
    """Return the first non-empty environment variable among ``keys``."""
    env = os.environ if environ is None else environ
    for key in keys:
        value = env.get(key)
        if value is not None and value.strip():
            return value.strip()
    return None

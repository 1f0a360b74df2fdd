"""
Payload redaction for request/response logging.

This module masks sensitive fields and bounds the size of payloads before they
are written to log files or returned as error detail.

Guarantees (best-effort, not cryptographic):
- Masks known secret field names (case-insensitive) at the top level and at a
  bounded number of nesting levels (one by default). Deeper structures are not
  scrubbed.
- Truncates long strings to 500 characters and serialized payloads to 1000
  characters, appending "...".
- Never raises exceptions (falls back to a best-effort string).
"""

from __future__ import annotations

import dataclasses
import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel

_logger = logging.getLogger(__name__)

# Lowercase for case-insensitive matching
DEFAULT_SENSITIVE_KEYS = frozenset(
    {
        "password",
        "token",
        "authorization",
        "cookie",
        "access_token",
        "refresh_token",
    }
)

MASK = "***"
ELLIPSIS = "..."
STRING_LIMIT = 500
SERIALIZED_LIMIT = 1000


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def _as_structure(value: Any) -> Any:
    """Return a dict/list view of structured values, or None for scalars."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return None


class PayloadRedactor:
    """Masks sensitive keys and bounds payload size for logging.

    Example:
        >>> PayloadRedactor().redact({"password": "secret123", "name": "a"})
        '{"password":"***","name":"a"}'
    """

    def __init__(
        self,
        sensitive_keys: Iterable[str] = DEFAULT_SENSITIVE_KEYS,
        max_depth: int = 1,
        string_limit: int = STRING_LIMIT,
        serialized_limit: int = SERIALIZED_LIMIT,
        mask: str = MASK,
    ) -> None:
        """Initialize the redactor.

        Args:
            sensitive_keys: Field names whose values are replaced by ``mask``
            max_depth: Number of nesting levels below the top level that are
                scrubbed (0 scrubs the top level only)
            string_limit: Maximum length of string and scalar output
            serialized_limit: Maximum length of serialized structured output
            mask: Replacement value for sensitive fields
        """
        if max_depth < 0:
            raise ValueError("max_depth must be non-negative")
        self.sensitive_keys = frozenset(key.lower() for key in sensitive_keys)
        self.max_depth = max_depth
        self.string_limit = string_limit
        self.serialized_limit = serialized_limit
        self.mask = mask

    def _is_sensitive(self, key: Any) -> bool:
        return isinstance(key, str) and key.lower() in self.sensitive_keys

    def _mask(self, value: Any, depth: int) -> Any:
        if depth > self.max_depth:
            return value
        structure = _as_structure(value)
        if isinstance(structure, dict):
            masked: dict[Any, Any] = {}
            for key, item in structure.items():
                if self._is_sensitive(key):
                    masked[key] = self.mask
                else:
                    masked[key] = self._mask(item, depth + 1)
            return masked
        if isinstance(structure, list):
            return [self._mask(item, depth + 1) for item in structure]
        return value

    def mask_sensitive(self, value: Any) -> Any:
        """Return a shallow clone of ``value`` with sensitive fields masked.

        Scalars are returned unchanged. The input is never mutated.
        """
        try:
            return self._mask(value, 0)
        except Exception:
            _logger.debug("Sensitive field masking failed", exc_info=True)
            return value

    def _serialize(self, value: Any) -> str:
        try:
            return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
        except (TypeError, ValueError, RecursionError):
            # Cycles and exotic objects still get a readable, bounded form.
            try:
                return repr(value)
            except Exception:
                return f"[unserializable {type(value).__name__}]"

    def redact(self, value: Any) -> str:
        """Convert any value to a log-safe string.

        - ``None`` -> ``"null"``, booleans -> ``"true"`` / ``"false"``
        - strings and scalars -> text, truncated to ``string_limit``
        - structured values -> masked compact JSON, truncated to ``serialized_limit``
        """
        try:
            if value is None:
                return "null"
            if isinstance(value, bool):
                return "true" if value else "false"
            if isinstance(value, (bytes, bytearray)):
                value = bytes(value).decode("utf-8", errors="replace")
            if isinstance(value, str):
                return _truncate(value, self.string_limit)
            if _as_structure(value) is not None:
                serialized = self._serialize(self.mask_sensitive(value))
                return _truncate(serialized, self.serialized_limit)
            return _truncate(str(value), self.string_limit)
        except Exception:
            _logger.debug("Payload redaction failed", exc_info=True)
            return f"[unserializable {type(value).__name__}]"


_default_redactor = PayloadRedactor()


def redact(value: Any) -> str:
    """Redact ``value`` with the default sensitive key set and limits."""
    return _default_redactor.redact(value)


def mask_sensitive(value: Any) -> Any:
    """Mask sensitive fields of ``value`` with the default redactor."""
    return _default_redactor.mask_sensitive(value)

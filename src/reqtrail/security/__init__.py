"""
reqtrail security utilities: payload redaction for logs and error details.
"""

from reqtrail.security.payload_scrubber import (
    DEFAULT_SENSITIVE_KEYS,
    PayloadRedactor,
    mask_sensitive,
    redact,
)

__all__ = ["DEFAULT_SENSITIVE_KEYS", "PayloadRedactor", "mask_sensitive", "redact"]

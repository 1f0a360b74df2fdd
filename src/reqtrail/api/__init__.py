"""
reqtrail API module.

Exports:
    - envelope: Response envelope builder and exception handlers
    - middleware: Request pipeline middleware and stages
    - app: Application factory
"""

from reqtrail.api.envelope import (
    ResponseEnvelope,
    is_envelope,
    register_exception_handlers,
    wrap,
    wrap_error,
)
from reqtrail.api.middleware import (
    CorrelationStage,
    PipelineContext,
    PipelineStage,
    RequestLoggingStage,
    RequestPipelineMiddleware,
)

__all__ = [
    "CorrelationStage",
    "PipelineContext",
    "PipelineStage",
    "RequestLoggingStage",
    "RequestPipelineMiddleware",
    "ResponseEnvelope",
    "is_envelope",
    "register_exception_handlers",
    "wrap",
    "wrap_error",
]

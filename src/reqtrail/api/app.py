"""Application factory.

``create_app`` is the composition root: it builds the log sink, the request
logger, metrics and the pipeline stages from settings and keeps them on
``app.state``. Nothing here is a module-level singleton, so several apps (for
example one per test) can coexist in one process.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from reqtrail import __version__
from reqtrail.api import demo_routes, health
from reqtrail.api.envelope import register_exception_handlers
from reqtrail.api.middleware import CorrelationStage, RequestLoggingStage, RequestPipelineMiddleware
from reqtrail.config.loader import load_settings
from reqtrail.config.schema import AppSettings
from reqtrail.observability.log_sink import LogSink
from reqtrail.observability.logger import RequestLogger
from reqtrail.observability.logging_config import configure_logging, reset_logging
from reqtrail.observability.metrics import ObservabilityMetrics
from reqtrail.security.payload_scrubber import PayloadRedactor
from reqtrail.utils.time_provider import DefaultTimeProvider, TimeProvider

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure service logging on startup and close the log sink on shutdown."""
    settings: AppSettings = app.state.settings
    configure_logging(settings, app.state.log_sink)
    logger.info(
        "%s started (mode=%s, log_dir=%s)",
        settings.service_name,
        settings.runtime_mode.value,
        settings.logging.log_dir,
    )

    yield

    logger.info("%s shutting down", settings.service_name)
    reset_logging()
    app.state.log_sink.close()


def create_app(
    settings: AppSettings | None = None,
    *,
    time_provider: TimeProvider | None = None,
    include_demo_routes: bool = True,
) -> FastAPI:
    """Create a FastAPI application with the request pipeline installed.

    Args:
        settings: Application settings (loaded from file/environment if None)
        time_provider: Clock shared by the sink, logger and envelopes
        include_demo_routes: Mount the in-memory users/posts router

    Returns:
        Configured FastAPI application
    """
    settings = settings or load_settings()
    time_provider = time_provider or DefaultTimeProvider()
    log_settings = settings.logging

    metrics = ObservabilityMetrics()
    redactor = PayloadRedactor(
        sensitive_keys=log_settings.sensitive_keys,
        max_depth=log_settings.redact_depth,
    )
    sink = LogSink(
        log_settings.log_dir,
        max_file_size=log_settings.max_file_size_bytes,
        retention_days=log_settings.retention_days,
        time_provider=time_provider,
        offset_hours=log_settings.timezone_offset_hours,
        metrics=metrics,
    )
    request_logger = RequestLogger(
        sink,
        redactor=redactor,
        time_provider=time_provider,
        offset_hours=log_settings.timezone_offset_hours,
        console_mirror=settings.console_mirror_enabled(),
        metrics=metrics,
    )

    app = FastAPI(
        title=settings.service_name,
        version=__version__,
        description="Request correlation, access logging and response envelopes",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.time_provider = time_provider
    app.state.metrics = metrics
    app.state.redactor = redactor
    app.state.log_sink = sink
    app.state.request_logger = request_logger

    app.add_middleware(
        RequestPipelineMiddleware,
        stages=[CorrelationStage(), RequestLoggingStage(request_logger)],
        exclude_paths=log_settings.exclude_paths,
        time_provider=time_provider,
        redactor=redactor,
    )
    register_exception_handlers(app)

    app.include_router(health.router)
    if include_demo_routes:
        app.state.store = demo_routes.DemoStore(time_provider)
        app.include_router(demo_routes.router)

    return app

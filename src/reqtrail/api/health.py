"""Health and metrics endpoints.

- GET /health   - Simple health check (always 200 if process alive)
- GET /metrics  - Prometheus metrics (excluded from access logging)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response

from reqtrail.api.schemas import SimpleHealthStatus
from reqtrail.observability.metrics import CONTENT_TYPE_LATEST

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=SimpleHealthStatus)
async def health(request: Request) -> SimpleHealthStatus:
    settings = request.app.state.settings
    return SimpleHealthStatus(status="healthy", service=settings.service_name)


@router.get("/metrics")
async def metrics(request: Request) -> Response:
    exporter = request.app.state.metrics
    return Response(content=exporter.export(), media_type=CONTENT_TYPE_LATEST)

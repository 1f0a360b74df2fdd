"""Request pipeline middleware.

Provides:
- ``RequestPipelineMiddleware``: runs an ordered list of pipeline stages
  around every request and normalizes JSON responses into envelopes
- ``CorrelationStage``: assigns the correlation id and echoes it in the
  ``X-Request-ID`` response header
- ``RequestLoggingStage``: writes the request line, then the response or
  error line, through the ``RequestLogger``
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import ClientDisconnect
from starlette.routing import Match

from reqtrail.api.envelope import error_response, is_envelope, wrap, wrap_error
from reqtrail.observability.correlation import (
    REQUEST_ID_HEADER,
    UNKNOWN_REQUEST_ID,
    bind_request_id,
    reset_request_id,
    resolve_correlation_id,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from contextvars import Token

    from starlette.types import ASGIApp

    from reqtrail.observability.logger import RequestContext, RequestLogger
    from reqtrail.security.payload_scrubber import PayloadRedactor
    from reqtrail.utils.time_provider import TimeProvider

logger = logging.getLogger(__name__)

# No body may accompany these statuses.
_BODYLESS_STATUSES = frozenset({204, 304})


@dataclass
class PipelineContext:
    """State carried through the stages for one request."""

    request: Request
    excluded: bool = False
    request_id: str | None = None
    request_id_token: Token[str | None] | None = None
    log: RequestContext | None = None
    body: Any = None
    extra: dict[str, Any] = field(default_factory=dict)


class PipelineStage(Protocol):
    """A step run before and after the downstream application."""

    async def on_request(self, ctx: PipelineContext) -> None: ...

    async def on_response(self, ctx: PipelineContext, response: Response) -> None: ...

    async def on_error(self, ctx: PipelineContext, response: Response) -> None: ...


def resolve_path_params(request: Request) -> dict[str, Any]:
    """Match the request against the application's routes and return path params.

    Middleware runs before routing, so ``request.path_params`` is still empty.
    """
    app = request.scope.get("app")
    return _match_path_params(getattr(app, "routes", ()), request.scope) or {}


def _match_path_params(routes: Sequence[Any], scope: dict[str, Any]) -> dict[str, Any] | None:
    for route in routes:
        match, child_scope = route.matches(scope)
        if match != Match.FULL:
            continue
        params = dict(child_scope.get("path_params", {}))
        # Included routers and mounts match on a prefix and carry their own routes.
        inner = getattr(route, "routes", None)
        if inner:
            nested = _match_path_params(inner, {**scope, **child_scope})
            if nested:
                params.update(nested)
        return params
    return None


def _query_dict(request: Request) -> dict[str, Any]:
    query: dict[str, Any] = {}
    for key, value in request.query_params.multi_items():
        if key in query:
            existing = query[key]
            query[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            query[key] = value
    return query


def _parse_json(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def _request_url(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


class CorrelationStage:
    """Assigns the correlation id and binds it for the duration of the request."""

    async def on_request(self, ctx: PipelineContext) -> None:
        request_id = resolve_correlation_id(ctx.request.headers)
        ctx.request_id = request_id
        ctx.request.state.request_id = request_id
        ctx.request_id_token = bind_request_id(request_id)

    def _finish(self, ctx: PipelineContext, response: Response) -> None:
        response.headers[REQUEST_ID_HEADER] = ctx.request_id or UNKNOWN_REQUEST_ID
        if ctx.request_id_token is not None:
            reset_request_id(ctx.request_id_token)
            ctx.request_id_token = None

    async def on_response(self, ctx: PipelineContext, response: Response) -> None:
        self._finish(ctx, response)

    async def on_error(self, ctx: PipelineContext, response: Response) -> None:
        self._finish(ctx, response)


class RequestLoggingStage:
    """Writes access log lines for every non-excluded request."""

    def __init__(self, request_logger: RequestLogger) -> None:
        self.request_logger = request_logger

    async def _payload(self, request: Request) -> dict[str, Any] | None:
        payload: dict[str, Any] = {}
        payload.update(_query_dict(request))
        payload.update(resolve_path_params(request))

        try:
            raw = await request.body()
        except ClientDisconnect:
            raw = b""
        if raw:
            body = _parse_json(raw)
            if body is None:
                body = raw.decode("utf-8", errors="replace")
            if isinstance(body, dict):
                payload.update(body)
            else:
                payload["body"] = body

        return payload or None

    async def on_request(self, ctx: PipelineContext) -> None:
        if ctx.excluded:
            return
        request = ctx.request
        ctx.log = self.request_logger.start(
            ctx.request_id,
            request.method,
            _request_url(request),
            client=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            payload=None,
        )
        # Arrival time is taken before the body is read.
        ctx.log.payload = await self._payload(request)
        self.request_logger.log_request(ctx.log)

    async def on_response(self, ctx: PipelineContext, response: Response) -> None:
        if ctx.log is not None:
            self.request_logger.log_response(ctx.log, response.status_code, ctx.body)

    async def on_error(self, ctx: PipelineContext, response: Response) -> None:
        if ctx.log is not None:
            self.request_logger.log_error(ctx.log, response.status_code, ctx.body)


class RequestPipelineMiddleware(BaseHTTPMiddleware):
    """Runs pipeline stages around the application.

    Stages run in list order. Successful JSON responses are wrapped in a
    success envelope; error responses that are not envelopes yet are
    converted into failure envelopes; exceptions escaping the application
    become 500 envelopes. Excluded paths skip envelope wrapping.
    """

    def __init__(
        self,
        app: ASGIApp,
        stages: Sequence[PipelineStage] = (),
        exclude_paths: Sequence[str] = (),
        time_provider: TimeProvider | None = None,
        redactor: PayloadRedactor | None = None,
    ) -> None:
        super().__init__(app)
        self.stages = list(stages)
        self.exclude_paths = frozenset(exclude_paths)
        self.time_provider = time_provider
        self.redactor = redactor

    def _rebuild(self, response: Response, body: Any) -> Response:
        rebuilt = JSONResponse(content=body, status_code=response.status_code)
        for key, value in response.raw_headers:
            if key.lower() not in (b"content-length", b"content-type"):
                rebuilt.raw_headers.append((key, value))
        rebuilt.background = response.background
        return rebuilt

    async def _normalize(self, ctx: PipelineContext, response: Response) -> Response:
        status_code = response.status_code
        if status_code in _BODYLESS_STATUSES:
            return response

        media_type = response.headers.get("content-type", "")
        is_json = media_type.startswith("application/json")
        if status_code < 400 and not is_json:
            return response

        body_iterator = getattr(response, "body_iterator", None)
        if body_iterator is None:
            raw = bytes(response.body)
        else:
            raw = b"".join([chunk async for chunk in body_iterator])
        parsed = _parse_json(raw) if is_json else None

        if is_envelope(parsed):
            ctx.body = parsed
            return self._rebuild(response, parsed)

        if status_code >= 400:
            detail: Any = parsed
            if isinstance(parsed, dict) and "detail" in parsed:
                detail = parsed["detail"]
            elif parsed is None and raw:
                detail = raw.decode("utf-8", errors="replace")
            _, envelope = wrap_error(
                StarletteHTTPException(status_code, detail=detail or None),
                ctx.request_id,
                time_provider=self.time_provider,
                redactor=self.redactor,
            )
        else:
            envelope = wrap(parsed, ctx.request_id, status_code, time_provider=self.time_provider)

        ctx.body = envelope.to_dict()
        return self._rebuild(response, ctx.body)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Process request through the pipeline stages."""
        ctx = PipelineContext(request=request, excluded=request.url.path in self.exclude_paths)

        for stage in self.stages:
            await stage.on_request(ctx)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "Request failed",
                extra={"method": request.method, "path": request.url.path},
            )
            response = error_response(request, exc)

        if not ctx.excluded:
            response = await self._normalize(ctx, response)

        failed = response.status_code >= 400
        for stage in self.stages:
            if failed:
                await stage.on_error(ctx, response)
            else:
                await stage.on_response(ctx, response)

        return response

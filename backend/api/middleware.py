"""
API middleware stack.

- Request context: X-Request-ID header, bound into the structlog context
  so every log line of a request (a manual sync included) carries it
- Access logging
- Per-client rate limiting on /v1 routes
- JSON error envelopes ({"success": false, "error": ...})
- CORS
"""
from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
UNLOGGED_PATHS = frozenset({"/health", "/ready", "/docs", "/openapi.json"})


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns the request id and writes one access log entry per request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        path = request.url.path
        start = time.monotonic()

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception as exc:
                logger.error(
                    "http_request_error",
                    method=request.method,
                    path=path,
                    duration_ms=round((time.monotonic() - start) * 1000, 2),
                    error=str(exc),
                    exc_info=True,
                )
                raise

            if path not in UNLOGGED_PATHS:
                logger.info(
                    "http_request",
                    method=request.method,
                    path=path,
                    status=response.status_code,
                    duration_ms=round((time.monotonic() - start) * 1000, 2),
                    client=_client_ip(request),
                )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-budget sliding window per client IP, applied to /v1 routes only."""

    def __init__(self, app: FastAPI, max_requests: int, window_s: float) -> None:
        super().__init__(app)
        self._max = max_requests
        self._window_s = window_s
        self._hits: dict[str, list[float]] = {}

    def _remaining(self, client: str, now: float) -> int:
        hits = [t for t in self._hits.get(client, []) if now - t < self._window_s]
        if hits:
            self._hits[client] = hits
        else:
            self._hits.pop(client, None)
        return self._max - len(hits)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not request.url.path.startswith("/v1/"):
            return await call_next(request)

        client = _client_ip(request)
        now = time.monotonic()
        remaining = self._remaining(client, now)
        if remaining <= 0:
            logger.warning("rate_limit_exceeded", client=client, path=request.url.path)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "Too many requests, please try again later.",
                },
                headers={"Retry-After": str(int(self._window_s))},
            )

        self._hits.setdefault(client, []).append(now)
        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self._max)
        response.headers["X-RateLimit-Remaining"] = str(remaining - 1)
        return response


def setup_exception_handlers(app: FastAPI) -> None:
    """Render every error as the same JSON envelope the routes use on success."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "error": "Invalid request parameters",
                "details": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = _request_id(request)
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            request_id=request_id,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "request_id": request_id,
            },
        )


def setup_middleware(app: FastAPI, settings: Settings | None = None) -> None:
    """Install middleware; the last one added runs first."""
    settings = settings or get_settings()
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_requests,
        window_s=settings.rate_limit_window_s,
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "x-admin-passkey", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, "X-RateLimit-Limit", "X-RateLimit-Remaining"],
    )
    setup_exception_handlers(app)

"""
API middleware stack.

- Request context: X-Request-ID in and out, bound into structlog contextvars so
  board and upstream log lines carry it, plus one access line per request
- JSON error bodies for unknown boards and unexpected failures
- CORS for browser widgets reading the boards
"""
from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
# Polled by hosting health checks every few seconds
QUIET_PATHS = frozenset({"/", "/health"})


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags the request with an id, logs it, and echoes the id on the response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        path = request.url.path
        started = time.monotonic()

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception as exc:
                logger.error(
                    "http_request_error",
                    method=request.method,
                    path=path,
                    duration_ms=round((time.monotonic() - started) * 1000, 2),
                    error=str(exc),
                    exc_info=True,
                )
                raise

            if path not in QUIET_PATHS:
                logger.info(
                    "http_request",
                    method=request.method,
                    path=path,
                    query=str(request.url.query) or None,
                    status=response.status_code,
                    duration_ms=round((time.monotonic() - started) * 1000, 2),
                    client=request.client.host if request.client else "unknown",
                )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def setup_exception_handlers(app: FastAPI) -> None:
    """Unknown boards → 404 body; anything unexpected → 500 body without internals."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            content = {"error": "not_found", "message": exc.detail or "Resource not found"}
        else:
            content = {"error": "http_error", "message": exc.detail}
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            request_id=_request_id(request),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "Board could not be built",
                "request_id": _request_id(request),
            },
        )


def setup_middleware(app: FastAPI) -> None:
    """Install CORS and request-context middleware, then the error handlers."""
    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(RequestContextMiddleware)
    setup_exception_handlers(app)

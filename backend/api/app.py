"""
FastAPI application factory for the Sports HQ board API.

Creates the app with:
- Board routes (/scores/{league})
- Diagnostics and health endpoints
- Middleware stack
- Lifespan management: HTTP client, SWR cache, inflight coordinator,
  day-scan token bucket (and its refill loop), board aggregator
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from shared.config import Settings, get_settings
from shared.utils.http_client import RetryingFetcher
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import init_dependencies
from api.middleware import setup_middleware
from api.routes.diag import router as diag_router
from api.routes.scores import router as scores_router
from board.aggregator import BoardAggregator
from board.cache import SWRCache
from board.inflight import InflightCoordinator
from board.limiter import TokenBucket
from board.memo import MemoFetcher
from board.upstream import UpstreamFeeds

logger = get_logger(__name__)


@dataclass
class BoardPipeline:
    """Process-wide pipeline objects, built once per app lifespan."""
    http: httpx.AsyncClient
    memo: MemoFetcher
    bucket: TokenBucket
    feeds: UpstreamFeeds
    aggregator: BoardAggregator

    async def aclose(self) -> None:
        await self.bucket.stop()
        await self.memo.drain()
        await self.memo.inflight.aclose()
        await self.http.aclose()


def build_pipeline(settings: Settings, http: httpx.AsyncClient | None = None) -> BoardPipeline:
    """Wire fetcher → cache/inflight → memo → feeds → aggregator."""
    if http is None:
        http = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.upstream_timeout_s, connect=5.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
        )
    memo = MemoFetcher(RetryingFetcher(http), SWRCache(), InflightCoordinator())
    bucket = TokenBucket()
    feeds = UpstreamFeeds(memo, settings)
    aggregator = BoardAggregator(feeds, bucket, settings)
    return BoardPipeline(http=http, memo=memo, bucket=bucket, feeds=feeds, aggregator=aggregator)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing without upstream access."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Builds the pipeline and starts the token refill loop on startup; stops the
    loop, drains revalidations and closes the HTTP client on shutdown.
    """
    settings = get_settings()
    setup_logging("api")
    start_metrics_server()

    if not settings.has_v2_key:
        logger.warning("tsdb_v2_key_missing", detail="livescore requests go out without X-API-KEY")

    pipeline = build_pipeline(settings)
    init_dependencies(pipeline.aggregator, pipeline.feeds, pipeline.http)
    pipeline.bucket.start()
    app.state.pipeline = pipeline

    logger.info("api_service_started", host=settings.api_host, port=settings.api_port)

    yield

    await pipeline.aclose()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing."""
    app = FastAPI(
        title="Sports HQ API",
        description="Ranked live/final/scheduled boards built from TheSportsDB feeds",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(scores_router)
    app.include_router(diag_router)

    @app.get("/", tags=["system"], response_class=PlainTextResponse)
    async def root() -> str:
        return "Sports HQ server ok"

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    return app


# For running with uvicorn directly
app = create_app()

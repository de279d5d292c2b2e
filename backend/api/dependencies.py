"""
Dependency injection for the API service.
Provides the board aggregator, the upstream feeds and the raw HTTP client to
route handlers.
"""
from __future__ import annotations

import httpx

from board.aggregator import BoardAggregator
from board.upstream import UpstreamFeeds

# Module-level singletons, initialized at startup
_aggregator: BoardAggregator | None = None
_feeds: UpstreamFeeds | None = None
_http: httpx.AsyncClient | None = None


def init_dependencies(
    aggregator: BoardAggregator, feeds: UpstreamFeeds, http: httpx.AsyncClient
) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _aggregator, _feeds, _http
    _aggregator = aggregator
    _feeds = feeds
    _http = http


def get_aggregator() -> BoardAggregator:
    """FastAPI dependency: returns the shared BoardAggregator."""
    if _aggregator is None:
        raise RuntimeError("BoardAggregator not initialized; call init_dependencies first")
    return _aggregator


def get_feeds() -> UpstreamFeeds:
    if _feeds is None:
        raise RuntimeError("UpstreamFeeds not initialized; call init_dependencies first")
    return _feeds


def get_http_client() -> httpx.AsyncClient:
    if _http is None:
        raise RuntimeError("HTTP client not initialized; call init_dependencies first")
    return _http

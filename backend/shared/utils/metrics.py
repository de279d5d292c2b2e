"""
Metrics collection for the board service.
Wraps prometheus_client with the counters the pipeline records.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
UPSTREAM_REQUESTS = Counter(
    "shq_upstream_requests_total",
    "Upstream HTTP attempts by outcome",
    ["status"],
)
UPSTREAM_FAILURES = Counter(
    "shq_upstream_failures_total",
    "Upstream fetches that exhausted every attempt",
)
CACHE_LOOKUPS = Counter(
    "shq_cache_lookups_total",
    "SWR cache lookups by state",
    ["state"],
)
INFLIGHT_JOINS = Counter(
    "shq_inflight_joins_total",
    "Callers that joined an already pending fetch",
)
BOARD_BUILDS = Counter(
    "shq_board_builds_total",
    "Boards assembled",
    ["sport"],
)
DAY_SCAN_THROTTLED = Counter(
    "shq_day_scan_throttled_total",
    "Day scans skipped because the token bucket was empty",
)
DAY_SCAN_CALLS = Counter(
    "shq_day_scan_calls_total",
    "Per-day upstream lookups issued by the day-scan fallback",
)

# ── Histograms ──────────────────────────────────────────────────────────
UPSTREAM_LATENCY = Histogram(
    "shq_upstream_latency_seconds",
    "Upstream request latency in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
BOARD_ROWS = Histogram(
    "shq_board_rows",
    "Rows returned per board",
    ["sport"],
    buckets=(0, 1, 2, 3, 4, 5, 6, 8, 10),
)

# ── Gauges ──────────────────────────────────────────────────────────────
TOKEN_BUCKET_LEVEL = Gauge(
    "shq_token_bucket_tokens",
    "Tokens currently available to the day-scan limiter",
)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)

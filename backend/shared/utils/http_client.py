"""
Async HTTP client wrapper for upstream feed requests.
Includes bounded retries with exponential backoff and jitter, Retry-After
handling for 429s, and metrics collection.
"""
from __future__ import annotations

import asyncio
import json
import random
import time
from typing import Any, Awaitable, Callable, Optional

import httpx

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import UPSTREAM_FAILURES, UPSTREAM_LATENCY, UPSTREAM_REQUESTS

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

BODY_EXCERPT_CHARS = 180


class UpstreamError(Exception):
    """Base class for a failed upstream attempt."""


class UpstreamHTTPError(UpstreamError):
    """Non-success response other than 429."""

    def __init__(self, status: int, reason: str, body_excerpt: str) -> None:
        self.status = status
        self.body_excerpt = body_excerpt
        super().__init__(f"{status} {reason} | {body_excerpt}")


class UpstreamRateLimited(UpstreamError):
    """429 response. retry_after_s is None when the header is absent or unreadable."""

    def __init__(self, retry_after_s: Optional[float]) -> None:
        self.retry_after_s = retry_after_s
        super().__init__(f"429 rate limited (retry after {retry_after_s}s)")


class UpstreamParseError(UpstreamError):
    """Response body is not JSON."""


def backoff_delay_ms(attempt: int, base_delay_ms: float) -> float:
    """Exponential backoff for a zero-based attempt index."""
    return base_delay_ms * (2 ** attempt)


def jittered(delay_ms: float, ratio: float, sample: float) -> float:
    """Spread delay_ms by ±ratio. sample is uniform in [0, 1)."""
    return max(0.0, delay_ms * (1.0 + ratio * (2.0 * sample - 1.0)))


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Retry-After in seconds; HTTP-date values are ignored."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class RetryingFetcher:
    """
    GETs JSON from upstream feeds.

    Every attempt failure (transport, non-2xx, 429, bad JSON) is retried until the
    attempt budget is spent; callers only ever see parsed JSON or None.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        tries: int | None = None,
        base_delay_ms: float | None = None,
        jitter_ratio: float | None = None,
        common_headers: dict[str, str] | None = None,
        sleep: Sleep = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        settings = get_settings()
        self._client = client
        self._tries = max(1, tries if tries is not None else settings.fetch_tries)
        self._base_delay_ms = (
            base_delay_ms if base_delay_ms is not None else settings.fetch_base_delay_ms
        )
        self._jitter_ratio = (
            jitter_ratio if jitter_ratio is not None else settings.fetch_jitter_ratio
        )
        self._common_headers = common_headers or {
            "User-Agent": settings.user_agent,
            "Accept": "application/json",
        }
        self._sleep = sleep
        self._rand = rand

    def retry_delay_ms(self, attempt: int, retry_after_s: Optional[float] = None) -> float:
        """Jittered wait before the attempt following `attempt`."""
        delay = backoff_delay_ms(attempt, self._base_delay_ms)
        if retry_after_s is not None:
            delay = max(retry_after_s * 1000.0, delay)
        return jittered(delay, self._jitter_ratio, self._rand())

    async def fetch_json(
        self, url: str, extra_headers: dict[str, str] | None = None
    ) -> Any:
        """
        Fetch and decode a JSON document.

        Args:
            url: Absolute upstream URL.
            extra_headers: Request-specific headers merged over the common set.

        Returns:
            The decoded body, or None once every attempt has failed.
        """
        headers = {**self._common_headers}
        if extra_headers:
            headers.update(extra_headers)

        last_exc: Optional[Exception] = None
        for attempt in range(self._tries):
            retry_after_s: Optional[float] = None
            try:
                return await self._attempt(url, headers)
            except UpstreamRateLimited as exc:
                last_exc = exc
                retry_after_s = exc.retry_after_s
                logger.warning(
                    "upstream_rate_limited",
                    url=url,
                    attempt=attempt + 1,
                    retry_after_s=retry_after_s,
                )
            except (UpstreamError, httpx.HTTPError) as exc:
                last_exc = exc
                logger.warning(
                    "upstream_attempt_failed",
                    url=url,
                    attempt=attempt + 1,
                    error=str(exc) or exc.__class__.__name__,
                )

            if attempt < self._tries - 1:
                await self._sleep(self.retry_delay_ms(attempt, retry_after_s) / 1000.0)

        UPSTREAM_FAILURES.inc()
        logger.error(
            "upstream_fetch_exhausted",
            url=url,
            tries=self._tries,
            error=str(last_exc) if last_exc else None,
        )
        return None

    async def _attempt(self, url: str, headers: dict[str, str]) -> Any:
        start = time.perf_counter()
        status = "error"
        try:
            resp = await self._client.get(url, headers=headers)
            status = str(resp.status_code)
            if resp.status_code == 429:
                raise UpstreamRateLimited(parse_retry_after(resp.headers.get("Retry-After")))
            if not resp.is_success:
                raise UpstreamHTTPError(
                    resp.status_code, resp.reason_phrase, resp.text[:BODY_EXCERPT_CHARS]
                )
            try:
                data = resp.json()
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                status = "parse_error"
                raise UpstreamParseError(
                    f"invalid JSON | {resp.text[:BODY_EXCERPT_CHARS]}"
                ) from exc
            logger.debug(
                "upstream_request_success",
                url=url,
                status=resp.status_code,
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            return data
        except httpx.TimeoutException:
            status = "timeout"
            raise
        finally:
            UPSTREAM_LATENCY.observe(time.perf_counter() - start)
            UPSTREAM_REQUESTS.labels(status=status).inc()

"""
Get-or-revalidate fetch: the SWR cache, the inflight coordinator and the
retrying fetcher composed into one call.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from shared.models.enums import CacheState
from shared.utils.http_client import RetryingFetcher
from shared.utils.logging import get_logger

from board.cache import SWRCache
from board.inflight import InflightCoordinator

logger = get_logger(__name__)


class MemoFetcher:
    """
    Serves upstream JSON through the SWR cache.

    fresh hit  → cached value, no network, no suspension
    stale hit  → cached value now; one background refresh per key
    miss       → coalesced fetch; last-known value if the fetch fails
    """

    def __init__(
        self,
        fetcher: RetryingFetcher,
        cache: SWRCache,
        inflight: InflightCoordinator,
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache
        self._inflight = inflight
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def cache(self) -> SWRCache:
        return self._cache

    @property
    def inflight(self) -> InflightCoordinator:
        return self._inflight

    async def memo_fetch(
        self, url: str, ttl_ms: float, headers: dict[str, str] | None = None
    ) -> Any:
        lookup = self._cache.get(url)
        if lookup.state is CacheState.FRESH:
            return lookup.value

        if lookup.state is CacheState.STALE:
            self._revalidate(url, ttl_ms, headers)
            return lookup.value

        value = await self._inflight.run(url, lambda: self._fetch_and_store(url, ttl_ms, headers))
        if value is not None:
            return value
        entry = self._cache.peek(url)
        if entry is not None:
            logger.info("memo_fetch_last_known", url=url)
            return entry.value
        return None

    def _revalidate(self, url: str, ttl_ms: float, headers: Optional[dict[str, str]]) -> None:
        if self._inflight.is_pending(url):
            return
        logger.debug("swr_revalidate_started", url=url)
        task = self._inflight.start(url, lambda: self._fetch_and_store(url, ttl_ms, headers))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _fetch_and_store(
        self, url: str, ttl_ms: float, headers: Optional[dict[str, str]]
    ) -> Any:
        data = await self._fetcher.fetch_json(url, headers)
        if data is not None:
            self._cache.set(url, data, ttl_ms)
        return data

    async def drain(self) -> None:
        """Wait for outstanding background revalidations."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

"""
In-process stale-while-revalidate cache keyed by upstream URL.

Each entry has a fresh window (the caller's TTL) followed by a fixed stale
grace window. Entries are only ever replaced, never evicted; the key space is
the small fixed set of upstream queries the boards use.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from shared.config import get_settings
from shared.models.enums import CacheState
from shared.utils.clock import Clock, system_clock_ms
from shared.utils.metrics import CACHE_LOOKUPS


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    fresh_until: float
    stale_until: float


@dataclass(frozen=True)
class CacheLookup:
    state: CacheState
    value: Any = None

    @property
    def hit(self) -> bool:
        return self.state is not CacheState.ABSENT


class SWRCache:
    """Key → CacheEntry map with independent fresh and stale windows (epoch ms)."""

    def __init__(self, swr_extra_ms: float | None = None, clock: Clock = system_clock_ms) -> None:
        if swr_extra_ms is None:
            swr_extra_ms = get_settings().swr_extra_s * 1000.0
        self._swr_extra_ms = swr_extra_ms
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheLookup:
        entry = self._store.get(key)
        now = self._clock()
        if entry is None or now >= entry.stale_until:
            lookup = CacheLookup(CacheState.ABSENT)
        elif now < entry.fresh_until:
            lookup = CacheLookup(CacheState.FRESH, entry.value)
        else:
            lookup = CacheLookup(CacheState.STALE, entry.value)
        CACHE_LOOKUPS.labels(state=lookup.state.value).inc()
        return lookup

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Last written entry for key, expired or not."""
        return self._store.get(key)

    def set(self, key: str, value: Any, ttl_ms: float) -> CacheEntry:
        fresh_until = self._clock() + ttl_ms
        entry = CacheEntry(value, fresh_until, fresh_until + self._swr_extra_ms)
        self._store[key] = entry
        return entry

    def __len__(self) -> int:
        return len(self._store)

    def clear(self) -> None:
        self._store.clear()

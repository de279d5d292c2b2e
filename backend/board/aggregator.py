"""
Board assembly.

A board is filled in strict stages, cheapest and most relevant first:

  1. recently completed  → finals still inside the recency window
  2. live feed           → in-progress events (recent finals join bucket 1)
  3. next fixtures       → soonest upcoming events
  4. season listings     → upcoming events per candidate season label
  5. day scan            → day-by-day lookups, throttled by the token bucket

Every stage filters to the league id, drops void fixtures and dedupes against
everything already collected. A failing stage contributes nothing; it never
aborts the build.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence

from shared.config import Settings, get_settings
from shared.models.domain import RawEvent
from shared.models.enums import BoardStatus
from shared.utils.clock import Clock, system_clock_ms
from shared.utils.logging import get_logger
from shared.utils.metrics import BOARD_BUILDS, BOARD_ROWS, DAY_SCAN_CALLS, DAY_SCAN_THROTTLED

from board.classifier import (
    ClassifiedEvent,
    board_sort_key,
    classify,
    is_upcoming,
    is_void,
    passes_final_recency,
)
from board.leagues import LeagueBoard
from board.limiter import TokenBucket
from board.upstream import UpstreamFeeds, season_labels, utc_today

logger = get_logger(__name__)


def clamp_rows(requested: Optional[int], settings: Optional[Settings] = None) -> int:
    """Requested row count forced into [board_min_rows, board_max_rows]."""
    settings = settings or get_settings()
    if requested is None:
        requested = settings.board_default_rows
    return max(settings.board_min_rows, min(settings.board_max_rows, requested))


class _Buckets:
    """Finals, live and scheduled rows with one dedup set across all three."""

    def __init__(self, target: int) -> None:
        self.target = target
        self.finals: list[ClassifiedEvent] = []
        self.live: list[ClassifiedEvent] = []
        self.scheduled: list[ClassifiedEvent] = []
        self._seen: set[str] = set()

    def add(self, bucket: list[ClassifiedEvent], item: ClassifiedEvent) -> bool:
        key = item.key
        if key in self._seen:
            return False
        self._seen.add(key)
        bucket.append(item)
        return True

    @property
    def count(self) -> int:
        return len(self.finals) + len(self.live) + len(self.scheduled)

    @property
    def need(self) -> int:
        return max(0, self.target - self.count)

    @property
    def short(self) -> bool:
        return self.count < self.target

    def ordered(self) -> list[ClassifiedEvent]:
        rows = [*self.finals, *self.live, *self.scheduled]
        rows.sort(key=board_sort_key)
        return rows[: self.target]


class BoardAggregator:
    """Builds ranked boards from the upstream feeds."""

    def __init__(
        self,
        feeds: UpstreamFeeds,
        bucket: TokenBucket,
        settings: Optional[Settings] = None,
        clock: Clock = system_clock_ms,
    ) -> None:
        self._feeds = feeds
        self._bucket = bucket
        self._settings = settings or get_settings()
        self._clock = clock

    async def build_for(self, league: LeagueBoard, target_count: int) -> list[ClassifiedEvent]:
        """Board for a configured league, probing its current and next season labels."""
        seasons = season_labels(league.season_style, utc_today(self._clock()))
        return await self.build_board(
            league.sport, league.league_id, seasons, target_count, day_label=league.day_label
        )

    async def build_board(
        self,
        sport: str,
        league_id: str,
        season_candidates: Sequence[str] = (),
        target_count: int = 5,
        day_label: Optional[str] = None,
    ) -> list[ClassifiedEvent]:
        """
        Assemble an ordered board of at most target_count events.

        Args:
            sport: Livescore sport slug (e.g. "ice_hockey").
            league_id: Upstream league id every stage filters on.
            season_candidates: Season labels to try in order when short.
            target_count: Maximum rows.
            day_label: eventsday sport label; no day scan when None.
        """
        now = self._clock()
        league_id = str(league_id)
        buckets = _Buckets(target_count)

        await self._stage("past", self._fill_finals, buckets, league_id, now)
        await self._stage("live", self._fill_live, buckets, sport, league_id, now)
        if buckets.short:
            await self._stage("next", self._fill_next, buckets, league_id, now)
        for season in season_candidates:
            if not buckets.short:
                break
            await self._stage("season", self._fill_season, buckets, league_id, season, now)
        if buckets.short:
            if day_label:
                await self._stage("day_scan", self._day_scan, buckets, league_id, day_label, now)
            else:
                logger.debug("day_scan_skipped_no_label", sport=sport, league_id=league_id)

        rows = buckets.ordered()
        BOARD_BUILDS.labels(sport=sport).inc()
        BOARD_ROWS.labels(sport=sport).observe(len(rows))
        logger.info(
            "board_built",
            sport=sport,
            league_id=league_id,
            target=target_count,
            rows=len(rows),
            finals=len(buckets.finals),
            live=len(buckets.live),
            scheduled=len(buckets.scheduled),
        )
        return rows

    # ── Stages ──────────────────────────────────────────────────────────
    async def _stage(self, name: str, fill: Callable[..., Awaitable[Any]], *args: Any) -> None:
        buckets: _Buckets = args[0]
        before = buckets.count
        try:
            await fill(*args)
        except Exception as exc:
            logger.warning("board_stage_failed", stage=name, error=str(exc), exc_info=True)
            return
        logger.debug("board_stage_complete", stage=name, added=buckets.count - before)

    async def _fill_finals(self, buckets: _Buckets, league_id: str, now: float) -> None:
        for event in self._in_league(await self._feeds.past(league_id), league_id):
            if not event.status_texts:
                event = event.model_copy(update={"status": "Final"})
            item = self._classify(event, now)
            if self._recent_final(item, now):
                buckets.add(buckets.finals, item)

    async def _fill_live(self, buckets: _Buckets, sport: str, league_id: str, now: float) -> None:
        for event in self._in_league(await self._feeds.live(sport), league_id):
            item = self._classify(event, now)
            if item.status is BoardStatus.FINAL:
                if self._recent_final(item, now):
                    buckets.add(buckets.finals, item)
                continue
            buckets.add(buckets.live, item)

    async def _fill_next(self, buckets: _Buckets, league_id: str, now: float) -> None:
        self._fill_upcoming(buckets, await self._feeds.next_fixtures(league_id), league_id, now)

    async def _fill_season(self, buckets: _Buckets, league_id: str, season: str, now: float) -> None:
        self._fill_upcoming(buckets, await self._feeds.season(league_id, season), league_id, now)

    async def _day_scan(
        self, buckets: _Buckets, league_id: str, day_label: str, now: float
    ) -> int:
        """
        Scan calendar days forward from today until the board is full, the day
        cap is hit or the reserved tokens run out. One token per day. Returns the
        number of days scanned.
        """
        need = buckets.need
        requirement = self._bucket.requirement(need, self._settings.day_scan_token_floor)
        if requirement <= 0:
            DAY_SCAN_THROTTLED.inc()
            logger.info(
                "day_scan_throttled",
                league_id=league_id,
                need=need,
                available=self._bucket.available,
            )
            return 0

        allowance = self._bucket.take(requirement)
        today = utc_today(now)
        days = 0
        for offset in range(self._settings.day_scan_cap_days):
            if days >= allowance or not buckets.short:
                break
            events = await self._feeds.day(today + timedelta(days=offset), day_label)
            days += 1
            DAY_SCAN_CALLS.inc()
            self._fill_upcoming(buckets, events, league_id, now)

        logger.info(
            "day_scan_complete",
            league_id=league_id,
            days=days,
            tokens_reserved=allowance,
            still_short=buckets.need,
        )
        return days

    # ── Helpers ─────────────────────────────────────────────────────────
    def _fill_upcoming(
        self, buckets: _Buckets, events: Iterable[RawEvent], league_id: str, now: float
    ) -> None:
        upcoming = [
            item
            for item in (self._classify(e, now) for e in self._in_league(events, league_id))
            if is_upcoming(item, now)
        ]
        upcoming.sort(key=lambda item: item.start_ms)
        for item in upcoming:
            if not buckets.short:
                break
            buckets.add(buckets.scheduled, item)

    @staticmethod
    def _in_league(events: Iterable[RawEvent], league_id: str) -> list[RawEvent]:
        return [e for e in events if e.league_id == league_id and not is_void(e)]

    def _classify(self, event: RawEvent, now: float) -> ClassifiedEvent:
        return classify(
            event,
            now,
            grace_ms=self._settings.start_grace_s * 1000,
            live_min_elapsed_ms=self._settings.live_min_elapsed_s * 1000,
        )

    def _recent_final(self, item: ClassifiedEvent, now: float) -> bool:
        return passes_final_recency(item, now, self._settings.final_recency_s * 1000)

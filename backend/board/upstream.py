"""
TheSportsDB query shapes used by the board.

v1 endpoints carry the key in the URL path; the v2 livescore endpoint takes it
in an X-API-KEY header. Every call goes through MemoFetcher with its own TTL.
A response whose list field is missing or not a list is an empty result.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional
from urllib.parse import quote, urlencode

from pydantic import ValidationError

from shared.config import Settings, get_settings
from shared.models.domain import RawEvent
from shared.models.enums import SeasonStyle
from shared.utils.logging import get_logger

from board.memo import MemoFetcher

logger = get_logger(__name__)

# Month a cross-year season starts in (July: "2025-2026" covers Jul 2025 → Jun 2026)
CROSS_YEAR_START_MONTH = 7
# Single-year seasons (NFL) run into Jan/Feb of the following year
SINGLE_YEAR_SPILL_MONTHS = 2


def parse_events(payload: Any, field: str) -> list[RawEvent]:
    """RawEvents from payload[field]; malformed items are dropped."""
    if not isinstance(payload, dict):
        return []
    items = payload.get(field)
    if not isinstance(items, list):
        return []
    events: list[RawEvent] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            events.append(RawEvent.model_validate(item))
        except ValidationError as exc:
            logger.debug("raw_event_rejected", field=field, error=str(exc))
    return events


def season_labels(style: SeasonStyle, today: date) -> list[str]:
    """Season labels to query, the one in progress first, then the next one."""
    if style is SeasonStyle.CROSS_YEAR:
        start = today.year if today.month >= CROSS_YEAR_START_MONTH else today.year - 1
        return [f"{start}-{start + 1}", f"{start + 1}-{start + 2}"]
    year = today.year - 1 if today.month <= SINGLE_YEAR_SPILL_MONTHS else today.year
    return [str(year), str(year + 1)]


def live_sport_label(sport: str) -> str:
    """american_football → 'american football'"""
    return sport.replace("_", " ")


class UpstreamFeeds:
    """The five upstream query shapes, each returning parsed RawEvents."""

    def __init__(self, memo: MemoFetcher, settings: Optional[Settings] = None) -> None:
        self._memo = memo
        self._settings = settings or get_settings()
        base = self._settings.tsdb_base_url.rstrip("/")
        self._v1 = f"{base}/v1/json/{self._settings.tsdb_v1_key}"
        self._v2 = f"{base}/v2/json"

    # ── URLs ────────────────────────────────────────────────────────────
    def live_urls(self, sport: str) -> list[str]:
        label = live_sport_label(sport)
        return [
            f"{self._v2}/livescore/{quote(label)}",
            f"{self._v2}/livescore.php?{urlencode({'s': label})}",
        ]

    def next_url(self, league_id: str) -> str:
        return f"{self._v1}/eventsnextleague.php?{urlencode({'id': league_id})}"

    def season_url(self, league_id: str, season: str) -> str:
        return f"{self._v1}/eventsseason.php?{urlencode({'id': league_id, 's': season})}"

    def past_url(self, league_id: str) -> str:
        return f"{self._v1}/eventspastleague.php?{urlencode({'id': league_id})}"

    def day_url(self, day: date, day_label: str) -> str:
        return f"{self._v1}/eventsday.php?{urlencode({'d': day.isoformat(), 's': day_label})}"

    @property
    def v2_headers(self) -> dict[str, str]:
        if not self._settings.tsdb_v2_key:
            return {}
        return {"X-API-KEY": self._settings.tsdb_v2_key}

    # ── Feeds ───────────────────────────────────────────────────────────
    async def live(self, sport: str) -> list[RawEvent]:
        events: list[RawEvent] = []
        for url in self.live_urls(sport):
            payload = await self._memo.memo_fetch(
                url, self._settings.ttl_live_s * 1000, self.v2_headers
            )
            events.extend(parse_events(payload, "livescore"))
        return events

    async def next_fixtures(self, league_id: str) -> list[RawEvent]:
        payload = await self._memo.memo_fetch(
            self.next_url(league_id), self._settings.ttl_next_s * 1000
        )
        return parse_events(payload, "events")

    async def season(self, league_id: str, season: str) -> list[RawEvent]:
        payload = await self._memo.memo_fetch(
            self.season_url(league_id, season), self._settings.ttl_season_s * 1000
        )
        return parse_events(payload, "events")

    async def past(self, league_id: str) -> list[RawEvent]:
        payload = await self._memo.memo_fetch(
            self.past_url(league_id), self._settings.ttl_past_s * 1000
        )
        return parse_events(payload, "events")

    async def day(self, day: date, day_label: str) -> list[RawEvent]:
        payload = await self._memo.memo_fetch(
            self.day_url(day, day_label), self._settings.ttl_day_s * 1000
        )
        return parse_events(payload, "events")


def utc_today(now_ms: float) -> date:
    return datetime.fromtimestamp(now_ms / 1000.0, tz=timezone.utc).date()

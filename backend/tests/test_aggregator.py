"""
Unit tests for board assembly: stage order, bucket ordering, recency gating,
dedup, league filtering, seasons, the throttled day scan and degradation.

Feeds are faked at the UpstreamFeeds seam so no URL or cache logic is involved.
"""
from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Any

import pytest

from board.aggregator import BoardAggregator, clamp_rows
from board.leagues import get_league_board
from board.limiter import TokenBucket
from board.projector import project_row
from shared.config import Settings
from shared.models.domain import RawEvent
from shared.models.enums import BoardStatus

from tests.factories import NOW_DT, NOW_MS, FakeClock, make_event

LEAGUE = "4328"
DAY_MINUTES = 24 * 60


class FakeFeeds:
    """In-memory UpstreamFeeds with per-method call counters."""

    def __init__(
        self,
        past: list[RawEvent] | None = None,
        live: list[RawEvent] | None = None,
        next_fixtures: list[RawEvent] | None = None,
        seasons: dict[str, list[RawEvent]] | None = None,
        days: dict[date, list[RawEvent]] | None = None,
        failing: tuple[str, ...] = (),
    ) -> None:
        self._past = past or []
        self._live = live or []
        self._next = next_fixtures or []
        self._seasons = seasons or {}
        self._days = days or {}
        self._failing = failing
        self.calls: Counter[str] = Counter()
        self.seasons_requested: list[str] = []
        self.days_requested: list[date] = []

    def _record(self, name: str) -> None:
        self.calls[name] += 1
        if name in self._failing:
            raise RuntimeError(f"{name} feed unavailable")

    async def past(self, league_id: str) -> list[RawEvent]:
        self._record("past")
        return self._past

    async def live(self, sport: str) -> list[RawEvent]:
        self._record("live")
        return self._live

    async def next_fixtures(self, league_id: str) -> list[RawEvent]:
        self._record("next")
        return self._next

    async def season(self, league_id: str, season: str) -> list[RawEvent]:
        self._record("season")
        self.seasons_requested.append(season)
        return self._seasons.get(season, [])

    async def day(self, day: date, day_label: str) -> list[RawEvent]:
        self._record("day")
        self.days_requested.append(day)
        return self._days.get(day, [])


def _aggregator(feeds: FakeFeeds, bucket: TokenBucket | None = None) -> BoardAggregator:
    bucket = bucket or TokenBucket(max_tokens=60, refill_amount=20, refill_interval_s=60)
    return BoardAggregator(feeds, bucket, Settings(), FakeClock())  # type: ignore[arg-type]


def _ids(rows: list[Any]) -> list[str | None]:
    return [r.event.id_event for r in rows]


def _upcoming(
    prefix: str, count: int, start: int = 30, step: int = 30, league_id: str = LEAGUE
) -> list[RawEvent]:
    return [
        make_event(
            event_id=f"{prefix}{i}",
            home=f"H{prefix}{i}",
            minutes_from_now=start + i * step,
            league_id=league_id,
        )
        for i in range(count)
    ]


class TestClampRows:

    def test_bounds(self) -> None:
        settings = Settings()
        assert clamp_rows(3, settings) == 5
        assert clamp_rows(7, settings) == 7
        assert clamp_rows(50, settings) == 10
        assert clamp_rows(None, settings) == 5


class TestBoardOrdering:

    @pytest.mark.asyncio
    async def test_finals_then_live_then_scheduled(self) -> None:
        feeds = FakeFeeds(
            past=[make_event(event_id="f1", minutes_from_now=-10, status="FT")],
            live=[make_event(event_id="l1", minutes_from_now=-3, home_score=1, away_score=0)],
            next_fixtures=_upcoming("s", 3),
        )

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, ["2025-2026"], 5)

        assert _ids(rows) == ["f1", "l1", "s0", "s1", "s2"]
        assert [r.status for r in rows] == [
            BoardStatus.FINAL, BoardStatus.LIVE,
            BoardStatus.SCHEDULED, BoardStatus.SCHEDULED, BoardStatus.SCHEDULED,
        ]
        assert feeds.calls["season"] == 0
        assert feeds.calls["day"] == 0

    @pytest.mark.asyncio
    async def test_truncates_to_target(self) -> None:
        feeds = FakeFeeds(next_fixtures=list(reversed(_upcoming("s", 12))))

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, [], 5)

        assert _ids(rows) == ["s0", "s1", "s2", "s3", "s4"]

    @pytest.mark.asyncio
    async def test_past_events_are_not_scheduled(self) -> None:
        feeds = FakeFeeds(next_fixtures=[
            make_event(event_id="old", minutes_from_now=-600, status="Not Started"),
            make_event(event_id="new", minutes_from_now=60),
        ])

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, [], 5)

        assert _ids(rows) == ["new"]


class TestFinalsGate:

    @pytest.mark.asyncio
    async def test_recency_window(self) -> None:
        feeds = FakeFeeds(past=[
            make_event(event_id="recent", minutes_from_now=-14, status="FT"),
            make_event(event_id="stale", minutes_from_now=-16, status="FT"),
        ])

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, [], 5)

        assert _ids(rows) == ["recent"]

    @pytest.mark.asyncio
    async def test_past_feed_without_status_counts_as_final(self) -> None:
        feeds = FakeFeeds(past=[make_event(event_id="p", minutes_from_now=-5, home_score=2, away_score=2)])

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, [], 5)

        assert _ids(rows) == ["p"]
        assert rows[0].status is BoardStatus.FINAL

    @pytest.mark.asyncio
    async def test_live_feed_finals(self) -> None:
        feeds = FakeFeeds(live=[
            make_event(event_id="just-ended", minutes_from_now=-5, status="Match Finished"),
            make_event(event_id="long-ended", minutes_from_now=-180, status="Match Finished"),
            make_event(event_id="playing", minutes_from_now=-20, status="2H"),
        ])

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, [], 5)

        assert _ids(rows) == ["just-ended", "playing"]
        assert rows[0].status is BoardStatus.FINAL
        assert rows[1].status is BoardStatus.LIVE


class TestFiltering:

    @pytest.mark.asyncio
    async def test_dedup_by_event_id_across_stages(self) -> None:
        feeds = FakeFeeds(
            live=[make_event(event_id="x", minutes_from_now=45)],
            next_fixtures=[
                make_event(event_id="x", minutes_from_now=45),
                make_event(event_id="y", minutes_from_now=60),
            ],
        )

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, [], 5)

        assert _ids(rows) == ["x", "y"]

    @pytest.mark.asyncio
    async def test_dedup_by_composite_key(self) -> None:
        feeds = FakeFeeds(
            next_fixtures=[make_event(home="Arsenal", away="Chelsea", minutes_from_now=60)],
            seasons={"2025-2026": [make_event(home="Arsenal", away="Chelsea", minutes_from_now=60)]},
        )

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, ["2025-2026"], 5)

        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_other_leagues_and_void_fixtures_excluded(self) -> None:
        feeds = FakeFeeds(next_fixtures=[
            make_event(event_id="ours", minutes_from_now=30),
            make_event(event_id="theirs", minutes_from_now=40, league_id="4335"),
            make_event(event_id="called-off", minutes_from_now=50, status="Postponed"),
        ])

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, [], 5)

        assert _ids(rows) == ["ours"]

    @pytest.mark.asyncio
    async def test_suspended_live_game_excluded(self) -> None:
        feeds = FakeFeeds(live=[
            make_event(event_id="halted", minutes_from_now=-30, status="Suspended",
                       home_score=1, away_score=1),
            make_event(event_id="abd", minutes_from_now=-60, status="ABD",
                       home_score=0, away_score=2),
            make_event(event_id="playing", minutes_from_now=-20, status="2H",
                       home_score=0, away_score=0),
        ])

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, [], 5)

        assert _ids(rows) == ["playing"]


class TestMalformedTimes:

    @pytest.mark.asyncio
    async def test_out_of_range_timestamp_never_reaches_the_board(self) -> None:
        feeds = FakeFeeds(next_fixtures=[
            make_event(
                event_id="ms-in-seconds",
                minutes_from_now=None,
                intTimestamp=str(int(NOW_MS + 3_600_000)),
            ),
            make_event(event_id="ok", minutes_from_now=90),
        ])

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, [], 5)

        assert _ids(rows) == ["ok"]
        assert [project_row(r).start for r in rows] == ["2025-10-17T19:30:00.000Z"]


class TestSeasonsAndDayScan:

    @pytest.mark.asyncio
    async def test_seasons_tried_in_order_until_full(self) -> None:
        feeds = FakeFeeds(seasons={
            "2025-2026": _upcoming("a", 2),
            "2026-2027": _upcoming("b", 5, start=400_000),
        })
        aggregator = _aggregator(feeds)

        rows = await aggregator.build_for(get_league_board("soccer"), 5)

        assert feeds.seasons_requested == ["2025-2026", "2026-2027"]
        assert _ids(rows) == ["a0", "a1", "b0", "b1", "b2"]
        assert feeds.calls["day"] == 0

    @pytest.mark.asyncio
    async def test_second_season_skipped_when_first_fills(self) -> None:
        feeds = FakeFeeds(seasons={"2025-2026": _upcoming("a", 8, league_id="4387")})

        await _aggregator(feeds).build_for(get_league_board("nba"), 5)

        assert feeds.seasons_requested == ["2025-2026"]

    @pytest.mark.asyncio
    async def test_single_year_season_labels(self) -> None:
        feeds = FakeFeeds()

        await _aggregator(feeds).build_for(get_league_board("nfl"), 5)

        assert feeds.seasons_requested == ["2025", "2026"]

    @pytest.mark.asyncio
    async def test_day_scan_fills_and_debits(self) -> None:
        today = NOW_DT.date()
        days = {
            date.fromordinal(today.toordinal() + offset): [
                make_event(event_id=f"d{offset}", minutes_from_now=offset * DAY_MINUTES + 120)
            ]
            for offset in range(10)
        }
        feeds = FakeFeeds(days=days)
        bucket = TokenBucket(max_tokens=60, refill_amount=20, refill_interval_s=60)

        rows = await _aggregator(feeds, bucket).build_board(
            "soccer", LEAGUE, [], 5, day_label="Soccer"
        )

        assert _ids(rows) == ["d0", "d1", "d2", "d3", "d4"]
        assert feeds.calls["day"] == 5
        assert feeds.days_requested[0] == today
        assert bucket.available == 50

    @pytest.mark.asyncio
    async def test_day_scan_bounded_by_tokens(self) -> None:
        feeds = FakeFeeds()
        bucket = TokenBucket(max_tokens=60, refill_amount=20, refill_interval_s=60)
        bucket.take(56)

        rows = await _aggregator(feeds, bucket).build_board(
            "soccer", LEAGUE, [], 5, day_label="Soccer"
        )

        assert rows == []
        assert feeds.calls["day"] == 4
        assert bucket.available == 0

    @pytest.mark.asyncio
    async def test_empty_bucket_skips_day_scan(self) -> None:
        feeds = FakeFeeds()
        bucket = TokenBucket(max_tokens=60, refill_amount=20, refill_interval_s=60)
        bucket.take(60)

        rows = await _aggregator(feeds, bucket).build_board(
            "soccer", LEAGUE, [], 5, day_label="Soccer"
        )

        assert rows == []
        assert feeds.calls["day"] == 0

    @pytest.mark.asyncio
    async def test_no_day_label_no_scan(self) -> None:
        feeds = FakeFeeds()

        await _aggregator(feeds).build_board("soccer", LEAGUE, [], 5)

        assert feeds.calls["day"] == 0


class TestDegradation:

    @pytest.mark.asyncio
    async def test_failing_stage_does_not_abort(self) -> None:
        feeds = FakeFeeds(
            live=[make_event(event_id="l", minutes_from_now=-20, status="2H")],
            next_fixtures=_upcoming("s", 2),
            failing=("past", "season"),
        )

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, ["2025-2026"], 5)

        assert _ids(rows) == ["l", "s0", "s1"]
        assert feeds.calls["past"] == 1
        assert feeds.calls["season"] == 1

    @pytest.mark.asyncio
    async def test_everything_failing_is_an_empty_board(self) -> None:
        feeds = FakeFeeds(failing=("past", "live", "next", "season", "day"))

        rows = await _aggregator(feeds).build_board("soccer", LEAGUE, ["2025-2026"], 5, "Soccer")

        assert rows == []

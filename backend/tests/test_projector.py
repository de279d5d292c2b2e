"""Row projection: score and start-time formatting."""
from __future__ import annotations

from board.classifier import ClassifiedEvent
from board.projector import format_score, format_start, project_row
from shared.models.enums import BoardStatus

from tests.factories import NOW_MS, make_event


class TestFormatting:

    def test_scores(self) -> None:
        assert format_score(0) == "0"
        assert format_score(None) == "N/A"

    def test_start_is_utc_iso(self) -> None:
        assert format_start(NOW_MS) == "2025-10-17T18:00:00.000Z"
        assert format_start(None) is None

    def test_unrepresentable_start_is_dropped(self) -> None:
        assert format_start(1.76e15) is None
        assert format_start(float("inf")) is None

    def test_row_survives_bad_start(self) -> None:
        item = ClassifiedEvent(
            make_event(event_id="1", home="Lakers", away="Celtics", minutes_from_now=None),
            1.76e15,
            BoardStatus.SCHEDULED,
        )
        row = project_row(item)
        assert row.start is None
        assert row.headline == "Lakers vs Celtics - Scheduled"

    def test_infinite_score_text_is_no_score(self) -> None:
        event = make_event(home_score="inf", away_score="2.0")
        assert event.home_score is None
        assert event.away_score == 2

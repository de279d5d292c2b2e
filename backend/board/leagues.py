"""Boards served by the API, keyed by route segment."""
from __future__ import annotations

from dataclasses import dataclass

from shared.models.enums import SeasonStyle


@dataclass(frozen=True)
class LeagueBoard:
    key: str
    sport: str        # livescore sport slug
    league_id: str    # TheSportsDB idLeague
    day_label: str    # eventsday.php ?s= label
    season_style: SeasonStyle


LEAGUE_BOARDS: dict[str, LeagueBoard] = {
    board.key: board
    for board in (
        LeagueBoard("soccer", "soccer", "4328", "Soccer", SeasonStyle.CROSS_YEAR),
        LeagueBoard("nba", "basketball", "4387", "Basketball", SeasonStyle.CROSS_YEAR),
        LeagueBoard(
            "nfl", "american_football", "4391", "American Football", SeasonStyle.SINGLE_YEAR
        ),
        LeagueBoard("nhl", "ice_hockey", "4380", "Ice Hockey", SeasonStyle.CROSS_YEAR),
    )
}


def get_league_board(key: str) -> LeagueBoard | None:
    return LEAGUE_BOARDS.get(key.lower())

"""Differential picks: in-form players few managers own."""

import logging
from typing import Any

from app.services.recommendations import parse_float_or_zero

logger = logging.getLogger(__name__)

MIN_OWNERSHIP = 0.5  # Exclusive bounds, percent
MAX_OWNERSHIP = 10.0
MIN_MINUTES = 270  # Three full matches
EXPECTED_POINTS_FACTOR = 1.1
FIXTURE_FALLBACK_LIMIT = 100

POSITION_ABBREVIATIONS = {1: "GK", 2: "DEF", 3: "MID", 4: "FWD"}


def _upcoming_fixtures(fixtures: list[dict[str, Any]]) -> list[dict[str, Any]]:
    upcoming = [
        f for f in fixtures if not f.get("finished") and f.get("event") is not None
    ]
    if not upcoming:
        # Between seasons every fixture is finished; use the head of the list
        return [f for f in fixtures[:FIXTURE_FALLBACK_LIMIT] if f.get("event") is not None]
    return sorted(upcoming, key=lambda f: f["event"])


def describe_next_fixture(
    team_id: int,
    fixtures: list[dict[str, Any]],
    teams_by_id: dict[int, dict[str, Any]],
) -> str:
    """Format a team's next fixture as "<OPP> (H|A) GW<n>".

    Args:
        team_id: Team to look up
        fixtures: Upcoming fixtures ordered by gameweek
        teams_by_id: Teams keyed by id, for opponent short names

    Returns:
        Description string, or "No fixture"
    """
    for fixture in fixtures:
        if fixture.get("team_h") == team_id:
            opponent, venue = fixture.get("team_a"), "H"
        elif fixture.get("team_a") == team_id:
            opponent, venue = fixture.get("team_h"), "A"
        else:
            continue
        short_name = teams_by_id.get(opponent, {}).get("short_name", "UNK")
        return f"{short_name} ({venue}) GW{fixture['event']}"
    return "No fixture"


def find_differential_picks(
    players: list[dict[str, Any]],
    teams: list[dict[str, Any]],
    fixtures: list[dict[str, Any]],
    limit: int = 10,
) -> list[dict[str, Any]]:
    """
    Find low-ownership players with regular minutes, best points per game first.

    Args:
        players: bootstrap-static elements
        teams: bootstrap-static teams
        fixtures: Season fixture list
        limit: Maximum number of picks

    Returns:
        Picks with id, name, team, position, price, ownership, expected_points,
        next_fixture and a 1-based rank
    """
    teams_by_id = {t["id"]: t for t in teams if "id" in t}

    candidates = [
        p
        for p in players
        if MIN_OWNERSHIP < parse_float_or_zero(p.get("selected_by_percent")) < MAX_OWNERSHIP
        and (p.get("minutes") or 0) > MIN_MINUTES
    ]
    candidates.sort(key=lambda p: parse_float_or_zero(p.get("points_per_game")), reverse=True)

    upcoming = _upcoming_fixtures(fixtures)

    picks = []
    for rank, player in enumerate(candidates[:limit], start=1):
        team = teams_by_id.get(player.get("team"))
        ppg = parse_float_or_zero(player.get("points_per_game"))
        picks.append(
            {
                "id": player["id"],
                "name": f"{player.get('first_name', '')} {player.get('second_name', '')}".strip(),
                "team": team.get("short_name", "Unknown") if team else "Unknown",
                "position": POSITION_ABBREVIATIONS.get(player.get("element_type"), "UNK"),
                "price": (player.get("now_cost") or 0) / 10,
                "ownership": parse_float_or_zero(player.get("selected_by_percent")),
                "expected_points": round(ppg * EXPECTED_POINTS_FACTOR, 2),
                "next_fixture": describe_next_fixture(player.get("team"), upcoming, teams_by_id),
                "rank": rank,
            }
        )

    logger.debug(f"Found {len(candidates)} differential candidates, returning {len(picks)}")
    return picks

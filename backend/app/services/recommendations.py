"""Transfer recommendations scoring and personalization engine.

Converts stored buy/sell recommendation rows, player snapshots and the fixture
list into ranked suggestions:
- Fixture windows (upcoming opponents per team within a gameweek horizon)
- Position fixture scores (clean sheets, midfield returns, forward returns)
- Combined buy score (form + fixture ease + position bonus)
- Roster analysis (under-filled and flagged positions)
- Personalization (ownership filters, priority boost, like-for-like replacements)
- Deduplication and ranking of stored rows

Every function here is pure: no I/O, no module state, inputs are never mutated.
"""

import logging
import math
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from app.services.roster import UserRoster

logger = logging.getLogger(__name__)

# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Constants
    "POSITION_GKP",
    "POSITION_DEF",
    "POSITION_MID",
    "POSITION_FWD",
    "POSITION_TARGETS",
    "AVAILABLE_STATUS",
    "DEFAULT_FIXTURE_HORIZON",
    "PRIORITY_POSITION_BOOST",
    "REPLACEMENT_FORM_THRESHOLD",
    "SIMILARITY_METRICS",
    "SIMILARITY_WEIGHT_OVERRIDES",
    # Parsing
    "parse_float_or_zero",
    # Fixture windows
    "FixtureEntry",
    "build_fixture_window",
    "build_fixture_windows",
    # Position scoring
    "fixture_weight",
    "calculate_clean_sheet_potential",
    "calculate_midfield_score_chance",
    "calculate_forward_score_chance",
    "calculate_fixture_difficulty_score",
    "calculate_position_fixture_bonus",
    # Candidate scoring
    "score_candidate",
    "rate_player_for_transfer_in",
    "is_premium_asset_to_keep",
    "enrich_records",
    "score_buy_recommendations",
    "score_sell_recommendations",
    # Roster analysis
    "RosterAnalysis",
    "analyze_roster",
    # Personalization
    "PersonalizedRecommendations",
    "calculate_player_similarity",
    "get_recommendation_reason",
    "personalize",
    # Deduplication and ranking
    "dedupe_latest",
    "dedupe_and_rank",
]

# =============================================================================
# Constants
# =============================================================================

# Position constants (FPL element_type)
POSITION_GKP = 1
POSITION_DEF = 2
POSITION_MID = 3
POSITION_FWD = 4

# Desired squad composition
POSITION_TARGETS: dict[int, int] = {
    POSITION_GKP: 2,
    POSITION_DEF: 5,
    POSITION_MID: 5,
    POSITION_FWD: 3,
}

AVAILABLE_STATUS = "a"

# Fixture window settings
DEFAULT_FIXTURE_HORIZON = 5  # Gameweeks after the current one
NEUTRAL_DIFFICULTY = 3  # Used when a fixture has no difficulty rating
FIXTURE_WEIGHT_DECAY = 0.1  # 1.0, 0.9, 0.8, ... per fixture index
DIFFICULTY_CEILING = 6  # 6 - difficulty maps FDR 1..5 onto 5..1

# Home advantage bonus per fixture
MIDFIELD_HOME_BONUS = 0.5
FORWARD_HOME_BONUS = 0.7

# Combined buy score weights
FORM_WEIGHT = 0.3
FIXTURE_EASE_WEIGHT = 0.4
POSITION_BONUS_WEIGHT = 0.3

# Personalization
PRIORITY_POSITION_BOOST = 1.5
REPLACEMENT_FORM_THRESHOLD = 4.0
EASY_FIXTURE_THRESHOLD = 3.0

# Player similarity: metric set and per-position weight overrides (default 1)
SIMILARITY_METRICS = (
    "goals_scored",
    "assists",
    "bonus",
    "bps",
    "ict_index",
    "minutes",
    "clean_sheets",
)
SIMILARITY_WEIGHT_OVERRIDES: dict[int, dict[str, float]] = {
    POSITION_GKP: {"clean_sheets": 3},
    POSITION_DEF: {"clean_sheets": 2},
    POSITION_MID: {"goals_scored": 2, "assists": 2},
    POSITION_FWD: {"goals_scored": 3},
}

# Premium assets are protected from sell suggestions when fixtures are kind
PREMIUM_PLAYER_IDS: dict[int, frozenset[int]] = {
    POSITION_DEF: frozenset({311, 359, 4, 22, 35, 171}),
    POSITION_MID: frozenset({283, 233, 80, 427, 424, 391}),
    POSITION_FWD: frozenset({351, 58, 541, 91}),
}
PREMIUM_PRICE_THRESHOLDS: dict[int, int] = {
    POSITION_GKP: 55,
    POSITION_DEF: 60,
    POSITION_MID: 80,
    POSITION_FWD: 75,
}
PREMIUM_FIXTURE_LOOKAHEAD = 5
PREMIUM_REPLACEMENT_COST = 70  # now_cost, tenths of a million
PREMIUM_SELL_CONFIDENCE_FACTOR = 0.5
STRONG_TEAM_STRENGTH = 4

UNKNOWN_TEAM = {"name": "Unknown", "short_name": "UNK"}

_EARLIEST = datetime.min.replace(tzinfo=UTC)


# =============================================================================
# Parsing
# =============================================================================


def parse_float_or_zero(value: Any) -> float:
    """Parse an FPL decimal string (form, ppg, ownership) to float.

    Absent, empty, non-numeric or non-finite values parse as 0.0.
    """
    if value is None or value == "":
        return 0.0
    try:
        result = float(value)
    except (ValueError, TypeError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def _difficulty(value: Any) -> int:
    if value is None:
        return NEUTRAL_DIFFICULTY
    try:
        return int(value)
    except (ValueError, TypeError):
        return NEUTRAL_DIFFICULTY


# =============================================================================
# 1. Fixture Window Indexer
# =============================================================================


@dataclass(slots=True, frozen=True)
class FixtureEntry:
    """One upcoming match from a single team's point of view."""

    opponent: int
    difficulty: int  # 1 (easiest) to 5 (hardest)
    is_home: bool
    event: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "opponent": self.opponent,
            "difficulty": self.difficulty,
            "is_home": self.is_home,
            "event": self.event,
        }


def _in_horizon(event: Any, current_gameweek: int, horizon: int) -> bool:
    return event is not None and current_gameweek <= event <= current_gameweek + horizon


def build_fixture_window(
    team_id: int,
    fixtures: Iterable[dict[str, Any]],
    current_gameweek: int,
    horizon: int = DEFAULT_FIXTURE_HORIZON,
) -> list[FixtureEntry]:
    """Build a team's upcoming fixture window.

    Only fixtures with a gameweek in [current_gameweek, current_gameweek + horizon]
    are kept. Unscheduled fixtures (event is None) are skipped.

    Args:
        team_id: Team to build the window for
        fixtures: Raw fixture dicts from the FPL fixtures endpoint
        current_gameweek: First gameweek of the window
        horizon: Number of gameweeks after current_gameweek to include

    Returns:
        Entries ordered by gameweek, ties kept in original fixture order
    """
    entries: list[FixtureEntry] = []
    for fixture in fixtures:
        event = fixture.get("event")
        if not _in_horizon(event, current_gameweek, horizon):
            continue

        if fixture.get("team_h") == team_id:
            entries.append(
                FixtureEntry(
                    opponent=fixture.get("team_a"),
                    difficulty=_difficulty(fixture.get("team_h_difficulty")),
                    is_home=True,
                    event=event,
                )
            )
        elif fixture.get("team_a") == team_id:
            entries.append(
                FixtureEntry(
                    opponent=fixture.get("team_h"),
                    difficulty=_difficulty(fixture.get("team_a_difficulty")),
                    is_home=False,
                    event=event,
                )
            )

    return sorted(entries, key=lambda e: e.event)


def build_fixture_windows(
    fixtures: Iterable[dict[str, Any]],
    current_gameweek: int,
    horizon: int = DEFAULT_FIXTURE_HORIZON,
) -> dict[int, list[FixtureEntry]]:
    """Build fixture windows for every team in a single pass.

    Equivalent to calling build_fixture_window for each team that appears in
    the fixture list. Teams without fixtures in the horizon are absent.
    """
    windows: dict[int, list[FixtureEntry]] = {}
    for fixture in fixtures:
        event = fixture.get("event")
        if not _in_horizon(event, current_gameweek, horizon):
            continue

        home_team = fixture.get("team_h")
        away_team = fixture.get("team_a")
        windows.setdefault(home_team, []).append(
            FixtureEntry(
                opponent=away_team,
                difficulty=_difficulty(fixture.get("team_h_difficulty")),
                is_home=True,
                event=event,
            )
        )
        windows.setdefault(away_team, []).append(
            FixtureEntry(
                opponent=home_team,
                difficulty=_difficulty(fixture.get("team_a_difficulty")),
                is_home=False,
                event=event,
            )
        )

    return {
        team_id: sorted(entries, key=lambda e: e.event)
        for team_id, entries in windows.items()
    }


# =============================================================================
# 2. Position Scoring Functions
# =============================================================================


def fixture_weight(index: int) -> float:
    """Weight of the index-th fixture in a window (1.0, 0.9, 0.8, ...)."""
    return max(0.0, 1 - index * FIXTURE_WEIGHT_DECAY)


def _weighted_window_average(
    window: list[FixtureEntry], term: Callable[[FixtureEntry], float]
) -> float:
    # Empty window scores 0 (neutral)
    total = 0.0
    for index, entry in enumerate(window):
        total += term(entry) * fixture_weight(index)
    return total / (len(window) or 1)


def calculate_clean_sheet_potential(window: list[FixtureEntry]) -> float:
    """Clean sheet potential for goalkeepers and defenders.

    Lower opponent difficulty gives a higher score (FDR 1 -> 5, FDR 5 -> 1).
    """
    return _weighted_window_average(
        window, lambda entry: DIFFICULTY_CEILING - entry.difficulty
    )


def calculate_midfield_score_chance(window: list[FixtureEntry]) -> float:
    """Attacking potential for midfielders, with a bonus for home games."""
    return _weighted_window_average(
        window,
        lambda entry: DIFFICULTY_CEILING
        - entry.difficulty
        + (MIDFIELD_HOME_BONUS if entry.is_home else 0),
    )


def calculate_forward_score_chance(window: list[FixtureEntry]) -> float:
    """Attacking potential for forwards, weighted further toward home games."""
    return _weighted_window_average(
        window,
        lambda entry: DIFFICULTY_CEILING
        - entry.difficulty
        + (FORWARD_HOME_BONUS if entry.is_home else 0),
    )


def calculate_fixture_difficulty_score(window: list[FixtureEntry]) -> float:
    """Weighted fixture difficulty (higher = harder run of fixtures).

    This is the raw `fixture_score` attached to recommendations. Callers that
    want an ease value invert it (6 - score).
    """
    return _weighted_window_average(window, lambda entry: entry.difficulty)


def calculate_position_fixture_bonus(position: int | None, window: list[FixtureEntry]) -> float:
    """Dispatch to the position's fixture scoring function.

    Goalkeepers and defenders both use clean sheet potential. Unknown
    positions get no bonus.
    """
    if position in (POSITION_GKP, POSITION_DEF):
        return calculate_clean_sheet_potential(window)
    if position == POSITION_MID:
        return calculate_midfield_score_chance(window)
    if position == POSITION_FWD:
        return calculate_forward_score_chance(window)
    return 0.0


# =============================================================================
# 3. Candidate Scoring
# =============================================================================


def score_candidate(
    candidate: dict[str, Any],
    fixture_score: float,
    position_bonus: float,
) -> float:
    """Combined buy score for a candidate.

    combined = 0.3 * form + 0.4 * (6 - fixture_score) + 0.3 * position_bonus

    Args:
        candidate: Player dict with a `form` decimal string (may be missing)
        fixture_score: Output of calculate_fixture_difficulty_score
        position_bonus: Output of calculate_position_fixture_bonus

    Returns:
        Combined score, higher is better
    """
    return (
        parse_float_or_zero(candidate.get("form")) * FORM_WEIGHT
        + (DIFFICULTY_CEILING - fixture_score) * FIXTURE_EASE_WEIGHT
        + position_bonus * POSITION_BONUS_WEIGHT
    )


def rate_player_for_transfer_in(player: dict[str, Any], fixture_score: float) -> float:
    """Informational transfer-in rating: form, fixture ease and points per million."""
    form = parse_float_or_zero(player.get("form"))
    ppg = parse_float_or_zero(player.get("points_per_game"))
    cost = parse_float_or_zero(player.get("now_cost"))
    value = ppg / (cost / 10) if cost > 0 else 0.0
    fixture_bonus = 5 - fixture_score

    return form * 0.4 + fixture_bonus * 0.4 + value * 0.2


def _average_upcoming_difficulty(team_id: Any, fixtures: list[dict[str, Any]]) -> float:
    difficulties: list[int] = []
    for fixture in fixtures:
        if fixture.get("finished"):
            continue
        if fixture.get("team_h") == team_id:
            difficulties.append(_difficulty(fixture.get("team_h_difficulty")))
        elif fixture.get("team_a") == team_id:
            difficulties.append(_difficulty(fixture.get("team_a_difficulty")))
        if len(difficulties) == PREMIUM_FIXTURE_LOOKAHEAD:
            break

    if not difficulties:
        return 5.0
    return sum(difficulties) / len(difficulties)


def is_premium_asset_to_keep(
    player: dict[str, Any],
    fixtures: list[dict[str, Any]],
    teams_by_id: dict[int, dict[str, Any]],
) -> bool:
    """Check if a player is a premium asset worth keeping regardless of form.

    Premium means a known premium id for the position or a price at or above
    the position threshold. A premium is kept when:
    - Average difficulty of the next 5 unfinished fixtures is below 3
    - Average is below 3.5 and points per game is above 4.5
    - The player's team has strength 4 or more
    """
    position = player.get("element_type")
    is_premium = player.get("id") in PREMIUM_PLAYER_IDS.get(position, ()) or (
        position in PREMIUM_PRICE_THRESHOLDS
        and parse_float_or_zero(player.get("now_cost")) >= PREMIUM_PRICE_THRESHOLDS[position]
    )
    if not is_premium:
        return False

    avg_difficulty = _average_upcoming_difficulty(player.get("team"), fixtures)
    if avg_difficulty < 3:
        return True
    if avg_difficulty < 3.5 and parse_float_or_zero(player.get("points_per_game")) > 4.5:
        return True

    team = teams_by_id.get(player.get("team"))
    return bool(team and (team.get("strength") or 0) >= STRONG_TEAM_STRENGTH)


def _attach_player(
    record: dict[str, Any],
    player: dict[str, Any],
    teams_by_id: dict[int, dict[str, Any]],
) -> dict[str, Any]:
    team = teams_by_id.get(player.get("team")) or UNKNOWN_TEAM
    return {**record, "players": {**player, "teams": team}}


def enrich_records(
    records: list[dict[str, Any]],
    players_by_id: dict[int, dict[str, Any]],
    teams_by_id: dict[int, dict[str, Any]],
) -> list[dict[str, Any]]:
    """Attach player and team data to stored rows without scoring them.

    Used for captain lists. Rows whose player is unknown are dropped.
    """
    enriched = []
    for record in records:
        player = players_by_id.get(record.get("player_id"))
        if player is None:
            logger.warning(f"Skipping recommendation for unknown player {record.get('player_id')}")
            continue
        enriched.append(_attach_player(record, player, teams_by_id))
    return enriched


def score_buy_recommendations(
    records: list[dict[str, Any]],
    players_by_id: dict[int, dict[str, Any]],
    teams_by_id: dict[int, dict[str, Any]],
    windows: dict[int, list[FixtureEntry]],
) -> list[dict[str, Any]]:
    """Attach player data and buy-side scores to stored buy rows.

    Each row gains fixture_score, position_fixture_bonus, combined_score,
    transfer_in_rating and its first five upcoming fixtures. Rows whose player
    is unknown are dropped. Input order is preserved.
    """
    scored = []
    for record in records:
        player = players_by_id.get(record.get("player_id"))
        if player is None:
            logger.warning(f"Skipping buy recommendation for unknown player {record.get('player_id')}")
            continue

        window = windows.get(player.get("team"), [])
        fixture_score = calculate_fixture_difficulty_score(window)
        position_bonus = calculate_position_fixture_bonus(player.get("element_type"), window)

        scored.append(
            {
                **_attach_player(record, player, teams_by_id),
                "fixture_score": fixture_score,
                "position_fixture_bonus": position_bonus,
                "combined_score": score_candidate(player, fixture_score, position_bonus),
                "transfer_in_rating": rate_player_for_transfer_in(player, fixture_score),
                "upcoming_fixtures": [entry.to_dict() for entry in window[:5]],
            }
        )
    return scored


def score_sell_recommendations(
    records: list[dict[str, Any]],
    players_by_id: dict[int, dict[str, Any]],
    teams_by_id: dict[int, dict[str, Any]],
    windows: dict[int, list[FixtureEntry]],
    fixtures: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Attach player data and sell-side fields to stored sell rows.

    Sell rows get a fixture_score only (no position bonus or combined score),
    plus is_premium_asset and adjusted_confidence (halved for premium assets).
    """
    scored = []
    for record in records:
        player = players_by_id.get(record.get("player_id"))
        if player is None:
            logger.warning(f"Skipping sell recommendation for unknown player {record.get('player_id')}")
            continue

        window = windows.get(player.get("team"), [])
        is_premium = is_premium_asset_to_keep(player, fixtures, teams_by_id)
        confidence = parse_float_or_zero(record.get("confidence_score"))

        scored.append(
            {
                **_attach_player(record, player, teams_by_id),
                "fixture_score": calculate_fixture_difficulty_score(window),
                "upcoming_fixtures": [entry.to_dict() for entry in window[:5]],
                "is_premium_asset": is_premium,
                "adjusted_confidence": (
                    confidence * PREMIUM_SELL_CONFIDENCE_FACTOR if is_premium else confidence
                ),
            }
        )
    return scored


# =============================================================================
# 4. Roster Analysis
# =============================================================================


@dataclass(frozen=True)
class RosterAnalysis:
    """Positions that need reinforcement and the ids already owned."""

    priority_positions: frozenset[int]
    roster_player_ids: frozenset[int]
    weak_positions: frozenset[int] = frozenset()
    flagged_positions: frozenset[int] = frozenset()
    position_counts: dict[int, int] = field(default_factory=dict)


def _is_flagged(status: str | None) -> bool:
    # Missing status means the feed had nothing to report
    return status not in (AVAILABLE_STATUS, "", None)


def analyze_roster(roster: UserRoster) -> RosterAnalysis:
    """Find weak and flagged positions in a manager's roster.

    A position is weak when it holds fewer players than POSITION_TARGETS asks
    for, and flagged when any of its players has a non-available status.
    """
    counts = Counter(pick.element_type for pick in roster.picks)
    weak = frozenset(
        position
        for position, target in POSITION_TARGETS.items()
        if counts.get(position, 0) < target
    )
    flagged = frozenset(
        pick.element_type for pick in roster.picks if _is_flagged(pick.status)
    )

    return RosterAnalysis(
        priority_positions=weak | flagged,
        roster_player_ids=frozenset(roster.player_ids),
        weak_positions=weak,
        flagged_positions=flagged,
        position_counts=dict(counts),
    )


# =============================================================================
# 5. Personalization
# =============================================================================


@dataclass
class PersonalizedRecommendations:
    """Buy and sell lists after personalization.

    replacements holds every like-for-like match before the merge. The merged
    buy list keeps the general entry for a player, so replacement details only
    survive here.
    """

    buy: list[dict[str, Any]]
    sell: list[dict[str, Any]]
    replacements: list[dict[str, Any]] = field(default_factory=list)


def calculate_player_similarity(player_a: dict[str, Any], player_b: dict[str, Any]) -> float:
    """Position-weighted statistical similarity of two players (0.0 to 1.0).

    Each metric present on both players contributes
    (1 - |a - b| / max(a, b, 1)) * weight. Weights follow player_a's position.

    Returns:
        Weighted mean similarity, or 0.0 if no metric is present on both
    """
    overrides = SIMILARITY_WEIGHT_OVERRIDES.get(player_a.get("element_type"), {})

    similarity = 0.0
    total_weight = 0.0
    for metric in SIMILARITY_METRICS:
        if player_a.get(metric) is None or player_b.get(metric) is None:
            continue

        a = parse_float_or_zero(player_a[metric])
        b = parse_float_or_zero(player_b[metric])
        weight = overrides.get(metric, 1)

        normalized_diff = abs(a - b) / max(a, b, 1)
        similarity += (1 - normalized_diff) * weight
        total_weight += weight

    return similarity / total_weight if total_weight > 0 else 0.0


def get_recommendation_reason(
    current_player: dict[str, Any],
    recommended_player: dict[str, Any],
    fixture_score: float,
) -> str:
    """Human-readable reasons a recommended player beats the current one."""
    reasons = []

    if fixture_score < EASY_FIXTURE_THRESHOLD:
        reasons.append("favorable upcoming fixtures")

    new_form = recommended_player.get("form")
    old_form = current_player.get("form")
    if new_form and old_form and parse_float_or_zero(new_form) > parse_float_or_zero(old_form):
        reasons.append(f"better current form ({new_form} vs {old_form})")

    if (
        _is_flagged(current_player.get("status"))
        and recommended_player.get("status") == AVAILABLE_STATUS
    ):
        reasons.append("currently available to play (replacing injured/doubtful player)")

    new_ppg = recommended_player.get("points_per_game")
    old_ppg = current_player.get("points_per_game")
    if new_ppg and old_ppg and parse_float_or_zero(new_ppg) > parse_float_or_zero(old_ppg):
        reasons.append(f"higher points per game ({new_ppg} vs {old_ppg})")

    if parse_float_or_zero(recommended_player.get("now_cost")) >= PREMIUM_REPLACEMENT_COST:
        reasons.append("premium player with high point potential")

    if not reasons:
        reasons.append("potentially better option in this position")

    return ", ".join(reasons)


def _needs_replacing(player: dict[str, Any], sell_ids: set[Any]) -> bool:
    return (
        _is_flagged(player.get("status"))
        or parse_float_or_zero(player.get("form")) < REPLACEMENT_FORM_THRESHOLD
        or player.get("id") in sell_ids
    )


def personalize(
    buy_candidates: list[dict[str, Any]],
    sell_candidates: list[dict[str, Any]],
    analysis: RosterAnalysis,
    roster: UserRoster,
    protected_player_ids: frozenset[int] = frozenset(),
) -> PersonalizedRecommendations:
    """Filter, boost and re-rank scored recommendations against a roster.

    - Sell: only players on the roster (minus protected ones), ordered by
      adjusted_confidence descending
    - Buy: players not on the roster; combined_score x1.5 for priority positions
    - Replacements: for each roster player that is flagged, out of form or
      already on the sell list, same-position buy candidates that outscore
      the player's form or have easy fixtures
    - Merge: general list first, replacements second, first occurrence of a
      player id wins, sorted by combined_score descending

    Args:
        buy_candidates: Output of score_buy_recommendations
        sell_candidates: Output of score_sell_recommendations
        analysis: Output of analyze_roster
        roster: The manager's roster
        protected_player_ids: Roster players never suggested for sale or
            replacement (premium assets with kind fixtures)

    Returns:
        PersonalizedRecommendations with buy and sell lists
    """
    owned = analysis.roster_player_ids

    sell = sorted(
        (
            rec
            for rec in sell_candidates
            if rec.get("player_id") in owned and rec.get("player_id") not in protected_player_ids
        ),
        key=lambda rec: rec.get("adjusted_confidence", rec.get("confidence_score", 0)),
        reverse=True,
    )

    boosted = []
    for rec in buy_candidates:
        if rec.get("player_id") in owned:
            continue
        position = (rec.get("players") or {}).get("element_type")
        is_priority = position in analysis.priority_positions
        boosted.append(
            {
                **rec,
                "combined_score": rec.get("combined_score", 0.0)
                * (PRIORITY_POSITION_BOOST if is_priority else 1),
                "position_priority": is_priority,
            }
        )

    sell_ids = {rec.get("player_id") for rec in sell}
    replacements = []
    for pick in roster.picks:
        current = pick.player
        if pick.player_id in protected_player_ids or not _needs_replacing(current, sell_ids):
            continue

        current_form = parse_float_or_zero(current.get("form"))
        for rec in boosted:
            candidate = rec.get("players") or {}
            if candidate.get("element_type") != pick.element_type:
                continue
            fixture_score = rec.get("fixture_score", 0.0)
            if not (rec.get("combined_score", 0.0) > current_form or fixture_score < EASY_FIXTURE_THRESHOLD):
                continue

            replacements.append(
                {
                    **rec,
                    "replacing_player": current.get("web_name"),
                    "similarity_score": calculate_player_similarity(current, candidate),
                    "recommendation_reason": get_recommendation_reason(
                        current, candidate, fixture_score
                    ),
                }
            )

    seen: set[Any] = set()
    merged = []
    for rec in boosted + replacements:
        if rec.get("player_id") in seen:
            continue
        seen.add(rec.get("player_id"))
        merged.append(rec)

    buy = sorted(merged, key=lambda rec: rec.get("combined_score", 0.0), reverse=True)

    logger.debug(
        f"Personalized for manager {roster.manager_id}: "
        f"{len(buy)} buy ({len(replacements)} replacement matches), {len(sell)} sell, "
        f"priority positions {sorted(analysis.priority_positions)}"
    )
    return PersonalizedRecommendations(buy=buy, sell=sell, replacements=replacements)


# =============================================================================
# 6. Deduplication and Ranking
# =============================================================================


def _created_at(record: dict[str, Any]) -> datetime:
    value = record.get("created_at")
    if isinstance(value, datetime):
        created = value
    elif isinstance(value, str) and value:
        try:
            created = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unparseable created_at {value!r} on recommendation {record.get('id')}")
            return _EARLIEST
    else:
        return _EARLIEST

    return created if created.tzinfo is not None else created.replace(tzinfo=UTC)


def dedupe_latest(
    records: Iterable[dict[str, Any]],
    id_key: str = "player_id",
) -> list[dict[str, Any]]:
    """Keep only the most recently created record per player id.

    Ties on created_at keep the earlier record. Survivors keep the position of
    the first record seen for their player id.
    """
    latest: dict[Any, dict[str, Any]] = {}
    for record in records:
        key = record.get(id_key)
        current = latest.get(key)
        if current is None or _created_at(record) > _created_at(current):
            latest[key] = record
    return list(latest.values())


def dedupe_and_rank(
    records: Iterable[dict[str, Any]],
    sort_by: str = "confidence_score",
    descending: bool = True,
    id_key: str = "player_id",
) -> list[dict[str, Any]]:
    """Deduplicate records by player id, then sort by a score field.

    Use confidence_score for plain buy/sell lists, combined_score for
    personalized buy lists and rank (ascending) for captain lists. Sorting is
    stable, so running this twice gives the same result.

    Args:
        records: Recommendation rows with created_at and the sort field
        sort_by: Field to sort on
        descending: Sort direction (False for rank)
        id_key: Field holding the player reference

    Returns:
        Deduplicated, ordered list
    """
    unique = dedupe_latest(records, id_key)

    if descending:
        return sorted(unique, key=lambda r: parse_float_or_zero(r.get(sort_by)), reverse=True)

    def ascending_key(record: dict[str, Any]) -> float:
        value = record.get(sort_by)
        return math.inf if value is None else parse_float_or_zero(value)

    return sorted(unique, key=ascending_key)

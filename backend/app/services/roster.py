"""Manager roster model and roster source.

The roster is the personalization input for transfer recommendations. It is
built from a manager's gameweek picks joined with bootstrap player data, so
each pick carries the full player snapshot (status, form, price and the season
stats used for similarity matching).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

POSITION_NAMES: dict[int, str] = {
    1: "Goalkeeper",
    2: "Defender",
    3: "Midfielder",
    4: "Forward",
}


class RosterNotFoundError(Exception):
    """Raised when the FPL API has no team for a manager id."""

    def __init__(self, manager_id: int) -> None:
        super().__init__(f"FPL manager {manager_id} not found")
        self.manager_id = manager_id


class RosterClientProtocol(Protocol):
    """Protocol for the FPL API calls needed to build a roster."""

    async def get_bootstrap_static(self) -> dict[str, Any]: ...
    async def get_manager_picks(
        self, manager_id: int, gameweek: int
    ) -> dict[str, Any]: ...


@dataclass(slots=True)
class RosterPick:
    """A single roster slot."""

    player: dict[str, Any]
    position: int  # Squad slot 1-15 (1-11 starting, 12-15 bench)
    multiplier: int = 1
    is_captain: bool = False
    is_vice_captain: bool = False

    @property
    def player_id(self) -> int | None:
        return self.player.get("id")

    @property
    def element_type(self) -> int | None:
        return self.player.get("element_type")

    @property
    def status(self) -> str | None:
        return self.player.get("status")

    def to_dict(self) -> dict[str, Any]:
        return {
            "player": self.player,
            "position": self.position,
            "multiplier": self.multiplier,
            "is_captain": self.is_captain,
            "is_vice_captain": self.is_vice_captain,
        }


@dataclass
class UserRoster:
    """A manager's squad for one gameweek.

    Raises:
        ValueError: If more than one pick is captain or vice-captain
    """

    manager_id: int
    gameweek: int
    picks: list[RosterPick] = field(default_factory=list)
    active_chip: str | None = None

    def __post_init__(self) -> None:
        captains = sum(1 for pick in self.picks if pick.is_captain)
        vice_captains = sum(1 for pick in self.picks if pick.is_vice_captain)
        if captains > 1:
            raise ValueError(f"Roster for manager {self.manager_id} has {captains} captains")
        if vice_captains > 1:
            raise ValueError(
                f"Roster for manager {self.manager_id} has {vice_captains} vice-captains"
            )

    @property
    def player_ids(self) -> set[int]:
        return {pick.player_id for pick in self.picks if pick.player_id is not None}

    @property
    def team_value(self) -> float:
        """Squad value in millions."""
        return sum(pick.player.get("now_cost") or 0 for pick in self.picks) / 10

    @property
    def team_by_position(self) -> dict[str, list[dict[str, Any]]]:
        grouped: dict[str, list[dict[str, Any]]] = {str(pos): [] for pos in POSITION_NAMES}
        for pick in self.picks:
            if pick.element_type in POSITION_NAMES:
                grouped[str(pick.element_type)].append(pick.to_dict())
        return grouped

    def to_dict(self) -> dict[str, Any]:
        return {
            "manager_id": self.manager_id,
            "gameweek": self.gameweek,
            "team": [pick.to_dict() for pick in self.picks],
            "team_by_position": self.team_by_position,
            "team_value": self.team_value,
            "active_chip": self.active_chip,
        }


def build_user_roster(
    manager_id: int,
    gameweek: int,
    picks_data: dict[str, Any],
    bootstrap: dict[str, Any],
) -> UserRoster:
    """Join a manager's picks with bootstrap player and team data.

    Args:
        manager_id: FPL manager id
        gameweek: Gameweek the picks belong to
        picks_data: Response of /entry/{id}/event/{gw}/picks/
        bootstrap: Response of /bootstrap-static/

    Returns:
        UserRoster with one pick per squad slot
    """
    players_by_id = {p["id"]: p for p in bootstrap.get("elements", []) if "id" in p}
    teams_by_id = {t["id"]: t for t in bootstrap.get("teams", []) if "id" in t}

    picks = []
    for pick in picks_data.get("picks", []):
        element_id = pick.get("element")
        player = players_by_id.get(element_id)
        if player is None:
            logger.warning(f"Pick {element_id} for manager {manager_id} not in bootstrap data")
            player = {"id": element_id}

        team = teams_by_id.get(player.get("team"), {})
        picks.append(
            RosterPick(
                player={
                    **player,
                    "team_name": team.get("name"),
                    "team_short_name": team.get("short_name"),
                },
                position=pick.get("position", len(picks) + 1),
                multiplier=pick.get("multiplier", 1),
                is_captain=bool(pick.get("is_captain")),
                is_vice_captain=bool(pick.get("is_vice_captain")),
            )
        )

    return UserRoster(
        manager_id=manager_id,
        gameweek=gameweek,
        picks=picks,
        active_chip=picks_data.get("active_chip"),
    )


async def fetch_user_roster(
    fpl_client: RosterClientProtocol,
    manager_id: int,
    gameweek: int,
    bootstrap: dict[str, Any] | None = None,
) -> UserRoster:
    """Fetch a manager's roster for a gameweek.

    Args:
        fpl_client: Client providing bootstrap and picks endpoints
        manager_id: FPL manager id
        gameweek: Gameweek to fetch picks for
        bootstrap: Already-fetched bootstrap data (fetched if omitted)

    Raises:
        RosterNotFoundError: If the FPL API returns 404 for the manager
        httpx.HTTPError: Any other upstream failure
    """
    if bootstrap is None:
        bootstrap = await fpl_client.get_bootstrap_static()

    try:
        picks_data = await fpl_client.get_manager_picks(manager_id, gameweek)
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 404:
            raise RosterNotFoundError(manager_id) from e
        raise

    return build_user_roster(manager_id, gameweek, picks_data, bootstrap)

"""Recommendation service: fetches collaborators and runs the scoring engine.

Each route is a thin adapter over this service. All scoring lives in
app.services.recommendations; this module only gathers its inputs (FPL
bootstrap, fixtures, roster, stored rows) and shapes the response.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from app.services.fpl_client import current_gameweek_from_events
from app.services.recommendation_store import (
    CAPTAIN_TABLE,
    TRANSFER_TABLE,
    RecommendationTableMissingError,
    SchemaIssueError,
)
from app.services.recommendations import (
    DEFAULT_FIXTURE_HORIZON,
    analyze_roster,
    build_fixture_windows,
    dedupe_and_rank,
    enrich_records,
    is_premium_asset_to_keep,
    personalize,
    score_buy_recommendations,
    score_sell_recommendations,
)
from app.services.roster import RosterNotFoundError, UserRoster, fetch_user_roster

logger = logging.getLogger(__name__)


class FplClientProtocol(Protocol):
    """FPL API calls the service depends on."""

    async def get_bootstrap_static(self) -> dict[str, Any]: ...
    async def get_fixtures(self) -> list[dict[str, Any]]: ...
    async def get_manager_picks(
        self, manager_id: int, gameweek: int
    ) -> dict[str, Any]: ...


class RecommendationStoreProtocol(Protocol):
    """Stored recommendation rows the service depends on."""

    async def fetch_transfer_recommendations(
        self, gameweek: int, kind: str
    ) -> list[dict[str, Any]]: ...
    async def fetch_captain_recommendations(self, gameweek: int) -> list[dict[str, Any]]: ...
    async def get_last_updated(self, gameweek: int, table: str = ...) -> datetime | None: ...


def _index_by_id(items: list[dict[str, Any]]) -> dict[int, dict[str, Any]]:
    return {item["id"]: item for item in items if "id" in item}


def empty_transfer_response(
    gameweek: int,
    status: str,
    error: str | None = None,
    is_personalized: bool = False,
) -> dict[str, Any]:
    """Transfer response with no recommendations.

    is_personalized reflects whether a roster was loaded, even when the
    store had nothing to personalize.
    """
    response: dict[str, Any] = {
        "gameweek": gameweek,
        "buy_recommendations": [],
        "sell_recommendations": [],
        "updated_at": datetime.now(UTC).isoformat(),
        "is_personalized": is_personalized,
        "status": status,
    }
    if error is not None:
        response["error"] = error
    return response


class RecommendationsService:
    """Builds transfer and captain recommendations for a gameweek.

    Args:
        fpl_client: Source of bootstrap, fixtures and manager picks
        store: Source of stored recommendation rows
        fixture_horizon: Gameweeks after the current one used for fixture scores
        protect_premium_assets: Keep premium players with kind fixtures out
            of personalized sell and replacement suggestions
    """

    def __init__(
        self,
        fpl_client: FplClientProtocol,
        store: RecommendationStoreProtocol,
        fixture_horizon: int = DEFAULT_FIXTURE_HORIZON,
        protect_premium_assets: bool = True,
    ) -> None:
        self.fpl_client = fpl_client
        self.store = store
        self.fixture_horizon = fixture_horizon
        self.protect_premium_assets = protect_premium_assets

    async def _load_source_data(
        self, gameweek: int | None
    ) -> tuple[dict[str, Any], list[dict[str, Any]], int]:
        bootstrap, fixtures = await asyncio.gather(
            self.fpl_client.get_bootstrap_static(),
            self.fpl_client.get_fixtures(),
        )
        if gameweek is None:
            gameweek = current_gameweek_from_events(bootstrap.get("events", []))
        return bootstrap, fixtures, gameweek

    async def _load_roster(
        self, manager_id: int, gameweek: int, bootstrap: dict[str, Any]
    ) -> UserRoster | None:
        try:
            return await fetch_user_roster(self.fpl_client, manager_id, gameweek, bootstrap)
        except RosterNotFoundError:
            logger.info(f"No roster for manager {manager_id}, returning general recommendations")
            return None

    async def _updated_at(self, gameweek: int, table: str) -> str:
        last_updated = await self.store.get_last_updated(gameweek, table)
        return (last_updated or datetime.now(UTC)).isoformat()

    async def get_transfer_recommendations(
        self,
        manager_id: int | None = None,
        gameweek: int | None = None,
    ) -> dict[str, Any]:
        """
        Get ranked buy and sell recommendations.

        Without a manager (or for an unknown one) the stored lists are ranked
        by confidence. With a roster they are personalized: owned players are
        removed from buys, sells are limited to owned players and weak
        positions are boosted.

        Args:
            manager_id: FPL manager to personalize for
            gameweek: Gameweek override (defaults to the current gameweek)

        Returns:
            Dict with gameweek, buy_recommendations, sell_recommendations,
            updated_at, is_personalized and status

        Raises:
            httpx.HTTPError: On FPL API failures other than an unknown manager
        """
        bootstrap, fixtures, gameweek = await self._load_source_data(gameweek)

        roster = None
        if manager_id is not None:
            roster = await self._load_roster(manager_id, gameweek, bootstrap)

        try:
            buy_rows = await self.store.fetch_transfer_recommendations(gameweek, "buy")
            sell_rows = await self.store.fetch_transfer_recommendations(gameweek, "sell")
        except RecommendationTableMissingError as e:
            logger.warning(f"{e}; no recommendations available")
            return empty_transfer_response(
                gameweek, "no_recommendations", is_personalized=roster is not None
            )
        except SchemaIssueError as e:
            logger.error(f"Recommendation schema issue: {e}")
            return empty_transfer_response(
                gameweek, "schema_issue", is_personalized=roster is not None
            )

        if not buy_rows and not sell_rows:
            logger.info(f"No stored transfer recommendations for GW{gameweek}")
            return empty_transfer_response(
                gameweek, "no_recommendations", is_personalized=roster is not None
            )

        players_by_id = _index_by_id(bootstrap.get("elements", []))
        teams_by_id = _index_by_id(bootstrap.get("teams", []))
        windows = build_fixture_windows(fixtures, gameweek, self.fixture_horizon)

        buy = score_buy_recommendations(
            dedupe_and_rank(buy_rows), players_by_id, teams_by_id, windows
        )
        sell = score_sell_recommendations(
            dedupe_and_rank(sell_rows), players_by_id, teams_by_id, windows, fixtures
        )

        response: dict[str, Any] = {
            "gameweek": gameweek,
            "buy_recommendations": buy,
            "sell_recommendations": sell,
            "updated_at": await self._updated_at(gameweek, TRANSFER_TABLE),
            "is_personalized": roster is not None,
            "status": "success",
        }

        if roster is not None:
            protected: frozenset[int] = frozenset()
            if self.protect_premium_assets:
                protected = frozenset(
                    pick.player_id
                    for pick in roster.picks
                    if pick.player_id is not None
                    and is_premium_asset_to_keep(pick.player, fixtures, teams_by_id)
                )
            result = personalize(buy, sell, analyze_roster(roster), roster, protected)
            response["buy_recommendations"] = result.buy
            response["sell_recommendations"] = result.sell
            response["replacement_suggestions"] = result.replacements

        return response

    async def get_captain_recommendations(self, gameweek: int | None = None) -> dict[str, Any]:
        """
        Get captain picks for a gameweek, ordered by rank.

        Returns:
            Dict with gameweek, recommendations, updated_at and status
        """
        bootstrap, _, gameweek = await self._load_source_data(gameweek)

        try:
            rows = await self.store.fetch_captain_recommendations(gameweek)
        except RecommendationTableMissingError as e:
            logger.warning(f"{e}; no captain recommendations available")
            rows = []
        except SchemaIssueError as e:
            logger.error(f"Captain recommendation schema issue: {e}")
            return {
                "gameweek": gameweek,
                "recommendations": [],
                "updated_at": datetime.now(UTC).isoformat(),
                "status": "schema_issue",
            }

        if not rows:
            return {
                "gameweek": gameweek,
                "recommendations": [],
                "updated_at": datetime.now(UTC).isoformat(),
                "status": "no_recommendations",
            }

        ranked = dedupe_and_rank(rows, sort_by="rank", descending=False)
        return {
            "gameweek": gameweek,
            "recommendations": enrich_records(
                ranked,
                _index_by_id(bootstrap.get("elements", [])),
                _index_by_id(bootstrap.get("teams", [])),
            ),
            "updated_at": await self._updated_at(gameweek, CAPTAIN_TABLE),
            "status": "success",
        }

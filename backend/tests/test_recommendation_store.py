"""Tests for the asyncpg recommendation store."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from app.services.recommendation_store import (
    RecommendationStore,
    RecommendationTableMissingError,
    SchemaIssueError,
    normalize_confidence,
)


def _columns(*names: str) -> list[dict]:
    return [{"column_name": name} for name in names]


TRANSFER_ROW = {
    "id": 1,
    "gameweek": 10,
    "player_id": 7,
    "type": "buy",
    "reasoning": "Great fixtures",
    "confidence_score": Decimal("85.000"),
    "created_at": datetime(2025, 1, 10, 12, 0, tzinfo=UTC),
}


class TestNormalizeConfidence:
    """Confidence is always a 0-1 float."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (0.75, 0.75),
            (1, 1.0),
            (85, 0.85),
            (Decimal("42.5"), 0.425),
        ],
    )
    def test_normalize(self, value, expected: float):
        assert normalize_confidence(value) == pytest.approx(expected)

    def test_none_stays_none(self):
        assert normalize_confidence(None) is None


class TestPlayerColumnResolution:
    """Tests for player column detection."""

    async def test_uses_player_id(self, mock_conn):
        mock_conn.fetch.side_effect = [
            _columns("id", "gameweek", "player_id", "type"),
            [TRANSFER_ROW],
        ]
        store = RecommendationStore(mock_conn.pool)

        rows = await store.fetch_transfer_recommendations(10, "buy")

        query = mock_conn.fetch.call_args_list[1].args[0]
        assert "player_id AS player_id" in query
        assert rows[0]["player_id"] == 7

    async def test_falls_back_to_legacy_element_id(self, mock_conn):
        mock_conn.fetch.side_effect = [
            _columns("id", "gameweek", "element_id", "type"),
            [{**TRANSFER_ROW}],
        ]
        store = RecommendationStore(mock_conn.pool)

        await store.fetch_transfer_recommendations(10, "sell")

        query = mock_conn.fetch.call_args_list[1].args[0]
        assert "element_id AS player_id" in query
        assert mock_conn.fetch.call_args_list[1].args[1:] == (10, "sell")

    async def test_resolution_cached_per_instance(self, mock_conn):
        mock_conn.fetch.side_effect = [
            _columns("player_id"),
            [],
            [],
        ]
        store = RecommendationStore(mock_conn.pool)

        await store.fetch_transfer_recommendations(10, "buy")
        await store.fetch_transfer_recommendations(10, "sell")

        assert mock_conn.fetch.await_count == 3

    async def test_missing_table(self, mock_conn):
        mock_conn.fetch.side_effect = [[]]
        store = RecommendationStore(mock_conn.pool)

        with pytest.raises(RecommendationTableMissingError):
            await store.fetch_transfer_recommendations(10, "buy")

    async def test_no_player_column(self, mock_conn):
        mock_conn.fetch.side_effect = [_columns("id", "gameweek", "type")]
        store = RecommendationStore(mock_conn.pool)

        with pytest.raises(SchemaIssueError) as exc_info:
            await store.fetch_transfer_recommendations(10, "buy")

        assert exc_info.value.table == "transfer_recommendations"


class TestFetchRows:
    """Tests for row serialization."""

    async def test_transfer_rows_serialized(self, mock_conn):
        mock_conn.fetch.side_effect = [_columns("player_id"), [TRANSFER_ROW]]
        store = RecommendationStore(mock_conn.pool)

        [row] = await store.fetch_transfer_recommendations(10, "buy")

        assert row["confidence_score"] == pytest.approx(0.85)
        assert row["created_at"] == "2025-01-10T12:00:00+00:00"

    async def test_rejects_unknown_kind(self, mock_conn):
        store = RecommendationStore(mock_conn.pool)

        with pytest.raises(ValueError, match="Unknown recommendation kind"):
            await store.fetch_transfer_recommendations(10, "hold")

    async def test_captain_rows(self, mock_conn):
        mock_conn.fetch.side_effect = [
            _columns("player_id", "rank"),
            [
                {
                    "id": 3,
                    "gameweek": 10,
                    "player_id": 7,
                    "rank": 1,
                    "points_prediction": Decimal("9.50"),
                    "confidence_score": 0.7,
                    "reasoning": "Home fixture",
                    "created_at": datetime(2025, 1, 10, tzinfo=UTC),
                }
            ],
        ]
        store = RecommendationStore(mock_conn.pool)

        [row] = await store.fetch_captain_recommendations(10)

        assert row["points_prediction"] == 9.5
        assert row["confidence_score"] == 0.7
        assert "captain_recommendations" in mock_conn.fetch.call_args_list[1].args[0]


class TestLastUpdated:
    """Tests for get_last_updated."""

    async def test_returns_max_created_at(self, mock_conn):
        latest = datetime(2025, 1, 10, tzinfo=UTC)
        mock_conn.fetchval.return_value = latest
        store = RecommendationStore(mock_conn.pool)

        assert await store.get_last_updated(10) == latest
        assert "transfer_recommendations" in mock_conn.fetchval.call_args.args[0]

    async def test_rejects_unknown_table(self, mock_conn):
        store = RecommendationStore(mock_conn.pool)

        with pytest.raises(ValueError):
            await store.get_last_updated(10, "players")

"""Read access to stored transfer and captain recommendations.

Rows are produced by an upstream generation job. Older databases name the
player reference column `element_id`; migration 002 renames it to `player_id`.
Until that migration has run, the store resolves the column from
information_schema once per instance and always returns rows keyed
`player_id`.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

import asyncpg

logger = logging.getLogger(__name__)

TRANSFER_TABLE = "transfer_recommendations"
CAPTAIN_TABLE = "captain_recommendations"
RECOMMENDATION_TABLES = (TRANSFER_TABLE, CAPTAIN_TABLE)

PLAYER_COLUMN = "player_id"
LEGACY_PLAYER_COLUMN = "element_id"

TransferKind = Literal["buy", "sell"]

_COLUMNS_SQL = """
SELECT column_name
FROM information_schema.columns
WHERE table_schema = current_schema() AND table_name = $1
"""


class SchemaIssueError(Exception):
    """Raised when a recommendation table has no recognisable player column."""

    def __init__(self, table: str, columns: list[str]) -> None:
        super().__init__(
            f"Table {table} has neither {PLAYER_COLUMN} nor {LEGACY_PLAYER_COLUMN} "
            f"(columns: {', '.join(columns)})"
        )
        self.table = table
        self.columns = columns


class RecommendationTableMissingError(Exception):
    """Raised when a recommendation table does not exist."""

    def __init__(self, table: str) -> None:
        super().__init__(f"Table {table} does not exist")
        self.table = table


def normalize_confidence(value: Any) -> float | None:
    """Convert a stored confidence to a 0-1 float.

    Producers wrote both 0-1 floats and 0-100 percentages; anything above 1 is
    treated as a percentage.
    """
    if value is None:
        return None
    confidence = float(value)
    return confidence / 100 if confidence > 1 else confidence


def _serialize_row(row: Any) -> dict[str, Any]:
    record = dict(row)
    record["confidence_score"] = normalize_confidence(record.get("confidence_score"))
    for key, value in record.items():
        if isinstance(value, datetime):
            record[key] = value.isoformat()
        elif isinstance(value, Decimal):
            record[key] = float(value)
    return record


class RecommendationStore:
    """Recommendation rows keyed by (gameweek, kind).

    Args:
        pool: asyncpg connection pool
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool
        self._player_columns: dict[str, str] = {}

    async def _resolve_player_column(self, conn: asyncpg.Connection, table: str) -> str:
        if table in self._player_columns:
            return self._player_columns[table]

        rows = await conn.fetch(_COLUMNS_SQL, table)
        columns = [row["column_name"] for row in rows]

        if not columns:
            raise RecommendationTableMissingError(table)

        if PLAYER_COLUMN in columns:
            column = PLAYER_COLUMN
        elif LEGACY_PLAYER_COLUMN in columns:
            logger.warning(
                f"{table} still uses legacy column {LEGACY_PLAYER_COLUMN}; "
                "run scripts/migrate.py to rename it"
            )
            column = LEGACY_PLAYER_COLUMN
        else:
            raise SchemaIssueError(table, columns)

        self._player_columns[table] = column
        return column

    async def fetch_transfer_recommendations(
        self, gameweek: int, kind: TransferKind
    ) -> list[dict[str, Any]]:
        """
        Fetch buy or sell rows for a gameweek, newest first.

        Raises:
            ValueError: If kind is not "buy" or "sell"
            RecommendationTableMissingError: If the table does not exist
            SchemaIssueError: If no player column can be resolved
        """
        if kind not in ("buy", "sell"):
            raise ValueError(f"Unknown recommendation kind: {kind}")

        async with self.pool.acquire() as conn:
            column = await self._resolve_player_column(conn, TRANSFER_TABLE)
            rows = await conn.fetch(
                f"""
                SELECT id, gameweek, {column} AS player_id, type, reasoning,
                       confidence_score, created_at
                FROM {TRANSFER_TABLE}
                WHERE gameweek = $1 AND type = $2
                ORDER BY created_at DESC
                """,
                gameweek,
                kind,
            )

        logger.debug(f"Loaded {len(rows)} {kind} recommendations for GW{gameweek}")
        return [_serialize_row(row) for row in rows]

    async def fetch_captain_recommendations(self, gameweek: int) -> list[dict[str, Any]]:
        """Fetch captain rows for a gameweek ordered by rank."""
        async with self.pool.acquire() as conn:
            column = await self._resolve_player_column(conn, CAPTAIN_TABLE)
            rows = await conn.fetch(
                f"""
                SELECT id, gameweek, {column} AS player_id, rank, points_prediction,
                       confidence_score, reasoning, created_at
                FROM {CAPTAIN_TABLE}
                WHERE gameweek = $1
                ORDER BY rank ASC, created_at DESC
                """,
                gameweek,
            )

        return [_serialize_row(row) for row in rows]

    async def get_last_updated(self, gameweek: int, table: str = TRANSFER_TABLE) -> datetime | None:
        """Latest created_at for a gameweek, or None if there are no rows."""
        if table not in RECOMMENDATION_TABLES:
            raise ValueError(f"Unknown recommendation table: {table}")

        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                f"SELECT MAX(created_at) FROM {table} WHERE gameweek = $1",
                gameweek,
            )

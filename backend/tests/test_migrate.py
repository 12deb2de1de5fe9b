"""Tests for the recommendation store migration script."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from scripts.migrate import (
    MIGRATIONS_DIR,
    apply_pending,
    find_schema_problems,
    pending_migrations,
)


@pytest.fixture
def conn() -> MagicMock:
    conn = MagicMock()
    conn.execute = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])

    transaction = MagicMock()
    transaction.__aenter__ = AsyncMock(return_value=None)
    transaction.__aexit__ = AsyncMock(return_value=None)
    conn.transaction.return_value = transaction
    return conn


class TestPendingMigrations:
    """Tests for pending migration detection."""

    def test_migration_files_present(self):
        names = [m.name for m in sorted(MIGRATIONS_DIR.glob("*.sql"))]

        assert names[:2] == ["001_recommendation_tables.sql", "002_rename_element_id.sql"]

    async def test_skips_applied(self, conn: MagicMock):
        conn.fetch.return_value = [{"name": "001_recommendation_tables.sql"}]

        pending = await pending_migrations(conn)

        assert "001_recommendation_tables.sql" not in [m.name for m in pending]
        assert pending[0].name == "002_rename_element_id.sql"

    async def test_apply_pending_records_each(self, conn: MagicMock):
        applied = await apply_pending(conn)

        assert applied == len(list(MIGRATIONS_DIR.glob("*.sql")))
        recorded = [
            c.args[1] for c in conn.execute.call_args_list if "INSERT INTO _migrations" in c.args[0]
        ]
        assert recorded[0] == "001_recommendation_tables.sql"

    async def test_nothing_pending(self, conn: MagicMock):
        conn.fetch.return_value = [
            {"name": m.name} for m in MIGRATIONS_DIR.glob("*.sql")
        ]

        assert await apply_pending(conn) == 0


class TestFindSchemaProblems:
    """Tests for --verify schema checks."""

    async def test_healthy_schema(self, conn: MagicMock):
        conn.fetch.return_value = [{"column_name": "id"}, {"column_name": "player_id"}]

        assert await find_schema_problems(conn) == []

    async def test_reports_missing_and_legacy(self, conn: MagicMock):
        conn.fetch.side_effect = [
            [],
            [{"column_name": "id"}, {"column_name": "element_id"}],
        ]

        problems = await find_schema_problems(conn)

        assert problems == [
            "transfer_recommendations: table missing",
            "captain_recommendations: no player_id column (legacy element_id present)",
        ]

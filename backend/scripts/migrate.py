#!/usr/bin/env python
"""
Apply recommendation store migrations in order.

Usage:
    python -m scripts.migrate           # Apply pending migrations
    python -m scripts.migrate --status  # Show which migrations are applied
    python -m scripts.migrate --verify  # Check recommendation tables use player_id
"""
import argparse
import asyncio
import os
import sys
from pathlib import Path

import asyncpg
from dotenv import load_dotenv

# Load local environment
load_dotenv(".env.local")
load_dotenv(".env")

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"

RECOMMENDATION_TABLES = ("transfer_recommendations", "captain_recommendations")


async def connect() -> asyncpg.Connection:
    """Connect using DATABASE_URL."""
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        raise RuntimeError("DATABASE_URL not set")
    return await asyncpg.connect(db_url)


async def ensure_migrations_table(conn: asyncpg.Connection) -> None:
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS _migrations (
            name TEXT PRIMARY KEY,
            applied_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)


async def pending_migrations(conn: asyncpg.Connection) -> list[Path]:
    """Migration files not yet recorded in _migrations, in filename order."""
    rows = await conn.fetch("SELECT name FROM _migrations")
    applied = {row["name"] for row in rows}
    return [m for m in sorted(MIGRATIONS_DIR.glob("*.sql")) if m.name not in applied]


async def apply_migration(conn: asyncpg.Connection, migration_file: Path) -> None:
    """Run one migration file and record it, atomically."""
    async with conn.transaction():
        await conn.execute(migration_file.read_text())
        await conn.execute("INSERT INTO _migrations (name) VALUES ($1)", migration_file.name)


async def apply_pending(conn: asyncpg.Connection) -> int:
    """Apply all pending migrations. Returns how many were applied."""
    await ensure_migrations_table(conn)
    pending = await pending_migrations(conn)

    if not pending:
        print("No pending migrations.")
        return 0

    for migration_file in pending:
        print(f"  Applying {migration_file.name}...")
        try:
            await apply_migration(conn, migration_file)
        except Exception as e:
            print(f"  FAILED {migration_file.name}: {e}")
            raise
        print(f"  Applied {migration_file.name}")

    return len(pending)


async def show_status(conn: asyncpg.Connection) -> None:
    await ensure_migrations_table(conn)
    pending = {m.name for m in await pending_migrations(conn)}

    for migration_file in sorted(MIGRATIONS_DIR.glob("*.sql")):
        state = "pending" if migration_file.name in pending else "applied"
        print(f"  {state:<8} {migration_file.name}")


async def find_schema_problems(conn: asyncpg.Connection) -> list[str]:
    """List recommendation tables that are missing or lack a player_id column."""
    problems = []
    for table in RECOMMENDATION_TABLES:
        rows = await conn.fetch(
            """
            SELECT column_name FROM information_schema.columns
            WHERE table_schema = current_schema() AND table_name = $1
            """,
            table,
        )
        columns = {row["column_name"] for row in rows}
        if not columns:
            problems.append(f"{table}: table missing")
        elif "player_id" not in columns:
            legacy = " (legacy element_id present)" if "element_id" in columns else ""
            problems.append(f"{table}: no player_id column{legacy}")
    return problems


async def main() -> None:
    parser = argparse.ArgumentParser(description="Recommendation store migrations")
    parser.add_argument("--status", action="store_true", help="Show migration status")
    parser.add_argument(
        "--verify", action="store_true", help="Check recommendation table schema"
    )
    args = parser.parse_args()

    try:
        conn = await connect()
    except Exception as e:
        print(f"Failed to connect to database: {e}")
        sys.exit(1)

    try:
        if args.status:
            await show_status(conn)
        elif args.verify:
            problems = await find_schema_problems(conn)
            for problem in problems:
                print(f"  {problem}")
            if problems:
                sys.exit(1)
            print("Recommendation schema OK.")
        else:
            applied = await apply_pending(conn)
            print(f"Applied {applied} migration(s).")
    finally:
        await conn.close()


if __name__ == "__main__":
    asyncio.run(main())

# backend/tests/database/test_db_connection.py
"""
Database Connection & Schema Tests

SIMPLIFIED VERSION: Uses inline connections to avoid pytest-asyncio event loop issues.
Skipped unless DATABASE_URL points at a migrated database.
"""

import pytest
import asyncio
import os
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv

# Load env
load_dotenv()

AUTOMATION_TABLES = [
    "telegram_channels",
    "daily_important_matches",
    "dynamic_content_schedule",
    "smart_push_settings",
    "automation_rules",
    "automation_runs",
    "content_timing_templates",
    "spam_counters",
    "smart_push_queue",
]


def get_database_url():
    """Get database URL from environment."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        pytest.skip("DATABASE_URL not set")
    return url


# --- SIMPLE ASYNC HELPER ---
async def run_scalar(query_string: str, params: dict = None):
    """Run a query and return scalar result."""
    engine = create_async_engine(
        get_database_url(),
        echo=False,
        connect_args={"statement_cache_size": 0, "prepared_statement_cache_size": 0}
    )
    async_session = sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        result = await session.execute(text(query_string), params or {})
        scalar = result.scalar()
        await session.close()

    await engine.dispose()
    return scalar


# --- TESTS ---
def test_database_connection_works():
    """
    Verify that we can establish a connection to the database.
    """
    result = asyncio.run(run_scalar("SELECT 1"))
    assert result == 1, "Database should return 1 for SELECT 1"


def test_database_connection_returns_version():
    """
    Verify database is PostgreSQL.
    """
    result = asyncio.run(run_scalar("SELECT version()"))
    assert "PostgreSQL" in result, "Should be connected to PostgreSQL"


@pytest.mark.parametrize("table_name", AUTOMATION_TABLES)
def test_automation_table_exists(table_name):
    result = asyncio.run(run_scalar("""
        SELECT EXISTS (
            SELECT FROM information_schema.tables
            WHERE table_name = :table_name
        );
    """, {"table_name": table_name}))
    assert result is True, f"Table '{table_name}' must exist"


def test_spam_counters_unique_per_day_and_type():
    """
    try_increment relies on one counter row per (date, content_type).
    """
    result = asyncio.run(run_scalar("""
        SELECT COUNT(*) FROM information_schema.table_constraints
        WHERE table_name = 'spam_counters' AND constraint_type = 'UNIQUE';
    """))
    assert result >= 1

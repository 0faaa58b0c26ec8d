#!/usr/bin/env python3
"""
Tests for the PostgreSQL store's row mapping and configuration.

No database is needed: rows are plain dicts shaped like asyncpg records.

Run with:
    uv run python src/sales_sparring/testing/test_storage.py
"""
import asyncio
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

# Add src to path for imports
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from sales_sparring.core.models import (
    Difficulty,
    EmotionalState,
    EndReason,
    Mode,
    Persona,
    SparringSession,
    StreakMetadata,
)
from sales_sparring.engine.micro_scoring import score_turn
from sales_sparring.storage.postgres import SESSION_COLUMNS, PostgresSessionStore, _row_to_session, _session_values
from sales_sparring.testing.suite import run_suite

MIGRATION = PROJECT_ROOT / "src" / "sales_sparring" / "migrations" / "001_sparring_sessions.sql"


def column_names() -> list[str]:
    return [name.strip() for name in SESSION_COLUMNS.split(",")]


def test_row_mapping():
    """Test 1: A stored row maps back to the same session."""
    session = SparringSession(
        id="abc",
        rep_id="rep-9",
        persona=Persona.DOMINANT_BUYER,
        difficulty=Difficulty.HARD,
        mode=Mode.TIME_TRIAL,
        created_at=datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc),
        turn_count=3,
        emotional_state=EmotionalState(anger=60, boredom=30, trust=20),
        streak=StreakMetadata(streak=2, best_streak=2),
        ended=True,
        end_reason=EndReason.ANGRY,
        micro_scores=[score_turn("Can we book a demo next week?", "Sure.")],
        version=4,
    )
    values = _session_values(session)
    assert len(values) == len(column_names()), "Every column needs a value"

    # asyncpg returns JSONB as text unless a codec is registered
    row = dict(zip(column_names(), values))
    restored = _row_to_session(row)
    assert restored.model_dump() == session.model_dump(), f"Row mapping changed the session: {restored}"

    # Dict-decoded JSONB works too
    row["emotional_state"] = json.loads(row["emotional_state"])
    assert _row_to_session(row).emotional_state.anger == 60


def test_missing_database_url():
    """Test 2: Pool creation fails clearly without DATABASE_URL."""
    with patch.dict("os.environ", {"DATABASE_URL": ""}):
        store = PostgresSessionStore()

    try:
        asyncio.run(store.get_pool())
    except RuntimeError as e:
        assert "DATABASE_URL" in str(e)
    else:
        raise AssertionError("get_pool() should fail without a database URL")


def test_migration_matches_columns():
    """Test 3: Migration defines every column the store reads."""
    sql = MIGRATION.read_text(encoding="utf-8")
    for name in column_names():
        assert f"    {name} " in sql, f"Column {name} missing from migration"
    assert "admin_config" in sql
    assert "comeback_bonus INTEGER NOT NULL DEFAULT 5" in sql


def main():
    """Run all tests."""
    run_suite(
        "Session Store Tests",
        "Testing PostgreSQL row mapping and configuration",
        {
            "row_mapping": test_row_mapping,
            "missing_url": test_missing_database_url,
            "migration_columns": test_migration_matches_columns,
        },
    )


if __name__ == "__main__":
    main()

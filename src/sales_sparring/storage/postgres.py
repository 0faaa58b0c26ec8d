"""
PostgreSQL session store.

Stores sessions in the sparring_sessions table (state dials, streak and
audit breakdown as JSONB) and transcript lines in sparring_turns, using an
asyncpg connection pool. Turn commits run in one transaction guarded by the
session's version column.

Usage:
    store = PostgresSessionStore()          # Reads DATABASE_URL
    session = await store.get_session(session_id)
    await store.close()
"""

from __future__ import annotations

import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional, Sequence

import asyncpg
from dotenv import load_dotenv

from sales_sparring.config.scoring_config import ScoringConfig
from sales_sparring.core.errors import SessionNotFoundError, StaleSessionError
from sales_sparring.core.models import (
    EmotionalState,
    FinalizationBreakdown,
    MicroScoreRecord,
    Persona,
    SparringSession,
    StreakMetadata,
    TurnRecord,
)
from sales_sparring.storage.base import SessionStore

load_dotenv()

logger = logging.getLogger(__name__)

SESSION_COLUMNS = """
    id, rep_id, persona, difficulty, mode, created_at, turn_count, duration_ms,
    total_score, final_score, xp_awarded, outcome, ended, end_reason, finalized,
    schema_version, version, emotional_state, streak, finalization, micro_scores
"""


def _dump(value) -> Optional[str]:
    """Serialize a model (or list of models) for a JSONB column."""
    if value is None:
        return None
    if isinstance(value, list):
        return json.dumps([item.model_dump(mode="json") for item in value])
    return value.model_dump_json()


def _load(value):
    if value is None:
        return None
    return json.loads(value) if isinstance(value, str) else value


def _row_to_session(row: asyncpg.Record) -> SparringSession:
    """
    Convert a database row to a SparringSession.

    Args:
        row: Database record from asyncpg.

    Returns:
        SparringSession: Pydantic model instance.
    """
    result = dict(row)
    result["emotional_state"] = EmotionalState(**(_load(result["emotional_state"]) or {}))
    result["streak"] = StreakMetadata(**(_load(result["streak"]) or {}))

    finalization = _load(result.pop("finalization"))
    result["finalization"] = FinalizationBreakdown(**finalization) if finalization else None

    result["micro_scores"] = [MicroScoreRecord(**item) for item in (_load(result["micro_scores"]) or [])]

    # Unset nullable enums come back as None and are left that way
    return SparringSession(**result)


def _row_to_turn(row: asyncpg.Record) -> TurnRecord:
    return TurnRecord(**dict(row))


def _session_values(session: SparringSession) -> list:
    return [
        session.id,
        session.rep_id,
        session.persona.value,
        session.difficulty.value,
        session.mode.value,
        session.created_at,
        session.turn_count,
        session.duration_ms,
        session.total_score,
        session.final_score,
        session.xp_awarded,
        session.outcome.value if session.outcome else None,
        session.ended,
        session.end_reason.value if session.end_reason else None,
        session.finalized,
        session.schema_version,
        session.version,
        _dump(session.emotional_state),
        _dump(session.streak),
        _dump(session.finalization),
        _dump(session.micro_scores),
    ]


class PostgresSessionStore(SessionStore):
    """
    asyncpg-backed SessionStore.

    Attributes:
        database_url: Connection string (defaults to DATABASE_URL).
        min_size / max_size: Pool bounds.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        pool: Optional[asyncpg.Pool] = None,
        min_size: int = 1,
        max_size: int = 5,
    ):
        self.database_url = database_url or os.getenv("DATABASE_URL")
        self.min_size = min_size
        self.max_size = max_size
        self._pool = pool

    # =========================================================================
    # CONNECTION POOL
    # =========================================================================

    async def get_pool(self) -> asyncpg.Pool:
        """
        Get or create the database connection pool.

        Raises:
            RuntimeError: If no database URL is configured.
        """
        if self._pool is None:
            if not self.database_url:
                raise RuntimeError("DATABASE_URL environment variable is not set")
            self._pool = await asyncpg.create_pool(
                self.database_url, min_size=self.min_size, max_size=self.max_size
            )
        return self._pool

    async def close(self) -> None:
        """Close the database connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def get_connection(self):
        pool = await self.get_pool()
        async with pool.acquire() as conn:
            yield conn

    # =========================================================================
    # SESSIONS
    # =========================================================================

    async def create_session(self, session: SparringSession) -> SparringSession:
        async with self.get_connection() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO sparring_sessions ({SESSION_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15,
                        $16, $17, $18::jsonb, $19::jsonb, $20::jsonb, $21::jsonb)
                RETURNING {SESSION_COLUMNS}
                """,
                *_session_values(session),
            )
            return _row_to_session(row)

    async def get_session(self, session_id: str) -> Optional[SparringSession]:
        async with self.get_connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {SESSION_COLUMNS} FROM sparring_sessions WHERE id = $1",
                session_id,
            )
            return _row_to_session(row) if row else None

    async def _conditional_update(
        self,
        conn: asyncpg.Connection,
        session: SparringSession,
        expected_version: int,
    ) -> SparringSession:
        row = await conn.fetchrow(
            f"""
            UPDATE sparring_sessions SET
                version = $3, turn_count = $4, duration_ms = $5, total_score = $6,
                final_score = $7, xp_awarded = $8, outcome = $9, ended = $10,
                end_reason = $11, finalized = $12, schema_version = $13,
                emotional_state = $14::jsonb, streak = $15::jsonb,
                finalization = $16::jsonb, micro_scores = $17::jsonb,
                updated_at = NOW()
            WHERE id = $1 AND version = $2
            RETURNING {SESSION_COLUMNS}
            """,
            session.id,
            expected_version,
            expected_version + 1,
            session.turn_count,
            session.duration_ms,
            session.total_score,
            session.final_score,
            session.xp_awarded,
            session.outcome.value if session.outcome else None,
            session.ended,
            session.end_reason.value if session.end_reason else None,
            session.finalized,
            session.schema_version,
            _dump(session.emotional_state),
            _dump(session.streak),
            _dump(session.finalization),
            _dump(session.micro_scores),
        )
        if row is None:
            actual = await conn.fetchval("SELECT version FROM sparring_sessions WHERE id = $1", session.id)
            if actual is None:
                raise SessionNotFoundError(session.id)
            raise StaleSessionError(session.id, expected_version, actual)
        return _row_to_session(row)

    async def commit_turn(
        self,
        session: SparringSession,
        turns: Sequence[TurnRecord],
        expected_version: int,
    ) -> SparringSession:
        async with self.get_connection() as conn:
            async with conn.transaction():
                stored = await self._conditional_update(conn, session, expected_version)
                await conn.executemany(
                    """
                    INSERT INTO sparring_turns (session_id, turn_index, role, text, scripted, created_at)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    """,
                    [
                        (t.session_id, t.turn_index, t.role, t.text, t.scripted, t.created_at)
                        for t in turns
                    ],
                )
                return stored

    async def save_session(self, session: SparringSession, expected_version: int) -> SparringSession:
        async with self.get_connection() as conn:
            return await self._conditional_update(conn, session, expected_version)

    async def get_turns(self, session_id: str) -> list[TurnRecord]:
        async with self.get_connection() as conn:
            rows = await conn.fetch(
                """
                SELECT session_id, turn_index, role, text, scripted, created_at
                FROM sparring_turns
                WHERE session_id = $1
                ORDER BY turn_index ASC, id ASC
                """,
                session_id,
            )
            return [_row_to_turn(row) for row in rows]

    async def list_sessions(self, rep_id: Optional[str] = None, limit: int = 20) -> list[SparringSession]:
        async with self.get_connection() as conn:
            if rep_id is None:
                rows = await conn.fetch(
                    f"SELECT {SESSION_COLUMNS} FROM sparring_sessions ORDER BY created_at DESC LIMIT $1",
                    limit,
                )
            else:
                rows = await conn.fetch(
                    f"""
                    SELECT {SESSION_COLUMNS} FROM sparring_sessions
                    WHERE rep_id = $1 ORDER BY created_at DESC LIMIT $2
                    """,
                    rep_id, limit,
                )
            return [_row_to_session(row) for row in rows]

    async def finalized_scores(self, persona: Persona) -> list[int]:
        async with self.get_connection() as conn:
            rows = await conn.fetch(
                """
                SELECT final_score FROM sparring_sessions
                WHERE persona = $1 AND finalized AND final_score IS NOT NULL
                """,
                persona.value,
            )
            return [row["final_score"] for row in rows]

    # =========================================================================
    # ADMIN CONFIG
    # =========================================================================

    async def load_scoring_config(self) -> ScoringConfig:
        """
        Read the singleton admin_config row.

        Suitable as a ScoringConfigProvider loader:
            ScoringConfigProvider(store.load_scoring_config)

        Raises:
            RuntimeError: If the admin_config row is missing.
        """
        async with self.get_connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT streak_threshold, xp_multiplier, comeback_bonus, updated_at
                FROM admin_config WHERE id = true
                """
            )
        if row is None:
            raise RuntimeError("Failed to load admin config: No data")
        return ScoringConfig(
            streak_threshold=row["streak_threshold"],
            xp_multiplier=float(row["xp_multiplier"]),
            comeback_bonus=row["comeback_bonus"],
            updated_at=row["updated_at"],
        )

    async def patch_scoring_config(
        self,
        streak_threshold: Optional[int] = None,
        xp_multiplier: Optional[float] = None,
        comeback_bonus: Optional[int] = None,
    ) -> ScoringConfig:
        """Update any subset of the admin knobs and return the stored row."""
        async with self.get_connection() as conn:
            row = await conn.fetchrow(
                """
                UPDATE admin_config SET
                    streak_threshold = COALESCE($1, streak_threshold),
                    xp_multiplier = COALESCE($2, xp_multiplier),
                    comeback_bonus = COALESCE($3, comeback_bonus)
                WHERE id = true
                RETURNING streak_threshold, xp_multiplier, comeback_bonus, updated_at
                """,
                streak_threshold, xp_multiplier, comeback_bonus,
            )
        if row is None:
            raise RuntimeError("Failed to update admin config: No data")
        logger.info("Admin scoring config updated: %s", dict(row))
        return ScoringConfig(
            streak_threshold=row["streak_threshold"],
            xp_multiplier=float(row["xp_multiplier"]),
            comeback_bonus=row["comeback_bonus"],
            updated_at=row["updated_at"],
        )

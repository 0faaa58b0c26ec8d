"""
In-process session store.

Used by the CLI practice mode and the tests. Records are copied on the way
in and out so callers can never mutate stored state by accident.
"""
import asyncio
import logging
from typing import Optional, Sequence

from sales_sparring.core.errors import SessionNotFoundError, StaleSessionError
from sales_sparring.core.models import Persona, SparringSession, TurnRecord
from sales_sparring.storage.base import SessionStore

logger = logging.getLogger(__name__)


class InMemorySessionStore(SessionStore):
    """Dict-backed SessionStore with version checks under a single lock."""

    def __init__(self):
        self._sessions: dict[str, SparringSession] = {}
        self._turns: dict[str, list[TurnRecord]] = {}
        self._lock = asyncio.Lock()

    async def create_session(self, session: SparringSession) -> SparringSession:
        async with self._lock:
            if session.id in self._sessions:
                raise ValueError(f"Session {session.id} already exists")
            stored = session.model_copy(deep=True)
            self._sessions[session.id] = stored
            self._turns[session.id] = []
            logger.debug("Created session %s", session.id)
            return stored.model_copy(deep=True)

    async def get_session(self, session_id: str) -> Optional[SparringSession]:
        stored = self._sessions.get(session_id)
        return stored.model_copy(deep=True) if stored is not None else None

    def _check_version(self, session_id: str, expected_version: int) -> None:
        current = self._sessions.get(session_id)
        if current is None:
            raise SessionNotFoundError(session_id)
        if current.version != expected_version:
            raise StaleSessionError(session_id, expected_version, current.version)

    async def commit_turn(
        self,
        session: SparringSession,
        turns: Sequence[TurnRecord],
        expected_version: int,
    ) -> SparringSession:
        async with self._lock:
            self._check_version(session.id, expected_version)
            stored = session.model_copy(update={"version": expected_version + 1}, deep=True)
            self._sessions[session.id] = stored
            self._turns[session.id].extend(turn.model_copy() for turn in turns)
            return stored.model_copy(deep=True)

    async def save_session(self, session: SparringSession, expected_version: int) -> SparringSession:
        async with self._lock:
            self._check_version(session.id, expected_version)
            stored = session.model_copy(update={"version": expected_version + 1}, deep=True)
            self._sessions[session.id] = stored
            return stored.model_copy(deep=True)

    async def get_turns(self, session_id: str) -> list[TurnRecord]:
        return [turn.model_copy() for turn in self._turns.get(session_id, [])]

    async def list_sessions(self, rep_id: Optional[str] = None, limit: int = 20) -> list[SparringSession]:
        sessions = [
            s for s in self._sessions.values()
            if rep_id is None or s.rep_id == rep_id
        ]
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return [s.model_copy(deep=True) for s in sessions[:limit]]

    async def finalized_scores(self, persona: Persona) -> list[int]:
        return [
            s.final_score for s in self._sessions.values()
            if s.persona == persona and s.finalized and s.final_score is not None
        ]

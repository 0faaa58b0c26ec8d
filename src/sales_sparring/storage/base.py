"""
Persistence interface for sparring sessions.

A store keeps one versioned SparringSession record per session plus an
append-only transcript. Writes are conditional on the version the caller
read (optimistic concurrency): a mismatch raises StaleSessionError and
nothing is written.
"""
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from sales_sparring.core.models import Persona, SparringSession, TurnRecord


class SessionStore(ABC):
    """Abstract session store."""

    @abstractmethod
    async def create_session(self, session: SparringSession) -> SparringSession:
        """Insert a new session and return it as stored."""

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[SparringSession]:
        """Return the session, or None if it does not exist."""

    @abstractmethod
    async def commit_turn(
        self,
        session: SparringSession,
        turns: Sequence[TurnRecord],
        expected_version: int,
    ) -> SparringSession:
        """
        Atomically write the session state and append transcript lines.

        Raises:
            StaleSessionError: If the stored version is not expected_version.
        """

    @abstractmethod
    async def save_session(self, session: SparringSession, expected_version: int) -> SparringSession:
        """
        Conditionally overwrite the session state.

        Raises:
            StaleSessionError: If the stored version is not expected_version.
        """

    @abstractmethod
    async def get_turns(self, session_id: str) -> list[TurnRecord]:
        """Transcript in turn order."""

    @abstractmethod
    async def list_sessions(self, rep_id: Optional[str] = None, limit: int = 20) -> list[SparringSession]:
        """Most recent sessions first, optionally for one rep."""

    @abstractmethod
    async def finalized_scores(self, persona: Persona) -> list[int]:
        """Final scores of all finalized sessions for a persona."""

    async def close(self) -> None:
        """Release any resources held by the store."""

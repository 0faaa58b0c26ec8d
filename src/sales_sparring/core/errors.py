"""
Exceptions raised by the sparring session engine.

Every exception is raised before any state is written, so callers can retry
or report without cleaning up.
"""
from typing import Optional


class SparringError(Exception):
    """Base class for sparring engine errors."""


class InvalidInputError(SparringError, ValueError):
    """Input rejected before touching the session (empty text, bad enum value)."""


class SessionNotFoundError(SparringError, LookupError):
    """No session with the given id."""

    def __init__(self, session_id: str):
        super().__init__(f"Sparring session not found: {session_id}")
        self.session_id = session_id


class SessionEndedError(SparringError, RuntimeError):
    """Turn submitted to a session the buyer already ended."""

    def __init__(self, session_id: str, reason: Optional[str]):
        super().__init__(f"Sparring session {session_id} already ended (reason={reason})")
        self.session_id = session_id
        self.reason = reason


class StaleSessionError(SparringError, RuntimeError):
    """Optimistic concurrency conflict: the stored version moved underneath us."""

    def __init__(self, session_id: str, expected_version: int, actual_version: Optional[int]):
        super().__init__(
            f"Sparring session {session_id} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.session_id = session_id
        self.expected_version = expected_version
        self.actual_version = actual_version

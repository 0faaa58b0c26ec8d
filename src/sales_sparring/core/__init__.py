"""
Core module - session models and engine exceptions.
"""

from .errors import (
    InvalidInputError,
    SessionEndedError,
    SessionNotFoundError,
    SparringError,
    StaleSessionError,
)
from .models import (
    Difficulty,
    EmotionalState,
    EndReason,
    Mode,
    MicroScoreRecord,
    Outcome,
    Persona,
    SparringSession,
    StreakMetadata,
    TurnRecord,
)

__all__ = [
    "SparringError",
    "InvalidInputError",
    "SessionNotFoundError",
    "SessionEndedError",
    "StaleSessionError",
    "Difficulty",
    "EmotionalState",
    "EndReason",
    "Mode",
    "MicroScoreRecord",
    "Outcome",
    "Persona",
    "SparringSession",
    "StreakMetadata",
    "TurnRecord",
]

"""
Pydantic models for the sparring session engine.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


SESSION_SCHEMA_VERSION = 1
MAX_MICRO_SCORES = 200


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clamp_dial(value: float, low: int = 0, high: int = 100) -> int:
    """Clamp a value into [low, high] and return it as an int."""
    return int(max(low, min(high, value)))


class Persona(str, Enum):
    """Simulated buyer persona."""
    PRICE_SENSITIVE = "price_sensitive"
    ANGRY = "angry"
    SILENT = "silent"
    CFO = "cfo"
    PROCUREMENT = "procurement"
    FRIENDLY = "friendly"
    INDECISIVE = "indecisive"
    DOMINANT_BUYER = "dominant_buyer"
    GENERIC = "generic"  # Fallback for persona ids we don't know


class Difficulty(str, Enum):
    """Difficulty tier scaling buyer reactivity."""
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"
    NIGHTMARE = "nightmare"


class Mode(str, Enum):
    """Drill format, affects pacing thresholds and XP."""
    STANDARD = "standard"
    TIME_TRIAL = "time_trial"
    CLOSE_IN_2M = "close_in_2m"

    @property
    def is_fast(self) -> bool:
        return self is not Mode.STANDARD


class EndReason(str, Enum):
    """Why the simulated buyer ended the call."""
    BORED = "bored"
    ANGRY = "angry"
    TIMEOUT = "timeout"
    CLOSED = "closed"
    NONE = "none"


class Outcome(str, Enum):
    """Session outcome derived from the final score."""
    WIN = "win"
    LOSS = "loss"
    NEUTRAL = "neutral"


class BaseScoreSource(str, Enum):
    """Where the finalization base score came from."""
    OVERRIDE = "override"
    STORED_TOTAL = "stored_total"
    MICRO_AVERAGE = "micro_average"
    FALLBACK = "fallback"


# =============================================================================
# Per-turn state
# =============================================================================

class EmotionalState(BaseModel):
    """Buyer emotional dials, each clamped to [0, 100]."""
    anger: int = 0
    boredom: int = 0
    trust: int = 0

    @field_validator("anger", "boredom", "trust", mode="before")
    @classmethod
    def clamp_value(cls, v: float) -> int:
        return clamp_dial(v)

    def shifted(self, anger: int = 0, boredom: int = 0, trust: int = 0) -> "EmotionalState":
        """Return a new state with additive deltas applied and re-clamped."""
        return EmotionalState(
            anger=self.anger + anger,
            boredom=self.boredom + boredom,
            trust=self.trust + trust,
        )


class StreakMetadata(BaseModel):
    """Streak and multiplier bookkeeping for one session."""
    streak: int = 0
    best_streak: int = 0
    xp_multiplier: float = 1.0
    last_turn_score: int = 0  # Calibrated
    last_turn_score_raw: int = 0
    comeback_pending: bool = False
    xp_bonus_pending: float = 0


class ScoreBreakdown(BaseModel):
    """Per-category micro-score, each in [0, 100]."""
    model_config = ConfigDict(frozen=True)

    opener: int
    discovery: int
    pitch: int
    objections: int
    close: int


class MicroScoreRecord(BaseModel):
    """Heuristic score for a single rep turn. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    turn_score: int = Field(ge=0, le=100)
    breakdown: ScoreBreakdown
    coach_note: str
    flags: tuple[str, ...] = ()


class HangUpDecision(BaseModel):
    """Result of the hang-up check for one turn."""
    model_config = ConfigDict(frozen=True)

    end: bool = False
    reason: EndReason = EndReason.NONE


class TurnRecord(BaseModel):
    """One line of the persisted transcript."""
    session_id: str
    turn_index: int
    role: Literal["rep", "buyer"]
    text: str
    scripted: bool = False  # Hang-up line or canned fallback
    created_at: datetime = Field(default_factory=_utcnow)


# =============================================================================
# Session
# =============================================================================

class FinalizationBreakdown(BaseModel):
    """Audit record of how the final score and XP were computed."""
    base_score: int
    base_source: BaseScoreSource
    measured: bool = True
    emotional_adjustment: int = 0
    end_reason_adjustment: int = 0
    final_score: int
    outcome: Outcome
    base_xp: int
    streak_multiplier: float
    global_multiplier: float
    multiplied_xp: int
    bonus_applied: float = 0
    xp_awarded: int
    finalized_at: datetime = Field(default_factory=_utcnow)


class SparringSession(BaseModel):
    """Versioned session record. New fields must have defaults."""
    schema_version: int = SESSION_SCHEMA_VERSION
    id: str
    rep_id: Optional[str] = None
    persona: Persona = Persona.PRICE_SENSITIVE
    difficulty: Difficulty = Difficulty.NORMAL
    mode: Mode = Mode.STANDARD
    created_at: datetime = Field(default_factory=_utcnow)
    turn_count: int = 0
    duration_ms: int = 0
    total_score: Optional[int] = None
    final_score: Optional[int] = None
    xp_awarded: Optional[int] = None
    outcome: Optional[Outcome] = None
    emotional_state: EmotionalState = Field(default_factory=EmotionalState)
    streak: StreakMetadata = Field(default_factory=StreakMetadata)
    ended: bool = False
    end_reason: Optional[EndReason] = None
    finalized: bool = False
    finalization: Optional[FinalizationBreakdown] = None
    micro_scores: list[MicroScoreRecord] = Field(default_factory=list)
    version: int = 0

    def with_micro_score(self, record: MicroScoreRecord, cap: int = MAX_MICRO_SCORES) -> list[MicroScoreRecord]:
        """Return the micro-score history with record appended, oldest dropped past cap."""
        history = [*self.micro_scores, record]
        if len(history) > cap:
            history = history[-cap:]
        return history


# =============================================================================
# Caller-facing results
# =============================================================================

class SessionStarted(BaseModel):
    """Returned by start_session."""
    id: str
    persona: Persona
    difficulty: Difficulty
    mode: Mode
    initial_state: EmotionalState


class TurnResult(BaseModel):
    """Returned by submit_turn."""
    session_id: str
    turn_index: int
    buyer_reply: str
    micro_score: Optional[MicroScoreRecord] = None  # None on the hang-up turn
    new_state: EmotionalState
    streak: StreakMetadata
    ended: bool = False
    end_reason: Optional[EndReason] = None
    reply_degraded: bool = False  # Canned line used after a generation failure


class FinalizeResult(BaseModel):
    """Returned by finalize."""
    session_id: str
    final_score: int
    outcome: Outcome
    xp_awarded: int
    breakdown: FinalizationBreakdown
    already_finalized: bool = False


class LeaderboardEntry(BaseModel):
    """Win/loss stats for one persona across all finalized sessions."""
    persona: Persona
    wins: int = 0
    losses: int = 0
    total: int = 0
    win_rate: int = 0  # Percent

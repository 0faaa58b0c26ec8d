"""
Hand-tuned engine constants.

These values have no documented derivation. They are kept verbatim for
behavioural parity and collected here so tests and operators can override
them without touching engine code:

    tuning = DEFAULT_TUNING.model_copy(update={"hangup_absolute_ceiling": 30})
"""
import math

from pydantic import BaseModel, ConfigDict, Field

from sales_sparring.core.models import Difficulty, EndReason, Mode


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, matching Math.round on scores."""
    return int(math.floor(value + 0.5))


class EngineTuning(BaseModel):
    """All tunable constants used by the engine components."""
    model_config = ConfigDict(frozen=True)

    # Emotional model: lexical trigger deltas
    gratitude_trust: int = 5
    gratitude_anger: int = -4
    stall_boredom: int = 6
    stall_trust: int = -4
    pressure_anger: int = 10
    pressure_trust: int = -8
    question_trust: int = 2
    question_boredom: int = -3
    sales_word_trust: int = -3
    sales_word_anger: int = 2
    boredom_drift: int = 1
    boredom_drift_fatigued: int = 2

    # Hang-up rules, in priority order
    hangup_anger: int = 85
    hangup_anger_min_turns: int = 6
    hangup_boredom: int = 85
    hangup_boredom_min_turns: int = 8
    hangup_trust: int = 75
    hangup_trust_min_turns: int = 10
    hangup_absolute_ceiling: int = 24
    generic_ceiling_standard: int = 20
    generic_ceiling_fast: int = 14
    soft_ceiling_floor: int = 4
    ceiling_difficulty_shift: dict[Difficulty, int] = Field(default_factory=lambda: {
        Difficulty.EASY: 2,
        Difficulty.NORMAL: 0,
        Difficulty.HARD: -2,
        Difficulty.NIGHTMARE: -4,
    })

    # Streak calibration
    calibration_scale: float = 1.15
    calibration_offset: float = 10.0
    good_turn_threshold: int = 75

    # Finalization
    fallback_base_score: dict[Difficulty, int] = Field(default_factory=lambda: {
        Difficulty.EASY: 80,
        Difficulty.NORMAL: 75,
        Difficulty.HARD: 72,
        Difficulty.NIGHTMARE: 70,
    })
    emotion_adjust_threshold: int = 70
    trust_bonus: int = 5
    anger_penalty: int = -10
    boredom_penalty: int = -8
    end_reason_adjustment: dict[EndReason, int] = Field(default_factory=lambda: {
        EndReason.CLOSED: 8,
        EndReason.ANGRY: -20,
        EndReason.BORED: -15,
        EndReason.TIMEOUT: -10,
    })
    win_threshold: int = 80
    loss_threshold: int = 50
    difficulty_base_xp: dict[Difficulty, int] = Field(default_factory=lambda: {
        Difficulty.EASY: 20,
        Difficulty.NORMAL: 30,
        Difficulty.HARD: 45,
        Difficulty.NIGHTMARE: 60,
    })
    mode_xp_multiplier: dict[Mode, float] = Field(default_factory=lambda: {
        Mode.STANDARD: 1.0,
        Mode.TIME_TRIAL: 1.1,
        Mode.CLOSE_IN_2M: 1.2,
    })
    min_base_xp: int = 5
    max_xp_awarded: int = 200


DEFAULT_TUNING = EngineTuning()

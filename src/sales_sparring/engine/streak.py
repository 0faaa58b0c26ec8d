"""
Streak and XP multiplier bookkeeping.

A turn is "good" when its calibrated score reaches the goodness threshold.
Consecutive good turns build a streak; the streak (or the best streak, by
config) maps to an XP multiplier. Breaking a streak of two or more arms a
one-time comeback bonus that is banked on the next good turn.
"""
import logging

from sales_sparring.config.scoring_config import StreakConfig
from sales_sparring.config.tuning import DEFAULT_TUNING, EngineTuning, round_half_up
from sales_sparring.core.models import StreakMetadata, clamp_dial

logger = logging.getLogger(__name__)

COMEBACK_MIN_STREAK = 2

# Multiplier by how far the streak is past the threshold; capped at the last entry
MULTIPLIER_STEPS = (1.1, 1.2, 1.3)


def multiplier_for(streak: int, threshold: int) -> float:
    """
    XP multiplier for a streak length.

    Below the threshold the multiplier is 1.0; at the threshold 1.1, one past
    1.2, and two or more past it stays at 1.3.
    """
    if streak < threshold:
        return 1.0
    index = min(streak - threshold, len(MULTIPLIER_STEPS) - 1)
    return MULTIPLIER_STEPS[index]


def calibrate(raw_score: float, enabled: bool = True, tuning: EngineTuning = DEFAULT_TUNING) -> int:
    """Map a raw micro-score onto the calibrated 0-100 scale."""
    if not enabled:
        return clamp_dial(round_half_up(raw_score))
    return clamp_dial(round_half_up(raw_score * tuning.calibration_scale + tuning.calibration_offset))


def update_streak(
    meta: StreakMetadata | None,
    raw_turn_score: float,
    config: StreakConfig | None = None,
    tuning: EngineTuning = DEFAULT_TUNING,
) -> StreakMetadata:
    """
    Fold one turn score into the streak metadata.

    Args:
        meta: Previous metadata, or None for a fresh session.
        raw_turn_score: The turn's micro-score before calibration.
        config: Threshold, comeback bonus, calibration and multiplier basis.
        tuning: Engine constants (calibration scale and offset).

    Returns:
        New StreakMetadata with every field populated.
    """
    meta = meta or StreakMetadata()
    config = config or StreakConfig()

    calibrated = calibrate(raw_turn_score, config.calibrate, tuning)
    streak = meta.streak
    best_streak = meta.best_streak
    comeback_pending = meta.comeback_pending
    bonus_pending = meta.xp_bonus_pending

    if calibrated >= config.good_threshold:
        streak += 1
        best_streak = max(best_streak, streak)
        if comeback_pending:
            bonus_pending += config.comeback_bonus
            comeback_pending = False
            logger.debug("Comeback bonus banked: +%s (pending %s)", config.comeback_bonus, bonus_pending)
    else:
        if streak >= COMEBACK_MIN_STREAK:
            comeback_pending = True
        streak = 0

    basis = best_streak if config.basis == "best" else streak

    return StreakMetadata(
        streak=streak,
        best_streak=best_streak,
        xp_multiplier=multiplier_for(basis, config.threshold),
        last_turn_score=calibrated,
        last_turn_score_raw=round_half_up(raw_turn_score),
        comeback_pending=comeback_pending,
        xp_bonus_pending=bonus_pending,
    )

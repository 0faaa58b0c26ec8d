"""
Session finalization: final score, outcome and XP.

compute_finalization() is pure. It returns the updated session (ended,
finalized, pending bonus reset to 0) together with the audit breakdown; the
caller persists the session. A session that is already finalized is
returned unchanged with its stored breakdown, so the comeback bonus is paid
at most once.
"""
import logging
from datetime import datetime, timezone
from statistics import fmean
from typing import Optional

from sales_sparring.config.scoring_config import ScoringConfig
from sales_sparring.config.tuning import DEFAULT_TUNING, EngineTuning, round_half_up
from sales_sparring.core.models import (
    BaseScoreSource,
    EmotionalState,
    EndReason,
    FinalizationBreakdown,
    Outcome,
    SparringSession,
    clamp_dial,
)

logger = logging.getLogger(__name__)


def base_score(
    session: SparringSession,
    override_score: Optional[float] = None,
    tuning: EngineTuning = DEFAULT_TUNING,
) -> tuple[int, BaseScoreSource]:
    """
    Pick the base score for a session.

    Precedence: explicit override > stored total > average of recorded
    micro-scores > difficulty-shifted fallback (unmeasured).
    """
    if override_score is not None:
        return clamp_dial(round_half_up(override_score)), BaseScoreSource.OVERRIDE
    if session.total_score is not None:
        return clamp_dial(session.total_score), BaseScoreSource.STORED_TOTAL
    if session.micro_scores:
        average = fmean(record.turn_score for record in session.micro_scores)
        return clamp_dial(round_half_up(average)), BaseScoreSource.MICRO_AVERAGE
    return tuning.fallback_base_score[session.difficulty], BaseScoreSource.FALLBACK


def emotional_adjustment(state: EmotionalState, tuning: EngineTuning = DEFAULT_TUNING) -> int:
    """Independent additive adjustments for strong final emotions."""
    adjustment = 0
    if state.trust >= tuning.emotion_adjust_threshold:
        adjustment += tuning.trust_bonus
    if state.anger >= tuning.emotion_adjust_threshold:
        adjustment += tuning.anger_penalty
    if state.boredom >= tuning.emotion_adjust_threshold:
        adjustment += tuning.boredom_penalty
    return adjustment


def end_reason_adjustment(
    ended: bool,
    reason: Optional[EndReason],
    tuning: EngineTuning = DEFAULT_TUNING,
) -> int:
    if not ended or reason is None:
        return 0
    return tuning.end_reason_adjustment.get(reason, 0)


def outcome_for(final_score: int, tuning: EngineTuning = DEFAULT_TUNING) -> Outcome:
    if final_score >= tuning.win_threshold:
        return Outcome.WIN
    if final_score <= tuning.loss_threshold:
        return Outcome.LOSS
    return Outcome.NEUTRAL


def compute_finalization(
    session: SparringSession,
    override_score: Optional[float] = None,
    config: Optional[ScoringConfig] = None,
    tuning: EngineTuning = DEFAULT_TUNING,
    finalized_at: Optional[datetime] = None,
) -> tuple[SparringSession, FinalizationBreakdown]:
    """
    Finalize a session.

    Args:
        session: Session to finalize.
        override_score: Explicit base score; ignored if already finalized.
        config: Operator scoring config (global XP multiplier).
        tuning: Engine constants.
        finalized_at: Timestamp recorded on the breakdown; defaults to now.

    Returns:
        Tuple of (updated session, breakdown).
    """
    if session.finalized and session.finalization is not None:
        return session, session.finalization

    config = config or ScoringConfig()

    base, source = base_score(session, override_score, tuning)
    emotion_adj = emotional_adjustment(session.emotional_state, tuning)
    reason_adj = end_reason_adjustment(session.ended, session.end_reason, tuning)
    final_score = clamp_dial(base + emotion_adj + reason_adj)
    outcome = outcome_for(final_score, tuning)

    base_xp = max(
        tuning.min_base_xp,
        round_half_up(
            tuning.difficulty_base_xp[session.difficulty]
            * (0.5 + final_score / 100)
            * tuning.mode_xp_multiplier[session.mode]
        ),
    )
    streak_multiplier = session.streak.xp_multiplier
    multiplied_xp = round_half_up(round_half_up(base_xp * streak_multiplier) * config.xp_multiplier)

    bonus = session.streak.xp_bonus_pending
    xp_awarded = int(max(0, min(tuning.max_xp_awarded, round_half_up(multiplied_xp + bonus))))

    breakdown = FinalizationBreakdown(
        base_score=base,
        base_source=source,
        measured=source is not BaseScoreSource.FALLBACK,
        emotional_adjustment=emotion_adj,
        end_reason_adjustment=reason_adj,
        final_score=final_score,
        outcome=outcome,
        base_xp=base_xp,
        streak_multiplier=streak_multiplier,
        global_multiplier=config.xp_multiplier,
        multiplied_xp=multiplied_xp,
        bonus_applied=bonus,
        xp_awarded=xp_awarded,
        finalized_at=finalized_at or datetime.now(timezone.utc),
    )

    if source is BaseScoreSource.FALLBACK:
        logger.info("Session %s finalized on an unmeasured fallback base score (%d)", session.id, base)

    updated = session.model_copy(update={
        "final_score": final_score,
        "outcome": outcome,
        "xp_awarded": xp_awarded,
        "ended": True,
        "finalized": True,
        "finalization": breakdown,
        "streak": session.streak.model_copy(update={"xp_bonus_pending": 0}),
    })
    return updated, breakdown

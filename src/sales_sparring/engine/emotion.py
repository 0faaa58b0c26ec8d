"""
Buyer emotional state model.

Each rep turn moves three dials (anger, boredom, trust) by additive deltas:
a boredom drift that grows once the buyer is past its fatigue point, plus
fixed deltas for lexical triggers in the rep's text. Movement in the adverse
direction is amplified by the persona's per-dial reactivity and the
difficulty aggression factor. The result is always clamped to [0, 100].
"""
from typing import Optional

from sales_sparring.config.tuning import DEFAULT_TUNING, EngineTuning, round_half_up
from sales_sparring.core.models import EmotionalState
from sales_sparring.engine import lexicon
from sales_sparring.personas.profiles import PersonaBehaviourProfile


def trigger_deltas(
    rep_text: str,
    profile: PersonaBehaviourProfile,
    tuning: EngineTuning = DEFAULT_TUNING,
) -> dict[str, int]:
    """
    Sum the raw lexical trigger deltas for one rep utterance.

    Returns:
        Dict with "anger", "boredom" and "trust" deltas before reactivity.
    """
    deltas = {"anger": 0, "boredom": 0, "trust": 0}
    text = rep_text or ""

    if profile.price_anger_delta and (lexicon.PRICE.search(text) or lexicon.ROI.search(text)):
        deltas["anger"] += profile.price_anger_delta

    if lexicon.GRATITUDE.search(text):
        deltas["trust"] += tuning.gratitude_trust
        deltas["anger"] += tuning.gratitude_anger

    if lexicon.STALLING.search(text):
        deltas["boredom"] += tuning.stall_boredom
        deltas["trust"] += tuning.stall_trust

    if lexicon.HIGH_PRESSURE.search(text):
        deltas["anger"] += tuning.pressure_anger
        deltas["trust"] += tuning.pressure_trust

    if "?" in text:
        deltas["trust"] += tuning.question_trust
        deltas["boredom"] += tuning.question_boredom

    if lexicon.SALES_WORDS.search(text):
        deltas["trust"] += tuning.sales_word_trust
        deltas["anger"] += tuning.sales_word_anger

    return deltas


def _scaled(delta: int, adverse: bool, reactivity: float, aggression: float) -> int:
    if not adverse:
        return delta
    magnitude = round_half_up(abs(delta) * reactivity * aggression)
    return magnitude if delta > 0 else -magnitude


def step(
    prev_state: Optional[EmotionalState],
    profile: PersonaBehaviourProfile,
    turns_so_far: int,
    rep_text: str,
    tuning: EngineTuning = DEFAULT_TUNING,
) -> EmotionalState:
    """
    Advance the buyer's emotional state by one rep turn.

    Args:
        prev_state: State after the previous turn, or None to seed from the
            profile baseline.
        profile: Resolved persona/difficulty/mode profile.
        turns_so_far: Turn count including this turn.
        rep_text: What the rep just said.
        tuning: Engine constants.

    Returns:
        New EmotionalState, every dial in [0, 100].
    """
    state = prev_state if prev_state is not None else profile.baseline
    deltas = trigger_deltas(rep_text, profile, tuning)

    if turns_so_far > profile.fatigue_point:
        deltas["boredom"] += tuning.boredom_drift_fatigued
    else:
        deltas["boredom"] += tuning.boredom_drift

    reactivity = profile.reactivity
    return state.shifted(
        anger=_scaled(deltas["anger"], deltas["anger"] > 0, reactivity.anger, profile.aggression),
        boredom=_scaled(deltas["boredom"], deltas["boredom"] > 0, reactivity.boredom, profile.aggression),
        trust=_scaled(deltas["trust"], deltas["trust"] < 0, reactivity.trust, profile.aggression),
    )

"""
Single turn step: emotional update followed by the hang-up decision.

The hang-up check must see this turn's post-update emotions, so callers get
both from one function instead of sequencing step() and should_end()
themselves.
"""
from typing import Optional

from sales_sparring.config.tuning import DEFAULT_TUNING, EngineTuning
from sales_sparring.core.models import EmotionalState, HangUpDecision
from sales_sparring.engine.emotion import step
from sales_sparring.engine.hangup import should_end
from sales_sparring.personas.profiles import PersonaBehaviourProfile


def advance(
    prev_state: Optional[EmotionalState],
    profile: PersonaBehaviourProfile,
    turns_so_far: int,
    rep_text: str,
    tuning: EngineTuning = DEFAULT_TUNING,
) -> tuple[EmotionalState, HangUpDecision]:
    """Return (new_state, decision) for one rep turn."""
    new_state = step(prev_state, profile, turns_so_far, rep_text, tuning)
    return new_state, should_end(profile, turns_so_far, new_state, tuning)

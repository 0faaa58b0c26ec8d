"""
Hang-up decision engine.

Decides after each rep turn whether the simulated buyer ends the call.
Rules are evaluated in strict priority order; the first match wins:

1. anger   >= 85 and turns >= 6   -> angry
2. boredom >= 85 and turns >= 8   -> bored
3. trust   >= 75 and turns >= 10  -> closed (positive ending)
4. turns   >= 24                  -> timeout (absolute ceiling)
5. turns   >= persona soft ceiling -> persona's ceiling reason
"""
import logging

from sales_sparring.config.tuning import DEFAULT_TUNING, EngineTuning
from sales_sparring.core.models import EmotionalState, EndReason, HangUpDecision
from sales_sparring.personas.profiles import PersonaBehaviourProfile

logger = logging.getLogger(__name__)

CONTINUE = HangUpDecision(end=False, reason=EndReason.NONE)

# Scripted buyer lines used instead of text generation when the call ends
HANGUP_LINES: dict[EndReason, str] = {
    EndReason.ANGRY: "I've heard enough. This isn't working for me, I'm going to hang up now.",
    EndReason.BORED: "Sorry, I really need to jump onto something else. Let's leave it there.",
    EndReason.CLOSED: "Alright, you've convinced me. Send over the next steps and let's get it booked in.",
    EndReason.TIMEOUT: "I'm out of time for today. Send me an email and I'll take a look.",
}


def should_end(
    profile: PersonaBehaviourProfile,
    turns_so_far: int,
    state: EmotionalState,
    tuning: EngineTuning = DEFAULT_TUNING,
) -> HangUpDecision:
    """
    Decide whether the buyer ends the call after this turn.

    Args:
        profile: Resolved persona/difficulty/mode profile.
        turns_so_far: Turn count including this turn.
        state: Emotional state after this turn's update.
        tuning: Engine constants.

    Returns:
        HangUpDecision; reason is EndReason.NONE when the call continues.
    """
    if state.anger >= tuning.hangup_anger and turns_so_far >= tuning.hangup_anger_min_turns:
        return HangUpDecision(end=True, reason=EndReason.ANGRY)

    if state.boredom >= tuning.hangup_boredom and turns_so_far >= tuning.hangup_boredom_min_turns:
        return HangUpDecision(end=True, reason=EndReason.BORED)

    if state.trust >= tuning.hangup_trust and turns_so_far >= tuning.hangup_trust_min_turns:
        return HangUpDecision(end=True, reason=EndReason.CLOSED)

    if turns_so_far >= tuning.hangup_absolute_ceiling:
        return HangUpDecision(end=True, reason=EndReason.TIMEOUT)

    if turns_so_far >= profile.soft_ceiling:
        logger.debug(
            "Soft ceiling reached for %s/%s/%s at turn %d",
            profile.persona.value, profile.difficulty.value, profile.mode.value, turns_so_far,
        )
        return HangUpDecision(end=True, reason=profile.soft_ceiling_reason)

    return CONTINUE


def hangup_line(reason: EndReason) -> str:
    """Scripted closing line for an ending reason."""
    return HANGUP_LINES.get(reason, HANGUP_LINES[EndReason.TIMEOUT])

#!/usr/bin/env python3
"""
Tests for the buyer emotional model, persona profiles and hang-up rules.

Run with:
    uv run python src/sales_sparring/testing/test_emotion_hangup.py
"""
import random
import sys
from pathlib import Path

# Add src to path for imports
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from sales_sparring.config.tuning import DEFAULT_TUNING
from sales_sparring.core.errors import InvalidInputError
from sales_sparring.core.models import Difficulty, EmotionalState, EndReason, Mode, Persona
from sales_sparring.engine.advance import advance
from sales_sparring.engine.emotion import step
from sales_sparring.engine.hangup import HANGUP_LINES, hangup_line, should_end
from sales_sparring.personas.profiles import (
    PROFILE_TABLE,
    parse_difficulty,
    parse_mode,
    persona_catalogue,
    resolve_persona,
    resolve_profile,
)
from sales_sparring.testing.suite import run_suite

SAMPLE_LINES = [
    "Thanks for taking the call, what's driving the review?",
    "Our price is $500 per seat.",
    "Sign today, this is a limited time special offer!",
    "Let's circle back next week, no rush.",
    "The ROI pays for itself in three months.",
    "Can we book a demo for Thursday?",
    "Hmm.",
    "",
]


# =============================================================================
# Profiles
# =============================================================================

def test_profile_table_is_exhaustive():
    """Test 1: Every persona x difficulty x mode has a profile."""
    expected = len(Persona) * len(Difficulty) * len(Mode)
    assert len(PROFILE_TABLE) == expected, f"Expected {expected} profiles, got {len(PROFILE_TABLE)}"

    for profile in PROFILE_TABLE.values():
        assert profile.soft_ceiling >= DEFAULT_TUNING.soft_ceiling_floor, (
            f"{profile.persona}/{profile.difficulty}/{profile.mode} ceiling below floor"
        )
        assert profile.soft_ceiling <= DEFAULT_TUNING.hangup_absolute_ceiling


def test_generic_ceilings():
    """Test 2: Generic persona uses 20 turns standard and 14 in fast modes."""
    for difficulty in Difficulty:
        assert resolve_profile(Persona.GENERIC, difficulty, Mode.STANDARD).soft_ceiling == 20
        assert resolve_profile(Persona.GENERIC, difficulty, Mode.TIME_TRIAL).soft_ceiling == 14
        assert resolve_profile(Persona.GENERIC, difficulty, Mode.CLOSE_IN_2M).soft_ceiling == 14


def test_raw_id_resolution():
    """Test 3: Unknown persona falls back to generic, unknown difficulty/mode rejected."""
    assert resolve_persona("angry") is Persona.ANGRY
    assert resolve_persona(" CFO ") is Persona.CFO
    assert resolve_persona(None) is Persona.PRICE_SENSITIVE
    assert resolve_persona("space_pirate") is Persona.GENERIC

    assert parse_difficulty(None) is Difficulty.NORMAL
    assert parse_mode("") is Mode.STANDARD
    assert parse_mode("time_trial") is Mode.TIME_TRIAL

    for bad in ("insane", "ultra"):
        try:
            parse_difficulty(bad)
        except InvalidInputError:
            pass
        else:
            raise AssertionError(f"Difficulty {bad!r} should be rejected")

    try:
        parse_mode("marathon")
    except InvalidInputError:
        pass
    else:
        raise AssertionError("Mode 'marathon' should be rejected")


def test_persona_catalogue_hides_generic():
    """Test 4: Catalogue lists the eight selectable personas."""
    cards = persona_catalogue()
    personas = {card.persona for card in cards}
    assert Persona.GENERIC not in personas, "Generic persona should not be selectable"
    assert len(cards) == 8, f"Expected 8 personas, got {len(cards)}"
    assert all(card.label and card.traits for card in cards)


# =============================================================================
# Emotional model
# =============================================================================

def test_seed_from_baseline():
    """Test 5: First turn seeds from the persona baseline."""
    profile = resolve_profile(Persona.PRICE_SENSITIVE, Difficulty.NORMAL, Mode.STANDARD)
    assert profile.baseline == EmotionalState(anger=20, boredom=20, trust=30)

    state = step(None, profile, 1, "Tell me about your team")
    # Only the boredom drift applies
    assert state == EmotionalState(anger=20, boredom=21, trust=30), f"Got {state}"


def test_price_trigger_for_price_sensitive():
    """Test 6: Price talk angers the price-sensitive buyer."""
    profile = resolve_profile(Persona.PRICE_SENSITIVE, Difficulty.NORMAL, Mode.STANDARD)
    state = step(None, profile, 1, "Our price is 500 per month.")
    assert state.anger == 28, f"Expected anger 28, got {state.anger}"

    friendly = resolve_profile(Persona.FRIENDLY, Difficulty.NORMAL, Mode.STANDARD)
    calm = step(None, friendly, 1, "Our price is 500 per month.")
    assert calm.anger == friendly.baseline.anger, "Price should not anger the friendly buyer"


def test_gratitude_is_not_scaled():
    """Test 7: Favourable movement ignores reactivity."""
    profile = resolve_profile(Persona.FRIENDLY, Difficulty.NORMAL, Mode.STANDARD)
    state = step(None, profile, 1, "Thanks for your time today")
    assert state.trust == 55, f"Expected trust 55, got {state.trust}"
    assert state.anger == 1, f"Expected anger 1, got {state.anger}"
    assert state.boredom == 11, f"Expected boredom 11, got {state.boredom}"


def test_difficulty_amplifies_adverse_movement():
    """Test 8: Hard difficulty amplifies anger from pressure tactics."""
    text = "Sign today or lose the deal"
    normal = resolve_profile(Persona.ANGRY, Difficulty.NORMAL, Mode.STANDARD)
    hard = resolve_profile(Persona.ANGRY, Difficulty.HARD, Mode.STANDARD)

    hard_state = step(None, hard, 1, text)
    assert hard.baseline == EmotionalState(anger=50, boredom=15, trust=15)
    assert hard_state.anger == 73, f"Expected anger 73, got {hard_state.anger}"
    assert hard_state.trust == 0, f"Expected trust clamped to 0, got {hard_state.trust}"

    normal_rise = step(None, normal, 1, text).anger - normal.baseline.anger
    hard_rise = hard_state.anger - hard.baseline.anger
    assert hard_rise > normal_rise, "Hard should amplify anger more than normal"


def test_fatigue_doubles_drift():
    """Test 9: Boredom drift grows past the fatigue point."""
    profile = resolve_profile(Persona.PRICE_SENSITIVE, Difficulty.NORMAL, Mode.STANDARD)
    start = EmotionalState(anger=10, boredom=10, trust=10)

    fresh = step(start, profile, profile.fatigue_point, "Tell me about your team")
    tired = step(start, profile, profile.fatigue_point + 1, "Tell me about your team")
    assert fresh.boredom == 11
    assert tired.boredom == 12


def test_dials_stay_in_bounds():
    """Test 10: Dials stay within [0, 100] over long random sessions."""
    rng = random.Random(42)
    for profile in PROFILE_TABLE.values():
        state = None
        for turn in range(1, 40):
            state = step(state, profile, turn, rng.choice(SAMPLE_LINES))
            for dial in (state.anger, state.boredom, state.trust):
                assert 0 <= dial <= 100, f"Dial out of range: {state}"

    assert EmotionalState(anger=150, boredom=-20, trust=55.7) == EmotionalState(anger=100, boredom=0, trust=55)


# =============================================================================
# Hang-up engine
# =============================================================================

def test_anger_rule_wins():
    """Test 11: Anger >= 85 at turn >= 6 always ends angry."""
    state = EmotionalState(anger=90, boredom=90, trust=90)
    for profile in PROFILE_TABLE.values():
        decision = should_end(profile, 6, state)
        assert decision.end and decision.reason is EndReason.ANGRY, (
            f"{profile.persona}/{profile.difficulty}/{profile.mode}: {decision}"
        )


def test_rule_priority():
    """Test 12: Boredom, trust and turn rules fire in order."""
    profile = resolve_profile(Persona.PRICE_SENSITIVE, Difficulty.NORMAL, Mode.STANDARD)
    assert profile.soft_ceiling == 18

    assert should_end(profile, 5, EmotionalState(anger=90)).end is False
    assert should_end(profile, 7, EmotionalState(boredom=90)).end is False
    assert should_end(profile, 8, EmotionalState(boredom=90)).reason is EndReason.BORED
    assert should_end(profile, 9, EmotionalState(trust=80)).end is False
    assert should_end(profile, 10, EmotionalState(trust=80)).reason is EndReason.CLOSED
    assert should_end(profile, 17, EmotionalState()).end is False
    assert should_end(profile, 18, EmotionalState()).reason is EndReason.TIMEOUT


def test_absolute_ceiling():
    """Test 13: Turn 24 ends with timeout for every profile."""
    for profile in PROFILE_TABLE.values():
        decision = should_end(profile, 24, EmotionalState())
        assert decision.end and decision.reason is EndReason.TIMEOUT


def test_soft_ceiling_reason_per_persona():
    """Test 14: Soft ceiling uses the persona's own ending reason."""
    angry = resolve_profile(Persona.ANGRY, Difficulty.NORMAL, Mode.STANDARD)
    assert angry.soft_ceiling == 12
    assert should_end(angry, 11, EmotionalState()).end is False
    assert should_end(angry, 12, EmotionalState()).reason is EndReason.ANGRY

    silent = resolve_profile(Persona.SILENT, Difficulty.NIGHTMARE, Mode.CLOSE_IN_2M)
    assert silent.soft_ceiling == 6
    assert should_end(silent, 6, EmotionalState()).reason is EndReason.BORED


def test_ending_is_monotonic():
    """Test 15: Once a neutral state ends, every later turn also ends."""
    state = EmotionalState(anger=30, boredom=30, trust=30)
    for profile in PROFILE_TABLE.values():
        ended = False
        for turn in range(1, 30):
            decision = should_end(profile, turn, state)
            if ended:
                assert decision.end, f"{profile.persona} resumed at turn {turn}"
            ended = ended or decision.end
        assert ended


def test_advance_uses_updated_state():
    """Test 16: advance() checks the hang-up rules against this turn's emotions."""
    profile = resolve_profile(Persona.ANGRY, Difficulty.HARD, Mode.STANDARD)
    prev = EmotionalState(anger=80, boredom=20, trust=20)
    state, decision = advance(prev, profile, 6, "Sign today, last chance!")
    assert state.anger >= 85
    assert decision.reason is EndReason.ANGRY

    assert hangup_line(EndReason.ANGRY) == HANGUP_LINES[EndReason.ANGRY]
    assert hangup_line(EndReason.NONE) == HANGUP_LINES[EndReason.TIMEOUT]


def main():
    """Run all tests."""
    run_suite(
        "Emotional Model & Hang-up Tests",
        "Testing persona profiles, dial updates and ending rules",
        {
            "profile_table": test_profile_table_is_exhaustive,
            "generic_ceilings": test_generic_ceilings,
            "raw_ids": test_raw_id_resolution,
            "catalogue": test_persona_catalogue_hides_generic,
            "seed": test_seed_from_baseline,
            "price_trigger": test_price_trigger_for_price_sensitive,
            "gratitude": test_gratitude_is_not_scaled,
            "difficulty": test_difficulty_amplifies_adverse_movement,
            "fatigue": test_fatigue_doubles_drift,
            "bounds": test_dials_stay_in_bounds,
            "anger_rule": test_anger_rule_wins,
            "priority": test_rule_priority,
            "absolute_ceiling": test_absolute_ceiling,
            "soft_ceiling": test_soft_ceiling_reason_per_persona,
            "monotonic": test_ending_is_monotonic,
            "advance": test_advance_uses_updated_state,
        },
    )


if __name__ == "__main__":
    main()

"""
Persona and difficulty parameter table.

Every (persona, difficulty, mode) combination resolves to a frozen
PersonaBehaviourProfile. The table is exhaustive over the enums and is built
once at import, so a missing entry fails at import rather than deep inside a
turn.

Raw ids coming from callers are resolved here: an unknown persona id falls
back to Persona.GENERIC, an unknown difficulty or mode is rejected.
"""
import logging
from itertools import product
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from sales_sparring.config.tuning import DEFAULT_TUNING, EngineTuning
from sales_sparring.core.errors import InvalidInputError
from sales_sparring.core.models import Difficulty, EmotionalState, EndReason, Mode, Persona

logger = logging.getLogger(__name__)

DEFAULT_PERSONA = Persona.PRICE_SENSITIVE
DEFAULT_DIFFICULTY = Difficulty.NORMAL
DEFAULT_MODE = Mode.STANDARD


class DialReactivity(BaseModel):
    """Multipliers applied to adverse movement of each emotional dial."""
    model_config = ConfigDict(frozen=True)

    anger: float = 1.0
    boredom: float = 1.0
    trust: float = 1.0


class PersonaCard(BaseModel):
    """Human-facing description of a persona."""
    model_config = ConfigDict(frozen=True)

    persona: Persona
    label: str
    traits: tuple[str, ...]
    description: str
    tone: str
    behaviour: str
    difficulty_default: Difficulty = Difficulty.NORMAL
    example_lines: tuple[str, ...] = ()
    objection_lines: tuple[str, ...] = ()


class _PersonaTuning(BaseModel):
    """Per-persona constants before difficulty and mode are applied."""
    model_config = ConfigDict(frozen=True)

    baseline: EmotionalState
    reactivity: DialReactivity = Field(default_factory=DialReactivity)
    fatigue_point: int = 8
    price_anger_delta: int = 0
    ceiling_standard: int = 20
    ceiling_fast: int = 14
    ceiling_reason: EndReason = EndReason.TIMEOUT


class PersonaBehaviourProfile(BaseModel):
    """Resolved behaviour parameters for one persona x difficulty x mode."""
    model_config = ConfigDict(frozen=True)

    persona: Persona
    difficulty: Difficulty
    mode: Mode
    baseline: EmotionalState
    reactivity: DialReactivity
    aggression: float = 1.0  # Difficulty scaling on adverse emotional movement
    fatigue_point: int
    price_anger_delta: int = 0
    soft_ceiling: int
    soft_ceiling_reason: EndReason = EndReason.TIMEOUT


# =============================================================================
# Persona catalogue
# =============================================================================

PERSONA_CARDS: dict[Persona, PersonaCard] = {
    Persona.PRICE_SENSITIVE: PersonaCard(
        persona=Persona.PRICE_SENSITIVE,
        label="Price Sensitive",
        traits=("ROI-focused", "Budget restricted"),
        description="Pushes back on price early and often. Fixated on ROI and alternatives.",
        tone="cautious, sceptical",
        behaviour="hates high prices, compares alternatives, asks about ROI constantly",
        difficulty_default=Difficulty.NORMAL,
        example_lines=(
            "Yeah, but your competitor is cheaper.",
            "I like it, but I can't justify the price.",
        ),
        objection_lines=(
            "That's too expensive for us.",
            "What's the ROI here, honestly?",
        ),
    ),
    Persona.ANGRY: PersonaCard(
        persona=Persona.ANGRY,
        label="Angry Buyer",
        traits=("Short fuse", "Interrupts"),
        description="Easily irritated, talks over you, demanding strong justification.",
        tone="sharp, impatient",
        behaviour="interrupts, blames rep, demands justification",
        difficulty_default=Difficulty.HARD,
        example_lines=(
            "Look, I've got five minutes. Get to the point.",
            "The last vendor wasted months of our time.",
        ),
        objection_lines=(
            "Why should I believe you're any different?",
            "This is exactly the kind of pitch I can't stand.",
        ),
    ),
    Persona.SILENT: PersonaCard(
        persona=Persona.SILENT,
        label="Ultra Silent Mode",
        traits=("1-3 word answers", "Low engagement"),
        description="Barely gives anything. You must carry the conversation and create momentum.",
        tone="flat, minimal replies",
        behaviour="provides 1-4 word answers, slow to engage",
        difficulty_default=Difficulty.NIGHTMARE,
        example_lines=("Okay.", "Maybe.", "Go on."),
        objection_lines=("Not sure.", "Send me something."),
    ),
    Persona.CFO: PersonaCard(
        persona=Persona.CFO,
        label="The CFO",
        traits=("Analytical", "Sceptical", "Risk averse"),
        description="Wants numbers, risk minimisation, and clear upside justification.",
        tone="precise, guarded",
        behaviour="asks for figures, payback periods and downside scenarios",
        difficulty_default=Difficulty.HARD,
        example_lines=(
            "Walk me through the numbers.",
            "What happens if adoption is half what you project?",
        ),
        objection_lines=(
            "I don't see the payback period yet.",
            "This isn't in this year's budget.",
        ),
    ),
    Persona.PROCUREMENT: PersonaCard(
        persona=Persona.PROCUREMENT,
        label="Procurement Wall",
        traits=("Policy-driven", "Process-focused"),
        description="Everything must go through a committee or existing vendor. Loves process.",
        tone="formal, procedural",
        behaviour="defers to committees, existing vendors and approval steps",
        difficulty_default=Difficulty.NORMAL,
        example_lines=(
            "We have a preferred vendor list.",
            "Any purchase has to go through the committee.",
        ),
        objection_lines=(
            "I'll need to circle back after the committee meets.",
            "Can you send me the paperwork and we'll think about it?",
        ),
    ),
    Persona.FRIENDLY: PersonaCard(
        persona=Persona.FRIENDLY,
        label="Friendly Buyer",
        traits=("Warm", "Positive"),
        description="Open to conversation but still expects clarity and value.",
        tone="helpful",
        behaviour="engages readily but needs a clear reason to act",
        difficulty_default=Difficulty.EASY,
        example_lines=(
            "Sure, happy to chat. What have you got?",
            "That sounds interesting, tell me more.",
        ),
        objection_lines=("I like it, I'm just not sure it's a priority right now.",),
    ),
    Persona.INDECISIVE: PersonaCard(
        persona=Persona.INDECISIVE,
        label="Indecisive Prospect",
        traits=("Friendly", "Uncertain"),
        description="A hesitant buyer who keeps saying they need to think about it or talk to someone else.",
        tone="friendly but uncertain",
        behaviour="delays decisions, defers to partners and timing",
        difficulty_default=Difficulty.EASY,
        example_lines=(
            "I'll have to check with my partner.",
            "I'm not sure if now's the right time.",
        ),
        objection_lines=(
            "Let me think about it.",
            "Can we circle back next quarter?",
        ),
    ),
    Persona.DOMINANT_BUYER: PersonaCard(
        persona=Persona.DOMINANT_BUYER,
        label="Dominant Buyer",
        traits=("Assertive", "Fast-paced", "Sceptical"),
        description="A confident decision-maker who interrupts and challenges authority.",
        tone="assertive, fast",
        behaviour="cuts to the chase and challenges every claim",
        difficulty_default=Difficulty.HARD,
        example_lines=(
            "Cut to the chase, what's your best offer?",
            "I've heard it all before, convince me why this matters.",
        ),
        objection_lines=("Your price is way out of line.",),
    ),
    Persona.GENERIC: PersonaCard(
        persona=Persona.GENERIC,
        label="Generic Buyer",
        traits=("Neutral",),
        description="A typical prospect with ordinary objections.",
        tone="neutral",
        behaviour="responds plainly and raises ordinary objections",
        difficulty_default=Difficulty.NORMAL,
        example_lines=("Okay, what does it do?", "How is this different from what we have?"),
        objection_lines=("I'm not sure we need this.",),
    ),
}


_PERSONA_TUNING: dict[Persona, _PersonaTuning] = {
    Persona.PRICE_SENSITIVE: _PersonaTuning(
        baseline=EmotionalState(anger=20, boredom=20, trust=30),
        reactivity=DialReactivity(anger=1.0, boredom=1.0, trust=1.2),
        fatigue_point=8,
        price_anger_delta=8,
        ceiling_standard=18,
        ceiling_fast=12,
    ),
    Persona.ANGRY: _PersonaTuning(
        baseline=EmotionalState(anger=45, boredom=15, trust=20),
        reactivity=DialReactivity(anger=1.6, boredom=1.0, trust=1.2),
        fatigue_point=6,
        ceiling_standard=12,
        ceiling_fast=8,
        ceiling_reason=EndReason.ANGRY,
    ),
    Persona.SILENT: _PersonaTuning(
        baseline=EmotionalState(anger=10, boredom=40, trust=25),
        reactivity=DialReactivity(anger=0.8, boredom=1.6, trust=1.0),
        fatigue_point=5,
        ceiling_standard=14,
        ceiling_fast=10,
        ceiling_reason=EndReason.BORED,
    ),
    Persona.CFO: _PersonaTuning(
        baseline=EmotionalState(anger=20, boredom=20, trust=25),
        reactivity=DialReactivity(anger=1.1, boredom=1.2, trust=1.3),
        fatigue_point=8,
        ceiling_standard=20,
        ceiling_fast=12,
    ),
    Persona.PROCUREMENT: _PersonaTuning(
        baseline=EmotionalState(anger=15, boredom=30, trust=25),
        reactivity=DialReactivity(anger=0.9, boredom=1.3, trust=1.1),
        fatigue_point=7,
        ceiling_standard=22,
        ceiling_fast=16,
    ),
    Persona.FRIENDLY: _PersonaTuning(
        baseline=EmotionalState(anger=5, boredom=10, trust=50),
        reactivity=DialReactivity(anger=0.8, boredom=0.9, trust=0.8),
        fatigue_point=10,
        ceiling_standard=22,
        ceiling_fast=16,
    ),
    Persona.INDECISIVE: _PersonaTuning(
        baseline=EmotionalState(anger=10, boredom=25, trust=40),
        reactivity=DialReactivity(anger=0.8, boredom=1.2, trust=1.0),
        fatigue_point=8,
        ceiling_standard=18,
        ceiling_fast=12,
        ceiling_reason=EndReason.BORED,
    ),
    Persona.DOMINANT_BUYER: _PersonaTuning(
        baseline=EmotionalState(anger=35, boredom=20, trust=25),
        reactivity=DialReactivity(anger=1.4, boredom=1.3, trust=1.1),
        fatigue_point=6,
        ceiling_standard=14,
        ceiling_fast=10,
        ceiling_reason=EndReason.ANGRY,
    ),
    Persona.GENERIC: _PersonaTuning(
        baseline=EmotionalState(anger=20, boredom=20, trust=30),
    ),
}

# Difficulty shifts to the baseline (anger, boredom, trust) and the
# aggression factor on adverse emotional movement.
_DIFFICULTY_BASELINE_SHIFT: dict[Difficulty, tuple[int, int, int]] = {
    Difficulty.EASY: (-5, 0, 10),
    Difficulty.NORMAL: (0, 0, 0),
    Difficulty.HARD: (5, 0, -5),
    Difficulty.NIGHTMARE: (10, 5, -10),
}

_DIFFICULTY_AGGRESSION: dict[Difficulty, float] = {
    Difficulty.EASY: 0.8,
    Difficulty.NORMAL: 1.0,
    Difficulty.HARD: 1.2,
    Difficulty.NIGHTMARE: 1.4,
}


def _soft_ceiling(persona: Persona, difficulty: Difficulty, mode: Mode, tuning: EngineTuning) -> int:
    if persona is Persona.GENERIC:
        return tuning.generic_ceiling_fast if mode.is_fast else tuning.generic_ceiling_standard

    base = _PERSONA_TUNING[persona]
    ceiling = base.ceiling_fast if mode.is_fast else base.ceiling_standard
    ceiling += tuning.ceiling_difficulty_shift[difficulty]
    return max(tuning.soft_ceiling_floor, ceiling)


def build_profile(
    persona: Persona,
    difficulty: Difficulty,
    mode: Mode,
    tuning: EngineTuning = DEFAULT_TUNING,
) -> PersonaBehaviourProfile:
    """Combine persona, difficulty and mode constants into one profile."""
    base = _PERSONA_TUNING[persona]
    anger_shift, boredom_shift, trust_shift = _DIFFICULTY_BASELINE_SHIFT[difficulty]

    return PersonaBehaviourProfile(
        persona=persona,
        difficulty=difficulty,
        mode=mode,
        baseline=base.baseline.shifted(anger=anger_shift, boredom=boredom_shift, trust=trust_shift),
        reactivity=base.reactivity,
        aggression=_DIFFICULTY_AGGRESSION[difficulty],
        fatigue_point=base.fatigue_point,
        price_anger_delta=base.price_anger_delta,
        soft_ceiling=_soft_ceiling(persona, difficulty, mode, tuning),
        soft_ceiling_reason=base.ceiling_reason,
    )


PROFILE_TABLE: dict[tuple[Persona, Difficulty, Mode], PersonaBehaviourProfile] = {
    key: build_profile(*key) for key in product(Persona, Difficulty, Mode)
}


def resolve_profile(
    persona: Persona,
    difficulty: Difficulty,
    mode: Mode,
    tuning: Optional[EngineTuning] = None,
) -> PersonaBehaviourProfile:
    """Look up the profile for a combination; rebuilt when custom tuning is given."""
    if tuning is None or tuning == DEFAULT_TUNING:
        return PROFILE_TABLE[(persona, difficulty, mode)]
    return build_profile(persona, difficulty, mode, tuning)


# =============================================================================
# Raw id parsing
# =============================================================================

def resolve_persona(raw: Optional[str | Persona]) -> Persona:
    """
    Resolve a caller-supplied persona id.

    Missing ids default to the price-sensitive persona; ids we don't know
    map to Persona.GENERIC instead of failing the session.
    """
    if isinstance(raw, Persona):
        return raw
    if raw is None or not str(raw).strip():
        return DEFAULT_PERSONA
    try:
        return Persona(str(raw).strip().lower())
    except ValueError:
        logger.warning("Unknown persona id %r, using generic profile", raw)
        return Persona.GENERIC


def parse_difficulty(raw: Optional[str | Difficulty]) -> Difficulty:
    """Parse a difficulty; missing means normal, unknown is rejected."""
    if isinstance(raw, Difficulty):
        return raw
    if raw is None or not str(raw).strip():
        return DEFAULT_DIFFICULTY
    try:
        return Difficulty(str(raw).strip().lower())
    except ValueError:
        raise InvalidInputError(
            f"Unknown difficulty {raw!r}; expected one of {[d.value for d in Difficulty]}"
        ) from None


def parse_mode(raw: Optional[str | Mode]) -> Mode:
    """Parse a drill mode; missing means standard, unknown is rejected."""
    if isinstance(raw, Mode):
        return raw
    if raw is None or not str(raw).strip():
        return DEFAULT_MODE
    try:
        return Mode(str(raw).strip().lower())
    except ValueError:
        raise InvalidInputError(
            f"Unknown mode {raw!r}; expected one of {[m.value for m in Mode]}"
        ) from None


def persona_catalogue() -> list[PersonaCard]:
    """Cards for every selectable persona (the generic fallback is hidden)."""
    return [card for persona, card in PERSONA_CARDS.items() if persona is not Persona.GENERIC]

"""
Per-turn heuristic scoring of a rep utterance.

score_turn() looks for a handful of lexical signals in the rep's text and in
the buyer's reply, builds five category scores, applies named penalties and
returns a weighted turn score with a coaching note. It is pure: identical
inputs always give an identical record.
"""
from sales_sparring.config.tuning import round_half_up
from sales_sparring.core.models import MicroScoreRecord, ScoreBreakdown, clamp_dial
from sales_sparring.engine import lexicon

MIN_TURN_LENGTH = 10

WEIGHTS = {
    "opener": 0.10,
    "discovery": 0.25,
    "pitch": 0.25,
    "objections": 0.25,
    "close": 0.15,
}

# Flags
TOO_SHORT = "too_short"
PRICE_WITHOUT_VALUE = "price_without_value"
MISSED_PRICE_OBJECTION = "missed_price_objection"
STALL_NOT_ADDRESSED = "stall_not_addressed"

# Coach notes, in priority order
NOTE_OBJECTION_HANDLED = (
    "Nice work: you acknowledged the objection and tied your answer back to ROI and value."
)
NOTE_STALL_HANDLED = "Nice work: you acknowledged their hesitation and kept the conversation moving."
NOTE_OBJECTION_ACKNOWLEDGED = "Good acknowledgement. Now tie your answer back to ROI or value."
NOTE_OBJECTION_MISSED = (
    "The buyer raised an objection. Acknowledge it first, then reframe around value or ask what's behind it."
)
NOTE_NO_QUESTION = "Try asking an open question to uncover what matters to them."
NOTE_GOOD_CLOSE = "Good: you proposed a clear next step."
NOTE_GENERIC = "Solid turn. Keep building value and steer toward a next step."


class TurnSignals:
    """Lexical signals extracted from one rep/buyer exchange."""

    def __init__(self, rep_text: str, buyer_text: str):
        rep = rep_text or ""
        buyer = buyer_text or ""

        self.too_short = len(rep.strip()) < MIN_TURN_LENGTH
        self.asked_question = "?" in rep
        self.has_number = bool(lexicon.DIGIT.search(rep))
        self.mentions_price = bool(lexicon.PRICE.search(rep))
        self.uses_value = bool(lexicon.VALUE.search(rep))
        self.uses_closing = bool(lexicon.CLOSING.search(rep))
        self.shows_empathy = bool(lexicon.EMPATHY.search(rep))

        self.buyer_price_objection = bool(lexicon.BUYER_PRICE_OBJECTION.search(buyer))
        self.buyer_stalled = bool(lexicon.BUYER_STALL.search(buyer))

    @property
    def buyer_objected(self) -> bool:
        return self.buyer_price_objection or self.buyer_stalled


def score_turn(rep_text: str, buyer_text: str) -> MicroScoreRecord:
    """
    Score one rep turn against the buyer's reply.

    Args:
        rep_text: What the rep said.
        buyer_text: The buyer's reply to it.

    Returns:
        MicroScoreRecord with turn_score and every category in [0, 100].
    """
    s = TurnSignals(rep_text, buyer_text)
    flags: list[str] = []

    opener = 50
    discovery = 70 if s.asked_question else 45
    pitch = 65 if s.uses_value else 45
    if s.has_number:
        pitch += 5

    if s.buyer_objected:
        objections = 70 if s.shows_empathy else 50
    else:
        objections = 55

    close = 70 if s.uses_closing else 40

    if s.too_short:
        flags.append(TOO_SHORT)
        discovery -= 10
        pitch -= 10

    if s.mentions_price and not s.uses_value:
        flags.append(PRICE_WITHOUT_VALUE)
        pitch -= 10

    if s.buyer_price_objection and not (s.mentions_price or s.uses_value):
        flags.append(MISSED_PRICE_OBJECTION)
        objections -= 15

    if s.buyer_stalled and not (s.asked_question or s.uses_closing):
        flags.append(STALL_NOT_ADDRESSED)
        objections -= 10

    breakdown = ScoreBreakdown(
        opener=clamp_dial(opener),
        discovery=clamp_dial(discovery),
        pitch=clamp_dial(pitch),
        objections=clamp_dial(objections),
        close=clamp_dial(close),
    )

    weighted = sum(getattr(breakdown, name) * weight for name, weight in WEIGHTS.items())

    return MicroScoreRecord(
        turn_score=round_half_up(max(0.0, min(100.0, weighted))),
        breakdown=breakdown,
        coach_note=_coach_note(s, flags),
        flags=tuple(flags),
    )


def _coach_note(s: TurnSignals, flags: list[str]) -> str:
    objection_flags = {MISSED_PRICE_OBJECTION, STALL_NOT_ADDRESSED}

    if s.buyer_objected and s.shows_empathy and not objection_flags.intersection(flags):
        if s.uses_value:
            return NOTE_OBJECTION_HANDLED
        if not s.buyer_price_objection:
            return NOTE_STALL_HANDLED
        return NOTE_OBJECTION_ACKNOWLEDGED
    if s.buyer_objected:
        return NOTE_OBJECTION_MISSED
    if not s.asked_question:
        return NOTE_NO_QUESTION
    if s.uses_closing:
        return NOTE_GOOD_CLOSE
    return NOTE_GENERIC

"""
Engine module - emotional model, hang-up rules, micro-scoring, streaks and finalization.
"""

from .advance import advance
from .emotion import step
from .finalization import compute_finalization
from .hangup import should_end
from .micro_scoring import score_turn
from .streak import update_streak

__all__ = [
    "advance",
    "step",
    "compute_finalization",
    "should_end",
    "score_turn",
    "update_streak",
]

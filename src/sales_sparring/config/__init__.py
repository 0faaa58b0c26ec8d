"""
Config module - engine tuning constants and operator scoring config.
"""

from .scoring_config import ScoringConfig, ScoringConfigProvider, StreakConfig
from .tuning import DEFAULT_TUNING, EngineTuning

__all__ = [
    "DEFAULT_TUNING",
    "EngineTuning",
    "ScoringConfig",
    "ScoringConfigProvider",
    "StreakConfig",
]

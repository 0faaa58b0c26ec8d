"""
Sales Sparring - practice sales calls against simulated buyers.

This package provides the session engine behind sparring drills: a buyer
emotional model, hang-up rules, per-turn micro-scoring, streak multipliers
and end-of-session scoring with XP.
"""

__version__ = "1.0.0"

"""
MathMind: guided multi-step problem solving.

Students walk branching task graphs; mistakes are authored edges recorded in a
ledger that teachers read back as per-class analytics.
"""

__version__ = "0.1.0"

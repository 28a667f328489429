"""
quizpool: quality-gated quiz item pool with Leitner-weighted adaptive selection.
"""

__version__ = "1.0.0"

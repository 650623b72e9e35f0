"""
Mark Six Combination Generators

Available models:
- classic: Monte Carlo batch search filtered by in-batch diversity
- classic_optimized: classic search with adaptive candidate count and early stop
- follow_on: weighted sampling from the follow-on transition table
- advanced_follow_on: chains, conditional triggers and pattern clusters, or
  time-weighted pair-aware sampling inside the user's selection
- bayesian: uniform prior updated by frequency, follow-on, trend and gap evidence
- ensemble: backtest-weighted blend of the classic, follow-on and Bayesian models
"""

from . import classic
from . import classic_optimized
from . import follow_on
from . import advanced_follow_on
from . import bayesian
from . import ensemble

__all__ = [
    "classic",
    "classic_optimized",
    "follow_on",
    "advanced_follow_on",
    "bayesian",
    "ensemble",
]

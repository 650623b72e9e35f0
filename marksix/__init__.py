"""
Mark Six combination engine.

Generates candidate Mark Six combinations (6 numbers, or 7 for double bets)
from a draw history with Monte Carlo, follow-on, Bayesian and ensemble
methods. For entertainment: no method predicts a fair draw.
"""

__version__ = "0.1.0"

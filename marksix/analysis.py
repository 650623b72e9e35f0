"""
Mark Six - Statistical Analysis Engine

Number-level analyses shared by the generators:
    1. Frequency (hot / cold)
    2. Follow-on transition table and weighted pools
    3. Gap and temporal trend ("due" numbers)
    4. Random, balanced and Gann-square number suggestions
    5. Uniformity check of the historical draws

Every draw contributes 7 numbers: the 6 winning numbers and the special
number.
"""

from collections import Counter

import numpy as np
import pandas as pd
from scipy import stats

from marksix import rng as rng_utils
from marksix.draws import (
    ALL_NUMBERS,
    TOTAL_NUMBERS,
    draw_matrix,
    require_history,
    winning_matrix,
)

RECENT_WINDOW = 20


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def count_numbers(matrix):
    """Occurrences of each number, as a length-50 array (index 0 unused)."""
    matrix = np.asarray(matrix, dtype=np.int64)
    return np.bincount(matrix.ravel(), minlength=TOTAL_NUMBERS + 1)


# ===================================================================
# 1. Frequency Analysis
# ===================================================================

def get_historical_frequency(df, analysis_type="hot"):
    """
    Count every number 1-49 across winning and special numbers.

    Parameters
    ----------
    df : pd.DataFrame
        Draw history.
    analysis_type : {"hot", "cold"}
        "hot" sorts by frequency descending, "cold" ascending.

    Returns
    -------
    list of (number, frequency) for all 49 numbers. Ties are ordered by
    number, so the hot list is the exact reverse of the cold list.
    """
    if analysis_type not in ("hot", "cold"):
        raise ValueError(f"Unknown analysis type: {analysis_type!r} (use 'hot' or 'cold')")
    df = require_history(df)

    counts = count_numbers(draw_matrix(df))
    cold = sorted(((n, int(counts[n])) for n in ALL_NUMBERS), key=lambda x: (x[1], x[0]))
    if analysis_type == "cold":
        return cold
    return cold[::-1]


def frequency_analysis(df):
    """
    Main/special split of the frequency counts with a tidy summary frame.

    Returns
    -------
    dict with keys:
        main_counts       : dict {number: count as winning number}
        special_counts    : dict {number: count as special number}
        ranked            : list of (number, total) sorted desc
        total_draws       : int
        dataframe         : pd.DataFrame summary
    """
    df = require_history(df)
    main = count_numbers(winning_matrix(df))
    special = count_numbers(df["special_number"].to_numpy())
    total_draws = len(df)

    ranked = get_historical_frequency(df, "hot")
    records = []
    for rank, (num, total) in enumerate(ranked, 1):
        records.append({
            "number": num,
            "main_count": int(main[num]),
            "special_count": int(special[num]),
            "total_appearances": total,
            "appearance_rate": round(total / total_draws, 4),
            "rank": rank,
        })

    return {
        "main_counts": {n: int(main[n]) for n in ALL_NUMBERS},
        "special_counts": {n: int(special[n]) for n in ALL_NUMBERS},
        "ranked": ranked,
        "total_draws": total_draws,
        "dataframe": pd.DataFrame(records),
    }


# ===================================================================
# 2. Follow-On Analysis
# ===================================================================

def build_follow_on_table(df):
    """
    Build the follow-on transition count table.

    table[a][b] counts how often number b appeared in the draw right after
    a draw containing number a (7 numbers per draw on both sides). Shape is
    (50, 50) so numbers index directly; row and column 0 stay zero.
    """
    matrix = draw_matrix(df)
    table = np.zeros((TOTAL_NUMBERS + 1, TOTAL_NUMBERS + 1), dtype=np.int64)

    for i in range(len(matrix) - 1):
        current_nums = matrix[i]
        next_nums = matrix[i + 1]
        # Every (current, next) pair once; numbers within a draw are distinct
        table[np.ix_(current_nums, next_nums)] += 1

    return table


def follow_on_pool(table, triggers):
    """
    Sum the transition rows of every trigger number.

    Returns a length-49 float array: weight of numbers 1..49. Numbers that
    never followed a trigger keep weight 0.
    """
    pool = np.zeros(TOTAL_NUMBERS, dtype=np.float64)
    for t in triggers:
        t = int(t)
        if 1 <= t <= TOTAL_NUMBERS:
            pool += table[t, 1:]
    return pool


def get_follow_on_numbers(df):
    """
    Follow-on rankings seeded by the most recent draw.

    Returns
    -------
    list of (number, weight) for numbers with positive weight, sorted by
    weight descending.
    """
    df = require_history(df)
    triggers = draw_matrix(df)[-1]
    pool = follow_on_pool(build_follow_on_table(df), triggers)
    rankings = [(n, float(pool[n - 1])) for n in ALL_NUMBERS if pool[n - 1] > 0]
    return sorted(rankings, key=lambda x: (-x[1], x[0]))


# ===================================================================
# 3. Gap / Temporal Analysis
# ===================================================================

class GapAnalyzer:
    """
    Draws-since-last-seen and recent-versus-older trend per number.

    A number is "due" when its current gap exceeds its running average gap.
    """

    def __init__(self, df, recent_window=RECENT_WINDOW):
        self.df = require_history(df)
        self.matrix = draw_matrix(self.df)
        self.n = len(self.matrix)
        self.recent_window = recent_window

    def gap_analysis(self):
        """
        Returns
        -------
        dict {number: {"current_gap": int, "average_gap": float}}
        """
        last_seen = {}
        total_gaps = Counter()
        gap_counts = Counter()

        for i, row in enumerate(self.matrix):
            for num in row:
                num = int(num)
                if num in last_seen:
                    total_gaps[num] += i - last_seen[num]
                    gap_counts[num] += 1
                last_seen[num] = i

        last_index = self.n - 1
        gaps = {}
        for num in ALL_NUMBERS:
            current_gap = last_index - last_seen.get(num, -1)
            if gap_counts[num]:
                average_gap = total_gaps[num] / gap_counts[num]
            else:
                average_gap = float(self.n)
            gaps[num] = {"current_gap": current_gap, "average_gap": average_gap}
        return gaps

    def overdue_scores(self):
        """How far past its average gap each number is, scaled by that average."""
        scores = {}
        for num, info in self.gap_analysis().items():
            overdue = max(0.0, info["current_gap"] - info["average_gap"])
            scores[num] = overdue / max(1.0, info["average_gap"])
        return scores

    def temporal_trend(self):
        """
        Positive trend of each number in the recent window against older draws.

        Returns zeros when the history is not longer than the recent window.
        """
        recent = self.matrix[-self.recent_window:]
        older = self.matrix[:-self.recent_window]
        if len(recent) == 0 or len(older) == 0:
            return {n: 0.0 for n in ALL_NUMBERS}

        recent_counts = count_numbers(recent)
        older_counts = count_numbers(older)
        trend = {}
        for n in ALL_NUMBERS:
            r, o = int(recent_counts[n]), int(older_counts[n])
            trend[n] = max(0, r - o) / max(1, r + o)
        return trend


# ===================================================================
# 4. Number Suggestions
# ===================================================================

def generate_random_numbers(rng=None):
    """All 49 numbers in random order, each paired with a random score."""
    rng = rng_utils.make_rng(rng)
    return [(n, float(rng.random())) for n in rng_utils.shuffled(ALL_NUMBERS, rng)]


BALANCED_RANGES = [
    (1, 10, "1-10"),
    (11, 20, "11-20"),
    (21, 30, "21-30"),
    (31, 40, "31-40"),
    (41, 49, "41-49"),
]


def generate_balanced_numbers(rng=None):
    """
    Numbers spread evenly over the five decade bands.

    Takes up to ceil(49 / 5) shuffled numbers from each band and returns
    (number, band) pairs sorted by number.
    """
    rng = rng_utils.make_rng(rng)
    per_band = -(-TOTAL_NUMBERS // len(BALANCED_RANGES))
    picks = []
    for start, end, name in BALANCED_RANGES:
        band = rng_utils.shuffled(range(start, end + 1), rng)
        picks.extend((n, name) for n in band[:per_band])
    return sorted(picks)


def generate_gann_square(size=7):
    """
    Lay 1..size^2 out in a square spiral starting at the centre.

    Returns a list of rows; cells are ints (None if the spiral leaves the grid).
    """
    square = [[None] * size for _ in range(size)]
    x = y = size // 2
    direction = 0  # 0: right, 1: up, 2: left, 3: down
    steps, step_count, turn_count = 1, 0, 0

    for i in range(1, size * size + 1):
        if 0 <= x < size and 0 <= y < size:
            square[y][x] = i

        if direction == 0:
            x += 1
        elif direction == 1:
            y -= 1
        elif direction == 2:
            x -= 1
        else:
            y += 1

        step_count += 1
        if step_count == steps:
            step_count = 0
            direction = (direction + 1) % 4
            turn_count += 1
            if turn_count == 2:
                turn_count = 0
                steps += 1
    return square


def suggest_numbers_by_gann_square(df, rng=None):
    """
    Gann-square suggestions: the last draw's numbers first, then every other
    number reachable on the grid in random order.

    Returns
    -------
    list of dicts {number, reason, distance}
    """
    df = require_history(df)
    rng = rng_utils.make_rng(rng)
    last_draw = [int(n) for n in draw_matrix(df)[-1]]

    coords = {}
    for y, row in enumerate(generate_gann_square()):
        for x, num in enumerate(row):
            if num is not None:
                coords[num] = (y, x)

    suggestions = []
    seen = set()
    for num in last_draw:
        if num not in seen:
            seen.add(num)
            suggestions.append({"number": num, "reason": "Last draw number", "distance": 0})

    close = []
    for num in ALL_NUMBERS:
        if num in seen or num not in coords:
            continue
        y, x = coords[num]
        distances = [abs(x - coords[l][1]) + abs(y - coords[l][0]) for l in last_draw if l in coords]
        if distances:
            close.append((num, min(distances)))

    for num, distance in rng_utils.shuffled(close, rng):
        suggestions.append({"number": num, "reason": "Close to last draw numbers", "distance": distance})
    return suggestions


# ===================================================================
# 5. Uniformity
# ===================================================================

def uniformity_test(df):
    """
    Chi-square goodness-of-fit of winning-number counts against a fair draw.

    Returns
    -------
    dict with chi2, p_value, degrees_of_freedom, interpretation
    """
    df = require_history(df)
    observed = count_numbers(winning_matrix(df))[1:]
    expected = np.full(TOTAL_NUMBERS, observed.sum() / TOTAL_NUMBERS)
    chi2, p_value = stats.chisquare(observed, expected)

    if p_value < 0.05:
        interpretation = "Counts deviate from uniform at p < 0.05 (likely sampling noise on short histories)"
    else:
        interpretation = "Counts are consistent with a fair uniform draw"

    return {
        "chi2": round(float(chi2), 4),
        "p_value": round(float(p_value), 6),
        "degrees_of_freedom": TOTAL_NUMBERS - 1,
        "interpretation": interpretation,
        "n_draws": len(df),
    }

"""
Classic Monte Carlo Generator for Mark Six

Brute-force search over random candidate batches:
    1. Build ``iterations`` independent batches of ``combination_count``
       combinations (lucky number, then uniform picks from the user pool).
    2. Rate each batch's diversity with the frequence factor: the mean over
       its combinations of 1 - (in-batch count / max in-batch count).
    3. Score each batch against the whole history: per draw and per
       combination, matched winning numbers plus 0.5 for the special
       number, mapped through SCORE_MAP and summed.
    4. Keep batches whose frequence factor exceeds mean + 1 std (top 20%
       when none do) and return the best scoring one.
"""

import math

import numpy as np

from marksix import rng as rng_utils
from marksix.draws import (
    ALL_NUMBERS,
    TOTAL_NUMBERS,
    membership_matrix,
    require_history,
    special_numbers,
    winning_matrix,
)
from marksix.filters import build_results, combination_length, normalize_lucky_number

# Per-(combination, draw) match score -> contribution to the batch score
SCORE_MAP = {
    0: 0, 0.5: 0.5, 1: 1, 1.5: 1.5, 2: 2, 2.5: 2.5, 3: 3,
    3.5: 3.5, 4: 4, 4.5: 4.5, 5: 5, 5.5: 5.5, 6: 6, 6.5: 6.5,
}

DEFAULT_CONFIG = {
    "iterations": 963,
    "score_map": SCORE_MAP,
    "fallback_top_fraction": 0.2,
}


def resolve_config(config=None):
    resolved = dict(DEFAULT_CONFIG)
    if config:
        resolved.update(config)
    return resolved


# ---------------------------------------------------------------------------
# Candidate batches
# ---------------------------------------------------------------------------

def generate_combination(selected_numbers, lucky_number, is_double, rng):
    """
    One classic combination: the lucky number, then uniform picks without
    replacement from the selection pool (1-49 when empty), topped up from
    1-49 if the pool runs out.
    """
    length = combination_length(is_double)
    combination = []
    lucky = normalize_lucky_number(lucky_number)
    if lucky is not None:
        combination.append(lucky)

    pool = sorted(set(int(n) for n in selected_numbers)) if selected_numbers else ALL_NUMBERS
    for source in (pool, ALL_NUMBERS):
        if len(combination) >= length:
            break
        remaining = [n for n in source if n not in combination]
        needed = length - len(combination)
        combination.extend(rng_utils.shuffled(remaining, rng)[:needed])

    return sorted(combination)


def generate_batch(combination_count, selected_numbers, lucky_number, is_double, rng):
    return [
        generate_combination(selected_numbers, lucky_number, is_double, rng)
        for _ in range(combination_count)
    ]


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

class HistoryScorer:
    """Scores batches against a fixed history with numpy membership matrices."""

    def __init__(self, df, score_map=SCORE_MAP):
        self.winning = membership_matrix(winning_matrix(df)).astype(np.float64)
        self.special = special_numbers(df)
        # Match scores are multiples of 0.5, so index the map by 2 * score
        self.lookup = np.zeros(2 * (TOTAL_NUMBERS + 1) + 2, dtype=np.float64)
        for sub_score, value in score_map.items():
            self.lookup[int(round(sub_score * 2))] = value

    def sub_scores(self, batch):
        """(n_combinations, n_draws) array of matched numbers + 0.5 * special."""
        combos = membership_matrix(np.asarray(batch, dtype=np.int64))
        matches = combos.astype(np.float64) @ self.winning.T
        special_hit = combos[:, self.special]
        return matches + 0.5 * special_hit

    def score(self, batch):
        """
        Returns
        -------
        (total_score, score_distribution) where score_distribution maps each
        observed match score to how many (combination, draw) pairs hit it.
        """
        sub_scores = self.sub_scores(batch)
        doubled = np.rint(sub_scores * 2).astype(np.int64)
        total = float(self.lookup[doubled].sum())
        counts = np.bincount(doubled.ravel())
        distribution = {k / 2: int(c) for k, c in enumerate(counts) if c}
        return total, distribution


def frequence_factor(batch):
    """
    In-batch diversity: sum over combinations of the mean of
    1 - count(number) / max count.
    """
    counts = np.bincount(np.asarray(batch, dtype=np.int64).ravel(), minlength=TOTAL_NUMBERS + 1)
    max_count = counts.max()
    factor = 0.0
    for combination in batch:
        factor += float(np.mean(1 - counts[combination] / max_count))
    return factor


def number_distribution(batch):
    counts = np.bincount(np.asarray(batch, dtype=np.int64).ravel(), minlength=TOTAL_NUMBERS + 1)
    return [{"number": n, "frequency": int(counts[n])} for n in ALL_NUMBERS if counts[n]]


def evaluate_batch(batch, scorer):
    total_score, distribution = scorer.score(batch)
    return {
        "batch": batch,
        "total_score": total_score,
        "frequence_factor": frequence_factor(batch),
        "score_distribution": distribution,
        "number_distribution": number_distribution(batch),
    }


def select_best(candidates, top_fraction=0.2):
    """
    Filter candidates on frequence factor > mean + 1 std (top fraction by
    frequence factor when none pass) and return the highest scorer.

    Returns None when there are no candidates.
    """
    if not candidates:
        return None

    factors = np.array([c["frequence_factor"] for c in candidates])
    threshold = factors.mean() + factors.std()
    survivors = [c for c in candidates if c["frequence_factor"] > threshold]
    if not survivors:
        ranked = sorted(candidates, key=lambda c: c["frequence_factor"], reverse=True)
        survivors = ranked[:math.ceil(len(ranked) * top_fraction)]

    best = None
    for candidate in survivors:
        if best is None or candidate["total_score"] > best["total_score"]:
            best = candidate
    return best


def finalize(best, df, combination_count, selected_numbers, lucky_number, is_double, rng):
    """Result dicts for the winning batch, or for a fresh batch when none won."""
    if best is None:
        batch = generate_batch(combination_count, selected_numbers, lucky_number, is_double, rng)
        return build_results(batch, df, is_double, score=-1,
                             score_distribution=None, number_distribution=None)

    return build_results(
        best["batch"], df, is_double,
        score=best["total_score"],
        score_distribution=best["score_distribution"],
        number_distribution=best["number_distribution"],
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def generate(df, combination_count, selected_numbers=None, lucky_number=0,
             is_double=False, rng=None, config=None, verbose=False):
    """
    Generate combinations with the classic Monte Carlo search.

    Parameters
    ----------
    df : pd.DataFrame or list of draw records
        History, ascending by date.
    combination_count : int
    selected_numbers : list of int, optional
        User pool; empty means 1-49.
    lucky_number : int
        Included in every combination; 0 or None for none.
    is_double : bool
        7-number combinations with split numbers.
    rng : random source, optional
    config : dict, optional
        Overrides of DEFAULT_CONFIG (``iterations``, ``score_map``).

    Returns
    -------
    list of dicts {combination, sequence_number, score, score_distribution,
    number_distribution[, split_numbers]}
    """
    df = require_history(df)
    rng = rng_utils.make_rng(rng)
    cfg = resolve_config(config)
    selected_numbers = list(selected_numbers or [])

    scorer = HistoryScorer(df, cfg["score_map"])
    candidates = []
    for _ in range(cfg["iterations"]):
        batch = generate_batch(combination_count, selected_numbers, lucky_number, is_double, rng)
        candidates.append(evaluate_batch(batch, scorer))

    best = select_best(candidates, cfg["fallback_top_fraction"])
    if verbose:
        print(f"  [Classic] {len(candidates)} batches scored against {len(df)} draws")
        if best is not None:
            print(f"  [Classic] Best score: {best['total_score']:.1f}")

    return finalize(best, df, combination_count, selected_numbers, lucky_number, is_double, rng)

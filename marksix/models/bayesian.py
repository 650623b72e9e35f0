"""
Bayesian Generator for Mark Six

Starts from a uniform prior over 1-49 and applies four evidence updates in
order, each multiplying a number's probability by (1 + weight * likelihood):

    frequency  (0.4)  count / max count over winning + special numbers
    follow-on  (0.3)  per trigger of the seed draw, count / trigger total
    temporal   (0.2)  positive recent-vs-older trend over the last 20 draws
    gap        (0.1)  how far past its average gap a number is

The result is L1-normalised. Combinations are sampled from a pool where each
number appears max(1, floor(p * 1000)) times; a combination's probability is
the product of its members' probabilities.
"""

import numpy as np

from marksix import rng as rng_utils
from marksix.analysis import GapAnalyzer, build_follow_on_table, count_numbers
from marksix.draws import ALL_NUMBERS, TOTAL_NUMBERS, draw_matrix, require_history
from marksix.filters import (
    build_results,
    combination_length,
    fill_weighted,
    finish_combination,
    start_combination,
)

EVIDENCE_WEIGHTS = {
    "frequency": 0.4,
    "follow_on": 0.3,
    "temporal": 0.2,
    "gap": 0.1,
}

DEFAULT_CONFIG = {
    "evidence_weights": EVIDENCE_WEIGHTS,
    "recent_window": 20,
    "pool_scale": 1000,
    "unknown_probability": 0.01,
}


def resolve_config(config=None):
    resolved = dict(DEFAULT_CONFIG)
    if config:
        resolved.update(config)
    resolved["evidence_weights"] = dict(EVIDENCE_WEIGHTS, **resolved["evidence_weights"])
    return resolved


# ── Evidence updates ──────────────────────────────────────────────────────

def _update_with_frequency(probs, matrix, weight):
    counts = count_numbers(matrix)[1:].astype(np.float64)
    likelihood = counts / counts.max()
    probs *= 1 + weight * likelihood


def _update_with_follow_on(probs, df, last_draw_numbers, weight):
    table = build_follow_on_table(df)
    for trigger in last_draw_numbers:
        trigger = int(trigger)
        if not 1 <= trigger <= TOTAL_NUMBERS:
            continue
        followers = table[trigger, 1:].astype(np.float64)
        total = followers.sum()
        if total == 0:
            continue
        probs *= 1 + weight * (followers / total)


def _update_with_temporal(probs, gaps, weight):
    trend = gaps.temporal_trend()
    probs *= 1 + weight * np.array([trend[n] for n in ALL_NUMBERS])


def _update_with_gap(probs, gaps, weight):
    overdue = gaps.overdue_scores()
    probs *= 1 + weight * np.array([overdue[n] for n in ALL_NUMBERS])


def calculate_probabilities(df, last_draw_numbers=None, config=None):
    """
    Posterior probability of every number.

    Parameters
    ----------
    df : pd.DataFrame or list of draw records
    last_draw_numbers : list of int, optional
        Seed draw for the follow-on evidence; skipped when empty.

    Returns
    -------
    dict {number: probability} over 1-49, summing to 1.
    """
    df = require_history(df)
    cfg = resolve_config(config)
    weights = cfg["evidence_weights"]

    probs = np.full(TOTAL_NUMBERS, 1 / TOTAL_NUMBERS, dtype=np.float64)
    _update_with_frequency(probs, draw_matrix(df), weights["frequency"])
    if last_draw_numbers:
        _update_with_follow_on(probs, df, last_draw_numbers, weights["follow_on"])

    gaps = GapAnalyzer(df, recent_window=cfg["recent_window"])
    _update_with_temporal(probs, gaps, weights["temporal"])
    _update_with_gap(probs, gaps, weights["gap"])

    total = probs.sum()
    if total > 0:
        probs /= total
    return {n: float(probs[n - 1]) for n in ALL_NUMBERS}


def get_bayesian_probabilities(df, last_draw_numbers=None, config=None):
    """Posterior probabilities as (number, probability), descending."""
    probabilities = calculate_probabilities(df, last_draw_numbers, config)
    return sorted(probabilities.items(), key=lambda x: (-x[1], x[0]))


def pool_counts(probabilities, scale=1000):
    """How many times each number would appear in the sampling pool."""
    return np.array(
        [max(1, int(np.floor(probabilities[n] * scale))) for n in ALL_NUMBERS],
        dtype=np.float64,
    )


def combination_probability(combination, probabilities, unknown=0.01):
    result = 1.0
    for num in combination:
        result *= probabilities.get(int(num)) or unknown
    return result


def rank_results(results):
    """Sort results by probability, highest first, and renumber them from 1."""
    results.sort(key=lambda r: r["probability"], reverse=True)
    for idx, result in enumerate(results, 1):
        result["sequence_number"] = idx
    return results


def generate(df, combination_count, selected_numbers=None, lucky_number=0,
             is_double=False, last_draw_numbers=None, rng=None, config=None,
             verbose=False):
    """
    Generate Bayesian weighted combinations.

    Returns
    -------
    list of dicts {combination, sequence_number, probability[, split_numbers]}
    sorted by probability descending; sequence numbers follow that order.
    """
    df = require_history(df)
    rng = rng_utils.make_rng(rng)
    cfg = resolve_config(config)

    probabilities = calculate_probabilities(df, last_draw_numbers, cfg)
    counts = pool_counts(probabilities, cfg["pool_scale"])
    length = combination_length(is_double)

    combinations = []
    for _ in range(combination_count):
        combination = start_combination(selected_numbers, lucky_number, length, rng)
        fill_weighted(combination, ALL_NUMBERS, counts, length, rng)
        finished = finish_combination(combination, length)
        if finished is not None:
            combinations.append(finished)

    if verbose:
        top = sorted(probabilities, key=probabilities.get, reverse=True)[:6]
        print(f"  [Bayesian] Top posterior numbers: {top}")
        print(f"  [Bayesian] Generated {len(combinations)}/{combination_count} combinations")

    results = build_results(combinations, df, is_double)
    for result in results:
        result["probability"] = combination_probability(
            result["combination"], probabilities, cfg["unknown_probability"])
    return rank_results(results)

"""
Advanced Follow-On Generator for Mark Six

Two sampling paths:

Pool path (the user selected at least one combination's worth of numbers):
    Weighted picks restricted to the selection, using time-weighted
    individual probabilities. Each pick then passes an acceptance step whose
    probability rises with the pick's co-occurrence affinity to the numbers
    already chosen; a rejected pick is redrawn.

Fallback path (selection too small):
    Issues an InsufficientSelection warning and samples from the fused
    49-number weights of the advanced follow-on analysis.

Combinations are unique within one call and always hold the lucky number.
"""

import warnings

import numpy as np

from marksix import rng as rng_utils
from marksix.advanced_analysis import (
    calculate_advanced_analysis,
    pair_probabilities,
    time_weighted_probabilities,
)
from marksix.draws import ALL_NUMBERS, require_history
from marksix.errors import InsufficientSelection
from marksix.filters import (
    DuplicateTracker,
    build_results,
    combination_length,
    normalize_lucky_number,
)

DEFAULT_CONFIG = {
    "base_acceptance": 2 / 3,
    "pair_boost": 0.5,
    "max_attempts": 500,
    "max_rejections": 50,
    "rounds_per_combination": 10,
}


def pair_affinity(number, chosen, pairs, max_pair):
    """Mean co-occurrence of ``number`` with ``chosen``, scaled into [0, 1]."""
    if not chosen or max_pair <= 0:
        return 0.0
    rates = [pairs.get((min(number, c), max(number, c)), 0.0) for c in chosen]
    return float(np.mean(rates)) / max_pair


def acceptance_probability(affinity, config=None):
    cfg = dict(DEFAULT_CONFIG, **(config or {}))
    return min(1.0, cfg["base_acceptance"] * (1 + cfg["pair_boost"] * affinity))


def _pool_combination(pool, probabilities, pairs, max_pair, lucky, length, rng, cfg):
    """One combination from the selection pool with pair-boosted acceptance."""
    combination = [lucky] if lucky is not None else []
    weights = np.array([probabilities[n] for n in pool], dtype=np.float64)
    for i, num in enumerate(pool):
        if num in combination:
            weights[i] = 0.0

    attempts = rejections = 0
    while len(combination) < length and attempts < cfg["max_attempts"]:
        attempts += 1
        pick = int(rng_utils.weighted_choice(pool, weights, rng))
        if pick in combination:
            continue

        if combination and rejections < cfg["max_rejections"]:
            affinity = pair_affinity(pick, combination, pairs, max_pair)
            if rng.random() >= acceptance_probability(affinity, cfg):
                rejections += 1
                continue

        combination.append(pick)
        weights[pool.index(pick)] = 0.0
        rejections = 0

    return combination


def _fused_combination(weighted_probabilities, lucky, length, rng):
    """One combination drawn without replacement from the fused 1-49 weights."""
    combination = [lucky] if lucky is not None else []
    weights = np.array([weighted_probabilities[n] for n in ALL_NUMBERS], dtype=np.float64)
    for num in combination:
        weights[num - 1] = 0.0

    while len(combination) < length:
        pick = int(rng_utils.weighted_choice(ALL_NUMBERS, weights, rng))
        if pick in combination:
            break
        combination.append(pick)
        weights[pick - 1] = 0.0
    return combination


def generate(df, combination_count, selected_numbers=None, lucky_number=0,
             is_double=False, rng=None, config=None, analysis=None, verbose=False):
    """
    Generate advanced follow-on combinations.

    Parameters
    ----------
    config : dict, optional
        Overrides of this module's DEFAULT_CONFIG and of the analyzer's
        ``advanced_analysis.DEFAULT_CONFIG``.
    analysis : dict, optional
        Output of ``calculate_advanced_analysis`` to reuse on the fallback path.

    Returns
    -------
    list of dicts {combination, sequence_number, weights[, split_numbers]}
    """
    df = require_history(df)
    rng = rng_utils.make_rng(rng)
    cfg = dict(DEFAULT_CONFIG, **(config or {}))
    length = combination_length(is_double)
    lucky = normalize_lucky_number(lucky_number)

    pool = sorted(set(int(n) for n in (selected_numbers or [])) | ({lucky} if lucky else set()))
    use_pool = len(pool) >= length

    if use_pool:
        probabilities = time_weighted_probabilities(df, pool)
        pairs = pair_probabilities(df, pool)
        max_pair = max(pairs.values()) if pairs else 0.0
        weights = probabilities

        def build():
            return _pool_combination(pool, probabilities, pairs, max_pair, lucky, length, rng, cfg)
    else:
        warnings.warn(
            InsufficientSelection(
                f"{len(pool)} selected numbers cannot fill a {length}-number combination; "
                "sampling from the full advanced analysis instead"
            ),
            stacklevel=2,
        )
        if analysis is None:
            analysis = calculate_advanced_analysis(df, config)
        weights = analysis["weighted_probabilities"]

        def build():
            return _fused_combination(weights, lucky, length, rng)

    tracker = DuplicateTracker()
    combinations = []
    max_rounds = combination_count * cfg["rounds_per_combination"]
    rounds = 0
    while len(combinations) < combination_count and rounds < max_rounds:
        rounds += 1
        combination = build()
        if len(combination) != length:
            continue
        if not tracker.check_and_track(combination):
            combinations.append(sorted(combination))

    if len(combinations) < combination_count:
        warnings.warn(
            InsufficientSelection(
                f"Only {len(combinations)} unique combinations of {combination_count} "
                "could be built from the selection"
            ),
            stacklevel=2,
        )

    if verbose:
        path = "selection pool" if use_pool else "full analysis"
        print(f"  [AdvFollowOn] {len(combinations)} combinations from {path}")

    return build_results(combinations, df, is_double, weights=dict(weights))

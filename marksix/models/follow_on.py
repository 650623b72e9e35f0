"""
Follow-On Generator for Mark Six

Weighted random sampling from the follow-on transition table seeded by the
last draw's numbers. A follower's sampling weight is the sum of its
transition counts from every trigger; when the total weight is below 49,
each number that never followed a trigger is added with weight 1 so the
whole 1-49 range stays reachable.
"""

import numpy as np

from marksix import rng as rng_utils
from marksix.analysis import build_follow_on_table, follow_on_pool
from marksix.draws import ALL_NUMBERS, TOTAL_NUMBERS, require_history
from marksix.errors import MissingLastDraw
from marksix.filters import (
    build_results,
    combination_length,
    fill_weighted,
    finish_combination,
    start_combination,
)


def sampling_weights(pool):
    """Sampling weights for 1-49 from a follow-on pool vector."""
    weights = np.asarray(pool, dtype=np.float64).copy()
    if weights.sum() < TOTAL_NUMBERS:
        weights[weights == 0] = 1.0
    return weights


def generate(df, combination_count, selected_numbers=None, lucky_number=0,
             is_double=False, last_draw_numbers=None, rng=None, verbose=False):
    """
    Generate follow-on weighted combinations.

    Each combination takes the lucky number, then the shuffled selection,
    then weighted picks from the pool for up to 500 attempts. Combinations
    that cannot be completed are skipped.

    Returns
    -------
    list of dicts {combination, sequence_number, weights[, split_numbers]}
    where weights maps each follower number to its transition weight.
    """
    df = require_history(df)
    if not last_draw_numbers:
        raise MissingLastDraw()
    rng = rng_utils.make_rng(rng)

    pool = follow_on_pool(build_follow_on_table(df), last_draw_numbers)
    weights = sampling_weights(pool)
    length = combination_length(is_double)

    combinations = []
    for _ in range(combination_count):
        combination = start_combination(selected_numbers, lucky_number, length, rng)
        fill_weighted(combination, ALL_NUMBERS, weights, length, rng)
        finished = finish_combination(combination, length)
        if finished is not None:
            combinations.append(finished)

    if verbose:
        print(f"  [FollowOn] Triggers: {sorted(int(n) for n in last_draw_numbers)}")
        print(f"  [FollowOn] Generated {len(combinations)}/{combination_count} combinations")

    follower_weights = {n: float(pool[n - 1]) for n in ALL_NUMBERS if pool[n - 1] > 0}
    return build_results(combinations, df, is_double, weights=follower_weights)

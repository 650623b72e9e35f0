"""
Optimized Classic Generator for Mark Six

Same batch scoring and frequence-factor filtering as the classic search,
with three shortcuts:
    - Adaptive candidate count: fewer batches on longer histories, more
      when many combinations are requested.
    - Batch scores memoised by canonical batch key within the call.
    - Early termination once a batch clears a history-scaled score after
      the minimum number of iterations.
"""

import math

from marksix import rng as rng_utils
from marksix.draws import ALL_NUMBERS, require_history
from marksix.filters import combination_key, combination_length, normalize_lucky_number
from marksix.models.classic import SCORE_MAP, HistoryScorer, evaluate_batch, finalize, select_best

DEFAULT_CONFIG = {
    "base_candidates": 100,
    "min_data_factor": 50,
    "max_data_factor": 200,
    "early_stop_base": 5000,
    "early_stop_min_iterations": 50,
    "score_map": SCORE_MAP,
    "fallback_top_fraction": 0.2,
}


def adaptive_candidate_count(n_draws, combination_count, config=None):
    """floor(base * clamp(200 - n/10, 50, 200) / 100 * max(1, count / 5))"""
    cfg = dict(DEFAULT_CONFIG, **(config or {}))
    data_factor = max(cfg["min_data_factor"], min(cfg["max_data_factor"], 200 - n_draws / 10))
    combination_factor = max(1, combination_count / 5)
    return math.floor(cfg["base_candidates"] * data_factor / 100 * combination_factor)


def early_stop_threshold(n_draws, config=None):
    cfg = dict(DEFAULT_CONFIG, **(config or {}))
    return cfg["early_stop_base"] * min(3, n_draws / 100)


def generate_batch(combination_count, selected_numbers, lucky_number, is_double, rng):
    """
    A batch built from one shuffled pass over the selection, then a
    Fisher-Yates pass over the numbers still free.
    """
    length = combination_length(is_double)
    lucky = normalize_lucky_number(lucky_number)
    shuffled_selection = rng_utils.shuffled(selected_numbers, rng) if selected_numbers else []

    batch = []
    for _ in range(combination_count):
        combination = [lucky] if lucky is not None else []
        for num in shuffled_selection:
            if len(combination) >= length:
                break
            if num not in combination:
                combination.append(int(num))

        remaining = rng_utils.shuffled([n for n in ALL_NUMBERS if n not in combination], rng)
        combination.extend(remaining[:length - len(combination)])
        batch.append(sorted(combination))
    return batch


def batch_key(batch):
    return "|".join(combination_key(c) for c in batch)


def generate(df, combination_count, selected_numbers=None, lucky_number=0,
             is_double=False, rng=None, config=None, verbose=False):
    """
    Generate combinations with the optimized classic search.

    Same parameters and result shape as ``classic.generate``.
    """
    df = require_history(df)
    rng = rng_utils.make_rng(rng)
    cfg = dict(DEFAULT_CONFIG, **(config or {}))
    selected_numbers = list(selected_numbers or [])

    n_candidates = adaptive_candidate_count(len(df), combination_count, cfg)
    threshold = early_stop_threshold(len(df), cfg)
    scorer = HistoryScorer(df, cfg["score_map"])

    memo = {}
    candidates = []
    for i in range(n_candidates):
        batch = generate_batch(combination_count, selected_numbers, lucky_number, is_double, rng)
        key = batch_key(batch)
        if key not in memo:
            memo[key] = evaluate_batch(batch, scorer)
        result = memo[key]
        candidates.append(result)

        if result["total_score"] >= threshold and i >= cfg["early_stop_min_iterations"]:
            if verbose:
                print(f"  [ClassicOpt] Early termination at iteration {i} "
                      f"with score {result['total_score']:.1f}")
            break

    if verbose:
        print(f"  [ClassicOpt] {len(candidates)}/{n_candidates} batches, "
              f"{len(memo)} scored")

    best = select_best(candidates, cfg["fallback_top_fraction"])
    return finalize(best, df, combination_count, selected_numbers, lucky_number, is_double, rng)

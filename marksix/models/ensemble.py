"""
Ensemble Generator for Mark Six

Blends the classic, follow-on and Bayesian generators:
    1. Model weights: each of four sub-models (classic, follow-on,
       frequency-only, Bayesian) is walk-forward evaluated on the most
       recent 20% of the history (at least 10 draws); the floored mean
       scores are normalised to sum to 1.
    2. Candidates: 2 x combination_count from each generator (follow-on
       only when a seed draw is known).
    3. Scoring: w * quality + (1 - w) * diversity, where quality is the
       share of the last 20 draws with a moderate match score (2-4) and
       diversity is 1 - the highest Jaccard similarity to another candidate.
    4. Selection: greedy by score, rejecting candidates sharing more than
       2 numbers with the numbers already selected; backfilled by score.

Model weights can be memoised per history in a caller-owned AlgorithmCache.
"""

import warnings

import numpy as np

from marksix import rng as rng_utils
from marksix.backtester import MODEL_TYPES, evaluate_model
from marksix.draws import (
    membership_matrix,
    require_history,
    special_numbers,
    winning_matrix,
)
from marksix.errors import InsufficientSelection
from marksix.filters import build_results
from marksix.models import bayesian, classic, follow_on

DEFAULT_MODEL_WEIGHTS = {
    "classic": 0.3,
    "follow_on": 0.3,
    "frequency": 0.2,
    "bayesian": 0.2,
}

DEFAULT_CONFIG = {
    "min_draws": 20,
    "holdout_fraction": 0.2,
    "min_holdout": 10,
    "backtest_iterations": 96,
    "candidate_multiplier": 2,
    "quality_window": 20,
    "quality_range": (2, 4),
    "max_overlap": 2,
    "fallback_model_weight": 0.25,
}

CACHE_KEY = "ensemble_model_weights"

# Config keys that change the backtested weights
WEIGHT_CONFIG_KEYS = ("holdout_fraction", "min_holdout", "backtest_iterations")


def resolve_config(config=None):
    resolved = dict(DEFAULT_CONFIG)
    if config:
        resolved.update(config)
    return resolved


# ---------------------------------------------------------------------------
# Model weights
# ---------------------------------------------------------------------------

def _backtest_model_weights(df, rng, cfg, verbose=False):
    n = len(df)
    holdout = max(cfg["min_holdout"], int(np.floor(n * cfg["holdout_fraction"])))
    test_df = df.iloc[-holdout:].reset_index(drop=True)
    train_df = df.iloc[:-holdout].reset_index(drop=True)

    if verbose:
        print(f"  [Ensemble] Backtest: {len(train_df)} training / {len(test_df)} held-out draws")

    scores = {}
    for model_type in MODEL_TYPES:
        scores[model_type] = evaluate_model(
            model_type, train_df, test_df, rng,
            {"backtest_iterations": cfg["backtest_iterations"]},
        )
        if verbose:
            print(f"  [Ensemble] {model_type}: mean score {scores[model_type]:.3f}")

    total = sum(scores.values())
    return {k: v / total for k, v in scores.items()}


def weights_cache_key(config=None):
    """Cache algorithm type for model weights under one backtest config."""
    cfg = resolve_config(config)
    return CACHE_KEY + "".join(f":{key}={cfg[key]}" for key in WEIGHT_CONFIG_KEYS)


def calculate_model_weights(df, rng=None, cache=None, config=None, verbose=False):
    """
    Backtested ModelWeights {classic, follow_on, frequency, bayesian}.

    Histories shorter than ``min_draws`` get DEFAULT_MODEL_WEIGHTS. With a
    cache the backtest runs once per distinct history and backtest config.
    """
    df = require_history(df)
    cfg = resolve_config(config)
    if len(df) < cfg["min_draws"]:
        if verbose:
            print("  [Ensemble] Using default weights (insufficient data)")
        return dict(DEFAULT_MODEL_WEIGHTS)

    rng = rng_utils.make_rng(rng)
    if cache is None:
        return _backtest_model_weights(df, rng, cfg, verbose)
    weights = cache.get_or_compute(
        weights_cache_key(cfg), df, lambda: _backtest_model_weights(df, rng, cfg, verbose)
    )
    return dict(weights)


# ---------------------------------------------------------------------------
# Candidate scoring and selection
# ---------------------------------------------------------------------------

def quality_scores(combinations, df, config=None):
    """
    Share of the recent draws each combination matches moderately
    (2 points per winning number, 1 for the special, within quality_range).
    """
    cfg = resolve_config(config)
    recent = df.iloc[-cfg["quality_window"]:]
    winning = membership_matrix(winning_matrix(recent)).astype(np.float64)
    special = special_numbers(recent)

    combos = membership_matrix(np.asarray(combinations, dtype=np.int64))
    match_scores = 2 * (combos.astype(np.float64) @ winning.T) + combos[:, special]
    low, high = cfg["quality_range"]
    moderate = (match_scores >= low) & (match_scores <= high)
    return moderate.mean(axis=1)


def diversity_scores(combinations):
    """1 - the highest Jaccard similarity of each combination to any other."""
    combos = membership_matrix(np.asarray(combinations, dtype=np.int64)).astype(np.float64)
    intersection = combos @ combos.T
    sizes = combos.sum(axis=1)
    union = sizes[:, None] + sizes[None, :] - intersection
    similarity = intersection / union
    np.fill_diagonal(similarity, 0.0)
    if len(combinations) < 2:
        return np.ones(len(combinations))
    return 1 - similarity.max(axis=1)


def score_candidates(candidates, df, model_weights, config=None):
    """
    Parameters
    ----------
    candidates : list of dicts {combination, model}

    Returns
    -------
    list of dicts {combination, model, score, confidence}
    """
    if not candidates:
        return []
    cfg = resolve_config(config)
    combinations = [c["combination"] for c in candidates]
    quality = quality_scores(combinations, df, cfg)
    diversity = diversity_scores(combinations)

    scored = []
    for i, candidate in enumerate(candidates):
        w = model_weights.get(candidate["model"], cfg["fallback_model_weight"])
        score = w * quality[i] + (1 - w) * diversity[i]
        scored.append({
            "combination": candidate["combination"],
            "model": candidate["model"],
            "score": float(score),
            "confidence": float(min(1.0, score / 2)),
        })
    return scored


def select_diverse(scored, count, max_overlap=2):
    """
    Greedy top-score selection with an overlap cap against the numbers
    already selected, backfilled by score when the cap leaves gaps.
    """
    ranked = sorted(range(len(scored)), key=lambda i: scored[i]["score"], reverse=True)
    chosen = []
    used_numbers = set()
    for i in ranked:
        if len(chosen) >= count:
            break
        numbers = set(scored[i]["combination"])
        if len(numbers & used_numbers) <= max_overlap:
            chosen.append(i)
            used_numbers |= numbers

    if len(chosen) < count:
        taken = set(chosen)
        chosen.extend([i for i in ranked if i not in taken][:count - len(chosen)])

    return [scored[i] for i in chosen]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def generate(df, combination_count, selected_numbers=None, lucky_number=0,
             is_double=False, last_draw_numbers=None, rng=None, cache=None,
             config=None, verbose=False):
    """
    Generate ensemble combinations.

    Returns
    -------
    list of dicts {combination, sequence_number, model_weights, confidence,
    model[, split_numbers]}
    """
    df = require_history(df)
    rng = rng_utils.make_rng(rng)
    cfg = resolve_config(config)
    selected_numbers = list(selected_numbers or [])

    if verbose:
        print("\n" + "=" * 60)
        print("ENSEMBLE GENERATOR")
        print("=" * 60)
        print(f"  Historical draws: {len(df)}, selected numbers: {len(selected_numbers)}")

    model_weights = calculate_model_weights(df, rng, cache, cfg, verbose)
    n_candidates = combination_count * cfg["candidate_multiplier"]

    candidates = []
    for result in classic.generate(df, n_candidates, selected_numbers, lucky_number,
                                   is_double, rng=rng):
        candidates.append({"combination": result["combination"], "model": "classic"})
    if last_draw_numbers:
        for result in follow_on.generate(df, n_candidates, selected_numbers, lucky_number,
                                         is_double, last_draw_numbers, rng=rng):
            candidates.append({"combination": result["combination"], "model": "follow_on"})
    for result in bayesian.generate(df, n_candidates, selected_numbers, lucky_number,
                                    is_double, last_draw_numbers, rng=rng):
        candidates.append({"combination": result["combination"], "model": "bayesian"})

    scored = score_candidates(candidates, df, model_weights, cfg)
    selected = select_diverse(scored, combination_count, cfg["max_overlap"])

    if len(selected) < combination_count:
        warnings.warn(
            InsufficientSelection(
                f"Only {len(selected)} of {combination_count} combinations could be built"
            ),
            stacklevel=2,
        )

    if verbose:
        print(f"  [Ensemble] Model weights: "
              + ", ".join(f"{k}={v:.3f}" for k, v in model_weights.items()))
        print(f"  [Ensemble] {len(candidates)} candidates -> {len(selected)} selected")

    results = build_results([s["combination"] for s in selected], df, is_double)
    for result, choice in zip(results, selected):
        result["model_weights"] = dict(model_weights)
        result["confidence"] = choice["confidence"]
        result["model"] = choice["model"]
    return results

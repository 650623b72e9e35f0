"""
Backtesting Engine for Mark Six

Two walk-forward evaluations that never use future data:

    evaluate_model   scores one sub-model over a held-out window; the
                     ensemble turns these scores into its model weights.
    run_backtest     generates one combination per method for each of the
                     last draws, counts matches and compares every method
                     against a random baseline.
"""
import os
import warnings

import numpy as np
import pandas as pd
from scipy import stats

from marksix import rng as rng_utils
from marksix.analysis import get_historical_frequency
from marksix.draws import ALL_NUMBERS, DATE_COL, draw_numbers, require_history
from marksix.errors import EngineError

MODEL_TYPES = ("classic", "follow_on", "frequency", "bayesian")

DEFAULT_CONFIG = {
    "backtest_iterations": 96,
    "backtest_combinations": 5,
    "min_score": 0.1,
    "winning_points": 2,
    "special_points": 1,
}


def count_matches(predicted, actual):
    """Count how many numbers match between a combination and a draw."""
    return len(set(predicted) & set(actual))


def prediction_score(predicted, winning_numbers, special_number, config=None):
    """+2 per matched winning number, +1 when the special number is held."""
    cfg = dict(DEFAULT_CONFIG, **(config or {}))
    score = cfg["winning_points"] * count_matches(predicted, winning_numbers)
    if special_number in predicted:
        score += cfg["special_points"]
    return score


def determine_prize_group(main_matches, special_match):
    """Determine which Mark Six prize group a result would win."""
    if main_matches == 6:
        return 1
    elif main_matches == 5 and special_match:
        return 2
    elif main_matches == 5:
        return 3
    elif main_matches == 4 and special_match:
        return 4
    elif main_matches == 4:
        return 5
    elif main_matches == 3 and special_match:
        return 6
    elif main_matches == 3:
        return 7
    return None


# ── Model evaluation ─────────────────────────────────────────────────────

def predict_one(model_type, train_df, current_draw, rng, config=None):
    """
    One predicted combination of a sub-model trained on ``train_df``.

    ``current_draw`` (7 numbers) seeds the follow-on and Bayesian models.
    Returns an empty list when the model produced nothing.
    """
    from marksix.models import bayesian, classic, follow_on

    cfg = dict(DEFAULT_CONFIG, **(config or {}))
    count = cfg["backtest_combinations"]

    if model_type == "classic":
        results = classic.generate(train_df, count, rng=rng,
                                   config={"iterations": cfg["backtest_iterations"]})
    elif model_type == "follow_on":
        results = follow_on.generate(train_df, count, last_draw_numbers=current_draw, rng=rng)
    elif model_type == "frequency":
        return sorted(n for n, _ in get_historical_frequency(train_df, "hot")[:6])
    elif model_type == "bayesian":
        results = bayesian.generate(train_df, count, last_draw_numbers=current_draw, rng=rng)
    else:
        raise ValueError(f"Unknown model type: {model_type!r}")

    return results[0]["combination"] if results else []


def evaluate_model(model_type, train_df, test_df, rng=None, config=None):
    """
    Mean prediction score of a sub-model over consecutive held-out pairs.

    For each pair (current, next) in ``test_df`` the model predicts from
    ``train_df`` seeded by the current draw and is scored against the next
    draw. The mean is floored at ``min_score``.
    """
    cfg = dict(DEFAULT_CONFIG, **(config or {}))
    rng = rng_utils.make_rng(rng)
    if len(test_df) < 2:
        return cfg["min_score"]

    total = 0.0
    for i in range(len(test_df) - 1):
        current = draw_numbers(test_df, i)
        nxt = draw_numbers(test_df, i + 1)
        predicted = predict_one(model_type, train_df, current, rng, cfg)
        total += prediction_score(predicted, nxt[:6], nxt[6], cfg)

    return max(cfg["min_score"], total / (len(test_df) - 1))


# ── Walk-forward report ──────────────────────────────────────────────────

def run_backtest(df, methods=None, holdout=20, rng=None, verbose=False, save_path=None):
    """
    Run walk-forward backtesting over the last ``holdout`` draws.

    Args:
        df: Full history, ascending by date
        methods: Generation methods to test (predictor.METHODS by default)
        holdout: Number of most recent draws to predict
        rng: Random source shared by every method and the random baseline
        verbose: Print progress and the summary report
        save_path: Optional CSV path for the per-draw results

    Returns:
        Dict with per-method metrics, the random baseline and t-tests
    """
    from marksix.predictor import METHODS, generate

    df = require_history(df)
    rng = rng_utils.make_rng(rng)
    methods = list(methods or METHODS)
    holdout = min(holdout, len(df) - 1)
    if holdout < 5:
        warnings.warn(f"Only {holdout} test draws available. Results may be unreliable.")

    start = len(df) - holdout
    if verbose:
        print(f"\n{'='*60}")
        print("BACKTESTING ENGINE")
        print(f"{'='*60}")
        print(f"Total draws: {len(df)}")
        print(f"Test draws: {holdout}")
        print(f"Methods: {', '.join(methods)}")
        print(f"{'='*60}\n")

    results = {m: [] for m in methods}
    results["random"] = []

    for i, idx in enumerate(range(start, len(df))):
        train_df = df.iloc[:idx].reset_index(drop=True)
        actual = draw_numbers(df, idx)
        winning, special = actual[:6], actual[6]

        if verbose and i % 10 == 0:
            label = df[DATE_COL].iloc[idx].strftime("%Y-%m-%d") if DATE_COL in df.columns else idx
            print(f"  Backtesting draw {i+1}/{holdout} ({label})...")

        for method in methods:
            try:
                generated = generate(method, train_df, 1, rng=rng)
            except EngineError as e:
                if verbose:
                    print(f"    {method} skipped on draw {i+1}: {e}")
                continue
            if not generated:
                continue
            predicted = generated[0]["combination"]
            matches = count_matches(predicted, winning)
            special_match = special in predicted
            results[method].append({
                "draw_index": idx,
                "predicted": predicted,
                "actual": winning,
                "matches": matches,
                "special_match": special_match,
                "prize_group": determine_prize_group(matches, special_match),
            })

        random_combination = sorted(rng_utils.shuffled(ALL_NUMBERS, rng)[:6])
        results["random"].append({"matches": count_matches(random_combination, winning)})

    summary = _compute_summary(results, methods, verbose)
    if save_path:
        _save_results(results, methods, save_path)
    return summary


def _compute_summary(results, methods, verbose=False):
    """Compute aggregate backtest metrics."""
    summary = {"methods": {}}
    random_matches = [r["matches"] for r in results["random"]]
    summary["random"] = {
        "avg_matches": float(np.mean(random_matches)) if random_matches else 0.0,
        "std_matches": float(np.std(random_matches)) if random_matches else 0.0,
    }

    best_method, best_avg = None, -1.0
    for method in methods:
        matches = [r["matches"] for r in results[method]]
        if not matches:
            summary["methods"][method] = {"avg_matches": 0.0, "distribution": {}, "total_draws": 0}
            continue

        dist = {}
        for m in range(7):
            count = matches.count(m)
            dist[m] = {"count": count, "pct": 100 * count / len(matches)}
        prizes_won = [r["prize_group"] for r in results[method] if r["prize_group"]]

        entry = {
            "avg_matches": float(np.mean(matches)),
            "std_matches": float(np.std(matches)),
            "distribution": dist,
            "best_single": max(matches),
            "prizes_won": len(prizes_won),
            "total_draws": len(matches),
        }

        # Statistical significance: t-test method vs random
        if len(matches) > 1 and len(random_matches) > 1:
            t_stat, p_value = stats.ttest_ind(matches, random_matches)
            entry["significance"] = {
                "t_statistic": round(float(t_stat), 4),
                "p_value": round(float(p_value), 6),
                "significant_at_005": bool(p_value < 0.05),
                "mean_diff": round(float(np.mean(matches) - np.mean(random_matches)), 4),
            }

        summary["methods"][method] = entry
        if entry["avg_matches"] > best_avg:
            best_avg = entry["avg_matches"]
            best_method = method

    summary["best_method"] = best_method

    if verbose:
        _print_summary(summary)
    return summary


def _print_summary(summary):
    """Print a formatted backtest report."""
    print(f"\n{'='*60}")
    print("BACKTEST RESULTS SUMMARY")
    print(f"{'='*60}")

    for method, s in summary["methods"].items():
        print(f"\n{method.upper()}:")
        print(f"  Average matches: {s.get('avg_matches', 0):.3f} / 6")
        print(f"  Best single draw: {s.get('best_single', 0)} matches")
        print(f"  Prizes won: {s.get('prizes_won', 0)} / {s.get('total_draws', 0)} draws")
        sig = s.get("significance")
        if sig:
            marker = "significant" if sig["significant_at_005"] else "not significant"
            print(f"  vs random: diff {sig['mean_diff']:+.3f}, p={sig['p_value']} ({marker})")

    rs = summary["random"]
    print(f"\nRANDOM BASELINE:")
    print(f"  Average matches: {rs['avg_matches']:.3f} / 6")
    print(f"  Best method: {summary.get('best_method') or 'N/A'}")
    print(f"\n{'='*60}")


def _save_results(results, methods, path):
    """Save per-draw backtest results to CSV."""
    rows = []
    for method in methods:
        for r in results[method]:
            rows.append({
                "method": method,
                "draw_index": r["draw_index"],
                "predicted": str(r["predicted"]),
                "actual": str(r["actual"]),
                "matches": r["matches"],
                "special_match": r["special_match"],
                "prize_group": r["prize_group"],
            })

    if rows:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        pd.DataFrame(rows).to_csv(path, index=False)
        print(f"\nBacktest results saved to {path}")

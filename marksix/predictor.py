"""
Combination Generation for Mark Six

Single entry point used by callers (CLI, web layer, backtester):
validates the request, dispatches to the selected generation method and
runs every result through the duplicate guard.
"""

import numbers

from marksix import rng as rng_utils
from marksix.advanced_analysis import calculate_advanced_analysis
from marksix.draws import TOTAL_NUMBERS, last_draw_numbers as history_last_draw, require_history
from marksix.filters import (
    DuplicateTracker,
    calculate_split_numbers,
    combination_length,
    generate_alternative_combination,
    normalize_lucky_number,
)
from marksix.models import (
    advanced_follow_on,
    bayesian,
    classic,
    classic_optimized,
    ensemble,
    follow_on,
)

METHODS = (
    "follow_on",
    "advanced_follow_on",
    "bayesian",
    "ensemble",
    "classic",
    "classic_optimized",
)

# Methods seeded by a previous draw; they default to the latest draw in the history
SEEDED_METHODS = ("follow_on", "bayesian", "ensemble")

# Result fields scored for the original combination or batch
STALE_FIELDS = (
    "score",
    "score_distribution",
    "number_distribution",
    "probability",
    "confidence",
    "model",
)


def validate_request(combination_count, selected_numbers=None, lucky_number=0):
    """
    Reject malformed generation requests with ValueError.

    The lucky number is 0 (none) or 1-49; selected numbers must lie in 1-49.
    """
    if (not isinstance(combination_count, numbers.Integral) or isinstance(combination_count, bool)
            or combination_count < 1):
        raise ValueError(f"Combination count must be a positive integer, got {combination_count!r}")
    if lucky_number is not None and not 0 <= int(lucky_number) <= TOTAL_NUMBERS:
        raise ValueError(f"Lucky number must be 0 or between 1 and {TOTAL_NUMBERS}, got {lucky_number}")
    bad = [n for n in (selected_numbers or []) if not 1 <= int(n) <= TOTAL_NUMBERS]
    if bad:
        raise ValueError(f"Selected numbers must be between 1 and {TOTAL_NUMBERS}: {bad}")


def _advanced_analysis(df, selected_numbers, lucky_number, is_double, cache):
    """Cached advanced analysis when the generator will need the full 49-number path."""
    if cache is None:
        return None
    pool = set(int(n) for n in selected_numbers or [])
    lucky = normalize_lucky_number(lucky_number)
    if lucky is not None:
        pool.add(lucky)
    if len(pool) >= combination_length(is_double):
        return None
    return cache.get_or_compute("advanced_follow_on", df, lambda: calculate_advanced_analysis(df))


def _dispatch(method, df, combination_count, selected_numbers, lucky_number,
              is_double, last_draw_numbers, rng, cache, verbose):
    if method == "follow_on":
        return follow_on.generate(df, combination_count, selected_numbers, lucky_number,
                                  is_double, last_draw_numbers, rng=rng, verbose=verbose)
    if method == "advanced_follow_on":
        analysis = _advanced_analysis(df, selected_numbers, lucky_number, is_double, cache)
        return advanced_follow_on.generate(df, combination_count, selected_numbers, lucky_number,
                                           is_double, rng=rng, analysis=analysis, verbose=verbose)
    if method == "bayesian":
        return bayesian.generate(df, combination_count, selected_numbers, lucky_number,
                                 is_double, last_draw_numbers, rng=rng, verbose=verbose)
    if method == "ensemble":
        return ensemble.generate(df, combination_count, selected_numbers, lucky_number,
                                 is_double, last_draw_numbers, rng=rng, cache=cache,
                                 verbose=verbose)
    if method == "classic":
        return classic.generate(df, combination_count, selected_numbers, lucky_number,
                                is_double, rng=rng, verbose=verbose)
    return classic_optimized.generate(df, combination_count, selected_numbers, lucky_number,
                                      is_double, rng=rng, verbose=verbose)


def _metadata_refresher(method, df, last_draw_numbers):
    """Per-combination rescoring for replaced results, or None."""
    if method != "bayesian":
        return None
    probabilities = {}

    def refresh(result):
        if not probabilities:
            probabilities.update(bayesian.calculate_probabilities(df, last_draw_numbers))
        result["probability"] = bayesian.combination_probability(
            result["combination"], probabilities)

    return refresh


def guard_duplicates(results, df, selected_numbers, lucky_number, is_double, rng,
                     refresh=None):
    """
    Replace repeated combinations with fresh alternatives.

    A replaced result loses the per-combination fields in STALE_FIELDS and
    is marked ``replaced``; ``refresh(result)``, when given, then recomputes
    whatever the method can score for a single combination. A duplicate that
    cannot be replaced within the retry budget is kept.
    """
    tracker = DuplicateTracker()
    replaced = 0
    for result in results:
        if not tracker.check_and_track(result["combination"]):
            continue
        alternative = generate_alternative_combination(
            selected_numbers, lucky_number, is_double, tracker, rng
        )
        if alternative is None:
            continue
        tracker.check_and_track(alternative)
        result["combination"] = alternative
        if "split_numbers" in result:
            result["split_numbers"] = calculate_split_numbers(alternative, df)
        for field in STALE_FIELDS:
            result.pop(field, None)
        result["replaced"] = True
        if refresh is not None:
            refresh(result)
        replaced += 1
    return replaced


def generate(method, df, combination_count, selected_numbers=None, lucky_number=0,
             is_double=False, last_draw_numbers=None, rng=None, cache=None,
             verbose=False):
    """
    Generate Mark Six combinations with the chosen method.

    Parameters
    ----------
    method : str
        One of METHODS.
    df : pd.DataFrame or list of draw records
        History, ascending by date.
    combination_count : int
    selected_numbers : list of int, optional
    lucky_number : int
        0 for none.
    is_double : bool
    last_draw_numbers : list of int, optional
        Seed draw for follow-on, Bayesian and ensemble methods; defaults to
        the latest draw of the history.
    rng : random source, optional
    cache : AlgorithmCache, optional
        Caller-owned memo for ensemble weights and advanced analyses.

    Returns
    -------
    list of result dicts, each with ``combination`` and ``sequence_number``.
    """
    df = require_history(df)
    if method not in METHODS:
        raise ValueError(f"Unknown generation method: {method!r} (use one of {', '.join(METHODS)})")
    validate_request(combination_count, selected_numbers, lucky_number)
    rng = rng_utils.make_rng(rng)
    selected_numbers = [int(n) for n in (selected_numbers or [])]

    if last_draw_numbers is None and method in SEEDED_METHODS:
        last_draw_numbers = history_last_draw(df)

    if verbose:
        print("\n" + "=" * 60)
        print(f"GENERATING {combination_count} COMBINATION(S): {method.upper()}")
        print("=" * 60)

    results = _dispatch(method, df, combination_count, selected_numbers, lucky_number,
                        is_double, last_draw_numbers, rng, cache, verbose)
    refresh = _metadata_refresher(method, df, last_draw_numbers)
    replaced = guard_duplicates(results, df, selected_numbers, lucky_number, is_double, rng,
                                refresh)
    if replaced and method == "bayesian":
        bayesian.rank_results(results)

    if verbose and replaced:
        print(f"  [Predictor] Replaced {replaced} duplicate combination(s)")
    return results

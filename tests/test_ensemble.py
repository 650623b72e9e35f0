import numpy as np
import pytest

from marksix.backtester import MODEL_TYPES
from marksix.cache import AlgorithmCache
from marksix.draws import last_draw_numbers, to_frame
from marksix.models import ensemble
from marksix.models.ensemble import (
    CACHE_KEY,
    DEFAULT_MODEL_WEIGHTS,
    calculate_model_weights,
    diversity_scores,
    quality_scores,
    score_candidates,
    select_diverse,
    weights_cache_key,
)
from tests.helpers import assert_valid_combination

QUICK = {"backtest_iterations": 3}


def test_short_history_uses_default_weights(small_history):
    weights = calculate_model_weights(small_history)
    assert weights == {"classic": 0.3, "follow_on": 0.3, "frequency": 0.2, "bayesian": 0.2}
    weights["classic"] = 1.0
    assert DEFAULT_MODEL_WEIGHTS["classic"] == 0.3


def test_backtested_weights_are_normalised(history):
    weights = calculate_model_weights(history, rng=5, config=QUICK)
    assert set(weights) == set(MODEL_TYPES)
    assert sum(weights.values()) == pytest.approx(1.0)
    assert all(w > 0 for w in weights.values())


def test_weights_are_cached_per_history(history):
    cache = AlgorithmCache()
    first = calculate_model_weights(history, rng=5, cache=cache, config=QUICK)
    second = calculate_model_weights(history, rng=6, cache=cache, config=QUICK)
    assert first == second
    assert cache.misses == 1
    assert cache.hits == 1
    assert cache.key_for(weights_cache_key(QUICK), history) in cache


def test_weights_are_cached_per_backtest_config(history):
    cache = AlgorithmCache()
    calculate_model_weights(history, rng=5, cache=cache, config=QUICK)
    calculate_model_weights(history, rng=5, cache=cache,
                            config={"backtest_iterations": 3, "min_holdout": 15})
    assert cache.misses == 2
    assert cache.hits == 0
    assert len(cache) == 2
    cache.invalidate(CACHE_KEY)
    assert len(cache) == 0


def test_weights_cache_key_names_backtest_config():
    assert weights_cache_key() == (
        "ensemble_model_weights:holdout_fraction=0.2:min_holdout=10:backtest_iterations=96"
    )
    assert weights_cache_key(QUICK) != weights_cache_key()
    assert weights_cache_key({"max_overlap": 4}) == weights_cache_key()


def test_diversity_scores():
    assert diversity_scores([[1, 2, 3, 4, 5, 6]]).tolist() == [1.0]
    assert np.allclose(diversity_scores([[1, 2, 3, 4, 5, 6], [1, 2, 3, 4, 5, 6]]), 0.0)
    assert np.allclose(diversity_scores([[1, 2, 3, 4, 5, 6], [7, 8, 9, 10, 11, 12]]), 1.0)
    # shares 3 of 9 numbers with the first, none with the third
    scores = diversity_scores([[1, 2, 3, 4, 5, 6], [1, 2, 3, 7, 8, 9], [20, 21, 22, 23, 24, 25]])
    assert scores[1] == pytest.approx(1 - 3 / 9)
    assert scores[2] == pytest.approx(1.0)


def test_quality_scores_reward_moderate_matches():
    df = to_frame([{"winning_numbers": [1, 2, 3, 4, 5, 6], "special_number": 7}])
    combinations = [[1, 2, 20, 21, 22, 23], [1, 2, 3, 4, 5, 6], [30, 31, 32, 33, 34, 35]]
    assert quality_scores(combinations, df).tolist() == [1.0, 0.0, 0.0]


def test_score_candidates_blend():
    df = to_frame([{"winning_numbers": [1, 2, 3, 4, 5, 6], "special_number": 7}])
    candidates = [
        {"combination": [1, 2, 20, 21, 22, 23], "model": "classic"},
        {"combination": [30, 31, 32, 33, 34, 35], "model": "unknown"},
    ]
    scored = score_candidates(candidates, df, {"classic": 0.5})
    # quality 1, diversity 1
    assert scored[0]["score"] == pytest.approx(1.0)
    assert scored[0]["confidence"] == pytest.approx(0.5)
    # fallback weight 0.25, quality 0, diversity 1
    assert scored[1]["score"] == pytest.approx(0.75)
    assert score_candidates([], df, {}) == []


def test_select_diverse_caps_overlap_then_backfills():
    scored = [
        {"combination": [1, 2, 3, 4, 5, 6], "score": 0.9},
        {"combination": [1, 2, 3, 10, 11, 12], "score": 0.8},
        {"combination": [20, 21, 22, 23, 24, 25], "score": 0.5},
    ]
    picked = select_diverse(scored, 2)
    assert [p["score"] for p in picked] == [0.9, 0.5]
    picked = select_diverse(scored, 3)
    assert [p["score"] for p in picked] == [0.9, 0.5, 0.8]


def test_generate_result_fields(small_history, seeded_rng):
    results = ensemble.generate(small_history, 3, [], 0, False, last_draw_numbers(small_history),
                                rng=seeded_rng)
    assert len(results) == 3
    for r in results:
        assert_valid_combination(r["combination"])
        assert r["model"] in {"classic", "follow_on", "bayesian"}
        assert r["model_weights"] == DEFAULT_MODEL_WEIGHTS
        assert 0 <= r["confidence"] <= 1


def test_generate_with_backtested_weights(history, seeded_rng):
    cache = AlgorithmCache()
    results = ensemble.generate(history, 2, [5, 6], 7, True, rng=seeded_rng,
                                cache=cache, config=QUICK)
    assert len(results) == 2
    for r in results:
        assert_valid_combination(r["combination"], is_double=True)
        assert {5, 6, 7} <= set(r["combination"])
        assert r["model"] in {"classic", "bayesian"}
        assert sum(r["model_weights"].values()) == pytest.approx(1.0)
    assert len(cache) == 1

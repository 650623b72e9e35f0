import warnings

import numpy as np
import pytest

from marksix.draws import last_draw_numbers, to_frame
from marksix.errors import EmptyHistory, InsufficientSelection, MissingLastDraw
from marksix.models import advanced_follow_on, follow_on
from marksix.models.advanced_follow_on import acceptance_probability, pair_affinity
from marksix.models.follow_on import sampling_weights
from tests.helpers import assert_valid_combination


# ── Follow-on ────────────────────────────────────────────────────────────

def test_follow_on_requires_seed(history):
    with pytest.raises(MissingLastDraw):
        follow_on.generate(history, 3, last_draw_numbers=[])
    with pytest.raises(MissingLastDraw):
        follow_on.generate(history, 3, last_draw_numbers=None)


def test_follow_on_checks_history_first():
    with pytest.raises(EmptyHistory):
        follow_on.generate([], 3, last_draw_numbers=[])


@pytest.mark.parametrize("seed", range(5))
def test_follow_on_never_raises_with_seed(history, seed):
    results = follow_on.generate(history.iloc[:2], 4, last_draw_numbers=[1, 2, 3],
                                 rng=np.random.default_rng(seed))
    assert len(results) == 4
    for r in results:
        assert_valid_combination(r["combination"])


def test_follow_on_combinations(history, seeded_rng):
    seed = last_draw_numbers(history)
    results = follow_on.generate(history, 5, [1, 2, 3], 9, False, seed, rng=seeded_rng)
    assert len(results) == 5
    for r in results:
        assert_valid_combination(r["combination"])
        assert {1, 2, 3, 9} <= set(r["combination"])
        assert all(w > 0 for w in r["weights"].values())


def test_follow_on_doubles(history, stdlib_rng):
    results = follow_on.generate(history, 3, [], 0, True, last_draw_numbers(history), rng=stdlib_rng)
    for r in results:
        assert_valid_combination(r["combination"], is_double=True)
        assert set(r["split_numbers"]) <= set(r["combination"])


def test_follow_on_is_reproducible(history):
    seed = last_draw_numbers(history)
    a = follow_on.generate(history, 4, last_draw_numbers=seed, rng=7)
    b = follow_on.generate(history, 4, last_draw_numbers=seed, rng=7)
    assert [r["combination"] for r in a] == [r["combination"] for r in b]


def test_sampling_weights_fill_zero_when_sparse():
    pool = np.zeros(49)
    pool[0] = 10
    weights = sampling_weights(pool)
    assert weights[0] == 10
    assert (weights[1:] == 1).all()


def test_sampling_weights_keep_zero_when_dense():
    pool = np.zeros(49)
    pool[0] = 100
    assert (sampling_weights(pool)[1:] == 0).all()


def test_follow_on_samples_only_followers():
    df = to_frame([
        {"winning_numbers": [1, 2, 3, 4, 5, 6], "special_number": 7},
        {"winning_numbers": [10, 11, 12, 13, 14, 15], "special_number": 16},
    ] * 10)
    # 1..7 are only ever followed by 10..16, so no filler weights are added
    results = follow_on.generate(df, 5, last_draw_numbers=[1, 2, 3, 4, 5, 6, 7], rng=3)
    for r in results:
        assert set(r["combination"]) <= set(range(10, 17))


# ── Advanced follow-on ───────────────────────────────────────────────────

def test_acceptance_probability_bounds():
    assert acceptance_probability(0.0) == pytest.approx(2 / 3)
    assert acceptance_probability(1.0) == pytest.approx(1.0)
    assert acceptance_probability(5.0) == 1.0


def test_pair_affinity_scaled_by_max_pair():
    pairs = {(1, 2): 0.4, (1, 3): 0.2, (2, 3): 0.0}
    assert pair_affinity(1, [], pairs, 0.4) == 0.0
    assert pair_affinity(1, [2], pairs, 0.4) == pytest.approx(1.0)
    assert pair_affinity(3, [1, 2], pairs, 0.4) == pytest.approx(0.25)


def test_advanced_pool_path_stays_in_selection(history, seeded_rng):
    pool = list(range(1, 13))
    with warnings.catch_warnings():
        warnings.simplefilter("error", InsufficientSelection)
        results = advanced_follow_on.generate(history, 5, pool, 3, False, rng=seeded_rng)
    assert len(results) == 5
    keys = set()
    for r in results:
        assert_valid_combination(r["combination"])
        assert 3 in r["combination"]
        assert set(r["combination"]) <= set(pool)
        keys.add(tuple(r["combination"]))
    assert len(keys) == 5
    assert set(results[0]["weights"]) == set(pool)


def test_advanced_fallback_warns(history, seeded_rng):
    with pytest.warns(InsufficientSelection):
        results = advanced_follow_on.generate(history, 4, [1, 2], 7, False, rng=seeded_rng)
    assert len(results) == 4
    for r in results:
        assert_valid_combination(r["combination"])
        assert 7 in r["combination"]
    assert set(results[0]["weights"]) == set(range(1, 50))


def test_advanced_fallback_reuses_analysis(history, seeded_rng):
    analysis = {"weighted_probabilities": {n: (1.0 if n <= 10 else 0.0) for n in range(1, 50)}}
    with pytest.warns(InsufficientSelection):
        results = advanced_follow_on.generate(history, 3, [], 0, False, rng=seeded_rng,
                                              analysis=analysis)
    for r in results:
        assert set(r["combination"]) <= set(range(1, 11))


def test_advanced_exhausted_pool_warns_and_returns_unique(history, seeded_rng):
    with pytest.warns(InsufficientSelection):
        results = advanced_follow_on.generate(history, 3, [1, 2, 3, 4, 5, 6], 0, False,
                                              rng=seeded_rng)
    assert [r["combination"] for r in results] == [[1, 2, 3, 4, 5, 6]]


def test_advanced_doubles(history, seeded_rng):
    results = advanced_follow_on.generate(history, 3, list(range(1, 16)), 0, True, rng=seeded_rng)
    for r in results:
        assert_valid_combination(r["combination"], is_double=True)
        assert len(r["split_numbers"]) == 2


def test_advanced_empty_history():
    with pytest.raises(EmptyHistory):
        advanced_follow_on.generate([], 3, list(range(1, 10)))

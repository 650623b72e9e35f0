import numpy as np
import pytest

from marksix import predictor
from marksix.cache import AlgorithmCache
from marksix.draws import DRAW_COLS, last_draw_numbers
from marksix.errors import EmptyHistory, InvalidDraw, MissingLastDraw
from marksix.filters import calculate_winning_probability, combination_key
from marksix.models.bayesian import calculate_probabilities, combination_probability
from marksix.predictor import METHODS, guard_duplicates, validate_request
from tests.helpers import assert_valid_combination


def test_unknown_method(history):
    with pytest.raises(ValueError):
        predictor.generate("astrology", history, 3)


@pytest.mark.parametrize("method", METHODS)
def test_every_method_rejects_empty_history(method):
    with pytest.raises(EmptyHistory):
        predictor.generate(method, [], 3)


@pytest.mark.parametrize("count,selected,lucky", [
    (0, [], 0),
    (2.5, [], 0),
    (True, [], 0),
    (3, [], 50),
    (3, [], -1),
    (3, [0, 5], 0),
    (3, [12, 60], 0),
])
def test_validate_request_rejects(count, selected, lucky):
    with pytest.raises(ValueError):
        validate_request(count, selected, lucky)


def test_validate_request_accepts_defaults():
    validate_request(1)
    validate_request(5, [1, 49], 49)
    validate_request(np.int64(3))


@pytest.mark.parametrize("method", METHODS)
def test_every_method_yields_valid_combinations(method, history, seeded_rng):
    results = predictor.generate(method, history, 2, [4, 8], 15, rng=seeded_rng)
    assert 1 <= len(results) <= 2
    for r in results:
        assert_valid_combination(r["combination"])
        assert 15 in r["combination"]


def test_explicit_empty_seed_is_rejected(history):
    with pytest.raises(MissingLastDraw):
        predictor.generate("follow_on", history, 2, last_draw_numbers=[])


def test_seeded_method_defaults_to_latest_draw(history):
    a = predictor.generate("follow_on", history, 3, rng=4)
    latest = [int(n) for n in history[DRAW_COLS].iloc[-1]]
    b = predictor.generate("follow_on", history, 3, last_draw_numbers=latest, rng=4)
    assert [r["combination"] for r in a] == [r["combination"] for r in b]


def test_duplicate_guard_replaces_repeats(history, seeded_rng):
    # one shuffled selection per batch: every combination would be the same
    selection = list(range(1, 11))
    results = predictor.generate("classic_optimized", history, 4, selection, rng=seeded_rng)
    keys = {combination_key(r["combination"]) for r in results}
    assert len(keys) == 4
    for r in results:
        assert set(r["combination"]) <= set(selection)


def test_guard_duplicates_counts_replacements(history, seeded_rng):
    results = [{"combination": [1, 2, 3, 4, 5, 6]} for _ in range(3)]
    assert guard_duplicates(results, history, [], 0, False, seeded_rng) == 2
    assert len({combination_key(r["combination"]) for r in results}) == 3


def test_guard_keeps_duplicate_when_selection_is_exhausted(history, seeded_rng):
    results = [{"combination": [1, 2, 3, 4, 5, 6]} for _ in range(2)]
    assert guard_duplicates(results, history, [1, 2, 3, 4, 5, 6], 0, False, seeded_rng) == 0
    assert results[1]["combination"] == [1, 2, 3, 4, 5, 6]


def test_guard_recomputes_split_numbers(history, seeded_rng):
    combination = [1, 2, 3, 4, 5, 6, 7]
    results = [{"combination": list(combination), "split_numbers": [1, 2]} for _ in range(2)]
    guard_duplicates(results, history, [], 0, True, seeded_rng)
    replaced = results[1]
    assert replaced["combination"] != combination
    assert set(replaced["split_numbers"]) <= set(replaced["combination"])


@pytest.mark.parametrize("method", ["classic", "bayesian", "advanced_follow_on"])
def test_double_split_numbers_are_least_likely(method, history, seeded_rng):
    results = predictor.generate(method, history, 3, list(range(1, 15)), 0, True, rng=seeded_rng)
    for r in results:
        assert_valid_combination(r["combination"], is_double=True)
        split = r["split_numbers"]
        common = [n for n in r["combination"] if n not in split]
        assert len(split) == 2 and len(common) == 5
        worst_common = min(calculate_winning_probability(n, history) for n in common)
        assert all(calculate_winning_probability(n, history) <= worst_common for n in split)


def test_advanced_analysis_is_cached_for_small_selection(history, seeded_rng):
    cache = AlgorithmCache()
    with pytest.warns(UserWarning):
        predictor.generate("advanced_follow_on", history, 2, [1, 2], rng=seeded_rng, cache=cache)
    with pytest.warns(UserWarning):
        predictor.generate("advanced_follow_on", history, 2, [1, 2], rng=seeded_rng, cache=cache)
    assert cache.hits == 1 and cache.misses == 1


@pytest.mark.parametrize("method,winning,special", [
    ("classic", [1, 2, 3, 4, 5, 50], 7),
    ("follow_on", [1, 1, 3, 4, 5, 6], 1),
])
def test_invalid_records_raise_before_generation(method, winning, special):
    records = [{"winning_numbers": winning, "special_number": special}] * 3
    with pytest.raises(InvalidDraw):
        predictor.generate(method, records, 1)


def test_numpy_combination_count(history, seeded_rng):
    results = predictor.generate("bayesian", history, np.int64(2), rng=seeded_rng)
    assert len(results) == 2


def test_guard_drops_scores_of_replaced_results(history, seeded_rng):
    results = [
        {"combination": [1, 2, 3, 4, 5, 6], "score": 12.5, "score_distribution": {}, "model": "classic"}
        for _ in range(2)
    ]
    assert guard_duplicates(results, history, [], 0, False, seeded_rng) == 1
    assert results[0]["score"] == 12.5 and "replaced" not in results[0]
    assert results[1]["replaced"] is True
    assert not {"score", "score_distribution", "model"} & set(results[1])


def test_guard_refreshes_replaced_results(history, seeded_rng):
    results = [{"combination": [1, 2, 3, 4, 5, 6], "probability": 0.5} for _ in range(2)]
    guard_duplicates(results, history, [], 0, False, seeded_rng,
                     refresh=lambda r: r.update(probability=float(sum(r["combination"]))))
    assert results[0]["probability"] == 0.5
    assert results[1]["probability"] == sum(results[1]["combination"])


def test_replaced_bayesian_results_are_rescored(history, seeded_rng):
    # seven selected numbers allow only seven distinct combinations
    results = predictor.generate("bayesian", history, 5, list(range(1, 8)), rng=seeded_rng)
    probabilities = calculate_probabilities(history, last_draw_numbers(history))
    for r in results:
        assert r["probability"] == pytest.approx(
            combination_probability(r["combination"], probabilities))
    assert [r["probability"] for r in results] == sorted(
        (r["probability"] for r in results), reverse=True)
    assert [r["sequence_number"] for r in results] == list(range(1, len(results) + 1))


def test_replaced_classic_results_are_marked(history, seeded_rng):
    results = predictor.generate("classic_optimized", history, 4, list(range(1, 11)), rng=seeded_rng)
    assert "score" in results[0]
    replaced = [r for r in results[1:] if r.get("replaced")]
    assert len(replaced) == 3
    assert all("score" not in r and "score_distribution" not in r for r in replaced)

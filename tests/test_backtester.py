import os

import pandas as pd
import pytest

from marksix.backtester import (
    count_matches,
    determine_prize_group,
    evaluate_model,
    predict_one,
    prediction_score,
    run_backtest,
)


def test_prediction_score():
    assert prediction_score([1, 2, 3, 4, 5, 6], [1, 2, 3, 10, 11, 12], 4) == 7
    assert prediction_score([1, 2, 3, 4, 5, 6], [20, 21, 22, 23, 24, 25], 30) == 0
    assert count_matches([1, 2, 3], [3, 2, 9]) == 2


@pytest.mark.parametrize("main,special,group", [
    (6, False, 1),
    (5, True, 2),
    (5, False, 3),
    (4, True, 4),
    (4, False, 5),
    (3, True, 6),
    (3, False, 7),
    (2, True, None),
    (0, False, None),
])
def test_prize_groups(main, special, group):
    assert determine_prize_group(main, special) == group


def test_frequency_model_predicts_hot_numbers(sevens_history):
    predicted = predict_one("frequency", sevens_history, [], None)
    assert len(predicted) == 6
    assert 7 in predicted


def test_unknown_model_type(history):
    with pytest.raises(ValueError):
        predict_one("tarot", history, [], None)


@pytest.mark.parametrize("model_type", ["classic", "follow_on", "frequency", "bayesian"])
def test_evaluate_model_is_floored(model_type, history):
    train, test = history.iloc[:48], history.iloc[48:].reset_index(drop=True)
    score = evaluate_model(model_type, train, test, rng=2, config={"backtest_iterations": 3})
    assert score >= 0.1


def test_evaluate_model_needs_two_test_draws(history):
    assert evaluate_model("frequency", history.iloc[:50], history.iloc[50:51]) == 0.1


def test_run_backtest_summary(history, tmp_path):
    path = os.path.join(str(tmp_path), "reports", "backtest.csv")
    summary = run_backtest(history, methods=["follow_on", "bayesian"], holdout=6, rng=1,
                           save_path=path)

    assert set(summary["methods"]) == {"follow_on", "bayesian"}
    for entry in summary["methods"].values():
        assert entry["total_draws"] == 6
        assert 0 <= entry["avg_matches"] <= 6
        assert sum(d["count"] for d in entry["distribution"].values()) == 6
        assert set(entry["significance"]) == {"t_statistic", "p_value", "significant_at_005", "mean_diff"}
    assert summary["best_method"] in {"follow_on", "bayesian"}
    assert 0 <= summary["random"]["avg_matches"] <= 6

    saved = pd.read_csv(path)
    assert len(saved) == 12
    assert set(saved["method"]) == {"follow_on", "bayesian"}


def test_run_backtest_warns_on_short_holdout(history, capsys):
    with pytest.warns(UserWarning):
        summary = run_backtest(history, methods=["bayesian"], holdout=3, rng=1, verbose=True)
    assert summary["methods"]["bayesian"]["total_draws"] == 3
    assert "BACKTEST RESULTS SUMMARY" in capsys.readouterr().out

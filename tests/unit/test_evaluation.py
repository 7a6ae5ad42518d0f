"""Unit tests for metric computation."""
import numpy as np
import pandas as pd
import pytest
from sklearn.dummy import DummyClassifier
from sklearn.linear_model import LinearRegression

from nb2prod.models.evaluation import (
    evaluate_classification,
    evaluate_regression,
    expected_calibration_error,
    pairwise_ranking_accuracy,
    train_model,
)


class TestRegressionMetrics:

    def test_perfect_fit(self):
        X = pd.DataFrame({"x": [1.0, 2.0, 3.0, 4.0]})
        y = pd.Series([2.0, 4.0, 6.0, 8.0])
        model = train_model(LinearRegression(), X, y)

        metrics = evaluate_regression(model, X, y, eval_ranking_metrics=True)

        assert metrics["r2"] == pytest.approx(1.0)
        assert metrics["mae"] == pytest.approx(0.0, abs=1e-9)
        assert metrics["rmse"] == pytest.approx(0.0, abs=1e-9)
        assert metrics["pairwise_accuracy"] == pytest.approx(1.0)
        assert metrics["spearman_correlation"] == pytest.approx(1.0)
        assert metrics["n_samples"] == 4
        assert metrics["model_name"] == "LinearRegression"

    def test_ranking_metrics_flag_is_fourth_argument(self):
        X = pd.DataFrame({"x": [1.0, 2.0, 3.0]})
        y = pd.Series([3.0, 1.0, 2.0])
        model = train_model(LinearRegression(), X, y)

        with_ranking = evaluate_regression(model, X, y, True)
        without_ranking = evaluate_regression(model, X, y)

        assert "pairwise_accuracy" in with_ranking
        assert "pairwise_accuracy" not in without_ranking

    def test_mape_ignores_zero_targets(self):
        X = pd.DataFrame({"x": [0.0, 1.0, 2.0]})
        y = pd.Series([0.0, 1.0, 2.0])
        model = train_model(LinearRegression(), X, y)

        metrics = evaluate_regression(model, X, y)

        assert metrics["mape"] == pytest.approx(0.0, abs=1e-9)

    def test_mape_nan_when_all_targets_zero(self):
        X = pd.DataFrame({"x": [1.0, 2.0]})
        y = pd.Series([0.0, 0.0])
        model = train_model(LinearRegression(), X, y)

        metrics = evaluate_regression(model, X, y)

        assert np.isnan(metrics["mape"])


class TestPairwiseRankingAccuracy:

    def test_reversed_order(self):
        assert pairwise_ranking_accuracy([1, 2, 3], [3, 2, 1]) == 0.0

    def test_single_item_is_nan(self):
        assert np.isnan(pairwise_ranking_accuracy([1], [1]))


class TestClassificationMetrics:

    def test_binary_metrics_include_probabilities(self):
        X = pd.DataFrame({"x": np.arange(10, dtype=float)})
        y = pd.Series([0, 1] * 5)
        model = DummyClassifier(strategy="prior").fit(X, y)

        metrics = evaluate_classification(model, X, y)

        assert metrics["accuracy"] == pytest.approx(0.5)
        assert metrics["roc_auc"] == pytest.approx(0.5)
        assert metrics["brier"] == pytest.approx(0.25)
        assert metrics["ece"] == pytest.approx(0.0)
        assert metrics["n_samples"] == 10

    def test_multiclass_uses_macro_average(self):
        X = pd.DataFrame({"x": np.arange(6, dtype=float)})
        y = pd.Series(["a", "b", "c", "a", "b", "c"])
        model = DummyClassifier(strategy="most_frequent").fit(X, y)

        metrics = evaluate_classification(model, X, y)

        assert metrics["accuracy"] == pytest.approx(1 / 3)
        assert "roc_auc" not in metrics


def test_expected_calibration_error_perfectly_calibrated():
    y_true = np.array([0, 0, 1, 1])
    y_prob = np.array([0.0, 0.0, 1.0, 1.0])
    assert expected_calibration_error(y_true, y_prob) == 0.0

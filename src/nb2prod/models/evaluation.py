import pandas as pd
import numpy as np
import logging

from sklearn.base import BaseEstimator
from sklearn.metrics import (
    accuracy_score,
    brier_score_loss,
    f1_score,
    log_loss,
    mean_absolute_error,
    mean_absolute_percentage_error,
    mean_squared_error,
    precision_score,
    r2_score,
    recall_score,
    roc_auc_score,
)
from scipy.stats import spearmanr

logger = logging.getLogger(__name__)


def train_model(model: BaseEstimator, X_train: pd.DataFrame, y_train: pd.Series) -> BaseEstimator:
    """
    Train a machine learning model.

    Args:
        model (BaseEstimator): The machine learning model to be trained.
        X_train: Training features.
        y_train: Training target.

    Returns:
        BaseEstimator: The trained machine learning model.
    """
    model.fit(X_train, y_train)
    return model


def pairwise_ranking_accuracy(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Share of item pairs whose order is the same in truth and prediction."""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if y_true.size < 2:
        return float("nan")

    true_diffs = y_true[:, None] > y_true[None, :]
    pred_diffs = y_pred[:, None] > y_pred[None, :]

    # Only count upper triangle (avoid double counting)
    upper_triangle = np.triu(np.ones_like(true_diffs, dtype=bool), k=1)

    agreements = (true_diffs == pred_diffs) & upper_triangle
    return float(agreements.sum() / upper_triangle.sum())


def evaluate_regression(model: BaseEstimator, X_test: pd.DataFrame, y_test: pd.Series,
                        eval_ranking_metrics: bool = False) -> dict:
    """
    Evaluate a regression model.

    Args:
        model (BaseEstimator): The trained model.
        X_test: Test features.
        y_test: Test target.
        eval_ranking_metrics (bool): Whether to compute ranking metrics. Quadratic in the
            number of samples, so keep it off for large evaluation sets.

    Returns:
        dict: Dictionary containing all evaluation metrics.
    """
    y_pred = np.asarray(model.predict(X_test), dtype=float)
    y_test = pd.Series(y_test, dtype=float).reset_index(drop=True)

    model_name = model.__class__.__name__

    mse = mean_squared_error(y_test, y_pred)
    mae = mean_absolute_error(y_test, y_pred)
    r2 = r2_score(y_test, y_pred) if len(y_test) > 1 else float("nan")

    # MAPE is undefined for zero targets
    nonzero_idx = np.nonzero(y_test.values)[0]
    if len(nonzero_idx):
        mape = mean_absolute_percentage_error(y_test.iloc[nonzero_idx], y_pred[nonzero_idx])
    else:
        mape = float("nan")

    errors = np.abs(y_test.values - y_pred)
    std_error = float(errors.std())

    metrics = {
        'model_name': model_name,
        'mse': float(mse),
        'rmse': float(np.sqrt(mse)),
        'mae': float(mae),
        'mape': float(mape),
        'r2': float(r2),
        'std_error': std_error,
        'n_samples': len(y_test)
    }

    logger.info(f"MSE {model_name}: {mse}")
    logger.info(f"MAE {model_name}: {mae}")
    logger.info(f"MAPE {model_name}: {mape:.3f}")
    logger.info(f"R2 {model_name}: {r2}")
    logger.info(f"Standard error deviation: {std_error}")

    if eval_ranking_metrics:
        pairwise_acc = pairwise_ranking_accuracy(y_test.values, y_pred)
        rho, _ = spearmanr(y_test.values, y_pred) if len(y_test) > 1 else (float("nan"), None)

        metrics.update({
            'pairwise_accuracy': pairwise_acc,
            'spearman_correlation': float(rho)
        })

        logger.info(f"Pairwise ranking accuracy: {pairwise_acc:.3f}")
        logger.info(f"Spearman Rank Correlation: {rho:.4f}")

    return metrics


def expected_calibration_error(y_true: np.ndarray, y_prob: np.ndarray, n_bins: int = 10) -> float:
    """
    Calculate Expected Calibration Error (ECE).

    ECE bins predictions and compares average confidence to average accuracy in each bin.

    Args:
        y_true: True binary labels (0 or 1).
        y_prob: Predicted probabilities for the positive class.
        n_bins: Number of bins to use for calibration curve.

    Returns:
        ECE value (lower is better, 0 = perfect calibration).
    """
    y_true = np.asarray(y_true, dtype=float)
    y_prob = np.asarray(y_prob, dtype=float)
    bins = np.linspace(0.0, 1.0, n_bins + 1)
    ece = 0.0

    for i in range(n_bins):
        lo, hi = bins[i], bins[i + 1]
        # Last bin includes upper boundary
        mask = (y_prob >= lo) & (y_prob < hi if i < n_bins - 1 else y_prob <= hi)

        if np.any(mask):
            acc = y_true[mask].mean()
            conf = y_prob[mask].mean()
            weight = mask.mean()
            ece += np.abs(acc - conf) * weight

    return float(ece)


def evaluate_classification(model: BaseEstimator, X_test: pd.DataFrame, y_test: pd.Series) -> dict:
    """
    Evaluate a classifier. Binary problems get probability-based metrics as well.
    """
    y_test = np.asarray(y_test)
    y_pred = model.predict(X_test)
    model_name = model.__class__.__name__
    classes = list(getattr(model, "classes_", np.unique(y_test)))
    binary = len(classes) == 2

    average = "binary" if binary else "macro"
    pos_label = classes[1] if binary else 1
    metrics = {
        'model_name': model_name,
        'accuracy': float(accuracy_score(y_test, y_pred)),
        'precision': float(precision_score(y_test, y_pred, average=average, pos_label=pos_label, zero_division=0)),
        'recall': float(recall_score(y_test, y_pred, average=average, pos_label=pos_label, zero_division=0)),
        'f1': float(f1_score(y_test, y_pred, average=average, pos_label=pos_label, zero_division=0)),
        'n_samples': int(len(y_test)),
    }

    if binary and hasattr(model, "predict_proba"):
        y_prob = model.predict_proba(X_test)[:, 1]
        y_true_bin = (y_test == classes[1]).astype(int)
        if len(np.unique(y_true_bin)) == 2:
            metrics['roc_auc'] = float(roc_auc_score(y_true_bin, y_prob))
        else:
            metrics['roc_auc'] = float("nan")
        metrics['log_loss'] = float(log_loss(y_true_bin, y_prob, labels=[0, 1]))
        metrics['brier'] = float(brier_score_loss(y_true_bin, y_prob))
        metrics['ece'] = expected_calibration_error(y_true_bin, y_prob)

    for name in ('accuracy', 'precision', 'recall', 'f1', 'roc_auc'):
        if name in metrics:
            logger.info(f"{name} {model_name}: {metrics[name]:.4f}")

    return metrics

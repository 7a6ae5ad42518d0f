"""
Evaluation plots written next to the training report.
"""

from pathlib import Path
from typing import Tuple

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd


def plot_predictions(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    path: Path,
    title: str = "Predicted vs actual",
    figsize: Tuple[int, int] = (6, 6),
) -> Path:
    """Scatter of predictions against targets with the identity line."""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    fig, ax = plt.subplots(figsize=figsize)
    ax.scatter(y_true, y_pred, s=12, alpha=0.6, color="tab:blue")
    if y_true.size:
        lo = float(min(y_true.min(), y_pred.min()))
        hi = float(max(y_true.max(), y_pred.max()))
        ax.plot([lo, hi], [lo, hi], linestyle="--", color="tab:gray", linewidth=1)
    ax.set_xlabel("Actual")
    ax.set_ylabel("Predicted")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)

    return _save(fig, path)


def plot_feature_importance(
    importance_df: pd.DataFrame,
    path: Path,
    top_n: int = 20,
    title: str = "Feature importance",
) -> Path:
    """Horizontal bar chart of the top_n rows of a (feature, importance) frame."""
    top = importance_df.sort_values("importance", ascending=False).head(top_n)

    fig, ax = plt.subplots(figsize=(8, max(3, 0.35 * len(top))))
    ax.barh(top["feature"][::-1], top["importance"][::-1], color="tab:green")
    ax.set_xlabel("Importance")
    ax.set_title(title)
    ax.grid(True, axis="x", alpha=0.3)

    return _save(fig, path)


def _save(fig: plt.Figure, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=100)
    plt.close(fig)
    return path

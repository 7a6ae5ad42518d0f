"""
Model training stage: estimator construction, train/test split, fit, evaluation
and persistence of a self-contained model bundle.
"""
import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import joblib
import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator
from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor
from sklearn.linear_model import LogisticRegression, Ridge
from sklearn.model_selection import train_test_split

from nb2prod import __version__
from nb2prod.errors import ModelNotTrainedError, SchemaError
from nb2prod.features.schemas import TASKS, DatasetSchema
from nb2prod.models.evaluation import evaluate_classification, evaluate_regression, train_model
from nb2prod.preprocessing.data_preprocessing import FeaturePreprocessor, check_columns

logger = logging.getLogger(__name__)

ESTIMATORS: tuple[str, ...] = ("random_forest", "linear")


def build_estimator(task: str, estimator: str = "random_forest", random_state: int = 42, **params) -> BaseEstimator:
    if task not in TASKS:
        raise SchemaError(f"Unknown task '{task}', expected one of {TASKS}")
    if estimator not in ESTIMATORS:
        raise ValueError(f"Unknown estimator '{estimator}', expected one of {ESTIMATORS}")

    if estimator == "random_forest":
        params.setdefault("n_estimators", 100)
        cls = RandomForestRegressor if task == "regression" else RandomForestClassifier
        return cls(random_state=random_state, **params)

    if task == "regression":
        return Ridge(random_state=random_state, **params)

    params.setdefault("class_weight", "balanced")  # Handle class imbalance
    params.setdefault("max_iter", 5000)
    return LogisticRegression(random_state=random_state, **params)


def _can_stratify(y: pd.Series, test_size: float) -> bool:
    counts = y.value_counts()
    n_test = math.ceil(test_size * len(y))
    return (
        len(counts) > 1
        and counts.min() >= 2
        and n_test >= len(counts)
        and len(y) - n_test >= len(counts)
    )


class ModelTrainer:
    """Trains a regressor or classifier on a cleaned dataset described by a DatasetSchema."""

    def __init__(
        self,
        schema: DatasetSchema,
        task: str = "regression",
        estimator: str = "random_forest",
        random_state: int = 42,
        **model_params
    ):
        self.schema = schema
        self.task = task
        self.estimator = estimator
        self.model = build_estimator(task, estimator, random_state=random_state, **model_params)
        self.preprocessor = FeaturePreprocessor(schema)
        self.is_trained = False
        self.feature_names_: Optional[List[str]] = None
        self.classes_: Optional[List[Any]] = None
        self.trained_at: Optional[str] = None

    def _target(self, df: pd.DataFrame) -> pd.Series:
        y = df[self.schema.target]
        if self.task == "regression":
            y = pd.to_numeric(y, errors="coerce")
        return y

    def prepare_data(
        self,
        df: pd.DataFrame,
        test_size: float = 0.2,
        random_state: int = 42
    ) -> Tuple[pd.DataFrame, pd.DataFrame, pd.Series, pd.Series]:
        check_columns(df, self.schema.feature_columns + [self.schema.target], what="training")

        y = self._target(df)
        invalid = y.isna()
        if invalid.any():
            logger.warning(f"Dropping {int(invalid.sum())} rows with non-numeric or missing target")
            df, y = df[~invalid], y[~invalid]
        if len(df) < 2:
            raise ValueError(f"Need at least 2 rows to split train/test, got {len(df)}")

        stratify = y if self.task == "classification" and _can_stratify(y, test_size) else None
        df_train, df_test, y_train, y_test = train_test_split(
            df, y, test_size=test_size, random_state=random_state, stratify=stratify
        )

        # Fit on train only so test rows never leak into imputation / vocabularies
        self.preprocessor = FeaturePreprocessor(self.schema).fit(df_train)
        X_train = self.preprocessor.transform(df_train)
        X_test = self.preprocessor.transform(df_test)

        logger.info(f"Feature matrix shape after encoding: {X_train.shape}")
        if self.task == "regression":
            logger.info(f"Target distribution: mean={y.mean():.3f}, std={y.std():.3f}")
        else:
            logger.info(f"Class distribution: {y.value_counts().to_dict()}")
        logger.info(f"Training set: {X_train.shape[0]} samples")
        logger.info(f"Test set: {X_test.shape[0]} samples")

        return X_train, X_test, y_train, y_test

    def train(self, X_train: pd.DataFrame, y_train: pd.Series) -> Dict[str, Any]:
        logger.info(f"Training {self.model.__class__.__name__} ({self.task})...")

        # Store feature names before training (critical for prediction)
        self.feature_names_ = list(X_train.columns)

        self.model = train_model(self.model, X_train, y_train)
        self.is_trained = True
        self.trained_at = datetime.now(timezone.utc).isoformat()
        if self.task == "classification":
            self.classes_ = [c.item() if hasattr(c, "item") else c for c in self.model.classes_]

        train_metrics = self._evaluate(X_train, y_train)
        train_metrics['split'] = 'train'
        logger.info("Training completed successfully!")
        return train_metrics

    def _evaluate(self, X: pd.DataFrame, y: pd.Series) -> Dict[str, Any]:
        if self.task == "regression":
            # ranking metrics are quadratic in memory
            return evaluate_regression(self.model, X, y, eval_ranking_metrics=len(y) <= 5000)
        return evaluate_classification(self.model, X, y)

    def evaluate(self, X_test: pd.DataFrame, y_test: pd.Series) -> Dict[str, Any]:
        if not self.is_trained:
            raise ModelNotTrainedError("Model must be trained before evaluation")

        logger.info("Evaluating model on test set...")
        test_metrics = self._evaluate(X_test, y_test)
        test_metrics['split'] = 'test'
        return test_metrics

    def get_feature_importance(self) -> pd.DataFrame:
        if not self.is_trained:
            raise ModelNotTrainedError("Model must be trained before getting feature importance")

        if hasattr(self.model, "feature_importances_"):
            importance = np.asarray(self.model.feature_importances_)
        else:
            coef = np.abs(np.asarray(self.model.coef_))
            importance = coef.mean(axis=0) if coef.ndim == 2 else coef

        return pd.DataFrame({
            'feature': self.feature_names_,
            'importance': importance
        }).sort_values('importance', ascending=False).reset_index(drop=True)

    def save_model(self, model_path: Path) -> None:
        if not self.is_trained:
            raise ModelNotTrainedError("Model must be trained before saving")

        model_path = Path(model_path)
        model_path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump({
            'model': self.model,
            'preprocessor': self.preprocessor,
            'schema': self.schema.model_dump(),
            'task': self.task,
            'estimator': self.estimator,
            'feature_names': self.feature_names_,
            'classes': self.classes_,
            'trained_at': self.trained_at,
            'package_version': __version__,
        }, model_path)
        logger.info(f"Model saved to {model_path} with {len(self.feature_names_)} features")

    def load_model(self, model_path: Path) -> None:
        model_path = Path(model_path)
        if not model_path.exists():
            raise FileNotFoundError(f"Model file not found: {model_path}")

        self._apply_bundle(joblib.load(model_path))
        logger.info(f"Model loaded from {model_path} with {len(self.feature_names_)} features")

    def _apply_bundle(self, saved_data: Dict[str, Any]) -> None:
        self.model = saved_data['model']
        self.preprocessor = saved_data['preprocessor']
        self.schema = DatasetSchema.model_validate(saved_data['schema'])
        self.task = saved_data['task']
        self.estimator = saved_data.get('estimator', self.estimator)
        self.feature_names_ = saved_data['feature_names']
        self.classes_ = saved_data.get('classes')
        self.trained_at = saved_data.get('trained_at')
        self.is_trained = True

    @classmethod
    def from_file(cls, model_path: Path) -> "ModelTrainer":
        model_path = Path(model_path)
        if not model_path.exists():
            raise FileNotFoundError(f"Model file not found: {model_path}")
        bundle = joblib.load(model_path)
        trainer = cls(
            schema=DatasetSchema.model_validate(bundle['schema']),
            task=bundle['task'],
            estimator=bundle.get('estimator', 'random_forest'),
        )
        trainer._apply_bundle(bundle)
        logger.info(f"Model loaded from {model_path} with {len(trainer.feature_names_)} features")
        return trainer

    def get_feature_names(self) -> List[str]:
        if not self.is_trained or self.feature_names_ is None:
            raise ModelNotTrainedError("Model must be trained or loaded before retrieving feature names")
        return self.feature_names_

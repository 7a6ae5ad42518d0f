"""
Model inference stage: load a trained bundle and score new rows with the
same preprocessing that was fitted during training.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from tqdm.auto import tqdm

from nb2prod.errors import ModelNotTrainedError
from nb2prod.io.readers import read_table
from nb2prod.io.writers import write_table
from nb2prod.models.model_training import ModelTrainer
from nb2prod.preprocessing.data_preprocessing import check_columns

logger = logging.getLogger(__name__)

PREDICTION_COLUMN = "prediction"


class Predictor:
    """Thin wrapper around a trained ModelTrainer for scoring."""

    def __init__(self, trainer: ModelTrainer):
        if not trainer.is_trained:
            raise ModelNotTrainedError("Predictor requires a trained or loaded model")
        self.trainer = trainer

    @classmethod
    def from_file(cls, model_path: Path) -> "Predictor":
        return cls(ModelTrainer.from_file(model_path))

    @property
    def task(self) -> str:
        return self.trainer.task

    @property
    def input_columns(self) -> List[str]:
        return self.trainer.schema.feature_columns

    def _features(self, df: pd.DataFrame) -> pd.DataFrame:
        check_columns(df, self.input_columns, what="input")
        X = self.trainer.preprocessor.transform(df)
        # same order as during fit
        return X[self.trainer.get_feature_names()]

    def predict(self, df: pd.DataFrame) -> np.ndarray:
        if len(df) == 0:
            return np.array([])
        return self.trainer.model.predict(self._features(df))

    def predict_proba(self, df: pd.DataFrame) -> pd.DataFrame:
        if self.task != "classification":
            raise ValueError("predict_proba is only available for classification models")
        classes = self.trainer.classes_ or []
        columns = [f"probability_{c}" for c in classes]
        if len(df) == 0:
            return pd.DataFrame(columns=columns)
        proba = self.trainer.model.predict_proba(self._features(df))
        return pd.DataFrame(proba, columns=columns, index=df.index)

    def score_frame(self, df: pd.DataFrame) -> pd.DataFrame:
        """Return a copy of the input with prediction (and class probability) columns."""
        scored = df.copy()
        scored[PREDICTION_COLUMN] = self.predict(df)
        if self.task == "classification" and hasattr(self.trainer.model, "predict_proba"):
            scored = pd.concat([scored, self.predict_proba(df)], axis=1)
        return scored

    def model_info(self) -> Dict[str, Any]:
        return {
            "task": self.task,
            "estimator": self.trainer.model.__class__.__name__,
            "input_columns": self.input_columns,
            "n_features": len(self.trainer.get_feature_names()),
            "classes": self.trainer.classes_,
            "trained_at": self.trainer.trained_at,
        }


def run_batch_inference(
    model_path: Path,
    input_path: Path,
    output_path: Path,
    chunk_size: int = 10_000,
    predictor: Optional[Predictor] = None,
) -> pd.DataFrame:
    """
    Score a file in chunks and write the result atomically.
    The output format is picked from output_path's suffix.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")

    predictor = predictor or Predictor.from_file(model_path)
    df = read_table(input_path)
    logger.info(f"Scoring {len(df)} rows from {input_path} with chunk size {chunk_size}")

    chunks = [df.iloc[i:i + chunk_size] for i in range(0, len(df), chunk_size)]
    scored_chunks = [predictor.score_frame(chunk) for chunk in tqdm(chunks, desc="Scoring", disable=len(chunks) < 2)]
    scored = pd.concat(scored_chunks) if scored_chunks else predictor.score_frame(df)

    write_table(scored, output_path)
    logger.info(f"Wrote {len(scored)} predictions to {output_path}")
    return scored

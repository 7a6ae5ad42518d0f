"""Unit tests for Predictor and batch inference."""
import numpy as np
import pandas as pd
from unittest.mock import patch

import pytest
from tqdm.auto import tqdm as auto_tqdm

from nb2prod.errors import ModelNotTrainedError
from nb2prod.inference import model_inference
from nb2prod.inference.model_inference import PREDICTION_COLUMN, Predictor, run_batch_inference
from nb2prod.models.model_training import ModelTrainer


class TestPredictor:

    def test_predict_raw_rows_without_target(self, trained_regression_model, regression_df):
        predictor = Predictor.from_file(trained_regression_model)
        rows = regression_df.drop(columns=["price"]).head(5)

        predictions = predictor.predict(rows)

        assert predictions.shape == (5,)
        assert np.all(np.isfinite(predictions))

    def test_datetime_as_strings_are_accepted(self, trained_regression_model, regression_df):
        predictor = Predictor.from_file(trained_regression_model)
        rows = regression_df.drop(columns=["price"]).head(3)
        as_strings = rows.assign(listed_at=rows["listed_at"].dt.strftime("%Y-%m-%d"))

        np.testing.assert_allclose(predictor.predict(as_strings), predictor.predict(rows))

    def test_missing_input_column(self, trained_regression_model, regression_df):
        predictor = Predictor.from_file(trained_regression_model)
        with pytest.raises(KeyError, match="Missing expected input columns.*city"):
            predictor.predict(regression_df.drop(columns=["city"]))

    def test_empty_frame(self, trained_regression_model, regression_df):
        predictor = Predictor.from_file(trained_regression_model)
        assert len(predictor.predict(regression_df.head(0))) == 0

    def test_score_frame_keeps_id_column(self, trained_regression_model, regression_df):
        predictor = Predictor.from_file(trained_regression_model)

        scored = predictor.score_frame(regression_df.head(4))

        assert scored["listing_id"].tolist() == regression_df["listing_id"].head(4).tolist()
        assert PREDICTION_COLUMN in scored.columns

    def test_predict_proba_regression_raises(self, trained_regression_model, regression_df):
        predictor = Predictor.from_file(trained_regression_model)
        with pytest.raises(ValueError, match="only available for classification"):
            predictor.predict_proba(regression_df)

    def test_classification_probabilities(self, trained_classification_model, classification_df):
        predictor = Predictor.from_file(trained_classification_model)

        scored = predictor.score_frame(classification_df.head(10))

        assert {"probability_0", "probability_1"} <= set(scored.columns)
        np.testing.assert_allclose(scored["probability_0"] + scored["probability_1"], 1.0)

    def test_untrained_trainer_rejected(self, regression_schema):
        with pytest.raises(ModelNotTrainedError):
            Predictor(ModelTrainer(regression_schema))

    def test_model_info(self, trained_classification_model):
        info = Predictor.from_file(trained_classification_model).model_info()

        assert info["task"] == "classification"
        assert info["classes"] == [0, 1]
        assert info["input_columns"] == ["tenure", "monthly_spend", "plan"]


class TestBatchInference:

    def test_chunked_scoring_matches_single_pass(self, tmp_path, trained_regression_model, regression_df):
        input_path = tmp_path / "input.csv"
        regression_df.drop(columns=["price"]).to_csv(input_path, index=False)

        chunked = run_batch_inference(trained_regression_model, input_path, tmp_path / "a.parquet", chunk_size=7)
        single = run_batch_inference(trained_regression_model, input_path, tmp_path / "b.parquet", chunk_size=1000)

        assert len(chunked) == len(regression_df)
        np.testing.assert_allclose(chunked[PREDICTION_COLUMN].values, single[PREDICTION_COLUMN].values)
        written = pd.read_parquet(tmp_path / "a.parquet")
        assert len(written) == len(regression_df)

    def test_invalid_chunk_size(self, tmp_path, trained_regression_model):
        with pytest.raises(ValueError, match="chunk_size"):
            run_batch_inference(trained_regression_model, tmp_path / "x.csv", tmp_path / "y.csv", chunk_size=0)

    def test_progress_bar_over_chunks(self, tmp_path, trained_regression_model, regression_df):
        input_path = tmp_path / "input.csv"
        regression_df.drop(columns=["price"]).to_csv(input_path, index=False)

        with patch("nb2prod.inference.model_inference.tqdm", side_effect=lambda chunks, **kwargs: chunks) as mock_tqdm:
            run_batch_inference(trained_regression_model, input_path, tmp_path / "out.csv", chunk_size=50)

        assert len(mock_tqdm.call_args.args[0]) == 3
        assert mock_tqdm.call_args.kwargs == {"desc": "Scoring", "disable": False}

    def test_uses_notebook_aware_progress_bar(self):
        assert model_inference.tqdm is auto_tqdm

"""Smoke tests for the stage CLIs: each returns 0 on success and 1 on error."""
import json

import pandas as pd

from nb2prod.cli import convert_notebook, prepare_data, run_inference, train_model


def _notebook(path):
    nb = {
        "nbformat": 4,
        "nbformat_minor": 5,
        "metadata": {},
        "cells": [
            {"cell_type": "code", "metadata": {"tags": ["preprocess"]}, "source": "import math\nx = math.sqrt(4)"},
            {"cell_type": "code", "metadata": {"tags": ["train"]}, "source": "%time y = x * 2\nz = 3"},
        ],
    }
    path.write_text(json.dumps(nb), encoding="utf-8")
    return path


class TestConvertCli:

    def test_convert(self, tmp_path):
        notebook = _notebook(tmp_path / "analysis.ipynb")
        out_dir = tmp_path / "out"

        assert convert_notebook.main([str(notebook), "--out_dir", str(out_dir), "--script"]) == 0
        assert (out_dir / "data_preprocessing.py").exists()
        assert (out_dir / "model_training.py").exists()
        assert (out_dir / "analysis.py").exists()
        assert (out_dir / "tests" / "test_model_training.py").exists()

    def test_invalid_notebook(self, tmp_path):
        bad = tmp_path / "bad.ipynb"
        bad.write_text("{not json", encoding="utf-8")
        assert convert_notebook.main([str(bad), "--out_dir", str(tmp_path / "out")]) == 1


class TestStageClis:

    def test_prepare_train_predict(self, tmp_path, raw_csv, schema_file, regression_df):
        cleaned = tmp_path / "cleaned.parquet"
        model = tmp_path / "model.joblib"
        metrics = tmp_path / "metrics.json"

        assert prepare_data.main(["--raw", str(raw_csv), "--schema", str(schema_file), "--out", str(cleaned)]) == 0
        assert train_model.main([
            "--data", str(cleaned),
            "--schema", str(schema_file),
            "--task", "regression",
            "--model_output", str(model),
            "--metrics_output", str(metrics),
            "--n_estimators", "10",
            "--random_state", "0",
        ]) == 0
        saved = json.loads(metrics.read_text())
        assert saved["model_params"] == {"n_estimators": 10}
        assert "r2" in saved["test"]

        to_score = tmp_path / "to_score.parquet"
        regression_df.drop(columns=["price"]).head(5).to_parquet(to_score)
        out = tmp_path / "predictions.json"
        assert run_inference.main(["--model", str(model), "--input", str(to_score), "--out", str(out)]) == 0
        assert len(pd.read_json(out, orient="records")) == 5

    def test_train_missing_data(self, tmp_path, schema_file):
        code = train_model.main([
            "--data", str(tmp_path / "missing.parquet"),
            "--schema", str(schema_file),
            "--model_output", str(tmp_path / "model.joblib"),
        ])
        assert code == 1

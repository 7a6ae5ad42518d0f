"""Unit tests for the stage runners and the gated pipeline."""
import json

import pandas as pd
import pytest

from nb2prod.cli import run_pipeline
from nb2prod.errors import QualityGateError
from nb2prod.inference.model_inference import PREDICTION_COLUMN
from nb2prod.pipelines.quality_gate import GateThreshold
from nb2prod.pipelines.training_pipeline import (
    PIPELINE_STAGES,
    run_full_pipeline,
    run_inference_pipeline,
    run_preprocessing_pipeline,
    run_training_pipeline,
)
from nb2prod.registry.model_registry import APPROVED, PENDING, LocalModelRegistry


class TestStageRunners:

    def test_preprocess_train_infer(self, tmp_path, raw_csv, schema_file, regression_df):
        cleaned, cleaned_path = run_preprocessing_pipeline(
            raw_file=raw_csv, schema_file=schema_file, out_file=tmp_path / "cleaned.parquet"
        )
        assert cleaned_path.exists()
        assert len(cleaned) == len(regression_df)

        model_path = tmp_path / "model.joblib"
        trainer, train_metrics, test_metrics = run_training_pipeline(
            data_file=cleaned_path,
            schema_file=schema_file,
            model_output_path=model_path,
            task="regression",
            random_seed=0,
            test_size=0.2,
            plots_dir=tmp_path / "plots",
            n_estimators=20,
        )
        assert trainer.is_trained
        assert model_path.exists()
        assert test_metrics["n_samples"] == 24
        assert (tmp_path / "plots" / "feature_importance.png").exists()
        assert (tmp_path / "plots" / "predictions.png").exists()

        input_path = tmp_path / "to_score.csv"
        regression_df.drop(columns=["price"]).head(10).to_csv(input_path, index=False)
        scored, out_path = run_inference_pipeline(
            model_path=model_path, input_file=input_path, out_file=tmp_path / "scored.csv", chunk_size=3
        )
        assert len(scored) == 10
        assert PREDICTION_COLUMN in pd.read_csv(out_path).columns


class TestRunFullPipeline:

    def test_success_registers_model(self, tmp_path, raw_csv, schema_file):
        registry_dir = tmp_path / "registry"

        report = run_full_pipeline(
            raw_file=raw_csv,
            schema_file=schema_file,
            run_dir=tmp_path / "run",
            task="regression",
            thresholds=[GateThreshold("r2", minimum=0.5)],
            registry_dir=registry_dir,
            auto_approve=True,
            random_seed=0,
            n_estimators=20,
        )

        assert report.status == "succeeded"
        assert [s.name for s in report.stages] == list(PIPELINE_STAGES)
        assert all(s.status == "succeeded" for s in report.stages)
        assert report.model_version == 1
        assert LocalModelRegistry(registry_dir).latest(APPROVED).version == 1

        manifest = json.loads((tmp_path / "run" / "manifest.json").read_text())
        assert manifest["status"] == "succeeded"
        assert manifest["gate"]["passed"] is True
        assert (tmp_path / "run" / "metrics.json").exists()
        assert (tmp_path / "run" / "pipeline.log").exists()

    def test_pending_without_auto_approve(self, tmp_path, raw_csv, schema_file):
        registry_dir = tmp_path / "registry"
        run_full_pipeline(
            raw_file=raw_csv,
            schema_file=schema_file,
            run_dir=tmp_path / "run",
            task="regression",
            thresholds=[GateThreshold("r2", minimum=0.0)],
            registry_dir=registry_dir,
            random_seed=0,
            n_estimators=10,
        )
        registry = LocalModelRegistry(registry_dir)
        assert registry.get(1).status == PENDING
        assert registry.latest() is None

    def test_gate_failure_skips_registration(self, tmp_path, raw_csv, schema_file):
        registry_dir = tmp_path / "registry"

        with pytest.raises(QualityGateError):
            run_full_pipeline(
                raw_file=raw_csv,
                schema_file=schema_file,
                run_dir=tmp_path / "run",
                task="regression",
                thresholds=[GateThreshold("r2", minimum=1.01)],
                registry_dir=registry_dir,
                random_seed=0,
                n_estimators=10,
            )

        manifest = json.loads((tmp_path / "run" / "manifest.json").read_text())
        stages = {s["name"]: s["status"] for s in manifest["stages"]}
        assert manifest["status"] == "failed"
        assert stages == {"preprocess": "succeeded", "train": "succeeded", "gate": "failed", "register": "skipped"}
        assert LocalModelRegistry(registry_dir).list_versions() == []

    def test_gate_failure_without_raising(self, tmp_path, raw_csv, schema_file):
        report = run_full_pipeline(
            raw_file=raw_csv,
            schema_file=schema_file,
            run_dir=tmp_path / "run",
            task="regression",
            thresholds=[GateThreshold("r2", minimum=1.01)],
            registry_dir=tmp_path / "registry",
            fail_on_gate=False,
            random_seed=0,
            n_estimators=10,
        )
        assert report.status == "failed"
        assert report.model_version is None

    def test_no_register(self, tmp_path, raw_csv, schema_file):
        report = run_full_pipeline(
            raw_file=raw_csv,
            schema_file=schema_file,
            run_dir=tmp_path / "run",
            task="regression",
            thresholds=[GateThreshold("r2", minimum=0.0)],
            register=False,
            registry_dir=tmp_path / "registry",
            random_seed=0,
            n_estimators=10,
        )
        assert report.status == "succeeded"
        assert report.stage("register").status == "skipped"
        assert not (tmp_path / "registry" / "registry.json").exists()

    def test_stage_error_marks_remaining_stages_skipped(self, tmp_path, schema_file):
        with pytest.raises(FileNotFoundError):
            run_full_pipeline(
                raw_file=tmp_path / "missing.csv",
                schema_file=schema_file,
                run_dir=tmp_path / "run",
                task="regression",
                registry_dir=tmp_path / "registry",
            )

        manifest = json.loads((tmp_path / "run" / "manifest.json").read_text())
        stages = {s["name"]: s for s in manifest["stages"]}
        assert stages["preprocess"]["status"] == "failed"
        assert "FileNotFoundError" in stages["preprocess"]["error"]
        assert stages["train"]["status"] == "skipped"


class TestRunPipelineCli:

    def _args(self, tmp_path, raw_csv, schema_file, gate):
        return [
            "--raw", str(raw_csv),
            "--schema", str(schema_file),
            "--run_dir", str(tmp_path / "run"),
            "--registry_dir", str(tmp_path / "registry"),
            "--task", "regression",
            "--gate", gate,
            "--random_state", "0",
        ]

    def test_exit_code_success(self, tmp_path, raw_csv, schema_file):
        assert run_pipeline.main(self._args(tmp_path, raw_csv, schema_file, "r2>=0.0")) == 0

    def test_exit_code_gate_failed(self, tmp_path, raw_csv, schema_file):
        code = run_pipeline.main(self._args(tmp_path, raw_csv, schema_file, "r2>=1.01"))
        assert code == run_pipeline.GATE_FAILED_EXIT_CODE

    def test_exit_code_invalid_threshold(self, tmp_path, raw_csv, schema_file):
        assert run_pipeline.main(self._args(tmp_path, raw_csv, schema_file, "r2 > 0.5")) == 1

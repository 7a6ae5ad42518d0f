"""
Stage runners: preprocessing, training, inference and the full gated pipeline

    preprocess -> train -> quality gate -> register

Every stage reads its inputs from files and writes its outputs atomically, so
any stage can be re-run on its own from the CLI.
"""
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd

from nb2prod.errors import QualityGateError
from nb2prod.features.schemas import DatasetSchema, load_schema
from nb2prod.inference.model_inference import run_batch_inference
from nb2prod.io.readers import read_table
from nb2prod.io.writers import atomic_write_json, write_table
from nb2prod.logging_setup import add_file_handler
from nb2prod.models.model_training import ModelTrainer
from nb2prod.pipelines.quality_gate import GateResult, GateThreshold, default_thresholds, evaluate_gate
from nb2prod.preprocessing.data_preprocessing import clean_data, load_raw_data
from nb2prod.registry.model_registry import APPROVED, PENDING, LocalModelRegistry
from nb2prod.settings import get_settings
from nb2prod.utils.reproducibility import resolve_seed, seeded
from nb2prod.utils.utilities import ensure_dir, make_run_id, timed, utc_timestamp
from nb2prod.utils.visualization import plot_feature_importance, plot_predictions

logger = logging.getLogger(__name__)


def _schema(schema_file: Optional[Path]) -> DatasetSchema:
    if schema_file is None:
        schema_file = get_settings().dataset_schema
    return load_schema(schema_file)


def run_preprocessing_pipeline(
    raw_file: Path | None = None,
    schema_file: Path | None = None,
    out_file: Path | None = None,
) -> tuple[pd.DataFrame, Path]:
    cfg = get_settings()
    if raw_file is None:
        raw_file = cfg.raw_dataset
    if out_file is None:
        out_file = cfg.processed_dir / "cleaned.parquet"

    schema = _schema(schema_file)
    df_raw = load_raw_data(raw_file, schema)
    df = clean_data(df_raw, schema)

    write_table(df, out_file)
    logger.info(f"Wrote {len(df)} cleaned rows to {out_file}")
    return df, out_file


def run_training_pipeline(
    data_file: Path | None = None,
    schema_file: Path | None = None,
    model_output_path: Path | None = None,
    task: Optional[str] = None,
    estimator: str = "random_forest",
    random_seed: Optional[int] = None,
    test_size: Optional[float] = None,
    plots_dir: Optional[Path] = None,
    **model_params
) -> Tuple[ModelTrainer, Dict[str, Any], Dict[str, Any]]:
    """
    Train and evaluate a model on a cleaned table.

    Returns:
        The trained ModelTrainer, training metrics, and test metrics.
    """
    cfg = get_settings()
    if data_file is None:
        data_file = cfg.processed_dir / "cleaned.parquet"
    random_seed = resolve_seed(random_seed)
    if test_size is None:
        test_size = cfg.test_size
    if task is None:
        task = cfg.task

    schema = _schema(schema_file)
    df = read_table(data_file)

    with seeded(random_seed):
        trainer = ModelTrainer(schema, task=task, estimator=estimator, random_state=random_seed, **model_params)
        X_train, X_test, y_train, y_test = trainer.prepare_data(df, test_size=test_size, random_state=random_seed)
        train_metrics = trainer.train(X_train, y_train)
        test_metrics = trainer.evaluate(X_test, y_test)

    importance_df = trainer.get_feature_importance()
    logger.info("Top 10 most important features:")
    for _, row in importance_df.head(10).iterrows():
        logger.info(f"  {row['feature']}: {row['importance']:.4f}")

    if model_output_path:
        trainer.save_model(Path(model_output_path))

    if plots_dir is not None:
        plots_dir = Path(plots_dir)
        plot_feature_importance(importance_df, plots_dir / "feature_importance.png")
        if task == "regression":
            plot_predictions(y_test, trainer.model.predict(X_test), plots_dir / "predictions.png")
        logger.info(f"Plots written to {plots_dir}")

    return trainer, train_metrics, test_metrics


def run_inference_pipeline(
    model_path: Path | None = None,
    input_file: Path | None = None,
    out_file: Path | None = None,
    chunk_size: int = 10_000,
) -> tuple[pd.DataFrame, Path]:
    cfg = get_settings()
    if model_path is None:
        model_path = cfg.models_dir / "model.joblib"
    if input_file is None:
        input_file = cfg.processed_dir / "inference_input.parquet"
    if out_file is None:
        out_file = cfg.processed_dir / "predictions.parquet"

    scored = run_batch_inference(model_path, input_file, out_file, chunk_size=chunk_size)
    return scored, Path(out_file)


@dataclass
class StageRecord:
    name: str
    status: str = "pending"
    seconds: float = 0.0
    artifacts: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class PipelineRunReport:
    run_id: str
    run_dir: str
    status: str = "running"
    started_at: str = field(default_factory=utc_timestamp)
    finished_at: Optional[str] = None
    stages: List[StageRecord] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)
    gate: Optional[Dict[str, Any]] = None
    model_version: Optional[int] = None

    def stage(self, name: str) -> StageRecord:
        for s in self.stages:
            if s.name == name:
                return s
        raise KeyError(f"Unknown stage '{name}'")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


PIPELINE_STAGES: tuple[str, ...] = ("preprocess", "train", "gate", "register")


def _run_stage(report: PipelineRunReport, name: str, fn: Callable[[StageRecord], Any]) -> Any:
    record = report.stage(name)
    record.status = "running"
    try:
        with timed(f"stage '{name}'") as t:
            result = fn(record)
    except Exception as e:
        record.status = "failed"
        record.error = f"{type(e).__name__}: {e}"
        raise
    finally:
        record.seconds = t.get("seconds", 0.0)
    record.status = "succeeded"
    return result


def run_full_pipeline(
    raw_file: Path | None = None,
    schema_file: Path | None = None,
    run_dir: Path | None = None,
    task: Optional[str] = None,
    estimator: str = "random_forest",
    thresholds: Optional[List[GateThreshold]] = None,
    register: bool = True,
    registry_dir: Path | None = None,
    auto_approve: bool = False,
    fail_on_gate: bool = True,
    random_seed: Optional[int] = None,
    **model_params
) -> PipelineRunReport:
    """
    Run preprocess -> train -> gate -> register and write run_dir/manifest.json.

    A failed gate skips registration. With fail_on_gate the QualityGateError
    is re-raised after the manifest is written, so callers (CI jobs) exit
    non-zero.
    """
    cfg = get_settings()
    task = task or cfg.task
    run_id = make_run_id()
    run_dir = ensure_dir(run_dir if run_dir is not None else cfg.reports_dir / "runs" / run_id)
    registry_dir = Path(registry_dir) if registry_dir is not None else cfg.registry_dir
    if thresholds is None:
        thresholds = default_thresholds(task, cfg.gate)

    report = PipelineRunReport(run_id=run_id, run_dir=str(run_dir))
    report.stages = [StageRecord(name) for name in PIPELINE_STAGES]
    manifest_path = run_dir / "manifest.json"
    handler = add_file_handler(run_dir / "pipeline.log")
    logger.info(f"Starting pipeline run {run_id} in {run_dir}")

    cleaned_path = run_dir / "data" / "cleaned.parquet"
    model_path = run_dir / "model.joblib"
    metrics_path = run_dir / "metrics.json"

    def preprocess(record: StageRecord):
        run_preprocessing_pipeline(raw_file=raw_file, schema_file=schema_file, out_file=cleaned_path)
        record.artifacts["cleaned_data"] = str(cleaned_path)

    def train(record: StageRecord):
        _, train_metrics, test_metrics = run_training_pipeline(
            data_file=cleaned_path,
            schema_file=schema_file,
            model_output_path=model_path,
            task=task,
            estimator=estimator,
            random_seed=random_seed,
            plots_dir=run_dir / "plots",
            **model_params
        )
        report.metrics = {"train": train_metrics, "test": test_metrics}
        atomic_write_json(report.metrics, metrics_path)
        record.artifacts.update({"model": str(model_path), "metrics": str(metrics_path)})

    def gate(record: StageRecord) -> GateResult:
        result = evaluate_gate(report.metrics["test"], thresholds)
        report.gate = result.to_dict()
        return result

    def register_model(record: StageRecord):
        registry = LocalModelRegistry(registry_dir)
        entry = registry.register(
            model_path,
            metrics=report.metrics["test"],
            status=APPROVED if auto_approve else PENDING,
            description=f"run {run_id}",
        )
        report.model_version = entry.version
        record.artifacts["registered_model"] = entry.path

    try:
        _run_stage(report, "preprocess", preprocess)
        _run_stage(report, "train", train)
        gate_result = _run_stage(report, "gate", gate)

        if not gate_result.passed:
            report.stage("gate").status = "failed"
            report.stage("register").status = "skipped"
            report.status = "failed"
        elif register:
            _run_stage(report, "register", register_model)
            report.status = "succeeded"
        else:
            report.stage("register").status = "skipped"
            report.status = "succeeded"
    except Exception:
        report.status = "failed"
        for s in report.stages:
            if s.status == "pending":
                s.status = "skipped"
        logger.error(f"Pipeline run {run_id} failed", exc_info=True)
        raise
    finally:
        report.finished_at = utc_timestamp()
        atomic_write_json(report.to_dict(), manifest_path)
        logger.info(f"Pipeline run {run_id} {report.status}; manifest at {manifest_path}")
        logging.getLogger().removeHandler(handler)
        handler.close()

    if report.status == "failed" and fail_on_gate:
        raise QualityGateError(gate_result)
    return report

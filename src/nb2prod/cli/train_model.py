import argparse
from pathlib import Path
import logging
import json
from nb2prod.pipelines.training_pipeline import run_training_pipeline
from nb2prod.models.model_training import ESTIMATORS
from nb2prod.features.schemas import TASKS
from nb2prod import logging_setup

logger = logging.getLogger(__name__)

def main(argv=None):
    p = argparse.ArgumentParser(description="Train and evaluate a model on a cleaned dataset")
    p.add_argument("--data", required=True, help="Path to cleaned table (output of nb2prod-prepare)")
    p.add_argument("--schema", help="Path to the dataset schema JSON")
    p.add_argument("--task", choices=TASKS, help="regression or classification (default: settings.task)")
    p.add_argument("--estimator", choices=ESTIMATORS, default="random_forest")
    p.add_argument("--model_output", required=True, help="Path to save trained model bundle (.joblib)")
    p.add_argument("--metrics_output", help="Path to save metrics JSON (optional)")
    p.add_argument("--plots_dir", help="Directory for evaluation plots (optional)")
    p.add_argument("--log_level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    # Model hyperparameters (random forest)
    p.add_argument("--n_estimators", type=int, help="Number of trees in random forest")
    p.add_argument("--max_depth", type=int, help="Maximum depth of trees")
    p.add_argument("--min_samples_leaf", type=int, help="Minimum samples at leaf node")
    p.add_argument("--test_size", type=float, help="Held-out fraction (default: settings.test_size)")
    p.add_argument("--random_state", type=int, help="Random state for reproducibility")

    a = p.parse_args(argv)
    logging_setup.setup_logging(a.log_level)

    model_params = {}
    if a.estimator == "random_forest":
        for name in ("n_estimators", "max_depth", "min_samples_leaf"):
            value = getattr(a, name)
            if value is not None:
                model_params[name] = value

    try:
        _, train_metrics, test_metrics = run_training_pipeline(
            data_file=Path(a.data),
            schema_file=Path(a.schema) if a.schema else None,
            model_output_path=Path(a.model_output),
            task=a.task,
            estimator=a.estimator,
            random_seed=a.random_state,
            test_size=a.test_size,
            plots_dir=Path(a.plots_dir) if a.plots_dir else None,
            **model_params
        )
    except Exception as e:
        logger.error(f"Training failed: {e}", exc_info=True)
        return 1

    logger.info("Training completed successfully!")
    for key in ("r2", "mae", "accuracy", "f1"):
        if key in test_metrics:
            logger.info(f"Test {key}: {test_metrics[key]:.4f}")

    if a.metrics_output:
        metrics = {
            'train': train_metrics,
            'test': test_metrics,
            'model_params': model_params
        }
        out = Path(a.metrics_output)
        out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, 'w') as f:
            json.dump(metrics, f, indent=2, default=str)
        logger.info(f"Metrics saved to {out}")
    return 0

if __name__ == "__main__":
    exit(main())

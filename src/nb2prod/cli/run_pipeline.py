"""
CLI for the full gated pipeline, meant to be the single command a CI job runs.

Exit codes: 0 success, 1 stage error, 2 quality gate failed.
"""

import argparse
import logging
from pathlib import Path

from nb2prod import logging_setup
from nb2prod.errors import QualityGateError
from nb2prod.features.schemas import TASKS
from nb2prod.models.model_training import ESTIMATORS
from nb2prod.pipelines.quality_gate import parse_threshold
from nb2prod.pipelines.training_pipeline import run_full_pipeline

logger = logging.getLogger(__name__)

GATE_FAILED_EXIT_CODE = 2


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Run preprocess -> train -> quality gate -> register."
    )
    parser.add_argument("--raw", type=Path, help="Raw dataset (default: settings.raw_dataset)")
    parser.add_argument("--schema", type=Path, help="Dataset schema JSON (default: settings.dataset_schema)")
    parser.add_argument("--run_dir", type=Path, help="Directory for run artifacts (default: reports/runs/<run_id>)")
    parser.add_argument("--registry_dir", type=Path, help="Model registry root (default: settings.registry_dir)")
    parser.add_argument("--task", choices=TASKS)
    parser.add_argument("--estimator", choices=ESTIMATORS, default="random_forest")
    parser.add_argument(
        "--gate",
        action="append",
        default=None,
        help="Threshold such as 'r2>=0.6' or 'mape<=0.3' (repeatable; default from settings)",
    )
    parser.add_argument("--no_register", action="store_true", help="Stop after the quality gate")
    parser.add_argument("--auto_approve", action="store_true", help="Register as Approved instead of PendingManualApproval")
    parser.add_argument("--random_state", type=int)
    parser.add_argument("--log_level", default="INFO")

    args = parser.parse_args(argv)
    logging_setup.setup_logging(args.log_level)

    try:
        thresholds = [parse_threshold(t) for t in args.gate] if args.gate else None
        report = run_full_pipeline(
            raw_file=args.raw,
            schema_file=args.schema,
            run_dir=args.run_dir,
            task=args.task,
            estimator=args.estimator,
            thresholds=thresholds,
            register=not args.no_register,
            registry_dir=args.registry_dir,
            auto_approve=args.auto_approve,
            random_seed=args.random_state,
        )
    except QualityGateError as e:
        logger.error(str(e))
        return GATE_FAILED_EXIT_CODE
    except Exception as e:
        logger.error(f"Error: {e}", exc_info=True)
        return 1

    if report.model_version is not None:
        logger.info(f"SUCCESS: registered model version {report.model_version}")
    else:
        logger.info(f"SUCCESS: run {report.run_id} finished")
    return 0


if __name__ == "__main__":
    exit(main())

import argparse
from pathlib import Path
import logging
from nb2prod.pipelines.training_pipeline import run_preprocessing_pipeline
from nb2prod import logging_setup

logger = logging.getLogger(__name__)

def main(argv=None):
    p = argparse.ArgumentParser(description="Clean a raw dataset according to its schema")
    p.add_argument("--raw", help="Path to the raw csv/parquet/json file (default: settings.raw_dataset)")
    p.add_argument("--schema", help="Path to the dataset schema JSON (default: settings.dataset_schema)")
    p.add_argument("--out", required=True, help="Path to output cleaned table (.parquet or .csv)")
    p.add_argument("--log_level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    a = p.parse_args(argv)
    logging_setup.setup_logging(a.log_level)

    try:
        _, out_file = run_preprocessing_pipeline(
            raw_file=Path(a.raw) if a.raw else None,
            schema_file=Path(a.schema) if a.schema else None,
            out_file=Path(a.out),
        )
    except Exception as e:
        logger.error(f"Preprocessing failed: {e}", exc_info=True)
        return 1

    logger.info(f"Wrote {out_file}")
    return 0

if __name__ == "__main__":
    exit(main())

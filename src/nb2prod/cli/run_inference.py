import argparse
from pathlib import Path
import logging
from nb2prod.pipelines.training_pipeline import run_inference_pipeline
from nb2prod import logging_setup

logger = logging.getLogger(__name__)

def main(argv=None):
    p = argparse.ArgumentParser(description="Score a table with a trained model bundle")
    p.add_argument("--model", required=True, help="Path to trained model bundle (.joblib)")
    p.add_argument("--input", required=True, help="Path to rows to score (.csv/.parquet/.json)")
    p.add_argument("--out", required=True, help="Path to write predictions (.csv/.parquet/.json)")
    p.add_argument("--chunk_size", type=int, default=10_000, help="Rows scored per batch")
    p.add_argument("--log_level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    a = p.parse_args(argv)
    logging_setup.setup_logging(a.log_level)

    try:
        scored, out_file = run_inference_pipeline(
            model_path=Path(a.model),
            input_file=Path(a.input),
            out_file=Path(a.out),
            chunk_size=a.chunk_size,
        )
    except Exception as e:
        logger.error(f"Inference failed: {e}", exc_info=True)
        return 1

    logger.info(f"Wrote {len(scored)} predictions to {out_file}")
    return 0

if __name__ == "__main__":
    exit(main())

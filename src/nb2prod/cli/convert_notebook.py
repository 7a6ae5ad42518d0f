import argparse
from pathlib import Path
import logging
from nb2prod.notebook.converter import convert_notebook
from nb2prod import logging_setup

logger = logging.getLogger(__name__)

def main(argv=None):
    p = argparse.ArgumentParser(description="Split a Jupyter notebook into preprocessing / training / inference / utilities modules")
    p.add_argument("notebook", help="Path to the .ipynb file")
    p.add_argument("--out_dir", required=True, help="Directory for the generated modules")
    p.add_argument("--no_tests", action="store_true", help="Do not scaffold tests/test_<module>.py files")
    p.add_argument("--script", action="store_true", help="Also write a single flattened <notebook>.py script")
    p.add_argument("--log_level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    a = p.parse_args(argv)
    logging_setup.setup_logging(a.log_level)

    try:
        result = convert_notebook(
            Path(a.notebook),
            Path(a.out_dir),
            scaffold_tests=not a.no_tests,
            include_script=a.script,
        )
    except Exception as e:
        logger.error(f"Conversion failed: {e}", exc_info=True)
        return 1

    for module_name, path in result.modules.items():
        logger.info(f"{module_name}: {path}")
    logger.info(f"Skipped cells: {result.skipped_cells}, disabled lines: {result.removed_lines}")
    return 0

if __name__ == "__main__":
    exit(main())

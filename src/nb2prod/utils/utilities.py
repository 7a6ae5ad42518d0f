"""
Small helpers shared by the pipeline stages and CLIs.
"""

import hashlib
import logging
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator

logger = logging.getLogger(__name__)


@contextmanager
def timed(label: str) -> Iterator[Dict[str, float]]:
    """
    Log how long a block takes. The yielded dict gets a 'seconds' key on exit.

    Example:
        with timed("training") as t:
            trainer.train(X, y)
        t["seconds"]
    """
    record: Dict[str, float] = {}
    start = time.perf_counter()
    try:
        yield record
    finally:
        record["seconds"] = time.perf_counter() - start
        logger.info(f"{label} took {record['seconds']:.2f}s")


def file_sha256(path: Path, chunk_size: int = 1 << 20) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(chunk_size), b""):
            digest.update(block)
    return digest.hexdigest()


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def make_run_id(prefix: str = "run") -> str:
    """Sortable, unique id such as run-20250101T120000Z-1a2b3c4d."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{prefix}-{stamp}-{uuid.uuid4().hex[:8]}"


def ensure_dir(path: Path) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def flatten_metrics(metrics: Dict[str, Any], prefix: str = "", sep: str = ".") -> Dict[str, Any]:
    """Flatten nested metric dicts: {'test': {'r2': 0.9}} -> {'test.r2': 0.9}."""
    flat: Dict[str, Any] = {}
    for key, value in metrics.items():
        name = f"{prefix}{sep}{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_metrics(value, name, sep))
        else:
            flat[name] = value
    return flat

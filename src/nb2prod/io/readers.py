from pathlib import Path
import json
import pandas as pd

def _ensure_exists(path: Path):
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"file not found: {p}")

def read_json(path: Path):
    _ensure_exists(path)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)

def read_parquet(path: Path) -> pd.DataFrame:
    _ensure_exists(path)
    return pd.read_parquet(path)

def read_csv(path: Path, **kwargs) -> pd.DataFrame:
    _ensure_exists(path)
    return pd.read_csv(path, encoding="utf-8", **kwargs)

def read_table(path: Path, **kwargs) -> pd.DataFrame:
    """Read a tabular file, picking the reader from the file suffix."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return read_csv(path, **kwargs)
    if suffix in (".parquet", ".pq"):
        return read_parquet(path)
    if suffix == ".json":
        _ensure_exists(path)
        return pd.read_json(path, orient="records", **kwargs)
    raise ValueError(f"Unsupported table format: {path.suffix!r} ({path})")

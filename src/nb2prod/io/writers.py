from pathlib import Path
import json
import pandas as pd


def _tmp_path(out: Path) -> Path:
    out.parent.mkdir(parents=True, exist_ok=True)
    return out.with_suffix(out.suffix + ".tmp")


def atomic_write_parquet(df: pd.DataFrame, out: Path) -> None:
    out = Path(out)
    tmp = _tmp_path(out)
    df.to_parquet(tmp)
    tmp.replace(out)             # atomic replace on same filesystem


def atomic_write_csv(df: pd.DataFrame, out: Path, index: bool = False) -> None:
    out = Path(out)
    tmp = _tmp_path(out)
    df.to_csv(tmp, index=index, encoding="utf-8")
    tmp.replace(out)


def atomic_write_json(obj, out: Path) -> None:
    out = Path(out)
    tmp = _tmp_path(out)
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, default=str)
    tmp.replace(out)


def atomic_write_text(text: str, out: Path) -> None:
    out = Path(out)
    tmp = _tmp_path(out)
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(out)


def write_table(df: pd.DataFrame, out: Path) -> None:
    out = Path(out)
    suffix = out.suffix.lower()
    if suffix == ".csv":
        atomic_write_csv(df, out)
    elif suffix in (".parquet", ".pq"):
        atomic_write_parquet(df, out)
    elif suffix == ".json":
        atomic_write_json(df.to_dict(orient="records"), out)
    else:
        raise ValueError(f"Unsupported table format: {out.suffix!r} ({out})")

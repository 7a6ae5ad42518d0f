from datetime import date, datetime
import pandas as pd

from nb2prod.features.schemas import DATETIME_PARTS


def _to_date(x: object) -> date:
    if isinstance(x, pd.Timestamp):
        return x.date()
    if isinstance(x, datetime):
        return x.date()
    if isinstance(x, date):
        return x
    if isinstance(x, str):
        return date.fromisoformat(x)
    raise TypeError(f"Unsupported date-like value: {type(x)}")


def get_season(x: object) -> str:
    d = _to_date(x)
    month = d.month
    if month in [12, 1, 2]:
        return 'winter'
    elif month in [3, 4, 5]:
        return 'spring'
    elif month in [6, 7, 8]:
        return 'summer'
    else:
        return 'fall'


def expanded_columns(column: str) -> list[str]:
    return [f"{column}_{part}" for part in DATETIME_PARTS]


def expand_datetime(df: pd.DataFrame, column: str) -> pd.DataFrame:
    """
    Replace a datetime column by calendar features:
        <col>_year, <col>_month, <col>_weekday, <col>_is_weekend, <col>_hour, <col>_season
    Unparseable values become NaT and yield NaN parts (season -> None).
    """
    df = df.copy()
    ts = pd.to_datetime(df[column], errors="coerce")

    df[f"{column}_year"] = ts.dt.year
    df[f"{column}_month"] = ts.dt.month
    df[f"{column}_weekday"] = ts.dt.weekday
    # keep NaN for NaT instead of silently marking those rows as weekdays
    df[f"{column}_is_weekend"] = (ts.dt.weekday >= 5).astype(float).where(ts.notna())
    df[f"{column}_hour"] = ts.dt.hour
    # object dtype so missing seasons stay None
    df[f"{column}_season"] = pd.Series(
        [get_season(x) if pd.notna(x) else None for x in ts], index=df.index, dtype=object
    )

    return df.drop(columns=[column])

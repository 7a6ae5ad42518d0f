"""
Data preprocessing stage.

Turns a raw table into a clean one (`load_raw_data`, `clean_data`) and then
into a fully numeric feature matrix (`FeaturePreprocessor`). The preprocessor
learns everything it needs (medians, category vocabularies, output column
order) on the training split only and is stored inside the model bundle, so
inference reuses exactly the same transformation.
"""

import logging
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from nb2prod.errors import ModelNotTrainedError, SchemaError
from nb2prod.features.schemas import (
    DATETIME_CATEGORICAL_PARTS,
    DATETIME_PARTS,
    UNKNOWN_CATEGORY,
    DatasetSchema,
)
from nb2prod.io.readers import read_table
from nb2prod.preprocessing import dates

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "t", "yes", "y", "1"}
_FALSE_STRINGS = {"false", "f", "no", "n", "0"}


def check_columns(df: pd.DataFrame, expected: List[str], what: str = "data") -> None:
    missing = set(expected) - set(df.columns)
    if missing:
        raise KeyError(f"Missing expected {what} columns: {sorted(missing)}")


def load_raw_data(path: Path, schema: DatasetSchema) -> pd.DataFrame:
    df = read_table(path)
    check_columns(df, schema.required_columns, what="raw")
    logger.info(f"Loaded {len(df)} rows from {path}")
    return df[schema.required_columns]  # ordering is important for sklearn


def _to_bool(value: object) -> object:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return np.nan
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, np.integer, float, np.floating)):
        if value in (0, 1):
            return bool(value)
        return np.nan
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    return np.nan


def clean_data(df: pd.DataFrame, schema: DatasetSchema) -> pd.DataFrame:
    """
    Notebook-style cleanup made repeatable:
    - drop configured columns, exact duplicates and rows without a target
    - coerce numeric / datetime / boolean features to proper dtypes
      (unparseable values become missing and are imputed later)
    """
    df = df.drop(columns=[c for c in schema.drop_columns if c in df.columns])

    n_before = len(df)
    df = df.drop_duplicates()
    n_dupes = n_before - len(df)

    if schema.target in df.columns:
        n_before = len(df)
        df = df[df[schema.target].notna()]
        n_missing_target = n_before - len(df)
    else:
        n_missing_target = 0

    df = df.copy()
    for col in schema.numeric_features:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    for col in schema.datetime_features:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], errors="coerce")
    for col in schema.boolean_features:
        if col in df.columns:
            df[col] = df[col].map(_to_bool)

    logger.info(
        f"Cleaned data: removed {n_dupes} duplicate rows and "
        f"{n_missing_target} rows with missing target, {len(df)} rows left"
    )
    return df.reset_index(drop=True)


class FeaturePreprocessor:
    """Median imputation + one-hot encoding with a vocabulary learned at fit time."""

    def __init__(self, schema: DatasetSchema):
        self.schema = schema
        self.medians_: Dict[str, float] = {}
        self.categories_: Dict[str, List[str]] = {}
        self.feature_names_: Optional[List[str]] = None

    @property
    def is_fitted(self) -> bool:
        return self.feature_names_ is not None

    def _expand(self, df: pd.DataFrame) -> pd.DataFrame:
        check_columns(df, self.schema.feature_columns, what="feature")
        df = df[self.schema.feature_columns].copy()
        for col in self.schema.datetime_features:
            df = dates.expand_datetime(df, col)
        for col in self.schema.boolean_features:
            df[col] = df[col].map(_to_bool).astype(float)
        return df

    def _numeric_columns(self) -> List[str]:
        cols = list(self.schema.numeric_features)
        for col in self.schema.datetime_features:
            cols += [f"{col}_{p}" for p in DATETIME_PARTS if p not in DATETIME_CATEGORICAL_PARTS]
        return cols + list(self.schema.boolean_features)

    def _categorical_columns(self) -> List[str]:
        cols = list(self.schema.categorical_features)
        for col in self.schema.datetime_features:
            cols += [f"{col}_{p}" for p in DATETIME_CATEGORICAL_PARTS]
        return cols

    @staticmethod
    def _category_label(value: object) -> str:
        # integer codes read as float (NaN in the column) must match their int form
        if isinstance(value, (float, np.floating)) and float(value).is_integer():
            return str(int(value))
        return str(value)

    @classmethod
    def _as_categories(cls, s: pd.Series) -> pd.Series:
        s = s.astype(object)
        return s.where(s.notna(), UNKNOWN_CATEGORY).map(cls._category_label).astype(str)

    def fit(self, df: pd.DataFrame) -> "FeaturePreprocessor":
        expanded = self._expand(df)

        self.medians_ = {}
        for col in self._numeric_columns():
            median = pd.to_numeric(expanded[col], errors="coerce").median()
            self.medians_[col] = 0.0 if pd.isna(median) else float(median)

        self.categories_ = {}
        for col in self._categorical_columns():
            values = set(self._as_categories(expanded[col]).unique())
            values.add(UNKNOWN_CATEGORY)
            self.categories_[col] = sorted(values)

        names = list(self._numeric_columns())
        for col in self._categorical_columns():
            names += [f"{col}_{cat}" for cat in self.categories_[col]]
        duplicated = sorted(n for n, count in Counter(names).items() if count > 1)
        if duplicated:
            raise SchemaError(f"Encoded feature names collide: {duplicated}")
        self.feature_names_ = names

        logger.info(
            f"Preprocessor fitted: {len(self.medians_)} numeric, "
            f"{len(self.categories_)} categorical -> {len(names)} features"
        )
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        if not self.is_fitted:
            raise ModelNotTrainedError("Preprocessor must be fitted before transform")

        expanded = self._expand(df)
        out: Dict[str, pd.Series] = {}

        for col in self._numeric_columns():
            values = pd.to_numeric(expanded[col], errors="coerce").astype(float)
            out[col] = values.fillna(self.medians_[col])

        for col in self._categorical_columns():
            known = self.categories_[col]
            values = self._as_categories(expanded[col])
            unseen = ~values.isin(known)
            if unseen.any():
                logger.debug(f"{int(unseen.sum())} unseen categories in '{col}' mapped to '{UNKNOWN_CATEGORY}'")
                values = values.where(~unseen, UNKNOWN_CATEGORY)
            for cat in known:
                out[f"{col}_{cat}"] = (values == cat).astype(float)

        return pd.DataFrame(out, index=df.index, columns=self.feature_names_)

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        return self.fit(df).transform(df)


def preprocess_dataset(
    df: pd.DataFrame,
    schema: DatasetSchema,
    preprocessor: Optional[FeaturePreprocessor] = None,
) -> Tuple[pd.DataFrame, pd.Series, FeaturePreprocessor]:
    """
    Build (X, y) from a cleaned table. Fits a new preprocessor unless one is given.
    """
    check_columns(df, [schema.target], what="target")
    if preprocessor is None:
        preprocessor = FeaturePreprocessor(schema).fit(df)
    X = preprocessor.transform(df)
    y = df[schema.target]
    return X, y, preprocessor

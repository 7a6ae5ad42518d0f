# Schema definitions for the tabular datasets handled by the pipeline

from pathlib import Path
from typing import List, Optional

import pandas as pd
from pydantic import BaseModel, Field, model_validator

from nb2prod.errors import SchemaError
from nb2prod.io.readers import read_json

# Placeholder category for missing and unseen categorical values
UNKNOWN_CATEGORY: str = "unknown"

# Parts extracted from each datetime feature, in output order
DATETIME_PARTS: tuple[str, ...] = (
    "year", "month", "weekday", "is_weekend", "hour", "season"
)

# Datetime parts that stay categorical after expansion
DATETIME_CATEGORICAL_PARTS: tuple[str, ...] = ("season",)

TASKS: tuple[str, ...] = ("regression", "classification")


class DatasetSchema(BaseModel):
    """Column roles of a raw dataset. Feature order is preserved for sklearn."""

    target: str
    numeric_features: List[str] = Field(default_factory=list)
    categorical_features: List[str] = Field(default_factory=list)
    datetime_features: List[str] = Field(default_factory=list)
    boolean_features: List[str] = Field(default_factory=list)
    id_column: Optional[str] = None
    drop_columns: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_roles(self) -> "DatasetSchema":
        features = self.feature_columns
        if not features:
            raise SchemaError("Schema must declare at least one feature")
        duplicated = sorted({c for c in features if features.count(c) > 1})
        if duplicated:
            raise SchemaError(f"Columns listed in several feature groups: {duplicated}")
        if self.target in features:
            raise SchemaError(f"Target '{self.target}' cannot also be a feature")
        if self.id_column is not None and self.id_column in features + [self.target]:
            raise SchemaError(f"Id column '{self.id_column}' cannot be a feature or the target")
        return self

    @property
    def feature_columns(self) -> List[str]:
        return (
            list(self.numeric_features)
            + list(self.categorical_features)
            + list(self.datetime_features)
            + list(self.boolean_features)
        )

    @property
    def required_columns(self) -> List[str]:
        cols = self.feature_columns + [self.target]
        if self.id_column is not None:
            cols = [self.id_column] + cols
        return cols


def load_schema(path: Path) -> DatasetSchema:
    return DatasetSchema.model_validate(read_json(path))


def infer_schema(df: pd.DataFrame, target: str, id_column: Optional[str] = None) -> DatasetSchema:
    """Build a schema from DataFrame dtypes (the usual notebook starting point)."""
    if target not in df.columns:
        raise KeyError(f"Target column '{target}' not found in data")

    numeric, categorical, datetimes, booleans = [], [], [], []
    for col in df.columns:
        if col in (target, id_column):
            continue
        dtype = df[col].dtype
        if pd.api.types.is_bool_dtype(dtype):
            booleans.append(col)
        elif pd.api.types.is_datetime64_any_dtype(dtype):
            datetimes.append(col)
        elif pd.api.types.is_numeric_dtype(dtype):
            numeric.append(col)
        else:
            categorical.append(col)

    return DatasetSchema(
        target=target,
        numeric_features=numeric,
        categorical_features=categorical,
        datetime_features=datetimes,
        boolean_features=booleans,
        id_column=id_column,
    )

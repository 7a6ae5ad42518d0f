"""Shared fixtures: small synthetic datasets with known structure."""
import json

import numpy as np
import pandas as pd
import pytest

from nb2prod.features.schemas import DatasetSchema
from nb2prod.models.model_training import ModelTrainer


@pytest.fixture
def regression_schema():
    return DatasetSchema(
        target="price",
        numeric_features=["size", "rooms"],
        categorical_features=["city"],
        datetime_features=["listed_at"],
        boolean_features=["has_garden"],
        id_column="listing_id",
    )


@pytest.fixture
def regression_df():
    rng = np.random.RandomState(0)
    n = 120
    size = rng.uniform(20, 200, n)
    rooms = rng.randint(1, 6, n)
    city = rng.choice(["geneva", "lausanne", "bern"], n)
    garden = rng.rand(n) > 0.5
    price = 10 * size + 50 * rooms + np.where(city == "geneva", 500, 0) + 100 * garden + rng.normal(0, 20, n)
    return pd.DataFrame({
        "listing_id": [f"L{i:03d}" for i in range(n)],
        "size": size,
        "rooms": rooms,
        "city": city,
        "listed_at": pd.date_range("2024-01-01", periods=n, freq="D"),
        "has_garden": garden,
        "price": price,
    })


@pytest.fixture
def classification_schema():
    return DatasetSchema(
        target="churned",
        numeric_features=["tenure", "monthly_spend"],
        categorical_features=["plan"],
    )


@pytest.fixture
def classification_df():
    rng = np.random.RandomState(1)
    n = 200
    tenure = rng.randint(1, 60, n)
    spend = rng.uniform(10, 100, n)
    plan = rng.choice(["basic", "pro"], n)
    churned = (tenure < 20).astype(int)
    return pd.DataFrame({
        "tenure": tenure,
        "monthly_spend": spend,
        "plan": plan,
        "churned": churned,
    })


@pytest.fixture
def schema_file(tmp_path, regression_schema):
    path = tmp_path / "schema.json"
    path.write_text(json.dumps(regression_schema.model_dump()), encoding="utf-8")
    return path


@pytest.fixture
def raw_csv(tmp_path, regression_df):
    path = tmp_path / "raw.csv"
    regression_df.to_csv(path, index=False)
    return path


@pytest.fixture
def trained_regression_model(tmp_path, regression_schema, regression_df):
    trainer = ModelTrainer(regression_schema, task="regression", n_estimators=20)
    X_train, X_test, y_train, y_test = trainer.prepare_data(regression_df, test_size=0.2, random_state=0)
    trainer.train(X_train, y_train)
    path = tmp_path / "models" / "model.joblib"
    trainer.save_model(path)
    return path


@pytest.fixture
def trained_classification_model(tmp_path, classification_schema, classification_df):
    trainer = ModelTrainer(classification_schema, task="classification", n_estimators=20)
    X_train, X_test, y_train, y_test = trainer.prepare_data(classification_df, test_size=0.25, random_state=0)
    trainer.train(X_train, y_train)
    path = tmp_path / "models" / "classifier.joblib"
    trainer.save_model(path)
    return path

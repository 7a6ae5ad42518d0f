from pathlib import Path
from typing import Literal, Optional, List

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class QualityGateSettings(BaseModel):
    # Regression thresholds
    min_r2: float = 0.0
    max_mape: Optional[float] = None
    # Classification thresholds
    min_accuracy: float = 0.5
    min_f1: Optional[float] = None


class Settings(BaseSettings):

    # ---- Data roots (handy for pipelines/scripts) ----
    project_root: Path = Path(".").resolve()
    data_root: Path = Path("data")
    raw_dir: Path = data_root / "raw"
    interim_dir: Path = data_root / "interim"
    processed_dir: Path = data_root / "processed"
    reference_dir: Path = data_root / "reference"
    models_dir: Path = data_root / "models"
    registry_dir: Path = data_root / "registry"
    reports_dir: Path = data_root / "reports"

    # ----- Datasets -----
    raw_dataset: Path = raw_dir / "dataset.csv"
    dataset_schema: Path = reference_dir / "schema.json"

    # ---- app/runtime ----
    env: Literal["dev", "staging", "prod"] = "dev"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ---- reproducibility / training ----
    random_seed: int = 42
    test_size: float = Field(default=0.2, gt=0.0, lt=1.0)
    task: Literal["regression", "classification"] = "regression"

    # ---- quality gate ----
    gate: QualityGateSettings = QualityGateSettings()

    # ---- API server configuration ----
    serving_model_path: Optional[Path] = None  # explicit bundle; otherwise latest approved registry version
    api_host: str = "127.0.0.1"  # localhost for dev, 0.0.0.0 for docker/prod
    api_port: int = 8080
    api_reload: bool = False
    api_workers: int = 1
    cors_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file = ".env",
        env_prefix="APP_",      # APP_ENV, APP_LOG_LEVEL, APP_GATE__MIN_R2, etc.
        env_nested_delimiter='__',
        extra = "ignore"
    )


def get_settings() -> Settings:
    """Accessor kept as a function so tests can patch it."""
    return Settings()

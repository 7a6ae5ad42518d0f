"""
Local Model Repository - File-based model access

Loads the bundle from APP_SERVING_MODEL_PATH when set, otherwise from the
latest Approved version of the local model registry.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

from nb2prod.inference.model_inference import Predictor
from nb2prod.registry.model_registry import APPROVED, LocalModelRegistry
from nb2prod.settings import get_settings
from api.repositories.base import BaseModelRepository

logger = logging.getLogger(__name__)


class LocalModelRepository(BaseModelRepository):
    """Repository implementation using local file storage"""

    def __init__(self, model_path: Optional[Path] = None, registry_dir: Optional[Path] = None):
        self.settings = get_settings()
        self.model_path = model_path or self.settings.serving_model_path
        self.registry = LocalModelRegistry(registry_dir or self.settings.registry_dir)
        self._predictor_cache: Optional[Predictor] = None
        self._model_version: Optional[int] = None

    @property
    def model_version(self) -> Optional[int]:
        return self._model_version

    def resolve_model_path(self) -> Tuple[Path, Optional[int]]:
        if self.model_path is not None:
            return Path(self.model_path), None

        latest = self.registry.latest(APPROVED)
        if latest is None:
            raise FileNotFoundError(
                f"No model to serve: APP_SERVING_MODEL_PATH is not set and registry "
                f"{self.registry.root} has no {APPROVED} version. "
                "Run 'nb2prod-pipeline --auto_approve' to register one."
            )
        return Path(latest.path), latest.version

    def get_predictor(self) -> Predictor:
        """Load the predictor once and keep it cached"""
        if self._predictor_cache is not None:
            logger.debug("Returning cached predictor")
            return self._predictor_cache

        path, version = self.resolve_model_path()
        logger.info(f"Loading model from {path}")
        self._predictor_cache = Predictor.from_file(path)
        self._model_version = version
        return self._predictor_cache

"""
API Dependencies - Singleton state management and FastAPI dependency injection

Holds the loaded predictor. The model is loaded once at startup; until it
is, /ping answers 503 so the serving platform keeps routing traffic away.
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Optional

from nb2prod.inference.model_inference import Predictor
from api.repositories.base import BaseModelRepository
from api.repositories.local import LocalModelRepository

logger = logging.getLogger(__name__)


class AppState:
    """
    Global application state - holds the loaded model.

    Singleton pattern: one instance shared across all requests.
    """

    def __init__(self):
        self.repository: Optional[BaseModelRepository] = None
        self.predictor: Optional[Predictor] = None
        self.last_error: Optional[str] = None
        self._initialized = False
        self._initialization_lock = threading.Lock()

    def initialize(self, repository: Optional[BaseModelRepository] = None) -> None:
        """Load the predictor through the repository (idempotent)."""
        with self._initialization_lock:
            if self._initialized:
                logger.debug("AppState already initialized")
                return

            logger.info("Initializing AppState...")
            try:
                self.repository = repository or LocalModelRepository()
                self.predictor = self.repository.get_predictor()
                self.last_error = None
                self._initialized = True
                logger.info(f"Model loaded: {self.predictor.model_info()['estimator']} ({self.predictor.task})")
            except Exception as e:
                self.last_error = f"{type(e).__name__}: {e}"
                logger.error(f"Failed to initialize AppState: {e}", exc_info=True)
                raise

    @property
    def model_version(self) -> Optional[int]:
        return self.repository.model_version if self.repository is not None else None

    def is_ready(self) -> bool:
        """Check if app is ready to serve requests"""
        return self._initialized and self.predictor is not None

    def get_status(self) -> dict:
        return {
            "initialized": self._initialized,
            "ready": self.is_ready(),
            "model_loaded": self.predictor is not None,
            "model_version": self.model_version,
            "last_error": self.last_error,
        }


# Global singleton instance
app_state = AppState()


def get_app_state() -> AppState:
    """
    FastAPI dependency to access app state.

    Usage in routers:
        @router.post("/example")
        async def example(state: AppState = Depends(get_app_state)):
            state.predictor.predict(df)
    """
    return app_state


@asynccontextmanager
async def lifespan_handler(app):
    """
    FastAPI lifespan context manager for startup/shutdown.

    A missing model does not stop the server: /ping reports 503 instead.
    """
    logger.info("FastAPI starting up...")
    try:
        await asyncio.to_thread(app_state.initialize)
    except Exception as e:
        logger.warning(f"Model not loaded at startup: {e}")

    yield

    logger.info("FastAPI shutting down...")

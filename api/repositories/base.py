"""
Base Repository - Abstract interface for model access

Allows swapping the local registry for another model store without
changing the rest of the API code.
"""

from abc import ABC, abstractmethod
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from nb2prod.inference.model_inference import Predictor


class BaseModelRepository(ABC):
    """Abstract base class for model repositories"""

    @abstractmethod
    def get_predictor(self) -> "Predictor":
        """
        Load the model bundle to serve.

        Returns:
            Predictor wrapping the trained model and its preprocessor
        """
        pass

    @property
    @abstractmethod
    def model_version(self) -> Optional[int]:
        """Registry version of the served model, None when loaded from an explicit path."""
        pass

"""
Seeding helpers so that pipeline runs with the same seed give the same model.
"""

import logging
import os
import random
from contextlib import contextmanager
from typing import Iterator, Optional

import numpy as np

from nb2prod.settings import get_settings

logger = logging.getLogger(__name__)


def resolve_seed(seed: Optional[int] = None) -> int:
    """Explicit seed, else APP_RANDOM_SEED."""
    return get_settings().random_seed if seed is None else int(seed)


def set_global_seed(seed: int) -> None:
    """
    Seed Python's `random`, NumPy's legacy global state and PYTHONHASHSEED.

    sklearn estimators still need an explicit random_state to be reproducible.
    """
    logger.info(f"Setting global random seed to {seed}")
    random.seed(seed)
    np.random.seed(seed)
    os.environ['PYTHONHASHSEED'] = str(seed)


@contextmanager
def seeded(seed: int) -> Iterator[int]:
    """
    Seed the global generators for the duration of a block, then restore them.

    Example:
        with seeded(123):
            sample = df.sample(frac=0.1)
    """
    random_state = random.getstate()
    numpy_state = np.random.get_state()
    set_global_seed(seed)
    try:
        yield seed
    finally:
        random.setstate(random_state)
        np.random.set_state(numpy_state)

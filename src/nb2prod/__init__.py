"""Turn exploratory notebooks into tested preprocessing, training and inference pipelines."""

__version__ = "0.1.0"

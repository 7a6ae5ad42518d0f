"""Exceptions raised by the nb2prod pipeline stages."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nb2prod.pipelines.quality_gate import GateResult


class ModelNotTrainedError(ValueError):
    """Raised when a model or preprocessor is used before fit/load."""


class SchemaError(ValueError):
    """Raised for an inconsistent dataset schema."""


class NotebookFormatError(ValueError):
    """Raised when a notebook file cannot be parsed as nbformat 4+."""


class QualityGateError(RuntimeError):
    """Raised when trained model metrics do not pass the quality gate."""

    def __init__(self, result: "GateResult"):
        self.result = result
        failed = ", ".join(c.describe() for c in result.failed_checks)
        super().__init__(f"Quality gate failed: {failed}")

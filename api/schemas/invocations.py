"""
Invocation Schemas - Request/response models for the scoring endpoint
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class InvocationRequest(BaseModel):
    """Rows to score, one dict per row keyed by raw feature column name"""

    records: List[Dict[str, Any]] = Field(
        ...,
        min_length=1,
        max_length=10_000,
        description="Raw feature rows, same columns as the training data (target not needed)"
    )
    include_probabilities: bool = Field(
        default=True,
        description="Return class probabilities (classification models only)"
    )


class InvocationResponse(BaseModel):
    predictions: List[Any] = Field(..., description="One prediction per input record, same order")
    probabilities: Optional[List[Dict[str, float]]] = Field(
        None,
        description="Per-class probabilities, keyed 'probability_<class>'"
    )
    n_records: int
    model_version: Optional[int] = Field(None, description="Registry version of the served model")

"""
Invocations Router - /ping and /invocations

These two routes follow the usual model-serving container contract: the
platform polls GET /ping for health and POSTs scoring requests to
/invocations.
"""

import logging

import numpy as np
import pandas as pd
from fastapi import APIRouter, Depends, HTTPException

from api.schemas.invocations import InvocationRequest, InvocationResponse
from api.dependencies import get_app_state, AppState

router = APIRouter()
logger = logging.getLogger(__name__)


def _to_python(values: np.ndarray) -> list:
    return [v.item() if hasattr(v, "item") else v for v in values]


@router.get("/ping")
async def ping(state: AppState = Depends(get_app_state)):
    if not state.is_ready():
        raise HTTPException(status_code=503, detail="Model not loaded")
    return {"status": "healthy"}


@router.post("/invocations", response_model=InvocationResponse)
def invocations(
    request: InvocationRequest,
    state: AppState = Depends(get_app_state)
) -> InvocationResponse:
    """
    Score raw records with the served model.

    Raises:
        HTTPException: 503 if the model is not loaded, 400 for invalid records
    """
    if not state.is_ready():
        raise HTTPException(
            status_code=503,
            detail="Service not ready. Model is not loaded."
        )

    df = pd.DataFrame.from_records(request.records)
    predictor = state.predictor

    try:
        predictions = _to_python(predictor.predict(df))
        probabilities = None
        if request.include_probabilities and predictor.task == "classification":
            probabilities = predictor.predict_proba(df).to_dict(orient="records")

    except (KeyError, ValueError) as e:
        # User-facing errors (missing columns, bad values)
        message = e.args[0] if isinstance(e, KeyError) and e.args else str(e)
        logger.warning(f"Invocation rejected: {message}")
        raise HTTPException(status_code=400, detail=str(message))

    except Exception as e:
        logger.error(f"Invocation failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to score records: {str(e)}"
        )

    logger.info(f"Scored {len(predictions)} records")
    return InvocationResponse(
        predictions=predictions,
        probabilities=probabilities,
        n_records=len(predictions),
        model_version=state.model_version,
    )

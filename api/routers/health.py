"""
Health Router - Health checks and model information endpoints
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Dict, Any

from api.dependencies import get_app_state, AppState

router = APIRouter()


@router.get("/ready")
async def health_check_ready(state: AppState = Depends(get_app_state)) -> Dict[str, Any]:
    """
    Readiness check.

    Returns ready=True once the model is loaded.
    """
    return {
        "ready": state.is_ready(),
        "details": state.get_status()
    }


@router.get("/model-info")
async def get_model_info(state: AppState = Depends(get_app_state)) -> Dict[str, Any]:
    """
    Get information about the served model.
    """
    if not state.is_ready():
        raise HTTPException(status_code=503, detail="Model not loaded")

    info = state.predictor.model_info()
    info["model_version"] = state.model_version
    return info

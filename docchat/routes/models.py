"""
Model-related API routes.
Handles listing available LLM models.
"""
from fastapi import APIRouter, Depends

from ..config import Settings, get_settings
from ..services.model_service import default_model, get_available_models

router = APIRouter(prefix="/api", tags=["models"])


@router.get("/models")
def list_available_models(settings: Settings = Depends(get_settings)):
    """
    Return all supported LLM models grouped by provider, plus the default.

    Example response:
    {
        "models": {"openai": ["gpt-4o-mini"], "ollama": ["qwen2.5:7b"]},
        "default": "openai:gpt-4o-mini"
    }
    """
    provider, model_name = default_model(settings)
    return {"models": get_available_models(settings), "default": f"{provider}:{model_name}"}

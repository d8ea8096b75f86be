"""
Model service for LLM provider management.
Handles model resolution and listing available models.
"""
from typing import Dict, List, Optional, Tuple

from ..chat_client import ChatClient
from ..config import Settings

PROVIDERS = ("openai", "ollama")


def get_available_models(settings: Settings) -> Dict[str, List[str]]:
    """
    Get all available models grouped by provider.
    
    Returns:
        Dictionary with provider names as keys and model lists as values
    """
    return {
        "openai": [settings.openai_model],
        "ollama": list(settings.ollama_models),
    }


def default_model(settings: Settings) -> Tuple[str, str]:
    if settings.chat_provider == "ollama" and settings.ollama_models:
        return "ollama", settings.ollama_models[0]
    return "openai", settings.openai_model


def resolve_model(settings: Settings, model_string: Optional[str] = None) -> Tuple[str, str]:
    """
    Resolve a model string to provider and model name.
    
    Args:
        model_string: Format "provider:model_name" (e.g., "openai:gpt-4o-mini")
                     or None for the configured default
    
    Returns:
        Tuple of (provider, model_name)
        
    Examples:
        >>> resolve_model(settings, "ollama:qwen2.5:7b")
        ("ollama", "qwen2.5:7b")
    """
    if not model_string:
        return default_model(settings)

    provider, _, model_name = model_string.partition(":")
    if provider not in PROVIDERS or not model_name:
        # Fallback to default if format is unexpected
        return default_model(settings)
    return provider, model_name


def validate_model(settings: Settings, provider: str, model_name: str) -> bool:
    """Check if a model is listed for its provider."""
    return model_name in get_available_models(settings).get(provider, [])


def build_chat_client(settings: Settings, model_string: Optional[str] = None) -> ChatClient:
    """Chat client for a requested model; unknown models fall back to the default."""
    provider, model_name = resolve_model(settings, model_string)
    if not validate_model(settings, provider, model_name):
        provider, model_name = default_model(settings)
    return ChatClient(provider, model_name, settings, buffered=settings.chat_buffered)

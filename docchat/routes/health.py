from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ..config import Settings, get_settings
from ..dependencies import get_vector_store
from ..vector_store import VectorStore

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health(settings: Settings = Depends(get_settings), vector_store: VectorStore = Depends(get_vector_store)):
    """Liveness plus which backends this instance is wired to."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "backends": {
            "embedding": {"backend": settings.embed_backend, "model": settings.embed_model},
            "vector_store": {"backend": settings.vector_backend, "client": type(vector_store).__name__},
            "chat": {
                "provider": settings.chat_provider,
                "openai_configured": bool(settings.openai_api_key),
                "buffered": settings.chat_buffered,
            },
            "mail": "resend" if settings.resend_api_key else "mailpit",
        },
    }

from functools import lru_cache

from openai import AsyncOpenAI, OpenAI

from .config import Settings


def _api_key(settings: Settings) -> str:
    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY is not set. Put it in env or .env (server-side only).")
    return settings.openai_api_key


@lru_cache()
def get_openai_client(settings: Settings) -> OpenAI:
    """Blocking client, used from worker threads (embeddings)."""
    return OpenAI(api_key=_api_key(settings))


@lru_cache()
def get_async_openai_client(settings: Settings) -> AsyncOpenAI:
    """Async client, used by the chat stream."""
    return AsyncOpenAI(api_key=_api_key(settings))

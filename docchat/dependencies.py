"""
FastAPI dependencies.
Clients are built once from Settings and handed to routes explicitly, so
tests can swap them through `app.dependency_overrides`.
"""
from functools import lru_cache, partial
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status

from .chat_client import ChatClient
from .config import Settings, get_settings
from .db import engine
from .embedding import Embedder
from .models import User
from .services import auth_service
from .services.model_service import build_chat_client
from .vector_store import VectorStore, build_vector_store

SESSION_COOKIE = "session_token"

ChatClientFactory = Callable[[Optional[str]], ChatClient]


@lru_cache()
def get_embedder() -> Embedder:
    return Embedder.from_settings(get_settings())


@lru_cache()
def get_vector_store() -> VectorStore:
    return build_vector_store(get_settings(), engine)


def get_chat_client_factory(settings: Settings = Depends(get_settings)) -> ChatClientFactory:
    return partial(build_chat_client, settings)


def session_token_from_request(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(SESSION_COOKIE)


def get_current_user(request: Request, settings: Settings = Depends(get_settings)) -> User:
    """Session user, or a uniform 401 whatever the reason."""
    token = session_token_from_request(request)
    user = auth_service.get_user_for_token(token, settings) if token else None
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user

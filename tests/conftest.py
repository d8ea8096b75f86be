"""
Shared fixtures: in-memory SQLite, in-memory vector index and fake model
backends wired in through FastAPI dependency overrides.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["VECTOR_BACKEND"] = "memory"
os.environ["EMBED_PRELOAD"] = "false"
os.environ["CHAT_PROVIDER"] = "openai"
os.environ["LOG_LEVEL"] = "WARNING"

import re
import zlib

import numpy as np
import pytest
from fastapi.testclient import TestClient

from docchat.config import get_settings
from docchat.db.migrations import drop_all, run_migrations
from docchat.dependencies import get_chat_client_factory, get_embedder, get_vector_store
from docchat.main import app
from docchat.services import auth_service
from docchat.vector_store import MemoryVectorStore

EMBED_DIM = 64


class FakeEmbedder:
    """Bag-of-words hashing embedder: texts sharing words score higher."""

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def embed(self, texts):
        self.calls.append(list(texts))
        if self.fail:
            raise RuntimeError("embedding service unavailable")
        vectors = []
        for text in texts:
            v = np.zeros(EMBED_DIM)
            for word in re.findall(r"\w+", text.lower()):
                v[zlib.crc32(word.encode()) % EMBED_DIM] += 1.0
            norm = np.linalg.norm(v)
            vectors.append((v / norm if norm else v).tolist())
        return vectors


class FakeChatClient:
    def __init__(self, fragments=("Acme was ", "founded in 2019."), fail_on_start=False,
                 fail_mid_stream=False, on_start=None):
        self.fragments = list(fragments)
        self.fail_on_start = fail_on_start
        self.fail_mid_stream = fail_mid_stream
        self.on_start = on_start
        self.calls = []

    async def complete(self, messages, system_prompt=None):
        return "".join(self.fragments)

    async def stream(self, messages, system_prompt=None):
        self.calls.append({"messages": [dict(m) for m in messages], "system_prompt": system_prompt})
        if self.on_start:
            self.on_start()
        if self.fail_on_start:
            raise RuntimeError("model unavailable")
        for i, fragment in enumerate(self.fragments):
            if self.fail_mid_stream and i == 1:
                raise RuntimeError("connection reset")
            yield fragment


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture(autouse=True)
def database():
    drop_all()
    run_migrations()
    yield
    drop_all()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def vector_store():
    return MemoryVectorStore()


@pytest.fixture
def chat_client():
    return FakeChatClient()


@pytest.fixture
def client(embedder, vector_store, chat_client):
    app.dependency_overrides[get_embedder] = lambda: embedder
    app.dependency_overrides[get_vector_store] = lambda: vector_store
    app.dependency_overrides[get_chat_client_factory] = lambda: (lambda model=None: chat_client)
    yield TestClient(app)
    app.dependency_overrides.clear()


def sign_in(email):
    """Run the real OTP flow without the mailer; returns (user, auth headers)."""
    settings = get_settings()
    otp = auth_service.create_otp(email, settings)
    user, session = auth_service.verify_otp(email, otp, settings)
    return user, {"Authorization": f"Bearer {session.token}"}


@pytest.fixture
def user_and_headers():
    return sign_in("alice@docchat.dev")


@pytest.fixture
def user(user_and_headers):
    return user_and_headers[0]


@pytest.fixture
def auth_headers(user_and_headers):
    return user_and_headers[1]


@pytest.fixture
def other_headers():
    return sign_in("bob@docchat.dev")[1]

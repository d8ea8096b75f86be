"""
Application settings.
Reads environment variables (and a local .env file in development) into a
single Settings object that is passed explicitly to clients and handlers.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()  # loads .env in local dev; no effect in Docker if env vars provided


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_list(name: str, default: str) -> Tuple[str, ...]:
    return tuple(m.strip() for m in os.getenv(name, default).split(",") if m.strip())


def _default_vector_backend(database_url: str) -> str:
    # pgvector needs PostgreSQL; SQLite deployments index in process
    return "pgvector" if database_url.startswith("postgresql") else "memory"


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./docchat.db"

    # Embeddings
    embed_backend: str = "sentence-transformers"
    embed_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embed_dimensions: Optional[int] = None
    embed_preload: bool = True

    # Vector index
    # "memory" unless the database is PostgreSQL, see from_env
    vector_backend: str = "memory"
    vector_dimensions: int = 384

    # Chat models
    chat_provider: str = "openai"
    chat_buffered: bool = False
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    ollama_url: str = "http://ollama:11434"
    ollama_models: Tuple[str, ...] = ("qwen2.5:7b",)

    # Retrieval / chat
    chunk_size: int = 500
    chunk_overlap: int = 50
    rag_top_k: int = 3
    history_limit: int = 10

    # Auth
    session_ttl_seconds: int = 60 * 60 * 24 * 7
    session_update_age_seconds: int = 60 * 60 * 24
    otp_ttl_seconds: int = 600
    otp_length: int = 6
    otp_max_attempts: int = 3

    # Mail
    resend_api_key: Optional[str] = None
    smtp_host: str = "localhost"
    mailpit_port: int = 18025
    mail_from_name: str = "Docs Chat"
    mail_from_address: str = "noreply@docchat.local"

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        database_url = os.getenv("DATABASE_URL", cls.database_url)
        return cls(
            database_url=database_url,
            embed_backend=os.getenv("EMBED_BACKEND", cls.embed_backend),
            embed_model=os.getenv("EMBED_MODEL", cls.embed_model),
            embed_dimensions=_env_int("EMBED_DIMENSIONS", None),
            embed_preload=_env_bool("EMBED_PRELOAD", cls.embed_preload),
            vector_backend=os.getenv("VECTOR_BACKEND") or _default_vector_backend(database_url),
            vector_dimensions=_env_int("VECTOR_DIMENSIONS", cls.vector_dimensions),
            chat_provider=os.getenv("CHAT_PROVIDER", cls.chat_provider),
            chat_buffered=_env_bool("CHAT_BUFFERED", cls.chat_buffered),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", cls.openai_model),
            ollama_url=os.getenv("OLLAMA_URL", cls.ollama_url),
            ollama_models=_env_list("OLLAMA_MODELS", "qwen2.5:7b"),
            chunk_size=_env_int("CHUNK_SIZE", cls.chunk_size),
            chunk_overlap=_env_int("CHUNK_OVERLAP", cls.chunk_overlap),
            rag_top_k=_env_int("RAG_TOP_K", cls.rag_top_k),
            history_limit=_env_int("HISTORY_LIMIT", cls.history_limit),
            session_ttl_seconds=_env_int("SESSION_TTL_SECONDS", cls.session_ttl_seconds),
            otp_ttl_seconds=_env_int("OTP_TTL_SECONDS", cls.otp_ttl_seconds),
            resend_api_key=os.getenv("RESEND_API_KEY"),
            smtp_host=os.getenv("SMTP_HOST", cls.smtp_host),
            mailpit_port=_env_int("MAILPIT_PORT", cls.mailpit_port),
            mail_from_address=os.getenv("MAIL_FROM", cls.mail_from_address),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            json_logs=_env_bool("JSON_LOGS", cls.json_logs),
        )


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, read once from the environment."""
    return Settings.from_env()

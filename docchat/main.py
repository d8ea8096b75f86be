"""
Main FastAPI application entry point.
Responsibilities: App setup, router registration, error handlers, startup hooks.
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .routes import auth, chat, documents, health, models, projects
from .config import get_settings
from .db.migrations import run_migrations
from .dependencies import get_embedder, get_vector_store
from .logging_config import logger

# -------------------------------------------------
# App setup
# -------------------------------------------------

app = FastAPI(title="Docs Chat", version="1.0.0")

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(projects.router)
app.include_router(documents.router)
app.include_router(chat.router)
app.include_router(models.router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # no field-level detail leaves the server
    logger.info("Rejected request body", path=request.url.path)
    return JSONResponse(status_code=400, content={"detail": "Invalid request body"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled API error", path=request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.on_event("startup")
async def startup_event():
    """Create tables, prepare the vector index and warm the embedding model."""
    settings = get_settings()

    logger.info("Running database migrations...")
    run_migrations()

    get_vector_store().ensure_schema()
    logger.info("Vector store ready", backend=settings.vector_backend)

    if settings.embed_preload:
        try:
            get_embedder().preload()
            logger.info("Embedding model ready", model=settings.embed_model)
        except Exception as e:
            # first upload will retry the load
            logger.error("Embedding model preload failed", exc_info=e)


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Application shutting down")

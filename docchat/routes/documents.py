"""
Document management API routes.
Handles document upload, listing, retrieval, deletion and re-indexing.
"""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from ..config import Settings, get_settings
from ..dependencies import get_current_user, get_embedder, get_vector_store
from ..embedding import Embedder
from ..errors import ConflictError, NotFoundError
from ..logging_config import logger
from ..models import User
from ..schemas import DocumentCreate
from ..services import document_service
from ..text_extraction import read_any
from ..vector_store import VectorStore

router = APIRouter(prefix="/api/documents", tags=["documents"])

MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MB per file


async def _read_upload(request: Request) -> DocumentCreate:
    """Parse a multipart (file) or JSON (title/content) upload into one shape."""
    content_type = request.headers.get("Content-Type", "")

    if "multipart/form-data" in content_type:
        form = await request.form()
        f = form.get("file")
        if f is None or isinstance(f, str):
            raise HTTPException(status_code=400, detail="File is required")

        data = await f.read()
        if len(data) > MAX_FILE_SIZE_BYTES:
            raise HTTPException(
                status_code=400,
                detail=f"File is too large. Max size is {MAX_FILE_SIZE_BYTES // (1024 * 1024)} MB.",
            )
        try:
            text, mime_type = read_any(data, f.content_type or "", f.filename or "")
        except Exception as e:
            logger.error("Error extracting text", filename=f.filename, exc_info=e)
            raise HTTPException(status_code=400, detail="Could not extract text from file")

        if not text.strip():
            raise HTTPException(status_code=400, detail="Document has no extractable text")

        project_id = form.get("project_id")
        return DocumentCreate(
            title=str(form.get("title") or f.filename or "Untitled"),
            content=text,
            mime_type=mime_type,
            project_id=str(project_id) if project_id else None,
        )

    try:
        return DocumentCreate.model_validate(await request.json())
    except (ValueError, ValidationError):
        raise HTTPException(status_code=400, detail="Invalid JSON")


# ==================== Document Upload ====================

@router.post("", status_code=202)
async def upload_document(
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    embedder: Embedder = Depends(get_embedder),
    vector_store: VectorStore = Depends(get_vector_store),
    settings: Settings = Depends(get_settings),
):
    """
    Upload one document as multipart (`file`, optional `title`, `project_id`)
    or JSON (`title`, `content`, optional `mime_type`, `project_id`).

    Chunking, embedding and indexing run after the response is sent; poll
    the document's `status` to see the outcome.
    """
    body = await _read_upload(request)

    try:
        doc = await run_in_threadpool(
            document_service.create_document,
            user.id, body.title, body.content, body.mime_type, body.project_id,
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")

    background_tasks.add_task(document_service.process_document, doc["id"], embedder, vector_store, settings)

    return {
        "id": doc["id"],
        "status": doc["status"],
        "project_id": doc["project_id"],
        "message": "Document uploaded and processing started",
    }


# ==================== Document Listing ====================

@router.get("")
def list_documents(project_id: Optional[str] = None, user: User = Depends(get_current_user)):
    """The user's documents with chunk counts, newest first."""
    documents = document_service.list_documents(user.id, project_id)
    logger.info("Listed documents", count=len(documents))
    return {"documents": documents}


@router.get("/{document_id}")
def get_document(document_id: str, user: User = Depends(get_current_user)):
    try:
        return {"document": document_service.get_document(user.id, document_id)}
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")


# ==================== Deletion & Re-index ====================

@router.delete("/{document_id}")
def delete_document(
    document_id: str,
    user: User = Depends(get_current_user),
    vector_store: VectorStore = Depends(get_vector_store),
):
    """
    Deletes a document's vectors, then the document and its chunks.
    A vector-store failure is logged and the rows are deleted anyway.
    """
    try:
        document_service.delete_document(user.id, document_id, vector_store)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")
    return {"success": True, "deleted": document_id}


@router.post("/{document_id}/reindex", status_code=202)
def reindex_document(
    document_id: str,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    embedder: Embedder = Depends(get_embedder),
    vector_store: VectorStore = Depends(get_vector_store),
    settings: Settings = Depends(get_settings),
):
    """Drop the document's vectors and chunks and run the pipeline again."""
    try:
        doc = document_service.reset_for_reindex(user.id, document_id, vector_store)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")
    except ConflictError:
        raise HTTPException(status_code=409, detail="Document is already being processed")

    background_tasks.add_task(document_service.process_document, document_id, embedder, vector_store, settings)
    return {"id": doc["id"], "status": doc["status"], "message": "Re-indexing started"}

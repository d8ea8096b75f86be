"""
Document service.
Owns the document lifecycle: creation with status `processing`, the
background chunk -> embed -> index pipeline that moves it to `ready` or
`failed`, deletion (vectors first, then rows) and re-indexing.
"""
from typing import List, Optional

from sqlalchemy import delete, func, select, update

from ..config import Settings
from ..db import SessionLocal
from ..embedding import Embedder
from ..errors import ConflictError, NotFoundError
from ..logging_config import logger
from ..models import Document, DocumentChunk, DocumentStatus, utcnow
from ..text_extraction import chunk_text
from ..vector_store import VectorRecord, VectorStore
from .project_service import ensure_default_project, get_owned_project


def chunk_id_for(document_id: str, index: int) -> str:
    return f"{document_id}-chunk-{index}"


def vector_id_for(document_id: str, index: int) -> str:
    return f"vec-{chunk_id_for(document_id, index)}"


def serialize_document(doc: Document, include_content: bool = False, num_chunks: Optional[int] = None) -> dict:
    data = {
        "id": doc.id,
        "title": doc.title,
        "mime_type": doc.mime_type,
        "status": doc.status,
        "project_id": doc.project_id,
        "created_at": doc.created_at.isoformat(),
        "updated_at": doc.updated_at.isoformat(),
    }
    if include_content:
        data["content"] = doc.content
    if num_chunks is not None:
        data["num_chunks"] = num_chunks
    return data


def _get_owned_document(db, user_id: str, document_id: str) -> Document:
    doc = db.get(Document, document_id)
    if doc is None or doc.user_id != user_id:
        raise NotFoundError("Document not found")
    return doc


# ==================== Creation & Listing ====================

def create_document(user_id: str, title: str, content: str, mime_type: str = "text/plain",
                    project_id: Optional[str] = None) -> dict:
    """
    Persist a new document with status `processing`.

    Documents without an explicit project go to the user's default project.
    """
    with SessionLocal() as db, db.begin():
        if project_id:
            project = get_owned_project(db, user_id, project_id)
        else:
            project, _ = ensure_default_project(db, user_id)

        doc = Document(
            user_id=user_id,
            project_id=project.id,
            title=title,
            content=content,
            mime_type=mime_type or "text/plain",
            status=DocumentStatus.PROCESSING.value,
        )
        db.add(doc)
        db.flush()
        data = serialize_document(doc)

    logger.info("Document created", document_id=data["id"], project_id=data["project_id"],
                size=len(content))
    return data


def list_documents(user_id: str, project_id: Optional[str] = None) -> List[dict]:
    chunk_counts = (
        select(DocumentChunk.document_id, func.count(DocumentChunk.id).label("n"))
        .group_by(DocumentChunk.document_id)
        .subquery()
    )
    stmt = (
        select(Document, func.coalesce(chunk_counts.c.n, 0))
        .outerjoin(chunk_counts, chunk_counts.c.document_id == Document.id)
        .where(Document.user_id == user_id)
        .order_by(Document.created_at.desc())
    )
    if project_id:
        stmt = stmt.where(Document.project_id == project_id)

    with SessionLocal() as db:
        rows = db.execute(stmt).all()
    return [serialize_document(doc, num_chunks=n) for doc, n in rows]


def get_document(user_id: str, document_id: str) -> dict:
    with SessionLocal() as db:
        doc = _get_owned_document(db, user_id, document_id)
        return serialize_document(doc, include_content=True)


def ready_document_ids(user_id: str, project_id: Optional[str] = None) -> List[str]:
    """Ids of the user's indexed documents, optionally limited to one project."""
    stmt = select(Document.id).where(
        Document.user_id == user_id,
        Document.status == DocumentStatus.READY.value,
    )
    if project_id:
        stmt = stmt.where(Document.project_id == project_id)
    with SessionLocal() as db:
        return list(db.execute(stmt).scalars().all())


# ==================== Pipeline ====================

def _finish(document_id: str, status: DocumentStatus, chunks: Optional[List[DocumentChunk]] = None) -> bool:
    """
    Move a document out of `processing`. Rows in any other state are left
    alone, so a terminal status never flips to another one.
    """
    with SessionLocal() as db, db.begin():
        result = db.execute(
            update(Document)
            .where(Document.id == document_id, Document.status == DocumentStatus.PROCESSING.value)
            .values(status=status.value, updated_at=utcnow())
        )
        if result.rowcount == 0:
            # document deleted or re-claimed while we were working
            return False
        if chunks:
            db.add_all(chunks)
    return True


def process_document(document_id: str, embedder: Embedder, vector_store: VectorStore,
                     settings: Settings) -> None:
    """
    Background task: chunk -> embed (one batch) -> upsert vectors -> chunk rows -> `ready`.

    Any exception marks the document `failed`; it is logged, never re-raised.
    """
    with SessionLocal() as db:
        doc = db.get(Document, document_id)
        content = doc.content if doc is not None else None
    if content is None:
        logger.warning("Document vanished before processing", document_id=document_id)
        return

    try:
        parts = chunk_text(content, settings.chunk_size, settings.chunk_overlap)
        vectors = embedder.embed(parts)

        records = [
            VectorRecord(
                id=vector_id_for(document_id, i),
                values=vector,
                metadata={"documentId": document_id, "chunkIndex": str(i), "content": part},
            )
            for i, (part, vector) in enumerate(zip(parts, vectors))
        ]
        vector_store.upsert(records)

        chunks = [
            DocumentChunk(
                id=chunk_id_for(document_id, i),
                document_id=document_id,
                chunk_index=i,
                content=part,
                vector_id=record.id,
            )
            for i, (part, record) in enumerate(zip(parts, records))
        ]
        if _finish(document_id, DocumentStatus.READY, chunks):
            logger.info("Document processed", document_id=document_id, chunks=len(chunks))
        else:
            # deleted or re-claimed meanwhile; nothing else references these vectors
            logger.warning("Document left processing state during indexing", document_id=document_id)
            _delete_vectors_quietly(vector_store, [r.id for r in records], document_id)
    except Exception as e:
        logger.error("Document processing failed", document_id=document_id, exc_info=e)
        _finish(document_id, DocumentStatus.FAILED)


# ==================== Deletion & Re-index ====================

def _delete_vectors_quietly(vector_store: VectorStore, vector_ids: List[str], document_id: str) -> None:
    if not vector_ids:
        return
    try:
        vector_store.delete(vector_ids)
    except Exception as e:
        # orphaned vectors are accepted; the metadata rows still go
        logger.error("Failed to delete vectors", document_id=document_id,
                     count=len(vector_ids), exc_info=e)


def _vector_ids(db, document_id: str) -> List[str]:
    return list(db.execute(
        select(DocumentChunk.vector_id)
        .where(DocumentChunk.document_id == document_id, DocumentChunk.vector_id.isnot(None))
        .order_by(DocumentChunk.chunk_index)
    ).scalars().all())


def delete_document(user_id: str, document_id: str, vector_store: VectorStore) -> None:
    """Delete a document's vectors (errors tolerated), then the document and its chunks."""
    with SessionLocal() as db:
        _get_owned_document(db, user_id, document_id)
        vector_ids = _vector_ids(db, document_id)

    _delete_vectors_quietly(vector_store, vector_ids, document_id)

    with SessionLocal() as db, db.begin():
        db.execute(delete(DocumentChunk).where(DocumentChunk.document_id == document_id))
        db.execute(delete(Document).where(Document.id == document_id))

    logger.info("Document deleted", document_id=document_id, vectors=len(vector_ids))


def reset_for_reindex(user_id: str, document_id: str, vector_store: VectorStore) -> dict:
    """
    Claim a finished document for re-indexing: status back to `processing`,
    existing vectors and chunk rows removed. The caller schedules the pipeline.

    Raises:
        NotFoundError: unknown document or owned by someone else
        ConflictError: the document is already being processed
    """
    with SessionLocal() as db, db.begin():
        claimed = db.execute(
            update(Document)
            .where(
                Document.id == document_id,
                Document.user_id == user_id,
                Document.status != DocumentStatus.PROCESSING.value,
            )
            .values(status=DocumentStatus.PROCESSING.value, updated_at=utcnow())
        ).rowcount

    with SessionLocal() as db:
        doc = _get_owned_document(db, user_id, document_id)
        if not claimed:
            raise ConflictError("Document is already being processed")
        vector_ids = _vector_ids(db, document_id)

    _delete_vectors_quietly(vector_store, vector_ids, document_id)

    with SessionLocal() as db, db.begin():
        db.execute(delete(DocumentChunk).where(DocumentChunk.document_id == document_id))

    logger.info("Document queued for re-index", document_id=document_id, old_vectors=len(vector_ids))
    return serialize_document(doc)

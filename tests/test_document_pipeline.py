import pytest
from sqlalchemy import select

from docchat.db import SessionLocal
from docchat.errors import ConflictError, NotFoundError
from docchat.models import Document, DocumentChunk, DocumentStatus
from docchat.services import document_service
from docchat.vector_store import MemoryVectorStore

from .conftest import FakeEmbedder

LONG_TEXT = " ".join(f"sentence number {i} about the Acme rollout." for i in range(60))


class RecordingVectorStore(MemoryVectorStore):
    def __init__(self, fail_delete=False):
        super().__init__()
        self.fail_delete = fail_delete
        self.deleted = []

    def delete(self, ids):
        self.deleted.extend(ids)
        if self.fail_delete:
            raise ConnectionError("index unreachable")
        super().delete(ids)


def _chunks(document_id):
    with SessionLocal() as db:
        return db.execute(
            select(DocumentChunk)
            .where(DocumentChunk.document_id == document_id)
            .order_by(DocumentChunk.chunk_index)
        ).scalars().all()


def _status(document_id):
    with SessionLocal() as db:
        return db.get(Document, document_id).status


@pytest.fixture
def document(user):
    return document_service.create_document(user.id, "Rollout notes", LONG_TEXT)


def test_new_document_starts_processing(document):
    assert document["status"] == "processing"
    assert document["project_id"] is not None
    assert _chunks(document["id"]) == []


def test_pipeline_indexes_every_chunk(document, settings):
    embedder = FakeEmbedder()
    store = MemoryVectorStore()

    document_service.process_document(document["id"], embedder, store, settings)

    chunks = _chunks(document["id"])
    assert _status(document["id"]) == DocumentStatus.READY.value
    assert len(chunks) > 1
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
    assert all(c.vector_id for c in chunks)
    assert len(store) == len(chunks)
    # one batched embedding call for the whole document
    assert len(embedder.calls) == 1
    assert len(embedder.calls[0]) == len(chunks)


def test_embedding_failure_marks_document_failed(document, settings):
    store = MemoryVectorStore()

    document_service.process_document(document["id"], FakeEmbedder(fail=True), store, settings)

    assert _status(document["id"]) == DocumentStatus.FAILED.value
    assert _chunks(document["id"]) == []
    assert len(store) == 0


def test_terminal_status_never_changes(document, settings):
    document_service.process_document(document["id"], FakeEmbedder(), MemoryVectorStore(), settings)
    assert _status(document["id"]) == "ready"

    # a late failure from a stale run must not flip it
    document_service.process_document(document["id"], FakeEmbedder(fail=True), MemoryVectorStore(), settings)

    assert _status(document["id"]) == "ready"


def test_delete_removes_vectors_then_rows(document, settings):
    store = RecordingVectorStore()
    document_service.process_document(document["id"], FakeEmbedder(), store, settings)
    vector_ids = [c.vector_id for c in _chunks(document["id"])]

    document_service.delete_document(_owner(document), document["id"], store)

    assert store.deleted == vector_ids
    assert len(store) == 0
    assert _chunks(document["id"]) == []
    with SessionLocal() as db:
        assert db.get(Document, document["id"]) is None


def test_delete_survives_vector_store_errors(document, settings):
    store = RecordingVectorStore(fail_delete=True)
    document_service.process_document(document["id"], FakeEmbedder(), store, settings)

    document_service.delete_document(_owner(document), document["id"], store)

    assert store.deleted
    with SessionLocal() as db:
        assert db.get(Document, document["id"]) is None
    assert _chunks(document["id"]) == []


def test_delete_is_owner_only(document):
    with pytest.raises(NotFoundError):
        document_service.delete_document("someone-else", document["id"], MemoryVectorStore())


def test_reindex_rebuilds_chunks(document, settings):
    store = RecordingVectorStore()
    document_service.process_document(document["id"], FakeEmbedder(), store, settings)
    before = len(_chunks(document["id"]))

    reset = document_service.reset_for_reindex(_owner(document), document["id"], store)

    assert reset["status"] == "processing"
    assert _chunks(document["id"]) == []
    assert len(store.deleted) == before

    document_service.process_document(document["id"], FakeEmbedder(), store, settings)
    assert _status(document["id"]) == "ready"
    assert len(_chunks(document["id"])) == before


def test_reindex_rejects_documents_in_flight(document):
    with pytest.raises(ConflictError):
        document_service.reset_for_reindex(_owner(document), document["id"], MemoryVectorStore())


def test_ready_document_ids_only_lists_indexed_documents(user, document, settings):
    pending = document_service.create_document(user.id, "Pending", "not indexed yet")
    document_service.process_document(document["id"], FakeEmbedder(), MemoryVectorStore(), settings)

    ids = document_service.ready_document_ids(user.id)

    assert ids == [document["id"]]
    assert pending["id"] not in ids


def _owner(document):
    with SessionLocal() as db:
        return db.get(Document, document["id"]).user_id


class DeletingEmbedder(FakeEmbedder):
    """Deletes the document while its chunks are being embedded."""

    def __init__(self, user_id, document_id, store):
        super().__init__()
        self.user_id = user_id
        self.document_id = document_id
        self.store = store

    def embed(self, texts):
        document_service.delete_document(self.user_id, self.document_id, self.store)
        return super().embed(texts)


def test_delete_during_indexing_leaves_no_vectors(user, document, settings):
    store = MemoryVectorStore()

    document_service.process_document(
        document["id"], DeletingEmbedder(user.id, document["id"], store), store, settings
    )

    assert len(store) == 0
    assert _chunks(document["id"]) == []
    with SessionLocal() as db:
        assert db.get(Document, document["id"]) is None

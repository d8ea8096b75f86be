"""
Vector index clients.

Both backends expose the same three operations: upsert, top-K query and
delete-by-ids. Upsert and delete are no-ops on empty input.
"""
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
from sqlalchemy import JSON, Column, MetaData, String, Table, delete, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from pgvector.sqlalchemy import Vector

from .logging_config import logger


@dataclass
class VectorRecord:
    id: str
    values: List[float]
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class VectorMatch:
    id: str
    score: float
    metadata: Dict[str, str] = field(default_factory=dict)


class VectorStore:
    """Interface shared by the index backends."""

    def upsert(self, records: Sequence[VectorRecord]) -> None:
        raise NotImplementedError

    def query(self, vector: List[float], top_k: int = 5,
              document_ids: Optional[Iterable[str]] = None) -> List[VectorMatch]:
        raise NotImplementedError

    def delete(self, ids: Sequence[str]) -> None:
        raise NotImplementedError

    def ensure_schema(self) -> None:
        """Create whatever the backend needs before first use."""


class PgVectorStore(VectorStore):
    """
    Vectors kept in a PostgreSQL table with the pgvector extension.
    Ranking is cosine distance, computed by the database; score = 1 - distance.
    """

    def __init__(self, engine, dimensions: int, table_name: str = "vectors"):
        self.engine = engine
        self.dimensions = dimensions
        self.metadata = MetaData()
        self.table = Table(
            table_name,
            self.metadata,
            Column("id", String, primary_key=True),
            Column("document_id", String, index=True),
            Column("embedding", Vector(dimensions), nullable=False),
            Column("payload", JSON, nullable=False),
        )

    def ensure_schema(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            self.metadata.create_all(conn)

    def upsert_statement(self, records: Sequence[VectorRecord]):
        stmt = pg_insert(self.table).values([
            {
                "id": r.id,
                "document_id": r.metadata.get("documentId"),
                "embedding": r.values,
                "payload": r.metadata,
            }
            for r in records
        ])
        return stmt.on_conflict_do_update(
            index_elements=[self.table.c.id],
            set_={
                "document_id": stmt.excluded.document_id,
                "embedding": stmt.excluded.embedding,
                "payload": stmt.excluded.payload,
            },
        )

    def query_statement(self, vector: List[float], top_k: int,
                        document_ids: Optional[Iterable[str]] = None):
        distance = self.table.c.embedding.cosine_distance(vector)
        stmt = (
            select(self.table.c.id, self.table.c.payload, (1 - distance).label("score"))
            .order_by(distance)
            .limit(top_k)
        )
        if document_ids is not None:
            stmt = stmt.where(self.table.c.document_id.in_(list(document_ids)))
        return stmt

    def upsert(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        with self.engine.begin() as conn:
            conn.execute(self.upsert_statement(records))
        logger.debug("Upserted vectors", count=len(records))

    def query(self, vector: List[float], top_k: int = 5,
              document_ids: Optional[Iterable[str]] = None) -> List[VectorMatch]:
        with self.engine.connect() as conn:
            rows = conn.execute(self.query_statement(vector, top_k, document_ids)).all()
        return [VectorMatch(id=r.id, score=float(r.score), metadata=dict(r.payload or {})) for r in rows]

    def delete(self, ids: Sequence[str]) -> None:
        if not ids:
            return
        with self.engine.begin() as conn:
            conn.execute(delete(self.table).where(self.table.c.id.in_(list(ids))))
        logger.debug("Deleted vectors", count=len(ids))


class MemoryVectorStore(VectorStore):
    """Process-local index for development and tests. Cosine similarity via numpy."""

    def __init__(self):
        self._vectors: Dict[str, np.ndarray] = {}
        self._metadata: Dict[str, Dict[str, str]] = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._vectors)

    def upsert(self, records: Sequence[VectorRecord]) -> None:
        with self._lock:
            for r in records:
                self._vectors[r.id] = np.asarray(r.values, dtype=np.float32)
                self._metadata[r.id] = dict(r.metadata)

    def query(self, vector: List[float], top_k: int = 5,
              document_ids: Optional[Iterable[str]] = None) -> List[VectorMatch]:
        allowed = set(document_ids) if document_ids is not None else None
        q = np.asarray(vector, dtype=np.float32)
        q_norm = float(np.linalg.norm(q)) or 1.0

        with self._lock:
            candidates = [
                (vid, vec) for vid, vec in self._vectors.items()
                if allowed is None or self._metadata[vid].get("documentId") in allowed
            ]
            scored = []
            for vid, vec in candidates:
                denom = (float(np.linalg.norm(vec)) or 1.0) * q_norm
                scored.append((float(np.dot(vec, q)) / denom, vid))
            scored.sort(reverse=True)
            return [
                VectorMatch(id=vid, score=score, metadata=dict(self._metadata[vid]))
                for score, vid in scored[:top_k]
            ]

    def delete(self, ids: Sequence[str]) -> None:
        with self._lock:
            for vid in ids:
                self._vectors.pop(vid, None)
                self._metadata.pop(vid, None)


def build_vector_store(settings, engine) -> VectorStore:
    if settings.vector_backend == "memory":
        return MemoryVectorStore()
    if settings.vector_backend == "pgvector":
        return PgVectorStore(engine, settings.vector_dimensions)
    raise ValueError(f"Unknown vector backend: {settings.vector_backend}")

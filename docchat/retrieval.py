from typing import Iterable, List, Optional, TypedDict
from time import perf_counter

from .embedding import Embedder
from .vector_store import VectorStore
from .logging_config import logger


class RagContext(TypedDict):
    content: str
    documentId: str
    score: float


def search_similar(
    query: str,
    embedder: Embedder,
    vector_store: VectorStore,
    top_k: int = 3,
    document_ids: Optional[Iterable[str]] = None,
) -> List[RagContext]:
    """
        Find the chunks closest to a free-text query.

        Parameters:
        query (str): The query string to search for.
        top_k (int): Number of matches to return. Defaults to 3.
        document_ids: Restrict candidates to these documents (None = no filter).

        Returns:
        List[RagContext]: Every match the index returned, best first. No
        score cutoff, re-ranking or deduplication is applied.
    """
    qv = embedder.embed([query])[0]
    t = perf_counter()
    matches = vector_store.query(qv, top_k=top_k, document_ids=document_ids)
    logger.info("Vector search finished", matches=len(matches), ms=round((perf_counter() - t) * 1000, 2))
    return [
        {
            "content": m.metadata.get("content", ""),
            "documentId": m.metadata.get("documentId", ""),
            "score": m.score,
        }
        for m in matches
    ]

"""
Embedding client.
Turns a batch of strings into fixed-length vectors, one per input, in order.
"""
from typing import Dict, List, Optional

import numpy as np

from .config import Settings
from .logging_config import logger

_models: Dict[str, object] = {}


def load_sentence_model(model_name: str):
    """Load (once per process) a local sentence-transformers model."""
    model = _models.get(model_name)
    if model is None:
        from sentence_transformers import SentenceTransformer
        logger.info("Loading embedding model", model=model_name)

        # Load model with explicit tokenizer settings to avoid FutureWarning
        model = SentenceTransformer(
            model_name,
            tokenizer_kwargs={"clean_up_tokenization_spaces": False},
        )

        # Warm up with a test embedding
        model.encode(["test"], normalize_embeddings=True, show_progress_bar=False)
        _models[model_name] = model
        logger.info("Embedding model loaded", model=model_name)
    return model


def truncate_embedding(vector, dimensions: Optional[int]) -> List[float]:
    """
    Keep the leading `dimensions` components and rescale to unit length.

    Vectors already at or below the target size are returned unchanged.
    """
    values = np.asarray(vector, dtype=np.float32)
    if dimensions is None or values.shape[0] <= dimensions:
        return values.tolist()
    values = values[:dimensions]
    norm = float(np.linalg.norm(values))
    if norm > 0:
        values = values / norm
    return values.tolist()


class Embedder:
    """
    Embedding model wrapper.

    Backends:
        "sentence-transformers": local model, normalized embeddings
        "openai": remote embeddings endpoint
    Remote or model errors propagate to the caller.
    """

    def __init__(self, model_name: str, backend: str = "sentence-transformers",
                 dimensions: Optional[int] = None, client=None):
        if backend not in ("sentence-transformers", "openai"):
            raise ValueError(f"Unknown embedding backend: {backend}")
        self.model_name = model_name
        self.backend = backend
        self.dimensions = dimensions
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "Embedder":
        client = None
        if settings.embed_backend == "openai":
            from .openai_client import get_openai_client
            client = get_openai_client(settings)
        return cls(
            settings.embed_model,
            backend=settings.embed_backend,
            dimensions=settings.embed_dimensions,
            client=client,
        )

    def preload(self):
        if self.backend == "sentence-transformers":
            load_sentence_model(self.model_name)

    def embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        raw = self._encode_openai(texts) if self.backend == "openai" else self._encode_local(texts)
        return [truncate_embedding(v, self.dimensions) for v in raw]

    def _encode_local(self, texts: List[str]):
        model = load_sentence_model(self.model_name)
        vecs = model.encode(texts, normalize_embeddings=True, show_progress_bar=False)
        return list(vecs)

    def _encode_openai(self, texts: List[str]):
        response = self._client.embeddings.create(model=self.model_name, input=texts)
        # the API echoes each input's position; don't rely on list order
        return [item.embedding for item in sorted(response.data, key=lambda d: d.index)]

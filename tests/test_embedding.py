from types import SimpleNamespace

import numpy as np
import pytest

from docchat import embedding
from docchat.embedding import Embedder, truncate_embedding


class StubSentenceModel:
    def __init__(self, dim):
        self.dim = dim
        self.calls = []

    def encode(self, texts, normalize_embeddings=True, show_progress_bar=False):
        self.calls.append(list(texts))
        return np.array([[float(i + 1)] * self.dim for i in range(len(texts))])


def test_truncate_keeps_leading_dimensions_and_renormalizes():
    vec = [3.0, 4.0, 100.0, 100.0]
    out = truncate_embedding(vec, 2)
    assert len(out) == 2
    assert out == pytest.approx([0.6, 0.8])


def test_truncate_leaves_short_vectors_alone():
    assert truncate_embedding([0.1, 0.2], 4) == pytest.approx([0.1, 0.2])
    assert truncate_embedding([0.1, 0.2], None) == pytest.approx([0.1, 0.2])


def test_local_backend_returns_one_vector_per_text_in_order(monkeypatch):
    model = StubSentenceModel(dim=8)
    monkeypatch.setattr(embedding, "load_sentence_model", lambda name: model)

    vectors = Embedder("stub-model").embed(["a", "b", "c"])

    assert len(vectors) == 3
    assert [v[0] for v in vectors] == [1.0, 2.0, 3.0]
    assert all(len(v) == 8 for v in vectors)


def test_configured_dimensions_apply_to_every_vector(monkeypatch):
    monkeypatch.setattr(embedding, "load_sentence_model", lambda name: StubSentenceModel(dim=2048))

    vectors = Embedder("stub-model", dimensions=1536).embed(["a", "b"])

    assert [len(v) for v in vectors] == [1536, 1536]
    assert np.linalg.norm(vectors[0]) == pytest.approx(1.0, rel=1e-5)


def test_empty_batch_skips_the_model(monkeypatch):
    model = StubSentenceModel(dim=4)
    monkeypatch.setattr(embedding, "load_sentence_model", lambda name: model)

    assert Embedder("stub-model").embed([]) == []
    assert model.calls == []


def test_openai_backend_orders_by_index():
    data = [
        SimpleNamespace(index=1, embedding=[0.0, 1.0]),
        SimpleNamespace(index=0, embedding=[1.0, 0.0]),
    ]
    client = SimpleNamespace(embeddings=SimpleNamespace(create=lambda model, input: SimpleNamespace(data=data)))

    vectors = Embedder("text-embedding-3-small", backend="openai", client=client).embed(["first", "second"])

    assert vectors == [[1.0, 0.0], [0.0, 1.0]]


def test_remote_errors_propagate():
    def boom(model, input):
        raise ConnectionError("down")

    client = SimpleNamespace(embeddings=SimpleNamespace(create=boom))
    with pytest.raises(ConnectionError):
        Embedder("m", backend="openai", client=client).embed(["x"])


def test_unknown_backend_is_rejected():
    with pytest.raises(ValueError):
        Embedder("m", backend="word2vec")

import math

import pytest

from docchat.text_extraction import chunk_text, read_any


def test_empty_text_yields_no_chunks():
    assert chunk_text("") == []


def test_short_text_is_a_single_chunk():
    text = "Acme Corp was founded in 2019."
    assert chunk_text(text) == [text]


def test_text_of_exactly_chunk_size_is_one_chunk():
    text = "x" * 500
    assert chunk_text(text) == [text]


@pytest.mark.parametrize("n, size, overlap", [(1200, 500, 50), (1000, 100, 10), (37, 10, 3), (501, 500, 50)])
def test_windows_have_fixed_stride_and_cover_the_text(n, size, overlap):
    text = "".join(chr(ord("a") + i % 26) for i in range(n))
    chunks = chunk_text(text, size, overlap)
    step = size - overlap

    assert len(chunks) == math.ceil((n - overlap) / step)
    for i, chunk in enumerate(chunks):
        assert len(chunk) <= size
        assert chunk == text[i * step:i * step + size]
    # last window ends exactly at the end of the text
    assert (len(chunks) - 1) * step + len(chunks[-1]) == n


def test_consecutive_chunks_share_the_overlap():
    text = "0123456789" * 20
    chunks = chunk_text(text, 50, 5)
    for prev, nxt in zip(chunks, chunks[1:]):
        assert prev[-5:] == nxt[:5]


def test_invalid_overlap_is_rejected():
    with pytest.raises(ValueError):
        chunk_text("abc", chunk_size=10, overlap=10)
    with pytest.raises(ValueError):
        chunk_text("abc", chunk_size=0, overlap=0)


def test_read_any_plain_text():
    text, mime = read_any("héllo world".encode("utf-8"), "text/plain", "notes.txt")
    assert text == "héllo world"
    assert mime == "text/plain"


def test_read_any_defaults_unknown_types_to_text():
    text, mime = read_any(b"# Title", "", "README.md")
    assert text == "# Title"
    assert mime == "text/plain"

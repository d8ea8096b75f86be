from io import BytesIO
from typing import List, Tuple

from pypdf import PdfReader
from docx import Document as DocxDocument

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def read_text_from_pdf(data: bytes) -> str:
    pdf = PdfReader(BytesIO(data))
    return "\n".join(page.extract_text() or "" for page in pdf.pages)


def read_text_from_docx(data: bytes) -> str:
    """
    Extract text from a DOCX file, paragraphs first and then tables.
    Table rows are flattened to pipe-separated lines.
    """
    doc = DocxDocument(BytesIO(data))
    parts = [para.text.strip() for para in doc.paragraphs if para.text.strip()]

    for table in doc.tables:
        rows = []
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                rows.append(" | ".join(cells))
        if rows:
            parts.append("\n".join(rows))

    return "\n\n".join(parts)


def read_any(data: bytes, mime: str, filename: str) -> Tuple[str, str]:
    """Return (text, mime type to store) for an uploaded file."""
    name = (filename or "").lower()
    if name.endswith(".pdf") or mime == "application/pdf":
        return read_text_from_pdf(data), "application/pdf"
    if name.endswith(".docx") or mime == DOCX_MIME:
        return read_text_from_docx(data), DOCX_MIME
    # default to txt
    return data.decode("utf-8", errors="ignore"), mime or "text/plain"


def chunk_text(text: str, chunk_size: int = 500, overlap: int = 50) -> List[str]:
    """
    Split text into fixed-width overlapping windows.

    Window i starts at i * (chunk_size - overlap); the last window may be
    shorter. No attempt is made to respect word or sentence boundaries.

    >>> chunk_text("abcdefghij", chunk_size=4, overlap=1)
    ['abcd', 'defg', 'ghij']
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not 0 <= overlap < chunk_size:
        raise ValueError("overlap must be in [0, chunk_size)")

    chunks = []
    step = chunk_size - overlap
    start = 0
    n = len(text)
    while start < n:
        end = min(start + chunk_size, n)
        chunks.append(text[start:end])
        if end == n:
            break
        start += step
    return chunks

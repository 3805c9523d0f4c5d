"""Knowledge Base service — document text for AI tasks.

- extract_text: PDF (pypdf) / DOCX (python-docx) / TXT bytes → plain text,
  input of the structured-extraction import.
- build_corpus_context: published documents → one titled, size-bounded
  context string for grounded chat.
- group_by_category: imported sub-documents grouped for category creation.
"""
from __future__ import annotations

import io
import logging
import zipfile
from typing import Iterable, Protocol

from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from models.ai_knowledge import CorpusDocument, DocStatus, ImportedDoc
from services.ai_errors import DocumentExtractionError

logger = logging.getLogger("devcenter.knowledge_base")

TRUNCATION_MARKER = "\n...(truncated)..."
DEFAULT_CATEGORY = "General"


# ---------------------------------------------------------------------------
# Text extraction
# ---------------------------------------------------------------------------
def extract_text(file_bytes: bytes, filename: str) -> str:
    """Extract text from PDF, DOCX or TXT."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""

    if ext == "pdf":
        text = _extract_pdf(file_bytes)
    elif ext == "docx":
        text = _extract_docx(file_bytes)
    elif ext in ("txt", "md"):
        text = file_bytes.decode("utf-8", errors="replace")
    else:
        raise DocumentExtractionError(
            f"Format .{ext} is not supported. Use PDF, DOCX or TXT."
        )

    if not text.strip():
        raise DocumentExtractionError(
            f"{filename} has no extractable text (scanned PDF without OCR?)"
        )
    return text


def _extract_pdf(file_bytes: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(file_bytes))
        pages = []
        for page in reader.pages:
            text = page.extract_text() or ""
            if text.strip():
                pages.append(text)
    except PdfReadError as e:
        raise DocumentExtractionError(f"PDF could not be read: {e}") from e

    full_text = "\n\n".join(pages)
    logger.info("PDF: extracted %d chars from %d pages", len(full_text), len(reader.pages))
    return full_text


def _extract_docx(file_bytes: bytes) -> str:
    """Paragraphs plus table rows (manuals often keep content in tables)."""
    try:
        doc = DocxDocument(io.BytesIO(file_bytes))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError) as e:
        raise DocumentExtractionError(f"DOCX could not be read: {e}") from e

    parts = [para.text for para in doc.paragraphs if para.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append(" | ".join(cells))

    full_text = "\n".join(parts)
    logger.info("DOCX: extracted %d chars", len(full_text))
    return full_text


# ---------------------------------------------------------------------------
# Grounded chat context
# ---------------------------------------------------------------------------
def published_documents(docs: Iterable[CorpusDocument]) -> list[CorpusDocument]:
    return [d for d in docs if d.status == DocStatus.published]


def build_corpus_context(docs: Iterable[CorpusDocument], max_chars: int) -> str:
    """Concatenate published documents, cut at max_chars plus a truncation marker."""
    context = "".join(
        f"\n---\nDOCUMENT TITLE: {d.title}\nCONTENT:\n{d.content}\n"
        for d in published_documents(docs)
    )
    if len(context) > max_chars:
        logger.warning(
            "Corpus context too long (%d chars), truncating to %d",
            len(context), max_chars,
        )
        context = context[:max_chars] + TRUNCATION_MARKER
    return context


# ---------------------------------------------------------------------------
# Import helpers
# ---------------------------------------------------------------------------
def group_by_category(docs: Iterable[ImportedDoc]) -> dict[str, list[ImportedDoc]]:
    """Group imported sub-documents by category name, first-seen order."""
    groups: dict[str, list[ImportedDoc]] = {}
    for doc in docs:
        category = doc.category_name.strip() or DEFAULT_CATEGORY
        groups.setdefault(category, []).append(doc)
    return groups


# ---------------------------------------------------------------------------
# Document corpus (read-only collaborator)
# ---------------------------------------------------------------------------
class DocumentCorpus(Protocol):
    async def list_documents(self) -> list[CorpusDocument]: ...


class MemoryDocumentCorpus:
    def __init__(self, docs: Iterable[CorpusDocument] = ()):
        self.docs = list(docs)

    async def list_documents(self) -> list[CorpusDocument]:
        return list(self.docs)

"""Plain-text extraction for binary documents (PDF, DOCX)."""

import io
import logging

import docx
import pdfplumber

logger = logging.getLogger(__name__)


def extract_pdf_text(data: bytes) -> str:
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(pages)


def extract_docx_text(data: bytes) -> str:
    document = docx.Document(io.BytesIO(data))
    lines = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            lines.append(" | ".join(cell.text.strip() for cell in row.cells))
    return "\n".join(lines)


EXTRACTORS = {
    "pdf": extract_pdf_text,
    "docx": extract_docx_text,
}


def extract_text(data: bytes, fmt: str) -> str:
    """Extract text with the format's library; unreadable files decode lossily instead."""
    try:
        return EXTRACTORS[fmt](data)
    except Exception as e:
        logger.warning("Could not extract %s text (%s), falling back to raw decode", fmt, e)
        return data.decode("utf-8", errors="ignore")

"""
PDF → raw text extraction.

Default implementation of the ``extractText`` collaborator.  Text is read
with ``pdfplumber`` from the first ``max_pages`` pages, each preceded by a
``--- PAGE n ---`` marker.  There is no OCR: an image-only scan yields no
text and is reported as ``UnreadableSource``.
"""

from __future__ import annotations

from io import BytesIO

import pdfplumber

from statement_ingest.errors import UnreadableSource
from statement_ingest.logging_setup import get_logger

logger = get_logger("pdf_text")


def extract_text(content: bytes, max_pages: int = 5) -> str:
    """Extract page text from a PDF.

    Raises
    ------
    UnreadableSource
        The PDF cannot be opened, or it contains no extractable text.
    """
    parts: list[str] = []
    has_text = False
    try:
        with pdfplumber.open(BytesIO(content)) as pdf:
            total = len(pdf.pages)
            for page_num, page in enumerate(pdf.pages[:max_pages], start=1):
                page_text = page.extract_text() or ""
                has_text = has_text or bool(page_text.strip())
                parts.append(f"\n--- PAGE {page_num} ---\n{page_text}")
    except Exception as exc:  # noqa: BLE001 - pdfminer raises a wide variety
        raise UnreadableSource(f"PDF Read Error: {exc}") from exc

    full_text = "".join(parts)
    if not has_text:
        raise UnreadableSource("PDF seems empty or is an image scan.")

    logger.info(
        "Extracted %d characters from %d of %d PDF pages",
        len(full_text),
        len(parts),
        total,
    )
    return full_text

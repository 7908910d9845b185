import re
from dataclasses import dataclass
from pathlib import Path

import pymupdf as fitz  # PyMuPDF

from docsearch.core.config import settings

# regex for tab or blank space
WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class PdfPages:
    pages: list[str]
    page_count: int


def normalize_text(s: str) -> str:
    """
    Normalize a text string by cleaning whitespace and null characters.
    """
    s = s.replace("\x00", " ")
    s = WS_RE.sub(" ", s).strip()

    return s


def extract_pdf_pages(pdf_path: Path) -> PdfPages:
    """
    Per-page text of a PDF. Raises ValueError with a short code
    (INVALID_PDF, ENCRYPTED_PDF, PDF_TOO_MANY_PAGES) on rejection.
    """
    try:
        doc = fitz.open(str(pdf_path))
    except Exception as e:
        raise ValueError(f"INVALID_PDF: {e}") from e

    try:
        # Try empty password; if fails, reject
        if doc.is_encrypted and not doc.authenticate(""):
            raise ValueError("ENCRYPTED_PDF")

        page_count = doc.page_count
        if page_count > settings.MAX_PDF_PAGES:
            raise ValueError("PDF_TOO_MANY_PAGES")

        pages = [normalize_text(doc.load_page(i).get_text("text")) for i in range(page_count)]
    finally:
        doc.close()

    return PdfPages(pages=pages, page_count=page_count)

"""PDF inspection helpers for compiled artifacts."""

import io
from typing import Optional

from PyPDF2 import PdfReader

PDF_MAGIC = b"%PDF-"


def looks_like_pdf(data: bytes) -> bool:
    """Check the PDF header signature."""
    return data[:5] == PDF_MAGIC


def page_count(pdf_bytes: bytes) -> Optional[int]:
    """Get page count from in-memory PDF bytes, or None if unreadable."""
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        return len(reader.pages)
    except Exception:
        return None

"""
Document clients used by the filesystem tool.

- PDF Client: page-limited text extraction through pdfplumber
"""

from .pdf_client import (
    extract_text_from_pdf,
    clean_extracted_text,
)

__all__ = [
    "extract_text_from_pdf",
    "clean_extracted_text",
]

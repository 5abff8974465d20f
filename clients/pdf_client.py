"""
PDF Client - PDF Text Extraction Utility

Handles PDF reads for the filesystem tool using pdfplumber.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Union

import pdfplumber

logger = logging.getLogger(__name__)


# ============================================================================
# PDF TEXT EXTRACTION
# ============================================================================

def extract_text_from_pdf(file_path: Union[str, Path], max_pages: Optional[int] = None) -> str:
    """
    Extract text content from a PDF file.

    Pages are joined with ``--- Page N ---`` separators. Pages without
    extractable text (scanned images) are skipped.

    Args:
        file_path: Path to the PDF file
        max_pages: Stop after this many pages (all pages when None)

    Returns:
        Extracted text, or an empty string when nothing could be extracted

    Raises:
        FileNotFoundError: If the PDF file doesn't exist
        ValueError: If the file is not a PDF or cannot be parsed
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"PDF file not found: {file_path}")

    if file_path.suffix.lower() != ".pdf":
        raise ValueError(f"File is not a PDF: {file_path.suffix}")

    logger.info(f"📄 Extracting text from PDF: {file_path.name}")

    all_text = []
    try:
        with pdfplumber.open(file_path) as pdf:
            pages = pdf.pages if max_pages is None else pdf.pages[:max_pages]
            logger.debug(f"PDF has {len(pdf.pages)} page(s), reading {len(pages)}")

            for page_num, page in enumerate(pages, start=1):
                page_text = page.extract_text()
                if not page_text:
                    logger.debug(f"Page {page_num} has no extractable text")
                    continue
                if page_num > 1:
                    all_text.append(f"\n--- Page {page_num} ---\n")
                all_text.append(page_text)
    except Exception as e:
        logger.error(f"❌ PDF extraction failed: {e}")
        raise ValueError(f"Failed to extract text from PDF: {e}") from e

    full_text = clean_extracted_text("\n".join(all_text))
    if not full_text:
        logger.warning("⚠️  No text extracted from PDF (might be scanned images)")
        return ""

    logger.info(f"✅ Extracted {len(full_text)} characters from PDF")
    return full_text


def clean_extracted_text(text: str) -> str:
    """Collapse blank-line runs and repeated spaces left by the extractor."""
    if not text:
        return ""
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r" {2,}", " ", text)
    return text.strip()

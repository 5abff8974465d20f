"""
Unit Tests for PDF Client

Tests PDF text extraction and cleanup. pdfplumber is mocked; the files on disk
only need the right name.
"""

import pytest
from unittest.mock import MagicMock, patch

from clients.pdf_client import clean_extracted_text, extract_text_from_pdf


def mock_page(text):
    page = MagicMock()
    page.extract_text.return_value = text
    return page


@pytest.fixture
def pdf_path(tmp_path):
    path = tmp_path / "doc.pdf"
    path.write_bytes(b"%PDF-1.4 placeholder")
    return path


class TestPDFExtraction:
    """Test PDF text extraction functionality."""

    def test_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            extract_text_from_pdf(tmp_path / "missing.pdf")

    def test_invalid_extension(self, tmp_path):
        """Test error handling for non-PDF file."""
        path = tmp_path / "document.txt"
        path.touch()

        with pytest.raises(ValueError, match="not a PDF"):
            extract_text_from_pdf(path)

    @patch("clients.pdf_client.pdfplumber.open")
    def test_empty_pdf(self, mock_open, pdf_path):
        mock_pdf = MagicMock()
        mock_pdf.pages = []
        mock_open.return_value.__enter__.return_value = mock_pdf

        assert extract_text_from_pdf(pdf_path) == ""

    @patch("clients.pdf_client.pdfplumber.open")
    def test_multi_page(self, mock_open, pdf_path):
        """Pages are joined with separators; pages without text are skipped."""
        mock_pdf = MagicMock()
        mock_pdf.pages = [mock_page("Page 1 content"), mock_page(None), mock_page("Page 3 content")]
        mock_open.return_value.__enter__.return_value = mock_pdf

        result = extract_text_from_pdf(pdf_path)

        assert "Page 1 content" in result
        assert "--- Page 3 ---" in result
        assert "--- Page 2 ---" not in result

    @patch("clients.pdf_client.pdfplumber.open")
    def test_max_pages(self, mock_open, pdf_path):
        mock_pdf = MagicMock()
        mock_pdf.pages = [mock_page("one"), mock_page("two"), mock_page("three")]
        mock_open.return_value.__enter__.return_value = mock_pdf

        result = extract_text_from_pdf(pdf_path, max_pages=2)

        assert "two" in result
        assert "three" not in result

    @patch("clients.pdf_client.pdfplumber.open")
    def test_parse_failure(self, mock_open, pdf_path):
        mock_open.side_effect = RuntimeError("broken xref table")

        with pytest.raises(ValueError, match="broken xref table"):
            extract_text_from_pdf(pdf_path)


class TestCleanExtractedText:

    def test_collapses_whitespace(self):
        dirty = "  Line 1\n\n\n\n\nLine 2   with    spaces  "

        cleaned = clean_extracted_text(dirty)

        assert cleaned == "Line 1\n\nLine 2 with spaces"

    def test_empty(self):
        assert clean_extracted_text("") == ""
        assert clean_extracted_text(None) == ""

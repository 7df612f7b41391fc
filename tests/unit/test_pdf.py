"""Tests for PDF text extraction."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from evaluator.pipeline.pdf import parse_pdf


class TestParsePdf:
    def test_file_not_found(self) -> None:
        with pytest.raises(FileNotFoundError, match="PDF file not found"):
            parse_pdf("/nonexistent/cv.pdf")

    def test_missing_pymupdf_import(self, tmp_path: Path) -> None:
        pdf_path = tmp_path / "cv.pdf"
        pdf_path.write_bytes(b"%PDF-1.4 fake")

        with (
            patch.dict("sys.modules", {"pymupdf": None}),
            pytest.raises(ImportError, match="pymupdf is required"),
        ):
            parse_pdf(pdf_path)

    def test_joins_pages(self, tmp_path: Path) -> None:
        pdf_path = tmp_path / "cv.pdf"
        pdf_path.write_bytes(b"%PDF-1.4 fake")

        pages = [MagicMock(), MagicMock()]
        pages[0].get_text.return_value = "Jane Doe\n"
        pages[1].get_text.return_value = "Backend Engineer\n"

        mock_doc = MagicMock()
        mock_doc.__enter__.return_value = mock_doc
        mock_doc.__iter__.return_value = iter(pages)
        mock_doc.page_count = 2

        mock_pymupdf = MagicMock()
        mock_pymupdf.open.return_value = mock_doc

        with patch.dict("sys.modules", {"pymupdf": mock_pymupdf}):
            parsed = parse_pdf(pdf_path)

        assert parsed.text == "Jane Doe\n\nBackend Engineer"
        assert parsed.page_count == 2

    def test_real_document(self, tmp_path: Path) -> None:
        pymupdf = pytest.importorskip("pymupdf")
        pdf_path = tmp_path / "report.pdf"
        doc = pymupdf.open()
        doc.new_page().insert_text((72, 72), "Project report")
        doc.new_page().insert_text((72, 72), "Error handling")
        doc.save(str(pdf_path))
        doc.close()

        parsed = parse_pdf(pdf_path)

        assert parsed.page_count == 2
        assert "Project report" in parsed.text
        assert "Error handling" in parsed.text

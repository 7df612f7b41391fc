"""PDF text extraction using pymupdf."""

from pathlib import Path

from evaluator.core.schemas import ParsedPdf


def parse_pdf(path: str | Path) -> ParsedPdf:
    """Extract plain text and the page count from a PDF file.

    Raises:
        FileNotFoundError: If the PDF file does not exist.
        ImportError: If pymupdf is not installed.
    """
    path = Path(path)
    if not path.exists():
        msg = f"PDF file not found: {path}"
        raise FileNotFoundError(msg)

    try:
        import pymupdf
    except ImportError:
        msg = (
            "pymupdf is required for PDF extraction. "
            "Install with: pip install candidate-evaluator"
        )
        raise ImportError(msg) from None

    text_parts: list[str] = []
    with pymupdf.open(str(path)) as doc:
        page_count = doc.page_count
        for page in doc:
            text_parts.append(page.get_text())

    return ParsedPdf(text="\n".join(text_parts).strip(), page_count=page_count)

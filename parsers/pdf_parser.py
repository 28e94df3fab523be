"""parsers/pdf_parser.py — Extract text from PDF uploads using pymupdf."""

from pathlib import Path

from parsers.base import clean_text


def extract_pdf_text(file_path: Path) -> str:
    """Text of every page in order, pages separated by a blank line."""
    import fitz  # pymupdf

    doc = fitz.open(str(file_path))
    try:
        text_parts = [doc[page_num].get_text("text") for page_num in range(doc.page_count)]
    finally:
        doc.close()
    return clean_text("\n\n".join(text_parts))

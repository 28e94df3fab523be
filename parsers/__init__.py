"""parsers/ — Extract raw text from uploaded source documents."""

from pathlib import Path

from errors import UnsupportedFormatError

SUPPORTED_EXTENSIONS = {".txt", ".md", ".markdown", ".pdf", ".docx"}


def extract_text(file_path: Path) -> str:
    """Dispatch to the appropriate extractor based on file extension."""
    file_path = Path(file_path)
    suffix = file_path.suffix.lower()

    if suffix in (".txt", ".md", ".markdown"):
        from parsers.text_parser import extract_plain_text
        return extract_plain_text(file_path)
    elif suffix == ".pdf":
        from parsers.pdf_parser import extract_pdf_text
        return extract_pdf_text(file_path)
    elif suffix == ".docx":
        from parsers.docx_parser import extract_docx_text
        return extract_docx_text(file_path)
    else:
        raise UnsupportedFormatError(
            f"Unsupported file format: '{suffix}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
        )

"""parsers/docx_parser.py — Extract text from Word (.docx) uploads."""

import zipfile
from pathlib import Path

from bs4 import BeautifulSoup

from errors import UnsupportedFormatError
from parsers.base import clean_text

DOCUMENT_XML = "word/document.xml"


def _paragraph_text(paragraph) -> str:
    """Concatenate the runs of one w:p, honouring tabs and manual line breaks."""
    parts = []
    for node in paragraph.find_all(["t", "tab", "br", "cr"]):
        if node.name == "t":
            parts.append(node.get_text())
        elif node.name == "tab":
            parts.append(" ")
        else:
            parts.append("\n")
    return "".join(parts).strip()


def extract_docx_text(file_path: Path) -> str:
    """One paragraph per w:p element, separated by blank lines."""
    file_path = Path(file_path)
    if not zipfile.is_zipfile(file_path):
        raise UnsupportedFormatError(f"Not a valid .docx archive: {file_path.name}")

    with zipfile.ZipFile(file_path) as archive:
        if DOCUMENT_XML not in archive.namelist():
            raise UnsupportedFormatError(f"No {DOCUMENT_XML} found in {file_path.name}")
        content = archive.read(DOCUMENT_XML)

    soup = BeautifulSoup(content, features="lxml-xml")
    paragraphs = []
    for tag in soup.find_all("p"):
        text = _paragraph_text(tag)
        if text:
            paragraphs.append(text)

    return clean_text("\n\n".join(paragraphs))

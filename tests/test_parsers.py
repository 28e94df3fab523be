import zipfile

import fitz
import pytest

from errors import UnsupportedFormatError
from parsers import extract_text
from parsers.base import clean_text
from parsers.text_parser import strip_frontmatter

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"


def _write_docx(path, body_xml):
    document = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<w:document xmlns:w="{W_NS}"><w:body>{body_xml}</w:body></w:document>'
    )
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("[Content_Types].xml", "<Types/>")
        archive.writestr("word/document.xml", document)
    return path


def test_clean_text_collapses_blank_lines_and_spaces():
    raw = "Title\r\n\r\n\r\n\r\nSome   text\twith gaps\n  \n\u201cquoted\u201d it\u2019s"
    assert clean_text(raw) == "Title\n\nSome text with gaps\n\n\"quoted\" it's"


def test_clean_text_unescapes_entities_and_soft_hyphens():
    assert clean_text("Fish &amp; chips, co\u00adoperate") == "Fish & chips, cooperate"


def test_strip_frontmatter():
    assert strip_frontmatter("---\ntitle: x\n---\nBody") == "Body"
    assert strip_frontmatter("No front matter\n---\n") == "No front matter\n---\n"


def test_plain_text_and_markdown(tmp_path):
    txt = tmp_path / "notes.txt"
    txt.write_text("First paragraph.\n\n\n\nSecond   paragraph.", encoding="utf-8")
    assert extract_text(txt) == "First paragraph.\n\nSecond paragraph."

    md = tmp_path / "notes.MD"
    md.write_text("---\nauthor: me\n---\n# Heading\n\nBody", encoding="utf-8")
    assert extract_text(md) == "# Heading\n\nBody"


def test_docx_paragraphs_runs_and_breaks(tmp_path):
    body = (
        "<w:p><w:r><w:t>Hello </w:t></w:r><w:r><w:t>world</w:t></w:r></w:p>"
        "<w:p></w:p>"
        "<w:p><w:r><w:t>Line one</w:t><w:br/><w:t>Line two</w:t></w:r></w:p>"
        "<w:p><w:r><w:t>A</w:t><w:tab/><w:t>B</w:t></w:r></w:p>"
    )
    path = _write_docx(tmp_path / "draft.docx", body)
    assert extract_text(path) == "Hello world\n\nLine one\nLine two\n\nA B"


def test_docx_that_is_not_an_archive(tmp_path):
    path = tmp_path / "broken.docx"
    path.write_bytes(b"plain bytes")
    with pytest.raises(UnsupportedFormatError):
        extract_text(path)


def test_docx_without_document_part(tmp_path):
    path = tmp_path / "empty.docx"
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("other.xml", "<x/>")
    with pytest.raises(UnsupportedFormatError):
        extract_text(path)


def test_pdf_pages_in_order(tmp_path):
    doc = fitz.open()
    for text in ("Page one text", "Page two text"):
        page = doc.new_page()
        page.insert_text((72, 72), text, fontname="helv", fontsize=12)
    path = tmp_path / "source.pdf"
    doc.save(str(path))
    doc.close()

    extracted = extract_text(path)
    assert extracted.index("Page one text") < extracted.index("Page two text")
    assert "\n\n" in extracted


@pytest.mark.parametrize("name", ["slides.pptx", "book.epub", "README"])
def test_unsupported_formats(tmp_path, name):
    path = tmp_path / name
    path.write_text("x", encoding="utf-8")
    with pytest.raises(UnsupportedFormatError):
        extract_text(path)

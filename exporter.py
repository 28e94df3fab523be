"""exporter.py — Turn a laid-out e-book into a PDF or a plain text file."""

import re
from pathlib import Path

from errors import ContentError, RendererNotReadyError
from layout import Measurer, chapter_start_numbers, layout
from models import BlockKind, Document, Line, Page, PageSpec, PlacedBlock, Run

REGULAR_FONT = "helv"
BOLD_FONT = "hebo"

TEXT_COLOR = (0.12, 0.16, 0.23)
HEADING_COLOR = (0.06, 0.09, 0.16)
MUTED_COLOR = (0.40, 0.45, 0.53)
LINK_COLOR = (0.15, 0.39, 0.92)


def load_backend():
    """Import PyMuPDF, failing with RendererNotReadyError when it is missing."""
    try:
        import fitz  # pymupdf
    except ImportError as e:
        raise RendererNotReadyError(str(e)) from e
    return fitz


class FitzMeasurer:
    """Measurer backed by PyMuPDF's Helvetica metrics and image decoder."""

    def __init__(self):
        self.fitz = load_backend()

    def text_width(self, text: str, font_size: float, bold: bool = False) -> float:
        fontname = BOLD_FONT if bold else REGULAR_FONT
        return self.fitz.get_text_length(text, fontname=fontname, fontsize=font_size)

    def image_size(self, image: bytes) -> tuple[float, float]:
        try:
            pix = self.fitz.Pixmap(image)
        except Exception:  # undecodable image data
            return 0.0, 0.0
        return float(pix.width), float(pix.height)


def safe_filename(title: str) -> str:
    """Collapse every run of non-alphanumeric characters into '_'."""
    sanitized = re.sub(r"[\W_]+", "_", title).strip("_")
    return sanitized[:100] or "ebook"


def check_exportable(document: Document) -> None:
    if not document.title.strip():
        raise ContentError("The e-book has no title.")
    if not any(ch.content.strip() for ch in document.chapters):
        raise ContentError("The e-book has no chapter text to export.")


def render_plain_text(document: Document) -> str:
    """Lossless structural dump: '# title' then '## chapter' and raw content."""
    text = f"# {document.title}\n\n"
    for chapter in document.chapters:
        text += f"## {chapter.title}\n\n{chapter.content}\n\n"
    return text


# ---------------------------------------------------------------------------
# PDF drawing
# ---------------------------------------------------------------------------

def _baseline(top: float, font_size: float, line_height: float) -> float:
    return top + (line_height + font_size) / 2 - font_size * 0.15


def _clip_runs(runs: tuple[Run, ...], available: float, font_size: float, measurer: Measurer) -> list[Run]:
    """Drop trailing characters that would cross the right margin."""
    clipped: list[Run] = []
    used = 0.0
    for run in runs:
        kept = ""
        for ch in run.text:
            w = measurer.text_width(ch, font_size, run.bold)
            if used + w > available:
                if kept:
                    clipped.append(Run(kept, run.bold))
                return clipped
            kept += ch
            used += w
        clipped.append(Run(kept, run.bold))
    return clipped


def _draw_line(pdf_page, line: Line, x: float, baseline: float, placed: PlacedBlock,
               color, measurer: Measurer) -> None:
    runs = line.runs
    if line.width > placed.width:
        runs = _clip_runs(runs, placed.width, placed.font_size, measurer)
    for run in runs:
        if run.text.strip():
            pdf_page.insert_text(
                (x, baseline), run.text,
                fontname=BOLD_FONT if run.bold else REGULAR_FONT,
                fontsize=placed.font_size,
                color=color,
            )
        x += measurer.text_width(run.text, placed.font_size, run.bold)


def _draw_text_block(pdf_page, placed: PlacedBlock, color, measurer: Measurer) -> None:
    for i, line in enumerate(placed.lines):
        top = placed.y + i * placed.line_height
        x = placed.x
        if placed.align == "center":
            x += max(0.0, (placed.width - line.width) / 2)
        _draw_line(pdf_page, line, x, _baseline(top, placed.font_size, placed.line_height),
                   placed, color, measurer)


def _cover_crop(fitz, image: bytes, width: float, height: float):
    """Centre-crop ``image`` to the aspect ratio of a ``width`` x ``height`` box."""
    pix = fitz.Pixmap(image)
    scale = max(width / pix.width, height / pix.height)
    src_w = max(1, min(pix.width, round(width / scale)))
    src_h = max(1, min(pix.height, round(height / scale)))
    x0 = (pix.width - src_w) // 2
    y0 = (pix.height - src_h) // 2
    crop = fitz.Pixmap(pix.colorspace, fitz.IRect(x0, y0, x0 + src_w, y0 + src_h), pix.alpha)
    crop.copy(pix, crop.irect)
    crop.set_origin(0, 0)
    return crop


def _draw_block(fitz, pdf_page, placed: PlacedBlock, starts: dict[int, int | None],
                measurer: Measurer) -> None:
    kind = placed.block.kind
    if kind is BlockKind.IMAGE:
        rect = fitz.Rect(placed.x, placed.y, placed.x + placed.width, placed.bottom)
        if placed.section == "cover":
            crop = _cover_crop(fitz, placed.block.image, placed.width, placed.height)
            pdf_page.insert_image(rect, pixmap=crop, keep_proportion=False)
        else:
            pdf_page.insert_image(rect, stream=placed.block.image, keep_proportion=True)
    elif kind is BlockKind.HEADING:
        _draw_text_block(pdf_page, placed, HEADING_COLOR, measurer)
    elif kind is BlockKind.REFERENCE:
        bullet_x = placed.x - placed.font_size
        pdf_page.insert_text(
            (bullet_x, _baseline(placed.y, placed.font_size, placed.line_height)), "\u2022",
            fontname=REGULAR_FONT, fontsize=placed.font_size, color=TEXT_COLOR,
        )
        _draw_text_block(pdf_page, placed, LINK_COLOR, measurer)
    elif kind is BlockKind.TOC_ENTRY:
        _draw_text_block(pdf_page, placed, TEXT_COLOR, measurer)
        number = starts.get(placed.chapter)
        if number is not None and placed.lines:
            label = str(number)
            last_top = placed.y + (len(placed.lines) - 1) * placed.line_height
            x = placed.x + placed.width - measurer.text_width(label, placed.font_size)
            pdf_page.insert_text(
                (x, _baseline(last_top, placed.font_size, placed.line_height)), label,
                fontname=REGULAR_FONT, fontsize=placed.font_size, color=TEXT_COLOR,
            )
    else:
        color = MUTED_COLOR if placed.section == "cover" else TEXT_COLOR
        _draw_text_block(pdf_page, placed, color, measurer)


def _stamp_header_footer(pdf_page, number: int, total: int, title: str,
                         spec: PageSpec, measurer: Measurer) -> None:
    header_y = spec.margin_top / 2 + spec.header_font_size / 2
    header = title
    if measurer.text_width(header, spec.header_font_size) > spec.usable_width:
        header = "".join(r.text for r in _clip_runs((Run(header),), spec.usable_width,
                                                   spec.header_font_size, measurer))
    pdf_page.insert_text(
        (spec.margin_left, header_y), header,
        fontname=REGULAR_FONT, fontsize=spec.header_font_size, color=MUTED_COLOR,
    )

    footer_y = spec.page_height - spec.margin_bottom / 2 + spec.footer_font_size / 2
    pdf_page.insert_text(
        (spec.margin_left, footer_y), spec.product_label,
        fontname=REGULAR_FONT, fontsize=spec.footer_font_size, color=MUTED_COLOR,
    )
    label = f"Page {number} of {total}"
    x = spec.page_width - spec.margin_right - measurer.text_width(label, spec.footer_font_size)
    pdf_page.insert_text(
        (x, footer_y), label,
        fontname=REGULAR_FONT, fontsize=spec.footer_font_size, color=MUTED_COLOR,
    )


def render(pages: list[Page], meta: dict, page_spec: PageSpec | None = None,
           measurer: Measurer | None = None) -> bytes:
    """Draw the page plan into a PDF and return its bytes.

    Pages are drawn first; numbered pages then get the running header
    (document title) and the footer (product label, 'Page X of N').
    """
    fitz = load_backend()
    spec = page_spec or PageSpec()
    measurer = measurer or FitzMeasurer()
    title = meta.get("title", "")
    starts = chapter_start_numbers(pages)

    doc = fitz.open()
    for page in pages:
        pdf_page = doc.new_page(width=spec.page_width, height=spec.page_height)
        for placed in page.blocks:
            _draw_block(fitz, pdf_page, placed, starts, measurer)

    total = sum(1 for page in pages if page.number is not None)
    for page in pages:
        if page.number is not None:
            _stamp_header_footer(doc[page.index - 1], page.number, total, title, spec, measurer)

    doc.set_metadata({"title": title, "creator": spec.product_label})
    data = doc.tobytes(garbage=3, deflate=True)
    doc.close()
    return data


# ---------------------------------------------------------------------------
# File output
# ---------------------------------------------------------------------------

def export_pdf(
    document: Document,
    output_dir: Path,
    page_spec: PageSpec | None = None,
    diagramming: bool = True,
    output_path: Path | None = None,
) -> Path:
    """Lay out and render the document, saving '<safe title>.pdf'."""
    check_exportable(document)
    measurer = FitzMeasurer()
    spec = page_spec or PageSpec()
    pages = layout(document, spec, measurer, diagramming=diagramming)
    data = render(pages, {"title": document.title}, spec, measurer)

    path = output_path or Path(output_dir) / f"{safe_filename(document.title)}.pdf"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def export_text(document: Document, output_dir: Path, output_path: Path | None = None) -> Path:
    """Save the plain text dump as '<safe title>.txt' (UTF-8)."""
    check_exportable(document)
    path = output_path or Path(output_dir) / f"{safe_filename(document.title)}.txt"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_plain_text(document), encoding="utf-8")
    return path

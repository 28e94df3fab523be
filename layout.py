"""layout.py — Partition a Document into fixed-size pages.

The engine is a greedy filler driven by a vertical cursor. Headings, images,
reference entries and TOC entries are atomic: when one does not fit in the
space left on the current page a new page is opened before it is placed.
Paragraphs are wrapped into lines and placed one line at a time, so a
paragraph may continue on the next page but a line never does.

Text and image geometry come from an injected Measurer; this module never
touches a PDF library or the filesystem.
"""

import re
from dataclasses import dataclass, field
from typing import Protocol

from markup import normalize, parse_runs, strip_emphasis
from models import Block, BlockKind, Document, Line, Page, PageSpec, PlacedBlock, Run

WHITESPACE_SPLIT = re.compile(r"(\s+)")
EPSILON = 1e-6


class Measurer(Protocol):
    def text_width(self, text: str, font_size: float, bold: bool = False) -> float:
        ...

    def image_size(self, image: bytes) -> tuple[float, float]:
        ...


# ---------------------------------------------------------------------------
# Line wrapping
# ---------------------------------------------------------------------------

def _split_words(runs: list[Run]) -> list[list[Run]]:
    """Group runs into words. A word may mix bold and plain text ('a**b**')."""
    words: list[list[Run]] = []
    glue = False
    for run in runs:
        for piece in WHITESPACE_SPLIT.split(run.text):
            if not piece:
                continue
            if piece.isspace():
                glue = False
                continue
            if glue and words:
                words[-1].append(Run(piece, run.bold))
            else:
                words.append([Run(piece, run.bold)])
            glue = True
    return words


def _runs_width(runs: list[Run], font_size: float, measurer: Measurer) -> float:
    return sum(measurer.text_width(r.text, font_size, r.bold) for r in runs)


def _merge_runs(runs: list[Run]) -> tuple[Run, ...]:
    merged: list[Run] = []
    for run in runs:
        if merged and merged[-1].bold == run.bold:
            merged[-1] = Run(merged[-1].text + run.text, run.bold)
        else:
            merged.append(run)
    return tuple(merged)


def _make_line(words: list[list[Run]], width: float) -> Line:
    runs: list[Run] = []
    for i, word in enumerate(words):
        if i:
            runs.append(Run(" "))
        runs.extend(word)
    return Line(runs=_merge_runs(runs), width=width)


def _break_word(
    word: list[Run], width: float, font_size: float, measurer: Measurer,
) -> list[tuple[list[Run], float]]:
    """Split a word wider than the line into pieces that each fit."""
    pieces: list[tuple[list[Run], float]] = []
    chunk: list[Run] = []
    chunk_width = 0.0
    for run in word:
        for ch in run.text:
            w = measurer.text_width(ch, font_size, run.bold)
            if chunk and chunk_width + w > width + EPSILON:
                pieces.append((list(_merge_runs(chunk)), chunk_width))
                chunk, chunk_width = [], 0.0
            chunk.append(Run(ch, run.bold))
            chunk_width += w
    if chunk:
        pieces.append((list(_merge_runs(chunk)), chunk_width))
    return pieces


def wrap_runs(
    runs: list[Run],
    width: float,
    font_size: float,
    measurer: Measurer,
    break_long_words: bool = True,
) -> list[Line]:
    """Greedy word wrap of styled runs into lines no wider than `width`.

    With break_long_words=False a word wider than the line keeps a line of
    its own and overflows it.
    """
    space = measurer.text_width(" ", font_size)
    lines: list[Line] = []
    current: list[list[Run]] = []
    current_width = 0.0

    for word in _split_words(runs):
        word_width = _runs_width(word, font_size, measurer)
        if current and current_width + space + word_width <= width + EPSILON:
            current.append(word)
            current_width += space + word_width
            continue
        if current:
            lines.append(_make_line(current, current_width))
        if word_width > width + EPSILON and break_long_words:
            pieces = _break_word(word, width, font_size, measurer)
            for piece, piece_width in pieces[:-1]:
                lines.append(_make_line([piece], piece_width))
            word, word_width = pieces[-1]
        current = [word]
        current_width = word_width

    if current:
        lines.append(_make_line(current, current_width))
    return lines


# ---------------------------------------------------------------------------
# Page composition
# ---------------------------------------------------------------------------

@dataclass
class _PageDraft:
    is_cover: bool = False
    is_toc: bool = False
    blocks: list[PlacedBlock] = field(default_factory=list)


class _Composer:
    """Cursor state shared by every placement step of one layout run."""

    def __init__(self, spec: PageSpec, measurer: Measurer):
        self.spec = spec
        self.measurer = measurer
        self.drafts: list[_PageDraft] = []
        self.current: _PageDraft | None = None
        self.y = spec.margin_top
        self.toc_mode = False

    @property
    def page_empty(self) -> bool:
        return self.current is None or not self.current.blocks

    def new_page(self, is_cover: bool = False) -> None:
        self.current = _PageDraft(is_cover=is_cover, is_toc=self.toc_mode)
        self.drafts.append(self.current)
        self.y = self.spec.margin_top

    def ensure_page(self) -> None:
        if self.current is None:
            self.new_page()

    def place_atomic(self, height: float, gap: float, **placed) -> PlacedBlock:
        """Place an unsplittable block, breaking the page first if it does not fit.

        A block taller than the usable height lands alone at the top of a
        fresh page and overflows it.
        """
        self.ensure_page()
        if self.page_empty:
            gap = 0.0
        elif self.y + gap + height > self.spec.bottom + EPSILON:
            self.new_page()
            gap = 0.0
        top = self.y + gap
        block = PlacedBlock(y=top, height=height, **placed)
        self.current.blocks.append(block)
        self.y = top + height
        return block

    def place_lines(
        self,
        block: Block,
        lines: list[Line],
        font_size: float,
        line_height: float,
        gap: float,
        section: str,
        chapter: int | None,
    ) -> None:
        """Place a paragraph line by line; it may continue on following pages."""
        self.ensure_page()
        spec = self.spec
        part: list[Line] = []
        part_top = self.y
        parts = 0

        def flush() -> None:
            nonlocal part, parts
            if not part:
                return
            self.current.blocks.append(PlacedBlock(
                block=block,
                section=section,
                x=spec.margin_left,
                y=part_top,
                width=spec.usable_width,
                height=len(part) * line_height,
                lines=tuple(part),
                font_size=font_size,
                line_height=line_height,
                chapter=chapter,
                continued=parts > 0,
            ))
            parts += 1
            part = []

        for i, line in enumerate(lines):
            line_gap = gap if i == 0 else 0.0
            if self.page_empty and not part:
                line_gap = 0.0
            elif self.y + line_gap + line_height > spec.bottom + EPSILON:
                flush()
                self.new_page()
                line_gap = 0.0
            if not part:
                part_top = self.y + line_gap
            part.append(line)
            self.y += line_gap + line_height
        flush()

    # -- block helpers -----------------------------------------------------

    def heading(self, text: str, level: int, section: str, chapter: int | None = None) -> None:
        spec = self.spec
        font_size = spec.heading_font_size(level)
        line_height = spec.heading_line_height(level)
        lines = wrap_runs(
            [Run(strip_emphasis(text), bold=True)], spec.usable_width, font_size,
            self.measurer, spec.break_long_words,
        )
        self.place_atomic(
            height=len(lines) * line_height,
            gap=line_height * spec.heading_spacing_multiplier,
            block=Block(kind=BlockKind.HEADING, text=text, level=level),
            section=section,
            x=spec.margin_left,
            width=spec.usable_width,
            lines=tuple(lines),
            font_size=font_size,
            line_height=line_height,
            chapter=chapter,
        )

    def paragraph(self, block: Block, section: str, chapter: int | None = None) -> None:
        spec = self.spec
        lines: list[Line] = []
        for hard_line in block.hard_lines:
            lines.extend(wrap_runs(
                parse_runs(hard_line), spec.usable_width, spec.body_font_size,
                self.measurer, spec.break_long_words,
            ))
        self.place_lines(
            block, lines, spec.body_font_size, spec.base_line_height,
            spec.paragraph_spacing, section, chapter,
        )

    def image(self, image: bytes, section: str, chapter: int | None = None) -> None:
        spec = self.spec
        natural_w, natural_h = self.measurer.image_size(image)
        if natural_w <= 0 or natural_h <= 0:
            return
        width = min(spec.image_max_width, spec.usable_width)
        height = width * natural_h / natural_w
        self.place_atomic(
            height=height,
            gap=spec.image_spacing,
            block=Block(kind=BlockKind.IMAGE, image=image),
            section=section,
            x=spec.margin_left + (spec.usable_width - width) / 2,
            width=width,
            chapter=chapter,
        )


def _fit_cover_title(composer: _Composer, title: str, available: float) -> tuple[list[Line], float, float]:
    """Wrap the cover title, shrinking it until it fits the space below the image.

    Returns the lines with the font size and line height they were wrapped at.
    Lines that still do not fit at the body font size are dropped.
    """
    spec = composer.spec
    ratio = spec.cover_title_line_height / spec.cover_title_font_size
    font_size = spec.cover_title_font_size
    while True:
        line_height = font_size * ratio
        lines = wrap_runs([Run(title, bold=True)], spec.usable_width, font_size, composer.measurer)
        if len(lines) * line_height <= available + EPSILON or font_size <= spec.body_font_size:
            break
        font_size = max(spec.body_font_size, font_size - 2)
    max_lines = max(1, int((available + EPSILON) // line_height))
    return lines[:max_lines], font_size, line_height


def _layout_cover(composer: _Composer, document: Document) -> None:
    spec = composer.spec
    composer.new_page(is_cover=True)
    page = composer.current

    # Full-bleed: the image covers the whole top band, the renderer crops the overflow
    area_h = spec.page_height * spec.cover_image_ratio
    natural_w, natural_h = composer.measurer.image_size(document.cover_image)
    if natural_w > 0 and natural_h > 0:
        page.blocks.append(PlacedBlock(
            block=Block(kind=BlockKind.IMAGE, image=document.cover_image),
            section="cover",
            x=0.0,
            y=0.0,
            width=spec.page_width,
            height=area_h,
        ))

    subtitle_lines = wrap_runs(
        [Run(spec.cover_subtitle)], spec.usable_width,
        spec.cover_subtitle_font_size, composer.measurer,
    )
    subtitle_h = len(subtitle_lines) * spec.cover_subtitle_line_height
    region_h = spec.bottom - area_h
    title_lines, title_size, title_line_height = _fit_cover_title(
        composer, document.title, max(0.0, region_h - subtitle_h),
    )
    title_h = len(title_lines) * title_line_height
    y = area_h + max(0.0, (region_h - title_h - subtitle_h) / 2)

    page.blocks.append(PlacedBlock(
        block=Block(kind=BlockKind.HEADING, text=document.title, level=1),
        section="cover",
        x=spec.margin_left,
        y=y,
        width=spec.usable_width,
        height=title_h,
        lines=tuple(title_lines),
        font_size=title_size,
        line_height=title_line_height,
        align="center",
    ))
    if subtitle_lines:
        page.blocks.append(PlacedBlock(
            block=Block(kind=BlockKind.PARAGRAPH, text=spec.cover_subtitle),
            section="cover",
            x=spec.margin_left,
            y=y + title_h,
            width=spec.usable_width,
            height=subtitle_h,
            lines=tuple(subtitle_lines),
            font_size=spec.cover_subtitle_font_size,
            line_height=spec.cover_subtitle_line_height,
            align="center",
        ))


def _layout_toc(composer: _Composer, document: Document) -> None:
    spec = composer.spec
    composer.toc_mode = True
    composer.new_page()
    composer.heading(spec.toc_title, 1, "toc")
    entry_width = spec.usable_width - spec.toc_number_width
    for index, chapter in enumerate(document.chapters):
        lines = wrap_runs(
            [Run(strip_emphasis(chapter.title))], entry_width,
            spec.toc_font_size, composer.measurer,
        )
        composer.place_atomic(
            height=len(lines) * spec.toc_line_height,
            gap=0.0,
            block=Block(kind=BlockKind.TOC_ENTRY, text=chapter.title),
            section="toc",
            x=spec.margin_left,
            width=spec.usable_width,
            lines=tuple(lines),
            font_size=spec.toc_font_size,
            line_height=spec.toc_line_height,
            chapter=index,
        )
    composer.toc_mode = False


def _layout_chapters(composer: _Composer, document: Document) -> None:
    for index, chapter in enumerate(document.chapters):
        front_matter = composer.current is not None and (
            composer.current.is_cover or composer.current.is_toc
        )
        if index > 0 or front_matter or composer.current is None:
            composer.new_page()
        composer.heading(chapter.title, 1, "chapter", index)
        if chapter.image:
            composer.image(chapter.image, "chapter", index)
        for block in normalize(chapter.content):
            if block.kind is BlockKind.HEADING:
                composer.heading(block.text, block.level, "chapter", index)
            else:
                composer.paragraph(block, "chapter", index)


def _layout_references(composer: _Composer, document: Document) -> None:
    spec = composer.spec
    composer.new_page()
    composer.heading(spec.references_title, 2, "references")
    indent = spec.reference_font_size * 1.5
    for ref in document.sorted_references():
        lines = wrap_runs(
            [Run(ref)], spec.usable_width - indent,
            spec.reference_font_size, composer.measurer, break_long_words=True,
        )
        composer.place_atomic(
            height=len(lines) * spec.reference_line_height,
            gap=spec.reference_spacing,
            block=Block(kind=BlockKind.REFERENCE, text=ref),
            section="references",
            x=spec.margin_left + indent,
            width=spec.usable_width - indent,
            lines=tuple(lines),
            font_size=spec.reference_font_size,
            line_height=spec.reference_line_height,
        )


def layout(
    document: Document,
    page_spec: PageSpec,
    measurer: Measurer,
    diagramming: bool = True,
) -> list[Page]:
    """Lay out a document snapshot into pages.

    Page order is cover, table of contents, chapters, references. The cover
    and TOC only appear with diagramming; the cover also needs a cover image.
    """
    composer = _Composer(page_spec, measurer)

    if diagramming and document.cover_image:
        _layout_cover(composer, document)
    if diagramming and document.chapters:
        _layout_toc(composer, document)
    _layout_chapters(composer, document)
    if document.references:
        _layout_references(composer, document)

    pages = []
    number = 0
    for i, draft in enumerate(composer.drafts, start=1):
        numbered = not draft.is_cover and (page_spec.number_toc_pages or not draft.is_toc)
        if numbered:
            number += 1
        pages.append(Page(
            index=i,
            blocks=tuple(draft.blocks),
            is_cover=draft.is_cover,
            is_toc=draft.is_toc,
            number=number if numbered else None,
        ))
    return pages


def chapter_start_numbers(pages: list[Page]) -> dict[int, int | None]:
    """Printed page number of the page each chapter starts on."""
    starts: dict[int, int | None] = {}
    for page in pages:
        for placed in page.blocks:
            if placed.section == "chapter" and placed.chapter not in starts:
                starts[placed.chapter] = page.number
    return starts

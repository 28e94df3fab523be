"""models.py — Shared data types for ebookgen."""

from dataclasses import dataclass, field
from enum import Enum

LINE_BREAK = "\n"


@dataclass(frozen=True)
class Chapter:
    title: str
    content: str                  # Raw markup: '#' headings, '**bold**', blank-line paragraphs
    image: bytes | None = None    # Illustration placed right after the chapter title


@dataclass(frozen=True)
class Document:
    title: str
    topic: str = ""                                   # Provenance only, never laid out
    chapters: tuple[Chapter, ...] = ()
    references: frozenset[str] = frozenset()
    cover_image: bytes | None = None

    def sorted_references(self) -> list[str]:
        """References in the order they are rendered."""
        return sorted(self.references)


class BlockKind(str, Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    IMAGE = "image"
    REFERENCE = "reference"
    TOC_ENTRY = "toc_entry"


@dataclass(frozen=True)
class Block:
    kind: BlockKind
    text: str = ""
    level: int = 0              # 1..3 for headings
    image: bytes | None = None

    @property
    def atomic(self) -> bool:
        return self.kind is not BlockKind.PARAGRAPH

    @property
    def hard_lines(self) -> list[str]:
        return self.text.split(LINE_BREAK)


@dataclass(frozen=True)
class Run:
    text: str
    bold: bool = False


@dataclass(frozen=True)
class Line:
    runs: tuple[Run, ...]
    width: float

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)


@dataclass(frozen=True)
class PlacedBlock:
    block: Block
    section: str                     # "cover", "toc", "chapter" or "references"
    x: float
    y: float                         # Top edge, measured from the top of the page
    width: float
    height: float
    lines: tuple[Line, ...] = ()
    font_size: float = 0.0
    line_height: float = 0.0
    align: str = "left"
    chapter: int | None = None       # Index into Document.chapters
    continued: bool = False          # Paragraph part that started on an earlier page

    @property
    def bottom(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class Page:
    index: int                       # 1-based physical page index
    blocks: tuple[PlacedBlock, ...]
    is_cover: bool = False
    is_toc: bool = False
    number: int | None = None        # Printed page number, None when unnumbered


def _default_heading_sizes() -> dict[int, float]:
    return {1: 22.0, 2: 17.0, 3: 14.0}


def _default_heading_line_heights() -> dict[int, float]:
    return {1: 28.0, 2: 22.0, 3: 18.0}


@dataclass(frozen=True)
class PageSpec:
    """Page geometry, typography and placement policy for one layout run.

    Sizes are PDF points. The defaults describe an A4 page with the margins
    the exported e-books have always used.
    """
    page_width: float = 595.28
    page_height: float = 841.89
    margin_top: float = 40.0
    margin_right: float = 40.0
    margin_bottom: float = 60.0
    margin_left: float = 40.0

    body_font_size: float = 11.0
    base_line_height: float = 15.0
    paragraph_spacing: float = 8.0

    heading_font_sizes: dict[int, float] = field(default_factory=_default_heading_sizes)
    heading_line_heights: dict[int, float] = field(default_factory=_default_heading_line_heights)
    heading_spacing_multiplier: float = 0.75

    image_max_width: float = 336.0
    image_spacing: float = 12.0

    reference_font_size: float = 9.0
    reference_line_height: float = 12.0
    reference_spacing: float = 4.0

    toc_font_size: float = 11.0
    toc_line_height: float = 16.0
    toc_number_width: float = 36.0

    cover_image_ratio: float = 0.6
    cover_title_font_size: float = 32.0
    cover_title_line_height: float = 40.0
    cover_subtitle_font_size: float = 18.0
    cover_subtitle_line_height: float = 24.0

    header_font_size: float = 8.0
    footer_font_size: float = 8.0

    toc_title: str = "Table of Contents"
    references_title: str = "References"
    cover_subtitle: str = "Complete Guide"
    product_label: str = "AI E-book Generator"

    break_long_words: bool = True
    number_toc_pages: bool = False

    @property
    def usable_width(self) -> float:
        return self.page_width - self.margin_left - self.margin_right

    @property
    def usable_height(self) -> float:
        return self.page_height - self.margin_top - self.margin_bottom

    @property
    def bottom(self) -> float:
        """Lowest y coordinate content may reach."""
        return self.page_height - self.margin_bottom

    def heading_font_size(self, level: int) -> float:
        return self.heading_font_sizes.get(level, self.body_font_size)

    def heading_line_height(self, level: int) -> float:
        return self.heading_line_heights.get(level, self.base_line_height)

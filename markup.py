"""markup.py — Normalize generated chapter markup into layout blocks.

The generator writes a light Markdown dialect: '#', '##' and '###' headings,
'**bold**' spans, paragraphs separated by blank lines and single newlines as
forced line breaks. Nothing else is interpreted.
"""

import re

from models import LINE_BREAK, Block, BlockKind, Run

HEADING_PATTERN = re.compile(r"^(#{1,3})[ \t]+(\S.*)$")
BOLD_PATTERN = re.compile(r"\*\*(.+?)\*\*")
PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def normalize(raw_text: str) -> list[Block]:
    """Split raw markup into headings and paragraphs, preserving order.

    A heading marker is recognised on any line of a candidate, so a heading
    written directly above its paragraph (no blank line in between) still
    becomes its own block.
    """
    if not raw_text:
        return []
    text = raw_text.replace("\r\n", "\n").replace("\r", "\n")

    blocks: list[Block] = []
    for candidate in PARAGRAPH_BREAK.split(text):
        candidate = candidate.strip()
        if not candidate:
            continue
        pending: list[str] = []
        for line in candidate.split("\n"):
            line = line.strip()
            m = HEADING_PATTERN.match(line)
            if m:
                if pending:
                    blocks.append(_paragraph(pending))
                    pending = []
                blocks.append(Block(
                    kind=BlockKind.HEADING,
                    level=len(m.group(1)),
                    text=m.group(2).strip(),
                ))
            elif line:
                pending.append(line)
        if pending:
            blocks.append(_paragraph(pending))
    return blocks


def _paragraph(lines: list[str]) -> Block:
    return Block(kind=BlockKind.PARAGRAPH, text=LINE_BREAK.join(lines))


def to_markup(blocks: list[Block]) -> str:
    """Render heading and paragraph blocks back to markup."""
    parts = []
    for block in blocks:
        if block.kind is BlockKind.HEADING:
            parts.append(f"{'#' * block.level} {block.text}")
        elif block.kind is BlockKind.PARAGRAPH:
            parts.append(block.text)
    return "\n\n".join(parts)


def parse_runs(text: str) -> list[Run]:
    """Split one line of text into plain and bold runs.

    An unterminated '**' is kept as literal text.
    """
    runs: list[Run] = []
    pos = 0
    for m in BOLD_PATTERN.finditer(text):
        if m.start() > pos:
            runs.append(Run(text[pos:m.start()]))
        runs.append(Run(m.group(1), bold=True))
        pos = m.end()
    if pos < len(text):
        runs.append(Run(text[pos:]))
    return runs


def strip_emphasis(text: str) -> str:
    return BOLD_PATTERN.sub(r"\1", text)

"""parsers/text_parser.py — Read plain text and Markdown uploads."""

import re
from pathlib import Path

from parsers.base import clean_text


def strip_frontmatter(content: str) -> str:
    """Drop a leading YAML front matter block (--- delimited) if present."""
    m = re.match(r"^---\s*\n(.*?)\n---\s*\n", content, re.DOTALL)
    return content[m.end():] if m else content


def extract_plain_text(file_path: Path) -> str:
    content = Path(file_path).read_text(encoding="utf-8", errors="replace")
    return clean_text(strip_frontmatter(content))

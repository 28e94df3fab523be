"""builder.py — Assemble the Document from generation results, one chapter at a time."""

import base64
import json
from dataclasses import replace
from pathlib import Path
from typing import Iterable

from models import Chapter, Document


class DocumentBuilder:
    """Mutable accumulator for a Document that is still being generated.

    Chapters keep insertion order; references are a set, so the same URI
    cited by several chapters is stored once. `snapshot()` returns the
    immutable Document that layout and export work on.
    """

    def __init__(self, title: str, topic: str = ""):
        self.title = title
        self.topic = topic
        self.chapters: list[Chapter] = []
        self.references: set[str] = set()
        self.cover_image: bytes | None = None

    @classmethod
    def from_document(cls, document: Document) -> "DocumentBuilder":
        builder = cls(document.title, document.topic)
        builder.chapters = list(document.chapters)
        builder.references = set(document.references)
        builder.cover_image = document.cover_image
        return builder

    def set_cover(self, image: bytes | None) -> None:
        self.cover_image = image or None

    def add_chapter(
        self,
        title: str,
        content: str,
        image: bytes | None = None,
        sources: Iterable[str] = (),
    ) -> Chapter:
        chapter = Chapter(title=title, content=content, image=image or None)
        self.chapters.append(chapter)
        self.add_references(sources)
        return chapter

    def add_references(self, refs: Iterable[str]) -> None:
        self.references.update(r.strip() for r in refs if r and r.strip())

    def replace_references(self, refs: Iterable[str]) -> None:
        self.references = set()
        self.add_references(refs)

    def snapshot(self) -> Document:
        return Document(
            title=self.title,
            topic=self.topic,
            chapters=tuple(self.chapters),
            references=frozenset(self.references),
            cover_image=self.cover_image,
        )


def update_chapter(document: Document, index: int, content: str) -> Document:
    """Return a copy of `document` with one chapter's content replaced."""
    if not 0 <= index < len(document.chapters):
        raise IndexError(f"Chapter {index} does not exist (document has {len(document.chapters)})")
    chapters = list(document.chapters)
    chapters[index] = replace(chapters[index], content=content)
    return replace(document, chapters=tuple(chapters))


def _encode_image(image: bytes | None) -> str | None:
    return base64.b64encode(image).decode("ascii") if image else None


def _decode_image(data: str | None) -> bytes | None:
    return base64.b64decode(data) if data else None


def document_to_dict(document: Document) -> dict:
    return {
        "title": document.title,
        "topic": document.topic,
        "chapters": [
            {"title": ch.title, "content": ch.content, "image": _encode_image(ch.image)}
            for ch in document.chapters
        ],
        "references": document.sorted_references(),
        "cover_image": _encode_image(document.cover_image),
    }


def document_from_dict(data: dict) -> Document:
    return Document(
        title=str(data.get("title", "")),
        topic=str(data.get("topic", "")),
        chapters=tuple(
            Chapter(
                title=str(ch.get("title", "")),
                content=str(ch.get("content", "")),
                image=_decode_image(ch.get("image")),
            )
            for ch in data.get("chapters", [])
        ),
        references=frozenset(data.get("references", [])),
        cover_image=_decode_image(data.get("cover_image")),
    )


def save_document(document: Document, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document_to_dict(document), indent=2, ensure_ascii=False), encoding="utf-8")


def load_document(path: Path) -> Document:
    return document_from_dict(json.loads(Path(path).read_text(encoding="utf-8")))

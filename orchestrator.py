"""orchestrator.py — Drive the generator and build the Document, chapter by chapter.

Create mode writes an outline, a cover, then an introduction, the outline's
chapters and a conclusion; enhance mode restructures an uploaded document and
rewrites each of its chapters. Progress is saved after every chapter so an
interrupted create run can resume without paying for finished chapters.
"""

import json
from pathlib import Path
from typing import Callable

from tqdm import tqdm

from builder import DocumentBuilder, document_from_dict, document_to_dict
from config import CreateRequest, EnhanceRequest
from errors import ContentError, GenerationError
from generation import ChapterDraft, Outline
from models import Document
from parsers import extract_text

CHAPTER_ERROR_TEXT = "Error generating this chapter. Please try again."

BOOKEND_TITLES = {
    "Português": ("Introdução", "Conclusão"),
    "English": ("Introduction", "Conclusion"),
    "Español": ("Introducción", "Conclusión"),
    "Français": ("Introduction", "Conclusion"),
    "Italiano": ("Introduzione", "Conclusione"),
}


def chapter_titles(outline: Outline, language: str) -> list[str]:
    intro, conclusion = BOOKEND_TITLES.get(language, BOOKEND_TITLES["English"])
    return [intro, *outline.chapters, conclusion]


def _request_key(request: CreateRequest) -> dict:
    return {
        "topic": request.topic,
        "min_pages": request.min_pages,
        "max_pages": request.max_pages,
        "language": request.language,
        "include_images": request.include_images,
        "notes": request.notes,
    }


def load_progress(path: Path) -> dict:
    if path.exists():
        return json.loads(path.read_text(encoding="utf-8"))
    return {}


def save_progress(progress: dict, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(progress, indent=2, ensure_ascii=False), encoding="utf-8")


def create_ebook(
    generator,
    request: CreateRequest,
    progress_path: Path | None = None,
    status: Callable[[str], None] = print,
) -> Document:
    """Generate a complete e-book for `request.topic`.

    A chapter that still fails after all retries gets placeholder text and
    the run continues; an outline failure aborts the run.
    """
    request.validate()
    key = _request_key(request)
    progress = load_progress(progress_path) if progress_path else {}
    if progress.get("request") != key:
        progress = {"request": key}

    if "outline" in progress:
        outline = Outline(**progress["outline"])
        status(f"Resuming: {outline.title}")
    else:
        status("Planning the outline...")
        outline = generator.generate_outline(
            request.topic, request.min_pages, request.max_pages, request.language, request.notes,
        )
        progress["outline"] = {"title": outline.title, "chapters": outline.chapters}

    if "document" in progress:
        builder = DocumentBuilder.from_document(document_from_dict(progress["document"]))
    else:
        builder = DocumentBuilder(outline.title, topic=request.topic)
        status("Creating the cover...")
        builder.set_cover(generator.generate_cover_image(outline.title, request.topic))
        if builder.cover_image is None:
            status("  Warning: no cover image, continuing without one")

    def _save() -> None:
        if progress_path:
            progress["document"] = document_to_dict(builder.snapshot())
            save_progress(progress, progress_path)

    _save()

    titles = chapter_titles(outline, request.language)
    done = len(builder.chapters)
    if done:
        status(f"  Skipping {done} chapters (already complete)")

    with tqdm(total=len(titles), initial=done, desc="  Writing chapters", unit="chapter") as pbar:
        for chapter_title in titles[done:]:
            try:
                draft = generator.generate_chapter_content(
                    outline.title, chapter_title, request.language, request.include_images, request.notes,
                )
            except GenerationError as e:
                status(f"\n  Warning: {e}")
                draft = ChapterDraft(content=CHAPTER_ERROR_TEXT)
            builder.add_chapter(chapter_title, draft.content, draft.image, draft.sources)
            _save()
            pbar.update(1)

    status("Selecting references...")
    builder.replace_references(
        generator.select_top_references(builder.references, request.topic, request.language)
    )
    _save()
    return builder.snapshot()


def enhance_ebook(
    generator,
    request: EnhanceRequest,
    status: Callable[[str], None] = print,
) -> Document:
    """Rewrite an uploaded document as an e-book in the requested style."""
    request.validate()
    source = Path(request.source)

    status(f"Reading: {source.name}")
    text = extract_text(source)
    if not text.strip():
        raise ContentError(f"No text could be extracted from {source.name}")

    status("Structuring the text...")
    structured = generator.structure_text(text)
    if not structured.title or not structured.chapters:
        raise ContentError("The structured document has no title or no chapters.")

    builder = DocumentBuilder(structured.title, topic=source.name)
    if request.diagramming:
        status("Creating the cover...")
        builder.set_cover(generator.generate_cover_image(structured.title, structured.title))

    for chapter in tqdm(structured.chapters, desc="  Enhancing chapters", unit="chapter"):
        draft = generator.enhance_chapter_content(
            chapter.title, chapter.content, request.style, request.language,
            request.include_images, request.notes,
        )
        builder.add_chapter(chapter.title, draft.content, draft.image, draft.sources)

    return builder.snapshot()

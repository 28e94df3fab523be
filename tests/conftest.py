from types import SimpleNamespace

import pytest

from errors import GenerationError
from generation import ChapterDraft, Outline, SourceChapter, StructuredText


class FakeMeasurer:
    """Monospaced metrics: every glyph is half the font size wide, bold 10% wider.

    Images are fake blobs of the form b"IMG:<width>x<height>".
    """

    def text_width(self, text, font_size, bold=False):
        width = len(text) * font_size * 0.5
        return width * 1.1 if bold else width

    def image_size(self, image):
        if not image.startswith(b"IMG:"):
            return 0.0, 0.0
        w, h = image[4:].decode().split("x")
        return float(w), float(h)


def fake_image(width, height):
    return f"IMG:{width}x{height}".encode()


def png_image(width, height):
    import fitz

    pix = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, width, height), False)
    pix.clear_with(180)
    return pix.tobytes("png")


class FakeGenerator:
    def __init__(self, fail_chapters=(), refs_per_chapter=2):
        self.fail_chapters = set(fail_chapters)
        self.refs_per_chapter = refs_per_chapter
        self.chapter_calls = []
        self.enhance_calls = []

    def generate_outline(self, topic, min_pages, max_pages, language, notes=""):
        return Outline(title=f"All about {topic}", chapters=["Roots", "Leaves"])

    def generate_cover_image(self, title, topic):
        return fake_image(600, 800)

    def generate_chapter_content(self, title, chapter_title, language, want_image, notes=""):
        self.chapter_calls.append(chapter_title)
        if chapter_title in self.fail_chapters:
            raise GenerationError(f"chapter '{chapter_title}'", 5)
        sources = [f"https://example.com/{chapter_title}/{i}" for i in range(self.refs_per_chapter)]
        sources.append("https://example.com/shared")
        return ChapterDraft(
            content=f"# {chapter_title}\n\nText about **{chapter_title}**.",
            sources=sources,
            image=fake_image(400, 300) if want_image else None,
        )

    def select_top_references(self, refs, topic, language, limit=3):
        return set(sorted(refs)[:limit])

    def structure_text(self, full_text):
        parts = [p for p in full_text.split("\n\n") if p.strip()]
        return StructuredText(
            title="Structured",
            chapters=[SourceChapter(title=f"Part {i}", content=p) for i, p in enumerate(parts, start=1)],
        )

    def enhance_chapter_content(self, title, content, style, language, want_image, notes=""):
        self.enhance_calls.append((title, style))
        return ChapterDraft(content=content.upper(), sources=["https://example.com/enhanced"])


def fake_response(text="", sources=(), image=None):
    parts = [SimpleNamespace(inline_data=SimpleNamespace(data=image))] if image else []
    chunks = [SimpleNamespace(web=SimpleNamespace(uri=uri)) for uri in sources]
    candidate = SimpleNamespace(
        content=SimpleNamespace(parts=parts),
        grounding_metadata=SimpleNamespace(grounding_chunks=chunks),
    )
    return SimpleNamespace(text=text, candidates=[candidate])


class FakeClient:
    """Stands in for genai.Client; replies are consumed in order."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []
        self.models = self

    def generate_content(self, model, contents, config=None):
        self.calls.append(SimpleNamespace(model=model, contents=contents, config=config))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def measurer():
    return FakeMeasurer()


@pytest.fixture
def fake_generator():
    return FakeGenerator()

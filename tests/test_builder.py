import pytest

from builder import (
    DocumentBuilder,
    document_from_dict,
    document_to_dict,
    load_document,
    save_document,
    update_chapter,
)
from conftest import fake_image
from models import Chapter, Document


def test_builder_keeps_chapter_order_and_dedupes_references():
    builder = DocumentBuilder("Title", topic="topic")
    builder.add_chapter("One", "first", sources=["https://a.com", " https://b.com "])
    builder.add_chapter("Two", "second", sources=["https://a.com", "", "   "])
    doc = builder.snapshot()

    assert [c.title for c in doc.chapters] == ["One", "Two"]
    assert doc.references == frozenset({"https://a.com", "https://b.com"})
    assert doc.sorted_references() == ["https://a.com", "https://b.com"]


def test_snapshot_is_detached_from_builder():
    builder = DocumentBuilder("Title")
    builder.add_chapter("One", "first")
    before = builder.snapshot()
    builder.add_chapter("Two", "second")
    builder.add_references(["x"])
    assert len(before.chapters) == 1
    assert before.references == frozenset()


def test_empty_images_are_stored_as_none():
    builder = DocumentBuilder("Title")
    builder.set_cover(b"")
    chapter = builder.add_chapter("One", "text", image=b"")
    assert builder.cover_image is None
    assert chapter.image is None


def test_replace_references():
    builder = DocumentBuilder("Title")
    builder.add_references(["a", "b", "c"])
    builder.replace_references({"c", " d "})
    assert builder.snapshot().references == frozenset({"c", "d"})


def test_from_document_continues_where_it_left_off():
    doc = Document(title="T", chapters=(Chapter("A", "x"),), references=frozenset({"r"}))
    builder = DocumentBuilder.from_document(doc)
    builder.add_chapter("B", "y", sources=["s"])
    result = builder.snapshot()
    assert [c.title for c in result.chapters] == ["A", "B"]
    assert result.references == frozenset({"r", "s"})
    assert doc.chapters == (Chapter("A", "x"),)


def test_update_chapter_is_copy_on_write():
    doc = Document(title="T", chapters=(Chapter("A", "old", image=b"i"), Chapter("B", "b")))
    updated = update_chapter(doc, 0, "new")
    assert updated.chapters[0] == Chapter("A", "new", image=b"i")
    assert updated.chapters[1] is doc.chapters[1]
    assert doc.chapters[0].content == "old"


@pytest.mark.parametrize("index", [-1, 2, 10])
def test_update_chapter_rejects_bad_index(index):
    doc = Document(title="T", chapters=(Chapter("A", "a"), Chapter("B", "b")))
    with pytest.raises(IndexError):
        update_chapter(doc, index, "x")


def test_document_dict_encodes_images_and_sorts_references():
    doc = Document(
        title="Título",
        topic="t",
        chapters=(Chapter("A", "a", image=fake_image(3, 4)), Chapter("B", "b")),
        references=frozenset({"z", "a"}),
        cover_image=b"\x89PNG\x00",
    )
    data = document_to_dict(doc)
    assert data["references"] == ["a", "z"]
    assert isinstance(data["cover_image"], str)
    assert data["chapters"][1]["image"] is None
    assert document_from_dict(data) == doc


def test_document_from_partial_dict():
    doc = document_from_dict({"title": "Only title"})
    assert doc == Document(title="Only title")


def test_save_and_load_document(tmp_path):
    doc = Document(title="Ç", chapters=(Chapter("A", "**x**"),), references=frozenset({"r"}))
    path = tmp_path / "out" / "book.json"
    save_document(doc, path)
    assert "Ç" in path.read_text(encoding="utf-8")
    assert load_document(path) == doc

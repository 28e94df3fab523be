import fitz
import pytest

import ebookgen
import generation
from builder import save_document
from conftest import FakeGenerator
from models import Chapter, Document


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.delenv("GEMINI_API_KEY")
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def fake_backend(monkeypatch):
    generators = []

    def make(api_key, settings=None):
        generator = FakeGenerator()
        generators.append((api_key, generator))
        return generator

    monkeypatch.setattr(generation, "GeminiGenerator", make)
    return generators


@pytest.mark.parametrize("argv", [
    [],
    ["Plants", "--enhance", "draft.txt"],
    ["--enhance", "a.txt", "--from-json", "b.json"],
])
def test_exactly_one_mode_is_required(argv):
    with pytest.raises(SystemExit) as exc:
        ebookgen.main(argv)
    assert exc.value.code == 2


def test_export_from_saved_json(tmp_path, capsys):
    saved = tmp_path / "saved.json"
    save_document(Document(title="Saved Book", chapters=(Chapter("One", "Hello **there**."),)), saved)
    out = tmp_path / "out"

    ebookgen.main(["--from-json", str(saved), "--output-dir", str(out), "--format", "both"])

    assert sorted(p.name for p in out.iterdir()) == ["Saved_Book.json", "Saved_Book.pdf", "Saved_Book.txt"]
    assert (out / "Saved_Book.txt").read_text(encoding="utf-8") == "# Saved Book\n\n## One\n\nHello **there**.\n\n"
    with fitz.open(out / "Saved_Book.pdf") as pdf:
        # TOC page + one chapter page
        assert pdf.page_count == 2
    assert "Done! Files saved:" in capsys.readouterr().out


def test_empty_document_fails_without_writing(tmp_path, capsys):
    saved = tmp_path / "saved.json"
    save_document(Document(title="Nothing"), saved)
    out = tmp_path / "out"

    with pytest.raises(SystemExit) as exc:
        ebookgen.main(["--from-json", str(saved), "--output-dir", str(out)])
    assert exc.value.code == 1
    assert "ERROR:" in capsys.readouterr().out
    assert not out.exists()


def test_missing_saved_json_reports_error(tmp_path, capsys):
    out = tmp_path / "out"
    with pytest.raises(SystemExit) as exc:
        ebookgen.main(["--from-json", str(tmp_path / "nope.json"), "--output-dir", str(out)])
    assert exc.value.code == 1
    printed = capsys.readouterr().out
    assert "ERROR: Saved e-book not found" in printed
    assert "nope.json" in printed
    assert not out.exists()


def test_missing_api_key_exits(capsys):
    with pytest.raises(SystemExit) as exc:
        ebookgen.main(["Plants"])
    assert exc.value.code == 1
    assert "GEMINI_API_KEY not set" in capsys.readouterr().out


def test_invalid_request_reports_error(capsys):
    with pytest.raises(SystemExit) as exc:
        ebookgen.main(["Plants", "--min-pages", "40", "--max-pages", "10", "--api-key", "k"])
    assert exc.value.code == 1
    assert "exceeds maximum pages" in capsys.readouterr().out


def test_dry_run_prints_outline(fake_backend, capsys):
    ebookgen.main(["Plants", "--dry-run", "--api-key", "abc"])
    out = capsys.readouterr().out
    assert "Title: All about Plants" in out
    assert " 1. Roots" in out
    assert "Dry run complete" in out
    assert fake_backend[0][0] == "abc"
    assert fake_backend[0][1].chapter_calls == []


def test_create_run_writes_text_and_progress(tmp_path, fake_backend, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")
    out = tmp_path / "out"
    ebookgen.main(["Plants", "--language", "English", "--format", "txt", "--output-dir", str(out)])

    assert sorted(p.name for p in out.iterdir()) == [
        "All_about_Plants.json", "All_about_Plants.txt", "progress.json",
    ]
    text = (out / "All_about_Plants.txt").read_text(encoding="utf-8")
    assert text.startswith("# All about Plants\n\n## Introduction\n\n")
    assert fake_backend[0][0] == "from-env"


def test_save_key_writes_env_file(tmp_path, fake_backend):
    ebookgen.main(["Plants", "--dry-run", "--api-key", "secret", "--save-key"])
    assert "GEMINI_API_KEY" in (tmp_path / ".env").read_text()


def test_enhance_mode(tmp_path, fake_backend):
    source = tmp_path / "draft.txt"
    source.write_text("Alpha text.\n\nBeta text.", encoding="utf-8")
    out = tmp_path / "out"
    ebookgen.main([
        "--enhance", str(source), "--style", "more-formal", "--api-key", "k",
        "--format", "txt", "--no-diagramming", "--output-dir", str(out),
    ])
    text = (out / "Structured.txt").read_text(encoding="utf-8")
    assert "## Part 1\n\nALPHA TEXT." in text
    assert fake_backend[0][1].enhance_calls[0][1].value == "more-formal"

#!/usr/bin/env python3
"""
ebookgen — Generate illustrated e-books with Gemini and export them as PDF or text.

Modes:
  create   write a new e-book about a topic
  enhance  restructure and rewrite an uploaded document (.pdf, .docx, .txt, .md)

Quick start:
  1. Add GEMINI_API_KEY to .env (or pass --api-key KEY --save-key once)
  2. python ebookgen.py "History of Rome" --dry-run
  3. python ebookgen.py "History of Rome" --images
  4. python ebookgen.py --enhance notes.docx --style more-didactic
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    from config import DEFAULT_LANGUAGE, LANGUAGES, Style

    parser = argparse.ArgumentParser(
        description="Generate e-books with Gemini and export them as PDF or plain text",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Outline only, no chapter generation:
  python ebookgen.py "Home composting" --dry-run

  # English e-book of 10-15 pages with chapter illustrations:
  python ebookgen.py "Home composting" --language English --min-pages 10 --max-pages 15 --images

  # Enhance an existing document in a more formal tone, text export only:
  python ebookgen.py --enhance draft.docx --style more-formal --format txt

  # Re-export a saved e-book without calling the API:
  python ebookgen.py --from-json output/Home_composting.json
        """,
    )
    parser.add_argument("topic", nargs="?", default=None, help="Topic of the e-book (create mode)")
    parser.add_argument(
        "--enhance", type=Path, default=None, metavar="FILE",
        help="Enhance an uploaded document instead of writing from a topic",
    )
    parser.add_argument(
        "--from-json", type=Path, default=None, metavar="FILE",
        help="Export a previously saved e-book JSON without calling the API",
    )
    parser.add_argument("--min-pages", type=int, default=20, metavar="N", help="Minimum page count (default: 20)")
    parser.add_argument("--max-pages", type=int, default=30, metavar="N", help="Maximum page count (default: 30)")
    parser.add_argument(
        "--language", choices=LANGUAGES, default=DEFAULT_LANGUAGE,
        help=f"Language of the e-book (default: {DEFAULT_LANGUAGE})",
    )
    parser.add_argument("--images", action="store_true", help="Generate one illustration per chapter")
    parser.add_argument("--notes", type=str, default="", metavar="TEXT", help="Extra instructions for the writer")
    parser.add_argument(
        "--style", choices=[s.value for s in Style], default=Style.AS_IS.value,
        help="Rewrite style in enhance mode (default: as-is)",
    )
    parser.add_argument(
        "--no-diagramming", action="store_true",
        help="Skip the cover page and table of contents",
    )
    parser.add_argument(
        "--format", choices=["pdf", "txt", "both"], default="pdf", dest="output_format",
        help="Export format (default: pdf)",
    )
    parser.add_argument(
        "--output-dir", type=Path, default=Path("output"), metavar="DIR",
        help="Directory for exported files and progress (default: ./output)",
    )
    parser.add_argument("--api-key", type=str, default=None, metavar="KEY", help="Gemini API key")
    parser.add_argument("--save-key", action="store_true", help="Store --api-key in .env for future runs")
    parser.add_argument(
        "--no-resume", action="store_true", default=False,
        help="Ignore previous progress and start fresh",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Generate the outline (or structure the upload) and stop",
    )
    args = parser.parse_args(argv)

    modes = sum(x is not None for x in (args.topic, args.enhance, args.from_json))
    if modes != 1:
        parser.error("give exactly one of: TOPIC, --enhance FILE, --from-json FILE")
    return args


def print_document_summary(document) -> None:
    print(f"Title:  {document.title}")
    print(f"Source: {document.topic}")
    print(f"\n{len(document.chapters)} chapters:")
    print("-" * 70)
    total_words = 0
    for i, ch in enumerate(document.chapters, start=1):
        words = len(ch.content.split())
        total_words += words
        image = "  [image]" if ch.image else ""
        print(f"  {i:2d}. {ch.title[:50]:<50} {words:>6} words{image}")
    print("-" * 70)
    print(f"  Total: {total_words:,} words | {len(document.references)} references | "
          f"cover: {'yes' if document.cover_image else 'no'}")
    print()


def resolve_api_key(args) -> str:
    from config import load_api_key, save_api_key

    if args.api_key:
        if args.save_key:
            save_api_key(args.api_key)
        return args.api_key
    api_key = load_api_key()
    if not api_key:
        print("ERROR: GEMINI_API_KEY not set.")
        print("Add it to .env:  GEMINI_API_KEY=your_key_here  (or use --api-key KEY --save-key)")
        sys.exit(1)
    return api_key


def export(document, args, diagramming: bool) -> list[Path]:
    from builder import save_document
    from exporter import check_exportable, export_pdf, export_text, safe_filename

    check_exportable(document)
    written = []
    json_path = args.output_dir / f"{safe_filename(document.title)}.json"
    save_document(document, json_path)
    written.append(json_path)
    if args.output_format in ("pdf", "both"):
        print("  Rendering PDF...")
        written.append(export_pdf(document, args.output_dir, diagramming=diagramming))
    if args.output_format in ("txt", "both"):
        written.append(export_text(document, args.output_dir))
    return written


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    # Lazy imports keep --help fast
    from builder import load_document
    from config import ENV_FILE, CreateRequest, EnhanceRequest, Settings, Style
    from errors import EbookError

    load_dotenv(ENV_FILE)

    diagramming = not args.no_diagramming

    try:
        if args.from_json:
            print(f"Loading: {args.from_json}")
            if not args.from_json.is_file():
                raise ValueError(f"Saved e-book not found: {args.from_json}")
            document = load_document(args.from_json)
        else:
            from generation import GeminiGenerator
            from orchestrator import create_ebook, enhance_ebook

            if args.enhance:
                request = EnhanceRequest(
                    source=args.enhance,
                    style=Style(args.style),
                    language=args.language,
                    include_images=args.images,
                    diagramming=diagramming,
                    notes=args.notes,
                ).validate()
            else:
                request = CreateRequest(
                    topic=args.topic,
                    min_pages=args.min_pages,
                    max_pages=args.max_pages,
                    language=args.language,
                    include_images=args.images,
                    notes=args.notes,
                ).validate()

            generator = GeminiGenerator(resolve_api_key(args), Settings.from_env())

            if args.dry_run:
                if args.enhance:
                    from parsers import extract_text
                    structured = generator.structure_text(extract_text(args.enhance))
                    print(f"Title: {structured.title}")
                    for i, ch in enumerate(structured.chapters, start=1):
                        print(f"  {i:2d}. {ch.title}")
                else:
                    outline = generator.generate_outline(
                        request.topic, request.min_pages, request.max_pages, request.language, request.notes,
                    )
                    print(f"Title: {outline.title}")
                    for i, title in enumerate(outline.chapters, start=1):
                        print(f"  {i:2d}. {title}")
                print("\nDry run complete. No chapters generated.")
                return

            if args.enhance:
                document = enhance_ebook(generator, request)
            else:
                progress_file = args.output_dir / "progress.json"
                if args.no_resume:
                    progress_file.unlink(missing_ok=True)
                document = create_ebook(generator, request, progress_path=progress_file)

        print()
        print_document_summary(document)

        print("=== Exporting ===\n")
        written = export(document, args, diagramming)
    except (EbookError, ValueError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print("\nDone! Files saved:")
    for path in written:
        print(f"  {path}")


if __name__ == "__main__":
    main()

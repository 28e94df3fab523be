"""generation.py — Gemini calls for outlines, chapters, images and references."""

import json
import math
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, TypeVar

import httpx
from google import genai
from google.genai import types

from config import Settings, Style
from errors import GenerationError, MalformedResponseError

IMAGE_PROMPT_MARKER = "IMAGE_PROMPT:"
RETRYABLE_MARKERS = (
    "429", "RATE LIMIT", "RESOURCE_EXHAUSTED", "UNAVAILABLE", "OVERLOADED",
    "TIMEOUT", "TIMED OUT",
    "500", "502", "503", "504",
)

STYLE_INSTRUCTIONS = {
    Style.AS_IS: "Correct grammar and improve clarity without changing the tone.",
    Style.MORE_FORMAL: "Rewrite in a formal tone.",
    Style.MORE_CASUAL: "Rewrite in a casual, conversational tone.",
    Style.MORE_DIDACTIC: "Rewrite in a didactic tone, explaining concepts step by step.",
}

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 1.0     # seconds, doubled after every failed attempt


@dataclass
class Outline:
    title: str
    chapters: list[str]


@dataclass
class ChapterDraft:
    content: str
    sources: list[str] = field(default_factory=list)
    image: bytes | None = None


@dataclass
class SourceChapter:
    title: str
    content: str


@dataclass
class StructuredText:
    title: str
    chapters: list[SourceChapter]


def chapter_count(min_pages: int, max_pages: int) -> int:
    """Number of thematic chapters (intro and conclusion excluded) for a page range."""
    average = math.ceil((min_pages + max_pages) / 2)
    return max(3, math.ceil(average / 2))


def is_retryable(error: Exception) -> bool:
    """Rate limits, server errors and network hiccups are worth another attempt."""
    # google-genai talks to the API through httpx
    if isinstance(error, (ConnectionError, TimeoutError, httpx.TransportError)):
        return True
    code = getattr(error, "code", None) or getattr(error, "status_code", None)
    if isinstance(code, int):
        return code == 429 or code >= 500
    text = str(error).upper()
    return any(marker in text for marker in RETRYABLE_MARKERS)


def call_with_retry(
    operation: str,
    fn: Callable[[], T],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run `fn` with exponential backoff on retryable failures.

    Raises GenerationError once the attempts are exhausted, or immediately
    for a failure that retrying cannot fix. MalformedResponseError is never
    retried and passes through unchanged.
    """
    delay = policy.base_delay
    last_error: Exception | None = None

    for attempt in range(policy.max_attempts):
        try:
            return fn()
        except MalformedResponseError:
            raise
        except Exception as e:
            last_error = e
            if not is_retryable(e):
                raise GenerationError(operation, attempt + 1, e) from e
            if attempt + 1 < policy.max_attempts:
                print(f"\n  Rate limit / server error on {operation} "
                      f"(attempt {attempt + 1}/{policy.max_attempts}): {e}")
                sleep(delay)
                delay *= 2

    raise GenerationError(operation, policy.max_attempts, last_error)


def parse_json_object(text: str) -> dict:
    """Parse a model reply that should be a single JSON object."""
    t = (text or "").strip()
    t = re.sub(r"^```(?:json)?\s*", "", t)
    t = re.sub(r"\s*```$", "", t)
    try:
        data = json.loads(t)
    except ValueError as e:
        raise MalformedResponseError(f"Model did not return valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedResponseError("Model reply is not a JSON object")
    return data


def split_image_prompt(text: str) -> tuple[str, str | None]:
    """Cut the trailing 'IMAGE_PROMPT:' request off generated chapter text."""
    if IMAGE_PROMPT_MARKER not in text:
        return text.strip(), None
    content, _, prompt = text.partition(IMAGE_PROMPT_MARKER)
    prompt = prompt.strip()
    return content.strip(), prompt or None


def grounding_sources(response) -> list[str]:
    """Web URIs cited by Google Search grounding on the first candidate."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    sources = []
    for chunk in chunks:
        uri = getattr(getattr(chunk, "web", None), "uri", None)
        if uri:
            sources.append(uri)
    return sources


def inline_image(response) -> bytes | None:
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            data = getattr(getattr(part, "inline_data", None), "data", None)
            if data:
                return data
    return None


class GeminiGenerator:
    """Generation collaborator backed by the google-genai SDK.

    The API key is given per instance; nothing is kept at module level.
    """

    def __init__(
        self,
        api_key: str,
        settings: Settings | None = None,
        client=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or Settings()
        self.client = client or genai.Client(api_key=api_key)
        self.policy = RetryPolicy(self.settings.max_attempts, self.settings.base_delay)
        self.sleep = sleep

    def _generate(self, operation: str, model: str, contents: str, config=None):
        return call_with_retry(
            operation,
            lambda: self.client.models.generate_content(model=model, contents=contents, config=config),
            self.policy,
            self.sleep,
        )

    def _json_config(self, schema: types.Schema) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
        )

    def _search_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            tools=[types.Tool(google_search=types.GoogleSearch())],
        )

    # -- images ------------------------------------------------------------

    def generate_image(self, prompt: str) -> bytes | None:
        """Render one illustration. Failures degrade to None."""
        try:
            response = self._generate(
                "image generation",
                self.settings.image_model,
                prompt,
                types.GenerateContentConfig(response_modalities=["IMAGE"]),
            )
        except GenerationError as e:
            print(f"  Warning: {e}")
            return None
        return inline_image(response)

    def generate_cover_image(self, title: str, topic: str) -> bytes | None:
        """Ask for a cover prompt, then render it. Failures degrade to None."""
        try:
            response = self._generate(
                "cover prompt",
                self.settings.text_model,
                (
                    "Create a single, concise, and visually rich prompt (in English) for an AI image "
                    "generator to create a professional e-book cover.\n"
                    f'E-book title: "{title}"\n'
                    f'Main topic: "{topic}"\n'
                    "The cover must clearly represent the main topic. Avoid any text in the image.\n"
                    "Just return the prompt text, nothing else."
                ),
            )
        except GenerationError as e:
            print(f"  Warning: {e}")
            return None
        prompt = (response.text or "").strip()
        if not prompt:
            return None
        return self.generate_image(prompt)

    # -- text --------------------------------------------------------------

    def generate_outline(
        self, topic: str, min_pages: int, max_pages: int, language: str, notes: str = "",
    ) -> Outline:
        count = chapter_count(min_pages, max_pages)
        extra = f'\n\nAdditional instructions from the user: "{notes}"' if notes else ""
        schema = types.Schema(
            type=types.Type.OBJECT,
            properties={
                "title": types.Schema(type=types.Type.STRING),
                "chapters": types.Schema(type=types.Type.ARRAY, items=types.Schema(type=types.Type.STRING)),
            },
            required=["title", "chapters"],
        )
        response = self._generate(
            "outline generation",
            self.settings.text_model,
            (
                f"Your task is to create a detailed outline for an e-book on the topic: '{topic}'.\n"
                "The target audience is the general public.\n"
                f"To achieve a length between {min_pages} and {max_pages} pages, generate exactly "
                f"{count} thematic chapter titles.\n"
                "Do not include 'Introduction' or 'Conclusion' in this list.\n"
                f"The entire response must be in {language}.{extra}\n"
                "You must respond with a JSON object."
            ),
            self._json_config(schema),
        )
        data = parse_json_object(response.text)
        title = data.get("title")
        chapters = data.get("chapters")
        if not isinstance(title, str) or not title.strip():
            raise MalformedResponseError("Outline is missing a title")
        if not isinstance(chapters, list) or not all(isinstance(c, str) for c in chapters):
            raise MalformedResponseError("Outline chapters must be a list of strings")
        return Outline(title=title.strip(), chapters=[c.strip() for c in chapters if c.strip()])

    def _draft_from_response(self, response, want_image: bool) -> ChapterDraft:
        content, image_prompt = split_image_prompt(response.text or "")
        image = None
        if want_image and image_prompt:
            image = self.generate_image(image_prompt)
        return ChapterDraft(content=content, sources=grounding_sources(response), image=image)

    def generate_chapter_content(
        self, title: str, chapter_title: str, language: str, want_image: bool, notes: str = "",
    ) -> ChapterDraft:
        extra = f'\n\nAdditional instructions: "{notes}"' if notes else ""
        prompt = (
            f"Write the chapter '{chapter_title}' for the e-book '{title}' in {language}. "
            f"Approximately 800-1000 words. Use '#' markers for section headings and "
            f"'**' for bold text.{extra}"
        )
        if want_image:
            prompt += (
                f'\n\nAfter the content, on a new line, add the text "{IMAGE_PROMPT_MARKER}" followed by '
                "a concise, descriptive, and visually rich prompt (in English) for an AI image generator "
                "that captures the essence of this chapter."
            )
        response = self._generate(
            f"chapter '{chapter_title}'", self.settings.text_model, prompt, self._search_config(),
        )
        return self._draft_from_response(response, want_image)

    def select_top_references(
        self, refs: Iterable[str], topic: str, language: str, limit: int = 3,
    ) -> set[str]:
        """Keep the `limit` most relevant references; falls back to the first ones."""
        candidates = sorted(set(refs))
        if len(candidates) <= limit:
            return set(candidates)
        fallback = set(candidates[:limit])
        schema = types.Schema(
            type=types.Type.OBJECT,
            properties={
                "top_sources": types.Schema(type=types.Type.ARRAY, items=types.Schema(type=types.Type.STRING)),
            },
        )
        try:
            response = self._generate(
                "reference selection",
                self.settings.text_model,
                (
                    f"Select the top {limit} sources from this list for the topic '{topic}'. "
                    f"The reader speaks {language}. Reply with JSON.\n" + "\n".join(candidates)
                ),
                self._json_config(schema),
            )
            data = parse_json_object(response.text)
        except (GenerationError, MalformedResponseError) as e:
            print(f"  Warning: keeping the first {limit} references ({e})")
            return fallback
        chosen = [s for s in data.get("top_sources") or [] if isinstance(s, str) and s in candidates]
        return set(chosen[:limit]) or fallback

    def structure_text(self, full_text: str) -> StructuredText:
        """Split free text from an uploaded file into a title and chapters."""
        schema = types.Schema(
            type=types.Type.OBJECT,
            properties={
                "title": types.Schema(type=types.Type.STRING),
                "chapters": types.Schema(
                    type=types.Type.ARRAY,
                    items=types.Schema(
                        type=types.Type.OBJECT,
                        properties={
                            "title": types.Schema(type=types.Type.STRING),
                            "content": types.Schema(type=types.Type.STRING),
                        },
                    ),
                ),
            },
            required=["title", "chapters"],
        )
        response = self._generate(
            "text structuring",
            self.settings.structure_model,
            f"Structure this text into e-book JSON with a title and chapters:\n\n{full_text}",
            self._json_config(schema),
        )
        data = parse_json_object(response.text)
        title = data.get("title")
        chapters = data.get("chapters")
        if not isinstance(title, str) or not isinstance(chapters, list):
            raise MalformedResponseError("Structured text must have a title and a chapter list")
        parsed = []
        for ch in chapters:
            if not isinstance(ch, dict):
                raise MalformedResponseError("Structured chapter must be an object")
            parsed.append(SourceChapter(
                title=str(ch.get("title", "")).strip(),
                content=str(ch.get("content", "")).strip(),
            ))
        return StructuredText(title=title.strip(), chapters=parsed)

    def enhance_chapter_content(
        self,
        title: str,
        content: str,
        style: Style,
        language: str,
        want_image: bool,
        notes: str = "",
    ) -> ChapterDraft:
        extra = f'\nAdditional instructions: "{notes}"' if notes else ""
        prompt = (
            f"Enhance the chapter '{title}'. {STYLE_INSTRUCTIONS[style]} "
            f"Write the result in {language}. Use '#' markers for section headings and "
            f"'**' for bold text.{extra}\nContent:\n{content}"
        )
        if want_image:
            prompt += f"\nAt the end, add '{IMAGE_PROMPT_MARKER}' followed by an image prompt in English."
        response = self._generate(
            f"enhancing '{title}'", self.settings.text_model, prompt, self._search_config(),
        )
        return self._draft_from_response(response, want_image)

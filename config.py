"""config.py — Settings from .env and validation of the generation requests."""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv, set_key

ENV_FILE = Path(".env")
API_KEY_VAR = "GEMINI_API_KEY"

LANGUAGES = ("Português", "English", "Español", "Français", "Italiano")
DEFAULT_LANGUAGE = "Português"

DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_STRUCTURE_MODEL = "gemini-2.5-pro"
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY = 1.0


class Style(str, Enum):
    AS_IS = "as-is"
    MORE_FORMAL = "more-formal"
    MORE_CASUAL = "more-casual"
    MORE_DIDACTIC = "more-didactic"


@dataclass(frozen=True)
class Settings:
    text_model: str = DEFAULT_TEXT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    structure_model: str = DEFAULT_STRUCTURE_MODEL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(ENV_FILE)
        return cls(
            text_model=os.getenv("EBOOKGEN_TEXT_MODEL", DEFAULT_TEXT_MODEL),
            image_model=os.getenv("EBOOKGEN_IMAGE_MODEL", DEFAULT_IMAGE_MODEL),
            structure_model=os.getenv("EBOOKGEN_STRUCTURE_MODEL", DEFAULT_STRUCTURE_MODEL),
            max_attempts=max(1, int(os.getenv("EBOOKGEN_MAX_ATTEMPTS", str(DEFAULT_MAX_ATTEMPTS)))),
            base_delay=float(os.getenv("EBOOKGEN_BASE_DELAY", str(DEFAULT_BASE_DELAY))),
        )


def load_api_key(env_file: Path = ENV_FILE) -> str | None:
    """Load GEMINI_API_KEY from the environment or .env. Returns None if not set."""
    load_dotenv(env_file)
    key = os.getenv(API_KEY_VAR, "").strip()
    return key if key else None


def save_api_key(api_key: str, env_file: Path = ENV_FILE) -> None:
    """Persist the API key to .env for future runs."""
    env_file.touch(exist_ok=True)
    set_key(str(env_file), API_KEY_VAR, api_key)
    print(f"  Saved {API_KEY_VAR} to {env_file}")


def _check_language(language: str) -> None:
    if language not in LANGUAGES:
        raise ValueError(f"Unsupported language '{language}'. Supported: {', '.join(LANGUAGES)}")


@dataclass(frozen=True)
class CreateRequest:
    """Form input for generating an e-book from a topic."""
    topic: str
    min_pages: int = 20
    max_pages: int = 30
    language: str = DEFAULT_LANGUAGE
    include_images: bool = False
    notes: str = ""

    def validate(self) -> "CreateRequest":
        if not self.topic.strip():
            raise ValueError("A topic is required.")
        if self.min_pages < 1 or self.max_pages < 1:
            raise ValueError("Page counts must be positive.")
        if self.min_pages > self.max_pages:
            raise ValueError(f"Minimum pages ({self.min_pages}) exceeds maximum pages ({self.max_pages}).")
        _check_language(self.language)
        return self


@dataclass(frozen=True)
class EnhanceRequest:
    """Form input for enhancing an uploaded document."""
    source: Path
    style: Style = Style.AS_IS
    language: str = DEFAULT_LANGUAGE
    include_images: bool = False
    diagramming: bool = True
    notes: str = ""

    def validate(self) -> "EnhanceRequest":
        if not Path(self.source).is_file():
            raise ValueError(f"Source file not found: {self.source}")
        if not isinstance(self.style, Style):
            raise ValueError(f"Unknown style '{self.style}'. Supported: {', '.join(s.value for s in Style)}")
        _check_language(self.language)
        return self

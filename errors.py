"""errors.py — Exception types shared by the e-book pipeline."""


class EbookError(Exception):
    """Base class for every error the pipeline reports to the user."""


class GenerationError(EbookError):
    """A remote generation call kept failing after all retry attempts."""

    def __init__(self, operation: str, attempts: int, cause: Exception | None = None):
        self.operation = operation
        self.attempts = attempts
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{operation} failed after {attempts} attempts{detail}")


class MalformedResponseError(EbookError):
    """The generation backend answered with content that does not match the expected schema."""


class UnsupportedFormatError(EbookError):
    """An input file type the text extractors cannot read."""


class RendererNotReadyError(EbookError):
    """The PDF backend could not be loaded."""

    def __init__(self, reason: str = ""):
        message = "PDF renderer not ready, try again shortly"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class ContentError(EbookError):
    """A document without the minimum content required for export."""

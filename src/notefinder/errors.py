"""Exception types raised by NoteFinder."""

from __future__ import annotations


class NoteFinderError(Exception):
    """Base class for NoteFinder errors."""


class ConfigurationError(NoteFinderError):
    """Invalid or missing configuration (API key, chunk sizes, model)."""


class ProviderError(NoteFinderError):
    """Embedding or generation provider call failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class IndexIntegrityError(NoteFinderError):
    """A current segment has neither a fresh nor a stored embedding."""

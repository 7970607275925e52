"""Exceptions raised inside the formula generation pipeline."""

from __future__ import annotations

from dataclasses import dataclass


class FormulaGenerationError(Exception):
    """Base class for every error raised by the pipeline."""


@dataclass
class CompletionServiceError(FormulaGenerationError):
    """
    Raised when the external completion service cannot produce a response.
    """

    provider: str
    """Name of the provider that failed."""

    reason: str
    """Description of the upstream failure."""

    def __post_init__(self):
        super().__init__(f"Completion provider {self.provider} failed: {self.reason}")


@dataclass
class ResponseParseError(FormulaGenerationError):
    """
    Raised when a completion response does not contain the expected structure.
    """

    response: str
    """The raw response that could not be parsed."""

    reason: str

    def __post_init__(self):
        preview = self.response[:80].replace("\n", " ")
        super().__init__(f"Could not parse response '{preview}': {self.reason}")


@dataclass
class CatalogLoadError(FormulaGenerationError):
    """
    Raised when the function catalog source cannot be read or is malformed.
    """

    source: str
    """Description of the catalog source."""

    reason: str

    def __post_init__(self):
        super().__init__(f"Failed to load function catalog from {self.source}: {self.reason}")


@dataclass
class SynthesisError(FormulaGenerationError):
    """
    Raised when no formula can be assembled from the selected functions.
    """

    reason: str

    def __post_init__(self):
        super().__init__(f"Formula synthesis failed: {self.reason}")

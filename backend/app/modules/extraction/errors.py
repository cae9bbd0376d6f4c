"""Pipeline error taxonomy.

Every failure carries the stage it happened in (``extraction``, ``structuring``,
``validation``) and whether a manual retry can reasonably succeed.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for document processing failures."""

    stage: str = "pipeline"
    retryable: bool = False

    def __init__(self, message: str, *, stage: str | None = None, retryable: bool | None = None) -> None:
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage
        if retryable is not None:
            self.retryable = retryable

    def to_detail(self) -> dict[str, object]:
        return {"stage": self.stage, "error": self.message, "retryable": self.retryable}


class UnsupportedInputError(PipelineError):
    """Unknown or unconvertible file kind. Fatal for that document."""

    stage = "extraction"
    retryable = False


class TextExtractionError(PipelineError):
    """The file kind is supported but the bytes could not be read."""

    stage = "extraction"
    retryable = False


class CapabilityUnavailableError(PipelineError):
    """An external capability (LLM provider) failed or could not be reached."""

    stage = "structuring"
    retryable = True


class SchemaViolationError(CapabilityUnavailableError):
    """The capability replied, but the reply does not satisfy the contract."""

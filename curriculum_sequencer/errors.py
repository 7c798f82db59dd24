"""
Exception hierarchy for the curriculum sequencing pipeline.

Phases raise these so callers can tell missing input apart from malformed
input, external-service failures and rejected model output.
"""

from typing import List, Optional


class CurriculumError(Exception):
    """Base class for all pipeline errors."""
    pass


class InputMissingError(CurriculumError, FileNotFoundError):
    """A required input artifact does not exist."""
    pass


class MalformedInputError(CurriculumError, ValueError):
    """A required input artifact exists but cannot be used."""
    pass


class LLMError(CurriculumError):
    """The external generative-model service failed after all retries."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class LLMUnavailableError(LLMError):
    """No model client could be configured."""
    pass


class JSONExtractionError(LLMError):
    """No parseable structured block was found in a model response."""

    def __init__(self, message: str, response_preview: str = ""):
        super().__init__(message)
        self.response_preview = response_preview


class ResponseValidationError(CurriculumError):
    """A parsed model response failed shape or completeness validation."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class ChunkProcessingError(CurriculumError):
    """A chunk exhausted its clustering attempts."""

    def __init__(self, chunk_id: str, attempts: int, errors: Optional[List[str]] = None):
        super().__init__(f"Chunk {chunk_id} failed after {attempts} attempts")
        self.chunk_id = chunk_id
        self.attempts = attempts
        self.errors = errors or []

"""Typed errors raised when a response cannot yield any files.

Callers branch on ``category`` to pick a retry strategy: re-prompt the
model, ask for the next batch, or surface the failure to the user.
"""

from enum import Enum
from typing import Optional


class ParseErrorCategory(Enum):
    """Why a response could not be parsed."""
    EMPTY_INPUT = "empty_input"
    PROSE_WRAPPED = "prose_wrapped"
    NO_STRUCTURE = "no_structure"
    METADATA_ONLY = "metadata_only"
    UNRECOVERABLE_TRUNCATION = "unrecoverable_truncation"


class ResponseParseError(ValueError):
    """Base class for fatal parse failures."""

    category: ParseErrorCategory = ParseErrorCategory.NO_STRUCTURE

    def __init__(self, message: str, suggestion: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "message": self.message,
            "suggestion": self.suggestion,
        }


class EmptyResponseError(ResponseParseError):
    category = ParseErrorCategory.EMPTY_INPUT


class ProseWrappedError(ResponseParseError):
    """Response is wrapped in prose or an unclosed markdown fence."""
    category = ParseErrorCategory.PROSE_WRAPPED


class NoStructureFoundError(ResponseParseError):
    category = ParseErrorCategory.NO_STRUCTURE


class MetadataOnlyError(ResponseParseError):
    """Response carried an explanation or metadata but no file entries."""
    category = ParseErrorCategory.METADATA_ONLY


class NoFilesExtractedError(MetadataOnlyError):
    """Path-like keys were present but every entry was skipped."""

    def __init__(self, message: str, skipped: Optional[list] = None, suggestion: Optional[str] = None):
        super().__init__(message, suggestion)
        self.skipped = skipped or []


class UnrecoverableTruncationError(ResponseParseError):
    category = ParseErrorCategory.UNRECOVERABLE_TRUNCATION


class ResponseTooLargeError(NoStructureFoundError):
    """Response exceeds the configured size limit and was not parsed."""

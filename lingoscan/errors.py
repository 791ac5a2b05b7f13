"""Error definitions for the lingoscan engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional, Sequence


class ErrorCategory(Enum):
    """Categorises non-fatal failures collected while running the engine."""

    ARGUMENT = auto()
    FILE_IO = auto()
    FORMAT = auto()
    NETWORK = auto()
    PATTERN = auto()
    CONFIGURATION = auto()
    OTHER = auto()


class LingoscanError(Exception):
    """Base exception for all custom errors."""


class ConfigurationError(LingoscanError):
    """Raised when settings are missing or inconsistent."""


class UnsupportedFileTypeError(LingoscanError):
    """Raised when a given file extension is not supported."""


class OverwriteRefusedError(LingoscanError):
    """Raised when attempting to overwrite an output without consent."""


class FrameAccessError(LingoscanError):
    """Raised when a frame's document belongs to another origin."""


class DictionarySourceError(LingoscanError):
    """Raised when a single dictionary source cannot produce a payload."""

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory = ErrorCategory.OTHER,
        source: str | None = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.source = source


class DictionaryFormatError(DictionarySourceError):
    """Raised when a payload is not a flat string-to-string object."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message, category=ErrorCategory.FORMAT, source=source)


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None


class DictionaryLoadError(LingoscanError):
    """Raised when every dictionary source has been exhausted."""

    def __init__(self, message: str, failures: Sequence[ErrorRecord] = ()) -> None:
        super().__init__(message)
        self.failures: List[ErrorRecord] = list(failures)

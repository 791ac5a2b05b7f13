"""Filters that decide whether a string is untranslated English UI text."""

from __future__ import annotations

import re
from typing import Optional, Sequence

from .structures import ScanOptions

LATIN_LETTER = re.compile(r"[A-Za-z]")
MARKUP_CHARACTERS = re.compile(r"[{}\[\]<>`$]")
BARE_URL = re.compile(r"^https?://", re.I)
NUMERIC_ONLY = re.compile(r"^[\d\s./:%+\-]+$")
# A number with an optional unit: "12px", "3.5 MB", "60 fps", "1.2k".
NUMBER_WITH_UNIT = re.compile(
    r"^[+\-]?\d[\d\s.,:/%+\-]*\s*"
    r"(?:px|pt|em|rem|vh|vw|ms|s|kb|mb|gb|tb|fps|hz|khz|mhz|ghz|k|m|b|x|%)$",
    re.I,
)
DEFAULT_NOISE_PATTERNS: Sequence[str] = (r"^Edge from [0-9a-f-]{8,}",)


def contains_cjk(text: str) -> bool:
    """Detect whether the text contains CJK characters."""

    for char in text:
        code = ord(char)
        if (
            0x4E00 <= code <= 0x9FFF  # CJK Unified Ideographs
            or 0x3400 <= code <= 0x4DBF  # Extension A
            or 0xF900 <= code <= 0xFAFF  # Compatibility Ideographs
            or 0x3040 <= code <= 0x30FF  # Hiragana/Katakana
            or 0xAC00 <= code <= 0xD7AF  # Hangul syllables
        ):
            return True
    return False


class TextClassifier:
    """Accepts strings worth translating or cataloguing."""

    def __init__(
        self,
        options: Optional[ScanOptions] = None,
        *,
        noise_patterns: Sequence[str] = DEFAULT_NOISE_PATTERNS,
    ) -> None:
        self.options = options or ScanOptions()
        self._noise = [re.compile(pattern, re.I) for pattern in noise_patterns]

    def is_candidate(self, text: Optional[str]) -> bool:
        if not text or not isinstance(text, str):
            return False
        value = text.strip()
        length = len(value)

        if length < self.options.min_length:
            return False
        # Checked first so pasted blobs and logs never reach the regexes below.
        if length > self.options.hard_length_limit:
            return False
        if length > self.options.max_length:
            return False

        if not LATIN_LETTER.search(value):
            return False
        if NUMERIC_ONLY.match(value) or NUMBER_WITH_UNIT.match(value):
            return False
        if MARKUP_CHARACTERS.search(value):
            return False
        if BARE_URL.match(value):
            return False
        if any(pattern.search(value) for pattern in self._noise):
            return False
        if contains_cjk(value):
            return False
        return True

    __call__ = is_candidate

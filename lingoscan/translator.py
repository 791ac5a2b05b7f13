"""String translation against the current dictionary."""

from __future__ import annotations

from typing import List, Sequence, Tuple

from .dictionary import Dictionary, DictionaryStore, SubstringRule


def _rewrap(original: str, core: str, replacement: str) -> str:
    """Put ``replacement`` where ``core`` sits, keeping surrounding whitespace."""

    start = len(original) - len(original.lstrip())
    end = start + len(core)
    return original[:start] + replacement + original[end:]


def replace_substrings(text: str, rules: Sequence[SubstringRule]) -> str:
    """Replace whole-word keys in ``text``; replaced spans are never revisited.

    A rule is skipped when its value already occurs in the output, so a
    fragment that is already localized is not inserted a second time.
    """

    spans: List[Tuple[str, bool]] = [(text, False)]
    output = text
    for rule in rules:
        if rule.value in output:
            continue
        updated: List[Tuple[str, bool]] = []
        changed = False
        for chunk, locked in spans:
            if locked:
                updated.append((chunk, True))
                continue
            cursor = 0
            for match in rule.matcher.finditer(chunk):
                if match.start() > cursor:
                    updated.append((chunk[cursor:match.start()], False))
                updated.append((rule.value, True))
                cursor = match.end()
                changed = True
            if cursor < len(chunk):
                updated.append((chunk[cursor:], False))
        if changed:
            spans = updated
            output = "".join(chunk for chunk, _ in spans)
    return output


class Translator:
    """Three-tier resolution: exact key, numeric pattern, bounded substrings."""

    def __init__(self, store: DictionaryStore) -> None:
        self._store = store

    @property
    def dictionary(self) -> Dictionary:
        return self._store.current

    def translate(self, text: str) -> str:
        if not text or not isinstance(text, str):
            return text
        core = text.strip()
        if not core:
            return text

        dictionary = self._store.current
        if core in dictionary.entries:
            return _rewrap(text, core, dictionary.entries[core])

        for rule in dictionary.rules:
            filled = rule.apply(core)
            if filled is not None:
                return _rewrap(text, core, filled)

        if not dictionary.substring_rules:
            return text
        return replace_substrings(text, dictionary.substring_rules)

    def is_already_translated(self, text: str) -> bool:
        """Whether ``translate`` would change the trimmed text."""

        if not text or not isinstance(text, str):
            return False
        core = text.strip()
        if not core:
            return False
        return self.translate(core) != core

    __call__ = translate

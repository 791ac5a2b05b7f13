"""Dictionary store and the rules derived from it."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import (
    DictionaryFormatError,
    DictionaryLoadError,
    DictionarySourceError,
    ErrorRecord,
)
from .sources import DEFAULT_TIMEOUT, SourceSpec, build_source

log = logging.getLogger(__name__)

PLACEHOLDER = "%d"
NUMBER_CAPTURE = r"([0-9][0-9,]*(?:\.[0-9]+)?)"
DEFAULT_SUBSTRING_MIN_LENGTH = 6

_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True)
class PatternRule:
    """A dictionary key with numeric slots compiled into an anchored matcher."""

    key: str
    pattern: str
    template: str
    matcher: re.Pattern

    def apply(self, text: str) -> Optional[str]:
        """Return the filled template when ``text`` matches, else None."""

        match = self.matcher.match(text)
        if match is None:
            return None
        groups = match.groups()
        parts = self.template.split(PLACEHOLDER)
        filled = [parts[0]]
        for index, part in enumerate(parts[1:]):
            filled.append((groups[index] or "") if index < len(groups) else "")
            filled.append(part)
        return "".join(filled)


@dataclass(frozen=True)
class SubstringRule:
    """A long key replaced wherever it occurs as a whole word."""

    key: str
    value: str
    matcher: re.Pattern


def _literal_pattern(literal: str) -> str:
    pieces = _WHITESPACE_RUN.split(literal)
    return r"\s+".join(re.escape(piece) for piece in pieces)


def pattern_source(key: str) -> str:
    """Build the anchored regular expression source for a placeholder key."""

    literals = key.split(PLACEHOLDER)
    return "^" + NUMBER_CAPTURE.join(_literal_pattern(part) for part in literals) + "$"


def build_pattern_rule(key: str, template: str) -> Optional[PatternRule]:
    """Compile ``key`` into a rule; None when the key has no placeholder or fails."""

    if PLACEHOLDER not in key:
        return None
    source = pattern_source(key)
    try:
        matcher = re.compile(source)
    except re.error as exc:
        log.warning("Dropping pattern rule for %r: %s", key, exc)
        return None
    return PatternRule(key=key, pattern=source, template=template, matcher=matcher)


def build_substring_rule(key: str, value: str) -> Optional[SubstringRule]:
    try:
        matcher = re.compile(r"(?<!\w)" + re.escape(key) + r"(?!\w)", re.ASCII)
    except re.error as exc:
        log.warning("Dropping substring rule for %r: %s", key, exc)
        return None
    return SubstringRule(key=key, value=value, matcher=matcher)


def parse_dictionary(payload: Any, *, source: str | None = None) -> Dict[str, str]:
    """Validate a decoded payload and return its entries with trimmed keys.

    Raises ``DictionaryFormatError`` unless the payload is an object whose
    values are all strings and which has at least one non-blank key.
    """

    if not isinstance(payload, Mapping):
        raise DictionaryFormatError(
            f"Expected a JSON object, got {type(payload).__name__}.", source=source
        )
    entries: Dict[str, str] = {}
    for key, value in payload.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise DictionaryFormatError(
                f"Entry {key!r} is not a string-to-string pair.", source=source
            )
        trimmed = key.strip()
        if not trimmed:
            log.debug("Skipping blank dictionary key from %s", source)
            continue
        entries[trimmed] = value
    if not entries:
        raise DictionaryFormatError("Dictionary payload is empty.", source=source)
    return entries


@dataclass(frozen=True)
class Dictionary:
    """Immutable snapshot of a loaded dictionary and its derived rules."""

    entries: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    rules: Tuple[PatternRule, ...] = ()
    substring_rules: Tuple[SubstringRule, ...] = ()
    source: Optional[str] = None
    dropped_rules: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @classmethod
    def build(
        cls,
        entries: Mapping[str, str],
        *,
        source: str | None = None,
        substring_min_length: int = DEFAULT_SUBSTRING_MIN_LENGTH,
    ) -> "Dictionary":
        """Derive pattern and substring rules once, at load time."""

        rules: List[PatternRule] = []
        substring_rules: List[SubstringRule] = []
        dropped: List[str] = []
        for key, value in entries.items():
            if PLACEHOLDER in key:
                rule = build_pattern_rule(key, value)
                if rule is None:
                    dropped.append(key)
                else:
                    rules.append(rule)
            if len(key) >= substring_min_length:
                substring_rule = build_substring_rule(key, value)
                if substring_rule is not None:
                    substring_rules.append(substring_rule)
        return cls(
            entries=MappingProxyType(dict(entries)),
            rules=tuple(rules),
            substring_rules=tuple(substring_rules),
            source=source,
            dropped_rules=tuple(dropped),
        )


EMPTY_DICTIONARY = Dictionary()

ReloadListener = Callable[[Dictionary], None]


class DictionaryStore:
    """Owns the current dictionary and swaps it atomically on reload."""

    def __init__(
        self,
        *,
        substring_min_length: int = DEFAULT_SUBSTRING_MIN_LENGTH,
        timeout: float = DEFAULT_TIMEOUT,
        session: Any = None,
    ) -> None:
        self.substring_min_length = substring_min_length
        self.timeout = timeout
        self.session = session
        self._current: Dictionary = EMPTY_DICTIONARY
        self._listeners: List[ReloadListener] = []

    @property
    def current(self) -> Dictionary:
        return self._current

    @property
    def loaded(self) -> bool:
        return not self._current.is_empty

    def subscribe(self, listener: ReloadListener) -> None:
        """Call ``listener`` with the new dictionary after every swap."""

        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ReloadListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def load(self, sources: Iterable[SourceSpec]) -> Dictionary:
        """Try ``sources`` in order and install the first well-formed mapping.

        Raises ``DictionaryLoadError`` once every source has failed; the
        previous dictionary stays in place.
        """

        failures: List[ErrorRecord] = []
        for spec in sources:
            try:
                source = build_source(spec, timeout=self.timeout, session=self.session)
                payload = source.fetch()
                entries = parse_dictionary(payload, source=source.label)
            except DictionarySourceError as exc:
                label = exc.source or str(spec)
                log.warning("Failed to load translations from %s: %s", label, exc)
                failures.append(
                    ErrorRecord(category=exc.category, message=str(exc), details=label)
                )
                continue

            dictionary = Dictionary.build(
                entries,
                source=source.label,
                substring_min_length=self.substring_min_length,
            )
            self.install(dictionary)
            log.info(
                "Loaded %d translations (%d pattern rules) from %s",
                len(dictionary),
                len(dictionary.rules),
                source.label,
            )
            return dictionary

        log.warning("No translation source could be loaded.")
        raise DictionaryLoadError("No translation source could be loaded.", failures)

    def load_mapping(self, entries: Mapping[str, str], *, source: str = "static") -> Dictionary:
        """Install a mapping directly, validating it like a fetched payload."""

        dictionary = Dictionary.build(
            parse_dictionary(entries, source=source),
            source=source,
            substring_min_length=self.substring_min_length,
        )
        self.install(dictionary)
        return dictionary

    def install(self, dictionary: Dictionary) -> None:
        self._current = dictionary
        for listener in list(self._listeners):
            listener(dictionary)

    def clear(self) -> None:
        self.install(EMPTY_DICTIONARY)

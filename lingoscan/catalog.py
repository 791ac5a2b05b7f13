"""Catalog of untranslated strings harvested in extraction mode."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .classifier import TextClassifier
from .dom import Element, Node
from .structures import TEXT_ORIGIN
from .translator import Translator

log = logging.getLogger(__name__)


def describe_element(element: Optional[Element], depth: int = 4) -> str:
    """Short structural descriptor such as ``div#app > ul.menu > li.item``."""

    if not isinstance(element, Element):
        return ""
    parts: List[str] = []
    node: Optional[Node] = element
    while isinstance(node, Element) and len(parts) < depth:
        part = node.tag
        if node.id:
            part += f"#{node.id}"
        classes = node.class_list[:2]
        if classes:
            part += "." + ".".join(classes)
        parts.append(part)
        node = node.parent
    return " > ".join(reversed(parts))


@dataclass
class CatalogEntry:
    text: str
    count: int = 0
    origins: List[str] = field(default_factory=list)
    samples: List[str] = field(default_factory=list)


@dataclass
class ExportRow:
    """One exported catalog line, ready for JSON serialization."""

    text: str
    count: int
    origins: List[str]
    samples: List[str]

    def as_dict(self) -> Dict[str, object]:
        return {
            "text": self.text,
            "count": self.count,
            "origins": list(self.origins),
            "samples": list(self.samples),
        }


class ExtractionCatalog:
    """Deduplicated occurrence counts for strings the dictionary cannot resolve."""

    def __init__(
        self,
        classifier: TextClassifier,
        translator: Translator,
        *,
        max_samples: int = 3,
        path_depth: int = 4,
    ) -> None:
        self.classifier = classifier
        self.translator = translator
        self.max_samples = max_samples
        self.path_depth = path_depth
        self._entries: Dict[str, CatalogEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, text: object) -> bool:
        return isinstance(text, str) and text.strip() in self._entries

    def get(self, text: str) -> Optional[CatalogEntry]:
        return self._entries.get(text.strip())

    def register(
        self,
        text: str,
        element: Optional[Element] = None,
        origin: str = TEXT_ORIGIN,
    ) -> bool:
        """Record a sighting; returns False when the string does not qualify."""

        if not self.classifier.is_candidate(text):
            return False
        key = text.strip()
        if self.translator.is_already_translated(key):
            return False

        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CatalogEntry(text=key)
        entry.count += 1
        if origin not in entry.origins:
            entry.origins.append(origin)
        if element is not None and len(entry.samples) < self.max_samples:
            sample = describe_element(element, self.path_depth)
            if sample and sample not in entry.samples:
                entry.samples.append(sample)
        return True

    def prune(self, *_: object) -> int:
        """Drop entries the current dictionary now resolves."""

        resolved = [
            key for key in self._entries if self.translator.is_already_translated(key)
        ]
        for key in resolved:
            del self._entries[key]
        if resolved:
            log.info("Pruned %d catalog entries resolved by the dictionary", len(resolved))
        return len(resolved)

    def export(self) -> List[ExportRow]:
        rows = [
            ExportRow(
                text=entry.text,
                count=entry.count,
                origins=list(entry.origins),
                samples=list(entry.samples),
            )
            for entry in self._entries.values()
            if not self.translator.is_already_translated(entry.text)
        ]
        # sorted() is stable, so ties keep first-seen order.
        return sorted(rows, key=lambda row: row.count, reverse=True)

    def export_template(self) -> Dict[str, str]:
        """Keys of ``export()`` mapped to empty strings, ready to be filled in."""

        return {row.text: "" for row in self.export()}

    def reset(self) -> None:
        self._entries.clear()

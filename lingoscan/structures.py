"""Core data structures shared by the scanner, catalog and engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Tuple

if TYPE_CHECKING:
    from .dom import Element, Node


TextSetter = Callable[[str], None]

DEFAULT_ATTRIBUTES: Tuple[str, ...] = ("aria-label", "title", "placeholder", "value")
DEFAULT_EXCLUDED_TAGS: Tuple[str, ...] = (
    "textarea",
    "input",
    "pre",
    "code",
    "script",
    "style",
)
TEXT_ORIGIN = "text"


def attribute_origin(name: str) -> str:
    """Return the origin kind recorded for an attribute value."""

    return f"attr:{name}"


@dataclass(frozen=True)
class ScanOptions:
    """Tunables for classification, traversal and extraction."""

    attributes: Tuple[str, ...] = DEFAULT_ATTRIBUTES
    include_attributes: bool = True
    min_length: int = 2
    max_length: int = 800
    hard_length_limit: int = 2000
    include_hidden: bool = True
    max_nodes: int = 250_000
    max_depth: int = 12
    substring_min_length: int = 6
    excluded_tags: Tuple[str, ...] = DEFAULT_EXCLUDED_TAGS
    protected_attributes: Tuple[str, ...] = ("value",)
    max_samples: int = 3
    sample_path_depth: int = 4


@dataclass
class TextUnit:
    """A single candidate value found in the document.

    ``node`` is the text node or the element carrying ``attribute``; the
    setter writes a replacement back into the document.
    """

    text: str
    setter: TextSetter
    node: "Node"
    element: Optional["Element"]
    origin: str = TEXT_ORIGIN
    attribute: Optional[str] = None


@dataclass
class ScanBudget:
    """Node-visit budget for one traversal pass."""

    max_nodes: int
    visited: int = 0
    total_visited: int = 0
    exhausted: bool = False

    def begin_pass(self) -> None:
        """Start a new pass; called once per external trigger."""

        self.visited = 0
        self.exhausted = False

    def consume(self) -> bool:
        """Account for one visited node, returning False once the cap is hit."""

        if self.visited >= self.max_nodes:
            self.exhausted = True
            return False
        self.visited += 1
        self.total_visited += 1
        return True

    def reset(self) -> None:
        self.begin_pass()
        self.total_visited = 0


@dataclass
class EngineStats:
    """Counters reported after a run."""

    units_seen: int = 0
    units_translated: int = 0
    units_registered: int = 0
    passes: int = 0
    exhausted_passes: int = 0
    frames_skipped: int = 0
    nested_roots: int = 0

"""Deep traversal of text nodes and attributes across shadow roots and frames."""

from __future__ import annotations

import logging
import weakref
from typing import Callable, List, Optional

from .dom import (
    Element,
    FrameElement,
    Node,
    Text,
    computed_display_none,
    computed_visibility_hidden,
    is_rendered_hidden,
)
from .errors import FrameAccessError
from .structures import (
    TEXT_ORIGIN,
    ScanBudget,
    ScanOptions,
    TextUnit,
    attribute_origin,
)

log = logging.getLogger(__name__)

UnitSink = Callable[[TextUnit], None]
RootListener = Callable[[Node], None]

EDITABLE_VALUES = frozenset({"", "true", "plaintext-only"})


class DeepScanner:
    """Feeds every text unit beneath a root to ``sink``.

    The scanner only finds values; what happens to them (translation in
    place or registration in a catalog) is decided by the sink. ``visited``
    enables the translation-mode idempotency set: elements in it are not
    scanned again.
    """

    def __init__(
        self,
        options: ScanOptions,
        budget: ScanBudget,
        sink: UnitSink,
        *,
        visited: Optional["weakref.WeakSet[Element]"] = None,
        on_nested_root: Optional[RootListener] = None,
    ) -> None:
        self.options = options
        self.budget = budget
        self.sink = sink
        self.visited = visited
        self.on_nested_root = on_nested_root
        self.frames_skipped = 0
        self._excluded_tags = frozenset(tag.lower() for tag in options.excluded_tags)
        self._protected = frozenset(options.protected_attributes)

    # --- Entry points -----------------------------------------------------

    def scan(self, root: Node, depth: int = 0) -> None:
        """Traverse ``root`` and everything below it, within budget."""

        if root is None or self.budget.exhausted:
            return
        if depth > self.options.max_depth:
            log.debug("Maximum scan depth %d reached", self.options.max_depth)
            return

        if isinstance(root, Text):
            self.scan_text(root)
            return

        excluded_context = False
        if isinstance(root, Element):
            if not self.options.include_hidden and is_rendered_hidden(root):
                return
            parent = root.parent_element
            excluded_context = parent is not None and self.in_excluded_subtree(parent)

        self._walk(root, depth, excluded_context)

    def scan_text(self, node: Text) -> None:
        """Process one text node, checking its surroundings first."""

        parent = node.parent_element
        if parent is None or self.in_excluded_subtree(parent):
            return
        if not self.options.include_hidden and (
            is_rendered_hidden(parent) or computed_visibility_hidden(parent)
        ):
            return
        if not node.data or not node.data.strip():
            return
        if not self.budget.consume():
            return
        self._emit_text(node, parent)

    def scan_attribute(self, element: Element, name: str) -> None:
        """Process one allow-listed attribute of ``element``."""

        if not self.options.include_attributes or name not in self.options.attributes:
            return
        if not self.options.include_hidden and is_rendered_hidden(element):
            return
        if name in self._protected and self.in_excluded_subtree(element):
            return
        self._emit_attribute(element, name)

    def is_excluded(self, element: Element) -> bool:
        """Editable or code-bearing elements whose content is left alone."""

        if element.tag in self._excluded_tags:
            return True
        editable = element.get_attribute("contenteditable")
        return editable is not None and editable.strip().lower() in EDITABLE_VALUES

    def in_excluded_subtree(self, element: Element) -> bool:
        return element.closest(self.is_excluded) is not None

    # --- Traversal --------------------------------------------------------

    def _walk(self, root: Node, depth: int, excluded_context: bool) -> None:
        include_hidden = self.options.include_hidden
        stack: List[Node] = [root] if isinstance(root, Element) else list(reversed(root.children))

        while stack:
            if self.budget.exhausted:
                return
            node = stack.pop()

            if isinstance(node, Text):
                parent = node.parent_element
                if parent is None or not node.data.strip():
                    continue
                if not include_hidden and computed_visibility_hidden(parent):
                    continue
                if not self.budget.consume():
                    log.debug("Node budget of %d exhausted", self.budget.max_nodes)
                    return
                self._emit_text(node, parent)
                continue

            if not isinstance(node, Element):
                continue
            if self.visited is not None and node in self.visited:
                continue
            if not include_hidden and computed_display_none(node):
                continue
            if not self.budget.consume():
                log.debug("Node budget of %d exhausted", self.budget.max_nodes)
                return
            if self.visited is not None:
                self.visited.add(node)

            excluded = excluded_context or self.is_excluded(node)
            if self.options.include_attributes:
                for name in self.options.attributes:
                    if excluded and name in self._protected:
                        continue
                    if node.has_attribute(name):
                        self._emit_attribute(node, name)
            if excluded:
                continue

            if node.shadow_root is not None:
                self._enter_nested(node.shadow_root, depth)
            if isinstance(node, FrameElement):
                self._enter_frame(node, depth)
            if self.budget.exhausted:
                return

            stack.extend(reversed(node.children))

    def _enter_nested(self, root: Node, depth: int) -> None:
        if self.on_nested_root is not None:
            self.on_nested_root(root)
        self.scan(root, depth + 1)

    def _enter_frame(self, frame: FrameElement, depth: int) -> None:
        try:
            document = frame.content_document
        except FrameAccessError:
            self.frames_skipped += 1
            return
        if document is not None:
            self._enter_nested(document, depth)

    # --- Units ------------------------------------------------------------

    def _emit_text(self, node: Text, parent: Element) -> None:
        def _setter(value: str) -> None:
            node.data = value

        self.sink(
            TextUnit(
                text=node.data,
                setter=_setter,
                node=node,
                element=parent,
                origin=TEXT_ORIGIN,
            )
        )

    def _emit_attribute(self, element: Element, name: str) -> None:
        value = element.get_attribute(name)
        if not value or not value.strip():
            return

        def _setter(translated: str) -> None:
            element.set_attribute(name, translated)

        self.sink(
            TextUnit(
                text=value,
                setter=_setter,
                node=element,
                element=element,
                origin=attribute_origin(name),
                attribute=name,
            )
        )

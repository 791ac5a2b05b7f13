"""Incremental rescans driven by mutation records."""

from __future__ import annotations

import logging
import weakref
from typing import Callable, List, Sequence

from .dom import (
    ATTRIBUTES,
    CHARACTER_DATA,
    CHILD_LIST,
    Document,
    Element,
    MutationObserver,
    MutationRecord,
    Node,
    Text,
)
from .scanner import DeepScanner

log = logging.getLogger(__name__)

RecordsCallback = Callable[[List[MutationRecord]], None]


class MutationWatcher:
    """Observes a document (and nested roots) and replays changes on a scanner."""

    def __init__(
        self,
        document: Document,
        attributes: Sequence[str],
        on_records: RecordsCallback,
    ) -> None:
        self.document = document
        self.attributes = tuple(attributes)
        self._on_records = on_records
        self._observer = MutationObserver(self._deliver)
        self._roots: "weakref.WeakSet[Node]" = weakref.WeakSet()
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        if self._active:
            return
        self._active = True
        self._roots = weakref.WeakSet()
        self.observe_root(self.document)

    def stop(self) -> None:
        self._observer.disconnect()
        self._roots = weakref.WeakSet()
        self._active = False

    def observe_root(self, root: Node) -> None:
        """Watch ``root`` (the document, a shadow root or a frame document)."""

        if not self._active or root in self._roots:
            return
        self._roots.add(root)
        self._observer.observe(
            root,
            child_list=True,
            attributes=True,
            character_data=True,
            subtree=True,
            attribute_filter=self.attributes,
        )

    def take_records(self) -> List[MutationRecord]:
        return self._observer.take_records()

    def _deliver(self, records: List[MutationRecord], _observer: MutationObserver) -> None:
        self._on_records(records)

    def dispatch(self, records: Sequence[MutationRecord], scanner: DeepScanner) -> None:
        """Reprocess only what each record touched, in delivery order."""

        for record in records:
            if scanner.budget.exhausted:
                log.debug("Budget exhausted; dropping the rest of the mutation batch")
                return
            if record.type == CHILD_LIST:
                for node in record.added_nodes:
                    if not node.is_connected:
                        continue
                    if isinstance(node, Text):
                        scanner.scan_text(node)
                    elif isinstance(node, Element):
                        scanner.scan(node)
            elif record.type == ATTRIBUTES:
                name = record.attribute_name
                target = record.target
                if name in self.attributes and isinstance(target, Element):
                    scanner.scan_attribute(target, name)
            elif record.type == CHARACTER_DATA:
                if isinstance(record.target, Text) and record.target.is_connected:
                    scanner.scan_text(record.target)

"""The engine instance: one per document, owning every piece of mutable state."""

from __future__ import annotations

import logging
import weakref
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .catalog import ExportRow, ExtractionCatalog
from .classifier import TextClassifier
from .dictionary import DictionaryStore
from .dom import ATTRIBUTES, CHARACTER_DATA, Document, Element, MutationRecord, Node, Text
from .errors import DictionaryLoadError, ErrorCategory, ErrorRecord, LingoscanError
from .scanner import DeepScanner
from .sources import SourceSpec
from .structures import EngineStats, ScanBudget, ScanOptions, TextUnit
from .translator import Translator
from .watcher import MutationWatcher

log = logging.getLogger(__name__)


class EngineMode(Enum):
    TRANSLATE = "translate"
    EXTRACT = "extract"

    @classmethod
    def parse(cls, value: "EngineMode | str") -> "EngineMode":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for mode in cls:
            if mode.value == normalized:
                return mode
        raise LingoscanError(f"Unknown engine mode '{value}'.")


class EngineState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    STOPPED = "stopped"


class Engine:
    """Translates or harvests the text of one live document.

    Lifecycle: ``UNINITIALIZED -> LOADING -> READY -> STOPPED``. Mutations
    delivered while loading are not replayed; the full scan that follows
    the load covers them.
    """

    def __init__(
        self,
        document: Document,
        *,
        mode: EngineMode | str = EngineMode.TRANSLATE,
        options: Optional[ScanOptions] = None,
        sources: Sequence[SourceSpec] = (),
        store: Optional[DictionaryStore] = None,
        catalog: Optional[ExtractionCatalog] = None,
    ) -> None:
        self.document = document
        self.mode = EngineMode.parse(mode)
        self.options = options or ScanOptions()
        self.sources: List[SourceSpec] = list(sources)
        self.store = store or DictionaryStore(
            substring_min_length=self.options.substring_min_length
        )
        self.classifier = TextClassifier(self.options)
        self.translator = Translator(self.store)
        self.stats = EngineStats()
        self.errors: List[ErrorRecord] = []

        self.catalog: Optional[ExtractionCatalog] = None
        if self.mode is EngineMode.EXTRACT:
            self.catalog = catalog or ExtractionCatalog(
                self.classifier,
                self.translator,
                max_samples=self.options.max_samples,
                path_depth=self.options.sample_path_depth,
            )
            self.store.subscribe(self.catalog.prune)

        self.budget = ScanBudget(self.options.max_nodes)
        self._visited: Optional["weakref.WeakSet[Element]"] = (
            weakref.WeakSet() if self.mode is EngineMode.TRANSLATE else None
        )
        self._written: "weakref.WeakKeyDictionary[Node, Dict[Optional[str], str]]" = (
            weakref.WeakKeyDictionary()
        )
        self._scanner = DeepScanner(
            self.options,
            self.budget,
            self._handle_unit,
            visited=self._visited,
            on_nested_root=self._on_nested_root,
        )
        self._watcher = MutationWatcher(document, self.options.attributes, self._on_mutations)
        self._state = EngineState.UNINITIALIZED
        self._rescan_pending = False

    # --- Lifecycle --------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def watching(self) -> bool:
        return self._watcher.active

    def start(self) -> bool:
        """Load the dictionary, scan the whole document and start watching.

        Returns True when a dictionary is available. A failed load is not
        fatal: the engine still becomes ready with whatever it has.
        """

        if self._state is EngineState.READY:
            return self.store.loaded
        self._watcher.start()
        loaded = self._load(self.sources) if self.sources else self.store.loaded
        self._become_ready()
        return loaded

    def stop(self) -> None:
        self._watcher.stop()
        self._state = EngineState.STOPPED
        log.debug("Engine stopped")

    def enable(self) -> None:
        if self._state is EngineState.READY:
            return
        if self._state is EngineState.UNINITIALIZED:
            self.start()
            return
        self._watcher.start()
        self._become_ready()

    def reload(self, sources: Optional[Sequence[SourceSpec]] = None) -> bool:
        """Swap in a freshly loaded dictionary and bring the page up to date."""

        previous = self._state
        loaded = self._load(list(sources) if sources is not None else self.sources)
        if previous is not EngineState.READY:
            self._state = previous
            return loaded
        self._state = EngineState.READY
        if self.mode is EngineMode.TRANSLATE or self._rescan_pending:
            self._rescan_pending = False
            self.full_scan()
        return loaded

    def _load(self, sources: Sequence[SourceSpec]) -> bool:
        self._state = EngineState.LOADING
        try:
            dictionary = self.store.load(sources)
        except DictionaryLoadError as exc:
            self.errors.extend(exc.failures)
            log.warning(
                "Translation unavailable; continuing with %s dictionary.",
                "the previous" if self.store.loaded else "an empty",
            )
            return False
        for key in dictionary.dropped_rules:
            self.errors.append(
                ErrorRecord(
                    category=ErrorCategory.PATTERN,
                    message=f"Dropped pattern rule {key!r}.",
                    details=dictionary.source,
                )
            )
        return True

    def _become_ready(self) -> None:
        self._state = EngineState.READY
        self._rescan_pending = False
        self.full_scan()

    # --- Scanning ---------------------------------------------------------

    def full_scan(self) -> None:
        """Scan the whole document as a fresh pass."""

        self._begin_pass()
        self._scanner.scan(self.document)
        self._end_pass()

    def scan(self, root: Node) -> None:
        """Scan a single subtree as its own pass."""

        self._begin_pass()
        self._scanner.scan(root)
        self._end_pass()

    def is_visited(self, element: Element) -> bool:
        return self._visited is not None and element in self._visited

    def _begin_pass(self) -> None:
        # Visited marks last for a single pass.
        if self._visited is not None:
            self._visited.clear()
        self.budget.begin_pass()
        self.stats.passes += 1

    def _end_pass(self) -> None:
        self.stats.frames_skipped = self._scanner.frames_skipped
        if self.budget.exhausted:
            self.stats.exhausted_passes += 1
            log.debug("Scan pass stopped at the node budget (%d)", self.budget.max_nodes)

    def _handle_unit(self, unit: TextUnit) -> None:
        self.stats.units_seen += 1
        if self.catalog is not None:
            if self.catalog.register(unit.text, unit.element, unit.origin):
                self.stats.units_registered += 1
            return

        if not self.classifier.is_candidate(unit.text):
            return
        translated = self.translator.translate(unit.text)
        if translated == unit.text:
            return
        unit.setter(translated)
        self._written.setdefault(unit.node, {})[unit.attribute] = translated
        self.stats.units_translated += 1

    def _on_nested_root(self, root: Node) -> None:
        self.stats.nested_roots += 1
        self._watcher.observe_root(root)

    # --- Mutations --------------------------------------------------------

    def _on_mutations(self, records: List[MutationRecord]) -> None:
        if self._state is EngineState.LOADING:
            self._rescan_pending = True
            return
        if self._state is not EngineState.READY:
            return
        pending = [record for record in records if not self._is_own_write(record)]
        if not pending:
            return
        self._begin_pass()
        self._watcher.dispatch(pending, self._scanner)
        self._end_pass()

    def _is_own_write(self, record: MutationRecord) -> bool:
        written = self._written.get(record.target)
        if not written:
            return False
        if record.type == ATTRIBUTES and isinstance(record.target, Element):
            name = record.attribute_name
            return name in written and record.target.get_attribute(name) == written[name]
        if record.type == CHARACTER_DATA and isinstance(record.target, Text):
            return None in written and record.target.data == written[None]
        return False

    # --- Catalog and control channel --------------------------------------

    def export_catalog(self) -> List[ExportRow]:
        if self.catalog is None:
            raise LingoscanError("Extraction catalog is not active in translation mode.")
        return self.catalog.export()

    def reset(self) -> None:
        """Clear the catalog and the budget, then rescan from scratch."""

        if self.catalog is not None:
            self.catalog.reset()
        self.budget.reset()
        if self._state is EngineState.READY:
            self.full_scan()

    def handle_message(self, message: Any) -> Dict[str, Any]:
        """Answer a control request with an ``ok`` acknowledgment."""

        if not isinstance(message, Mapping):
            return {"ok": False, "error": "Control message must be an object."}
        kind = str(message.get("type") or "").strip().lower()
        try:
            if kind == "ping":
                return {"ok": True, "state": self._state.value, "mode": self.mode.value}
            if kind == "export":
                rows = self.export_catalog()
                return {
                    "ok": True,
                    "data": [row.as_dict() for row in rows],
                    "template": {row.text: "" for row in rows},
                }
            if kind == "reset":
                self.reset()
                return {"ok": True}
            if kind == "toggle":
                enabled = message.get("enabled")
                if not isinstance(enabled, bool):
                    enabled = self._state is not EngineState.READY
                if enabled:
                    self.enable()
                else:
                    self.stop()
                return {"ok": True, "enabled": enabled}
        except LingoscanError as exc:
            return {"ok": False, "error": str(exc)}
        return {"ok": False, "error": f"Unknown control message '{kind}'."}

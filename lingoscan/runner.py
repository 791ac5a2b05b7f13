"""High-level orchestration for translating and harvesting saved pages."""

from __future__ import annotations

import json
import logging
import pathlib
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .catalog import ExtractionCatalog
from .classifier import TextClassifier
from .configuration import (
    dictionary_sources_from_settings,
    get_settings,
    options_from_settings,
)
from .dictionary import DictionaryStore
from .documents import detect_handler
from .dom import Document
from .engine import Engine, EngineMode
from .errors import (
    DictionaryLoadError,
    ErrorRecord,
    LingoscanError,
    OverwriteRefusedError,
)
from .maintenance import write_dictionary_file
from .sources import DEFAULT_TIMEOUT, SourceSpec
from .structures import EngineStats, ScanOptions
from .translator import Translator

log = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Report returned after processing one or more pages."""

    mode: str
    input_paths: List[pathlib.Path]
    output_path: pathlib.Path
    document_type: str
    units_seen: int
    units_translated: int
    units_registered: int
    catalog_size: int
    passes: int
    exhausted_passes: int
    frames_skipped: int
    dictionary_source: str | None
    dictionary_size: int
    elapsed_seconds: float
    error_messages: List[str] = field(default_factory=list)

    @property
    def total_errors(self) -> int:
        return len(self.error_messages)


def _format_record(record: ErrorRecord) -> str:
    origin = f" ({record.details})" if record.details else ""
    return f"{record.category.name.lower()}: {record.message}{origin}"


class DocumentRunner:
    """Runs the engine over saved HTML pages and writes the results."""

    def __init__(
        self,
        *,
        sources: Sequence[SourceSpec] = (),
        options: Optional[ScanOptions] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: object = None,
        verbose: bool = False,
    ) -> None:
        self.sources = list(sources)
        self.options = options or ScanOptions()
        self.verbose = verbose
        self.store = DictionaryStore(
            substring_min_length=self.options.substring_min_length,
            timeout=timeout,
            session=session,
        )

    def translate(self, input_path: pathlib.Path, output_path: pathlib.Path) -> RunSummary:
        """Translate one page in place and save it to ``output_path``."""

        start_time = time.time()
        document_type, handler = detect_handler(input_path)

        engine = Engine(
            handler.document,
            mode=EngineMode.TRANSLATE,
            options=self.options,
            sources=self.sources,
            store=self.store,
        )
        engine.start()
        engine.stop()

        if not self.store.loaded:
            details = "; ".join(_format_record(record) for record in engine.errors)
            message = "No translation dictionary could be loaded."
            raise LingoscanError(f"{message} {details}" if details else message)

        handler.save(output_path)
        if self.verbose:
            print(
                f"Translated {engine.stats.units_translated} of "
                f"{engine.stats.units_seen} text units in {input_path.name}."
            )

        return self._summarise(
            mode=EngineMode.TRANSLATE,
            input_paths=[input_path],
            output_path=output_path,
            document_type=document_type,
            stats=[engine.stats],
            catalog_size=0,
            errors=engine.errors,
            elapsed=time.time() - start_time,
        )

    def extract(
        self,
        input_paths: Sequence[pathlib.Path],
        output_path: pathlib.Path,
        *,
        detailed: bool = False,
    ) -> RunSummary:
        """Harvest untranslated strings from every page into one catalog.

        With a dictionary, strings it already translates are left out. The
        catalog is written as a ``{text: ""}`` template, or as the full
        rows (counts, origins, samples) when ``detailed`` is set.
        """

        start_time = time.time()
        errors: List[ErrorRecord] = []
        if self.sources:
            try:
                self.store.load(self.sources)
            except DictionaryLoadError as exc:
                errors.extend(exc.failures)

        classifier = TextClassifier(self.options)
        catalog = ExtractionCatalog(
            classifier,
            Translator(self.store),
            max_samples=self.options.max_samples,
            path_depth=self.options.sample_path_depth,
        )

        document_type = "html"
        stats: List[EngineStats] = []
        for input_path in input_paths:
            document_type, handler = detect_handler(input_path)
            engine = Engine(
                handler.document,
                mode=EngineMode.EXTRACT,
                options=self.options,
                store=self.store,
                catalog=catalog,
            )
            engine.start()
            engine.stop()
            stats.append(engine.stats)
            errors.extend(engine.errors)
            if self.verbose:
                print(
                    f"Scanned {input_path.name}: "
                    f"{engine.stats.units_registered} strings registered."
                )

        if detailed:
            rows = [row.as_dict() for row in catalog.export()]
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(
                json.dumps(rows, ensure_ascii=False, indent=2) + "\n",
                encoding="utf-8",
            )
        else:
            write_dictionary_file(output_path, catalog.export_template())

        return self._summarise(
            mode=EngineMode.EXTRACT,
            input_paths=list(input_paths),
            output_path=output_path,
            document_type=document_type,
            stats=stats,
            catalog_size=len(catalog),
            errors=errors,
            elapsed=time.time() - start_time,
        )

    def _summarise(
        self,
        *,
        mode: EngineMode,
        input_paths: List[pathlib.Path],
        output_path: pathlib.Path,
        document_type: str,
        stats: Sequence[EngineStats],
        catalog_size: int,
        errors: Sequence[ErrorRecord],
        elapsed: float,
    ) -> RunSummary:
        dictionary = self.store.current
        return RunSummary(
            mode=mode.value,
            input_paths=input_paths,
            output_path=output_path,
            document_type=document_type,
            units_seen=sum(item.units_seen for item in stats),
            units_translated=sum(item.units_translated for item in stats),
            units_registered=sum(item.units_registered for item in stats),
            catalog_size=catalog_size,
            passes=sum(item.passes for item in stats),
            exhausted_passes=sum(item.exhausted_passes for item in stats),
            frames_skipped=sum(item.frames_skipped for item in stats),
            dictionary_source=dictionary.source,
            dictionary_size=len(dictionary),
            elapsed_seconds=elapsed,
            error_messages=[_format_record(record) for record in errors],
        )


def validate_paths(
    input_paths: Sequence[pathlib.Path],
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_paths:
        raise LingoscanError("At least one input page is required.")
    for input_path in input_paths:
        if not input_path.exists():
            raise FileNotFoundError(
                f"Input file not found: {input_path}. Please provide a readable .html file."
            )
        if not input_path.is_file():
            raise LingoscanError(f"Input path must be a file: {input_path}")
        if input_path.resolve() == output_path.resolve():
            raise OverwriteRefusedError(
                "The output path matches an input page. Refusing to overwrite the source file."
            )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists. Rename it or use the overwrite flag."
        )


def launch_engine(
    document: Document,
    settings: Any = None,
    *,
    session: Any = None,
) -> Engine:
    """Build an engine for ``document`` from settings and start it.

    A translation engine whose persisted switch is off is returned
    unstarted; a later ``toggle`` message turns it on.
    """

    if settings is None:
        settings = get_settings()
    options = options_from_settings(settings)
    mode = EngineMode.parse(settings.LINGOSCAN_MODE)
    engine = Engine(
        document,
        mode=mode,
        options=options,
        sources=dictionary_sources_from_settings(settings),
        store=DictionaryStore(
            substring_min_length=options.substring_min_length,
            timeout=float(settings.LINGOSCAN_FETCH_TIMEOUT),
            session=session,
        ),
    )
    if mode is EngineMode.TRANSLATE and not settings.LINGOSCAN_ENABLED:
        log.info("Translation is switched off; engine left idle")
        return engine
    engine.start()
    return engine

"""Command line interface for lingoscan."""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from typing import Iterable, List, Optional, Sequence

from .configuration import (
    dictionary_sources_from_settings,
    get_settings,
    options_from_settings,
)
from .errors import (
    ConfigurationError,
    LingoscanError,
    OverwriteRefusedError,
    UnsupportedFileTypeError,
)
from .maintenance import MergeReport, diff_files, merge_files
from .runner import DocumentRunner, RunSummary, validate_paths
from .structures import ScanOptions

DEFAULT_CATALOG = "catalog.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lingoscan",
        description=(
            "Translate saved web pages with a phrase dictionary, or harvest their "
            "untranslated strings into a catalog."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    translate = commands.add_parser("translate", help="Translate a saved HTML page.")
    translate.add_argument("input_file", help="Path to the .html page to translate.")
    translate.add_argument(
        "-d",
        "--dictionary",
        action="append",
        default=[],
        metavar="SOURCE",
        help="Dictionary URL or path; repeat to add fallbacks tried in order.",
    )
    translate.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending '_translated' to the input name.",
    )
    translate.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )

    extract = commands.add_parser(
        "extract", help="Collect untranslated strings from saved HTML pages."
    )
    extract.add_argument("input_files", nargs="+", help="Pages to scan.")
    extract.add_argument(
        "-d",
        "--dictionary",
        action="append",
        default=[],
        metavar="SOURCE",
        help="Dictionary whose translated strings are left out of the catalog.",
    )
    extract.add_argument(
        "-o",
        "--output",
        default=DEFAULT_CATALOG,
        help=f"Catalog file to write (default: {DEFAULT_CATALOG}).",
    )
    extract.add_argument(
        "--detailed",
        action="store_true",
        help="Write counts, origins and sample locations instead of a template.",
    )
    extract.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the catalog file if it already exists.",
    )

    diff = commands.add_parser(
        "diff", help="Write the entries of NEW whose keys are missing from BASE."
    )
    diff.add_argument("base", help="Existing dictionary file.")
    diff.add_argument("new", help="Freshly extracted catalog or dictionary.")
    diff.add_argument("-o", "--output", required=True, help="File to write the difference to.")

    merge = commands.add_parser(
        "merge", help="Merge ADDITIONS into BASE and empty ADDITIONS."
    )
    merge.add_argument("base", help="Dictionary file to update.")
    merge.add_argument("additions", help="File with translated additions.")
    return parser


def derive_output_path(input_path: pathlib.Path, addition: str = "translated") -> pathlib.Path:
    return input_path.with_name(f"{input_path.stem}_{addition}{input_path.suffix}")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
    )


def execute_translation(
    *,
    input_file: str,
    output_file: str | None,
    sources: Sequence[str],
    options: ScanOptions,
    timeout: float,
    force_overwrite: bool,
    verbose: bool,
) -> tuple[int, RunSummary | None, str | None]:
    """Translate one page and return the exit code, summary, and message."""

    input_path = pathlib.Path(input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(output_file).expanduser().resolve()
        if output_file
        else derive_output_path(input_path)
    )
    if not sources:
        return 1, None, "No dictionary source given. Use -d or LINGOSCAN_DICTIONARY_SOURCES."

    try:
        validate_paths([input_path], output_path, force_overwrite=force_overwrite)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except LingoscanError as exc:
        return 1, None, str(exc)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    runner = DocumentRunner(
        sources=sources, options=options, timeout=timeout, verbose=verbose
    )
    return _run(lambda: runner.translate(input_path, output_path))


def execute_extraction(
    *,
    input_files: Sequence[str],
    output_file: str,
    sources: Sequence[str],
    options: ScanOptions,
    timeout: float,
    detailed: bool,
    force_overwrite: bool,
    verbose: bool,
) -> tuple[int, RunSummary | None, str | None]:
    """Harvest pages into a catalog and return the exit code, summary, and message."""

    input_paths = [pathlib.Path(item).expanduser().resolve() for item in input_files]
    output_path = pathlib.Path(output_file).expanduser().resolve()

    try:
        validate_paths(input_paths, output_path, force_overwrite=force_overwrite)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except LingoscanError as exc:
        return 1, None, str(exc)

    runner = DocumentRunner(
        sources=sources, options=options, timeout=timeout, verbose=verbose
    )
    return _run(lambda: runner.extract(input_paths, output_path, detailed=detailed))


def _run(action) -> tuple[int, RunSummary | None, str | None]:
    try:
        summary = action()
    except UnsupportedFileTypeError as exc:
        return 1, None, str(exc)
    except OverwriteRefusedError as exc:
        return 1, None, str(exc)
    except LingoscanError as exc:
        return 1, None, str(exc)
    except OSError as exc:
        return 1, None, f"File access failed: {exc}"
    except KeyboardInterrupt:
        return 2, None, "Run interrupted by user."
    return 0, summary, None


def execute_diff(base: str, new: str, output: str) -> tuple[int, str]:
    try:
        count = diff_files(
            pathlib.Path(base).expanduser(),
            pathlib.Path(new).expanduser(),
            pathlib.Path(output).expanduser(),
        )
    except LingoscanError as exc:
        return 1, str(exc)
    except OSError as exc:
        return 1, f"File access failed: {exc}"
    return 0, f"Wrote {count} entries to {output}"


def execute_merge(base: str, additions: str) -> tuple[int, str]:
    try:
        report: MergeReport = merge_files(
            pathlib.Path(base).expanduser(), pathlib.Path(additions).expanduser()
        )
    except LingoscanError as exc:
        return 1, str(exc)
    except OSError as exc:
        return 1, f"File access failed: {exc}"
    if not report.total:
        return 0, f"No entries in {additions} to merge."
    return 0, (
        f"Merged {report.total} entries (added: {report.added}, updated: {report.updated}) "
        f"into {base} and cleared {additions}"
    )


def print_summary(summary: RunSummary) -> None:
    """Output a friendly report once processing completes."""

    heading = "Translation complete." if summary.mode == "translate" else "Extraction complete."
    print(f"\n{heading}")
    for input_path in summary.input_paths:
        print(f"  Input file:      {input_path}")
    print(f"  Output file:     {summary.output_path}")
    print(f"  Document type:   {summary.document_type}")
    if summary.dictionary_source:
        print(
            f"  Dictionary:      {summary.dictionary_size} entries "
            f"from {summary.dictionary_source}"
        )
    if summary.mode == "translate":
        print(
            "  Text units:      "
            f"{summary.units_translated} translated / {summary.units_seen} seen"
        )
    else:
        print(
            "  Catalog:         "
            f"{summary.catalog_size} strings from {summary.units_registered} sightings "
            f"({summary.units_seen} units seen)"
        )
    print(f"  Scan passes:     {summary.passes} ({summary.exhausted_passes} hit the node budget)")
    if summary.frames_skipped:
        print(f"  Frames skipped:  {summary.frames_skipped} cross-origin")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.total_errors:
        print("  Notes:")
        for message in summary.error_messages:
            print(f"    - {message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    if args.command is None:
        parser.error("a command is required: translate, extract, diff or merge")

    try:
        settings = get_settings()
    except ConfigurationError as exc:
        print(exc)
        return 1
    configure_logging(bool(args.verbose or settings.LINGOSCAN_DEBUG))

    if args.command == "diff":
        exit_code, message = execute_diff(args.base, args.new, args.output)
        print(message)
        return exit_code
    if args.command == "merge":
        exit_code, message = execute_merge(args.base, args.additions)
        print(message)
        return exit_code

    sources: List[str] = list(args.dictionary) or dictionary_sources_from_settings(settings)
    options = options_from_settings(settings)
    timeout = float(settings.LINGOSCAN_FETCH_TIMEOUT)

    if args.command == "translate":
        exit_code, summary, message = execute_translation(
            input_file=args.input_file,
            output_file=args.output,
            sources=sources,
            options=options,
            timeout=timeout,
            force_overwrite=args.force,
            verbose=args.verbose,
        )
    else:
        exit_code, summary, message = execute_extraction(
            input_files=args.input_files,
            output_file=args.output,
            sources=sources,
            options=options,
            timeout=timeout,
            detailed=args.detailed,
            force_overwrite=args.force,
            verbose=args.verbose,
        )

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

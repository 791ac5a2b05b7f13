"""Dictionary file upkeep: diffing a harvested catalog and merging additions."""

from __future__ import annotations

import json
import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from .errors import DictionaryFormatError, LingoscanError

log = logging.getLogger(__name__)


@dataclass
class MergeReport:
    """Counts produced by ``merge_dictionaries``."""

    total: int
    added: int
    updated: int

    @property
    def unchanged(self) -> int:
        return self.total - self.added - self.updated


def _sort_key(key: str) -> tuple[str, str]:
    return key.casefold(), key


def read_dictionary_file(path: pathlib.Path, *, allow_empty: bool = False) -> Dict[str, Any]:
    """Read a JSON object from ``path``.

    With ``allow_empty`` an empty file reads as ``{}``, which is how an
    emptied additions file is left behind after a merge.
    """

    if not path.exists():
        raise LingoscanError(f"Missing file: {path}")
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise LingoscanError(f"Could not read {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise DictionaryFormatError(
            f"Invalid UTF-8 in {path}: {exc.reason}", source=str(path)
        ) from exc
    if not raw.strip() and allow_empty:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DictionaryFormatError(
            f"Invalid JSON in {path}: {exc.msg}", source=str(path)
        ) from exc
    if not isinstance(data, dict):
        raise DictionaryFormatError(
            f"Invalid JSON structure in {path}", source=str(path)
        )
    return data


def write_dictionary_file(path: pathlib.Path, data: Mapping[str, Any]) -> None:
    """Write ``data`` with keys in case-insensitive order and a trailing newline."""

    ordered = {key: data[key] for key in sorted(data, key=_sort_key)}
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(ordered, ensure_ascii=False, indent=2) + "\n",
        encoding="utf-8",
    )


def diff_dictionaries(base: Mapping[str, Any], candidate: Mapping[str, Any]) -> Dict[str, Any]:
    """Entries of ``candidate`` whose key is absent from ``base``."""

    return {key: value for key, value in candidate.items() if key not in base}


def merge_dictionaries(base: Dict[str, Any], additions: Mapping[str, Any]) -> MergeReport:
    """Copy every entry of ``additions`` into ``base``, counting what changed."""

    added = 0
    updated = 0
    for key, value in additions.items():
        if key not in base:
            added += 1
        elif base[key] != value:
            updated += 1
        base[key] = value
    return MergeReport(total=len(additions), added=added, updated=updated)


def diff_files(base_path: pathlib.Path, new_path: pathlib.Path, output_path: pathlib.Path) -> int:
    """Write the entries of ``new_path`` missing from ``base_path``; return their count."""

    base = read_dictionary_file(base_path)
    candidate = read_dictionary_file(new_path)
    missing = diff_dictionaries(base, candidate)
    write_dictionary_file(output_path, missing)
    log.info("Wrote %d entries to %s", len(missing), output_path)
    return len(missing)


def merge_files(base_path: pathlib.Path, additions_path: pathlib.Path) -> MergeReport:
    """Merge ``additions_path`` into ``base_path`` and empty the additions file.

    Nothing is written when the additions file holds no entries.
    """

    base = read_dictionary_file(base_path)
    additions = read_dictionary_file(additions_path, allow_empty=True)
    if not additions:
        return MergeReport(total=0, added=0, updated=0)
    report = merge_dictionaries(base, additions)
    write_dictionary_file(base_path, base)
    write_dictionary_file(additions_path, {})
    log.info(
        "Merged %d entries (added: %d, updated: %d) into %s",
        report.total,
        report.added,
        report.updated,
        base_path,
    )
    return report

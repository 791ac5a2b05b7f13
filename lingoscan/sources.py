"""Dictionary source abstractions."""

from __future__ import annotations

import json
import logging
import pathlib
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Union

import requests

from .errors import DictionarySourceError, ErrorCategory

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class DictionarySource(ABC):
    """Abstract adapter for a place a translation dictionary can come from."""

    label: str = "dictionary"

    @abstractmethod
    def fetch(self) -> Any:
        """Return the decoded JSON payload or raise ``DictionarySourceError``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.label!r})"


class StaticDictionarySource(DictionarySource):
    """Serves an in-memory mapping (bundled data, tests)."""

    def __init__(self, payload: Any, *, label: str = "static") -> None:
        self.payload = payload
        self.label = label

    def fetch(self) -> Any:
        return self.payload


class FileDictionarySource(DictionarySource):
    """Reads a UTF-8 JSON file from disk."""

    def __init__(self, path: Union[str, pathlib.Path]) -> None:
        self.path = pathlib.Path(path).expanduser()
        self.label = str(self.path)

    def fetch(self) -> Any:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise DictionarySourceError(
                f"Dictionary file could not be read: {exc}",
                category=ErrorCategory.FILE_IO,
                source=self.label,
            ) from exc
        except UnicodeDecodeError as exc:
            raise DictionarySourceError(
                f"Dictionary file is not valid UTF-8: {exc}",
                category=ErrorCategory.FORMAT,
                source=self.label,
            ) from exc
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise DictionarySourceError(
                f"Dictionary file is not valid JSON: {exc}",
                category=ErrorCategory.FORMAT,
                source=self.label,
            ) from exc


class HttpDictionarySource(DictionarySource):
    """Fetches a JSON dictionary over HTTP(S), bypassing caches."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.label = url
        self.timeout = timeout
        self._session = session

    def fetch(self) -> Any:
        session = self._session or requests.Session()
        log.debug("Fetching dictionary from %s", self.url)
        try:
            response = session.get(
                self.url,
                timeout=self.timeout,
                headers={"Cache-Control": "no-cache", "Accept": "application/json"},
            )
        except requests.RequestException as exc:
            raise DictionarySourceError(
                f"Dictionary download failed: {exc}",
                category=ErrorCategory.NETWORK,
                source=self.label,
            ) from exc
        finally:
            if self._session is None:
                session.close()

        if not 200 <= response.status_code < 300:
            raise DictionarySourceError(
                f"Dictionary download failed: HTTP {response.status_code}",
                category=ErrorCategory.NETWORK,
                source=self.label,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise DictionarySourceError(
                f"Dictionary response is not valid JSON: {exc}",
                category=ErrorCategory.FORMAT,
                source=self.label,
            ) from exc


SourceSpec = Union[str, pathlib.Path, Mapping[str, Any], DictionarySource]


def build_source(
    spec: SourceSpec,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> DictionarySource:
    """Factory to create sources from URLs, paths or mappings."""

    if isinstance(spec, DictionarySource):
        return spec
    if isinstance(spec, Mapping):
        return StaticDictionarySource(spec)
    if isinstance(spec, pathlib.Path):
        return FileDictionarySource(spec)
    if isinstance(spec, str):
        value = spec.strip()
        if not value:
            raise DictionarySourceError(
                "Empty dictionary source.", category=ErrorCategory.ARGUMENT
            )
        lowered = value.lower()
        if lowered.startswith(("http://", "https://")):
            return HttpDictionarySource(value, timeout=timeout, session=session)
        if lowered.startswith("file://"):
            return FileDictionarySource(value[len("file://"):])
        return FileDictionarySource(value)
    raise DictionarySourceError(
        f"Unsupported dictionary source {spec!r}.", category=ErrorCategory.ARGUMENT
    )


def split_source_list(value: str | None) -> list[str]:
    """Split a comma- or newline-separated list of source specs."""

    if not value:
        return []
    parts = value.replace("\n", ",").split(",")
    return [part.strip() for part in parts if part.strip()]

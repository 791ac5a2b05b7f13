"""Tests for dictionary sources, with HTTP served by a fake session."""

import json
import pathlib

import pytest
import requests

from lingoscan.errors import DictionarySourceError, ErrorCategory
from lingoscan.sources import (
    FileDictionarySource,
    HttpDictionarySource,
    StaticDictionarySource,
    build_source,
    split_source_list,
)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, timeout=None, headers=None):
        self.calls.append({"url": url, "timeout": timeout, "headers": headers})
        if self.error is not None:
            raise self.error
        return self.response


class TestHttpDictionarySource:
    """Network fetches."""

    def test_fetch_returns_payload(self):
        session = FakeSession(FakeResponse(payload={"Hello": "你好"}))
        source = HttpDictionarySource(
            "https://cdn.example.com/zh.json", timeout=2.5, session=session
        )
        assert source.fetch() == {"Hello": "你好"}

    def test_request_bypasses_cache(self):
        session = FakeSession(FakeResponse(payload={}))
        HttpDictionarySource("https://cdn.example.com/zh.json", session=session).fetch()
        call = session.calls[0]
        assert call["headers"]["Cache-Control"] == "no-cache"
        assert call["timeout"] == 10.0

    def test_non_success_status(self):
        session = FakeSession(FakeResponse(status_code=404))
        source = HttpDictionarySource("https://cdn.example.com/zh.json", session=session)
        with pytest.raises(DictionarySourceError) as exc_info:
            source.fetch()
        assert exc_info.value.category is ErrorCategory.NETWORK
        assert "404" in str(exc_info.value)
        assert exc_info.value.source == "https://cdn.example.com/zh.json"

    def test_connection_failure(self):
        session = FakeSession(error=requests.ConnectionError("refused"))
        source = HttpDictionarySource("https://cdn.example.com/zh.json", session=session)
        with pytest.raises(DictionarySourceError) as exc_info:
            source.fetch()
        assert exc_info.value.category is ErrorCategory.NETWORK

    def test_invalid_json(self):
        session = FakeSession(FakeResponse(invalid_json=True))
        source = HttpDictionarySource("https://cdn.example.com/zh.json", session=session)
        with pytest.raises(DictionarySourceError) as exc_info:
            source.fetch()
        assert exc_info.value.category is ErrorCategory.FORMAT


class TestFileDictionarySource:
    def test_reads_utf8_json(self, tmp_path):
        path = tmp_path / "zh.json"
        path.write_text(json.dumps({"Hello": "你好"}, ensure_ascii=False), encoding="utf-8")
        assert FileDictionarySource(path).fetch() == {"Hello": "你好"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(DictionarySourceError) as exc_info:
            FileDictionarySource(tmp_path / "missing.json").fetch()
        assert exc_info.value.category is ErrorCategory.FILE_IO

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "zh.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(DictionarySourceError) as exc_info:
            FileDictionarySource(path).fetch()
        assert exc_info.value.category is ErrorCategory.FORMAT

    def test_non_utf8_file(self, tmp_path):
        path = tmp_path / "latin1.json"
        path.write_bytes(b"\xff\xfe{\"Caf\xe9\": \"x\"}")
        with pytest.raises(DictionarySourceError) as exc_info:
            FileDictionarySource(path).fetch()
        assert exc_info.value.category is ErrorCategory.FORMAT


class TestBuildSource:
    """Mapping specs to source classes."""

    def test_http_urls(self):
        assert isinstance(build_source("https://cdn.example.com/zh.json"), HttpDictionarySource)
        assert isinstance(build_source("HTTP://cdn.example.com/zh.json"), HttpDictionarySource)

    def test_file_url(self):
        source = build_source("file:///srv/lang/zh.json")
        assert isinstance(source, FileDictionarySource)
        assert source.path == pathlib.Path("/srv/lang/zh.json")

    def test_plain_path(self, tmp_path):
        assert isinstance(build_source(str(tmp_path / "zh.json")), FileDictionarySource)
        assert isinstance(build_source(tmp_path / "zh.json"), FileDictionarySource)

    def test_mapping(self):
        source = build_source({"Hello": "你好"})
        assert isinstance(source, StaticDictionarySource)
        assert source.fetch() == {"Hello": "你好"}

    def test_existing_source_returned(self):
        source = StaticDictionarySource({})
        assert build_source(source) is source

    def test_blank_source_string(self):
        with pytest.raises(DictionarySourceError) as exc_info:
            build_source("   ")
        assert exc_info.value.category is ErrorCategory.ARGUMENT

    def test_unsupported_source_type(self):
        with pytest.raises(DictionarySourceError):
            build_source(42)


class TestSplitSourceList:
    def test_commas_and_newlines(self):
        assert split_source_list("a.json, https://x/b.json\n c.json,,") == [
            "a.json",
            "https://x/b.json",
            "c.json",
        ]

    def test_empty(self):
        assert split_source_list("") == []
        assert split_source_list(None) == []

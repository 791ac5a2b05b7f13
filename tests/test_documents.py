"""Tests for HTML parsing, serialization and file handlers."""

import pytest

from conftest import by_id, by_tag
from lingoscan.documents import (
    HtmlDocumentHandler,
    detect_handler,
    is_cross_origin,
    parse_html,
    serialize,
)
from lingoscan.dom import Comment, FrameElement, Text
from lingoscan.errors import FrameAccessError, UnsupportedFileTypeError


class TestParseHtml:
    def test_basic_structure(self):
        document = parse_html("<html><body><h1 id='title'>Hello</h1></body></html>")
        assert document.body is not None
        assert by_id(document, "title").text_content == "Hello"

    def test_fragment_is_wrapped(self):
        document = parse_html("<p>Hi there</p>")
        assert by_tag(document, "p")[0].text_content == "Hi there"
        assert document.body is not None

    def test_empty_markup(self):
        document = parse_html("   ")
        assert document.body is not None
        assert document.body.children == []

    def test_comments_and_tails(self):
        document = parse_html("<p>One<!-- note --> two <b>three</b> four</p>")
        p = by_tag(document, "p")[0]
        kinds = [type(child) for child in p.children]
        assert kinds == [Text, Comment, Text, type(by_tag(document, "b")[0]), Text]
        assert p.text_content == "One two three four"

    def test_declarative_shadow_root(self):
        document = parse_html(
            "<div id='host'><template shadowrootmode='open'>"
            "<span>Inside</span></template><p>Light</p></div>"
        )
        host = by_id(document, "host")
        assert host.shadow_root is not None
        assert host.shadow_root.text_content == "Inside"
        assert [child.tag for child in host.children] == ["p"]

    def test_plain_template_kept(self):
        document = parse_html("<template><p>Later</p></template>")
        assert by_tag(document, "template")

    def test_srcdoc_frame(self):
        document = parse_html(
            "<iframe id='f' srcdoc='<p>Framed</p>'></iframe>",
            url="https://app.example.com/",
        )
        frame = by_id(document, "f")
        assert isinstance(frame, FrameElement)
        nested = frame.content_document
        assert by_tag(nested, "p")[0].text_content == "Framed"
        assert nested.top is document

    def test_cross_origin_frame(self):
        document = parse_html(
            "<iframe id='f' src='https://ads.example.net/banner'></iframe>",
            url="https://app.example.com/",
        )
        frame = by_id(document, "f")
        assert frame.cross_origin
        with pytest.raises(FrameAccessError):
            frame.content_document

    def test_same_origin_frame_loaded(self):
        requested = []

        def loader(url):
            requested.append(url)
            return "<p>Nested page</p>"

        document = parse_html(
            "<iframe id='f' src='/panel.html'></iframe>",
            url="https://app.example.com/index.html",
            frame_loader=loader,
        )
        frame = by_id(document, "f")
        assert requested == ["https://app.example.com/panel.html"]
        assert frame.content_document.body.text_content == "Nested page"

    def test_same_origin_frame_without_loader(self):
        document = parse_html(
            "<iframe id='f' src='/panel.html'></iframe>",
            url="https://app.example.com/",
        )
        assert by_id(document, "f").content_document is None


class TestIsCrossOrigin:
    @pytest.mark.parametrize(
        "page,frame,expected",
        [
            ("https://app.example.com/", "/inner.html", False),
            ("https://app.example.com/", "https://app.example.com/x", False),
            ("https://app.example.com/", "https://other.example.com/x", True),
            ("https://app.example.com/", "http://app.example.com/x", True),
            ("https://app.example.com/", "about:blank", False),
            (None, "inner.html", False),
            (None, "https://other.example.com/", True),
        ],
    )
    def test_origins(self, page, frame, expected):
        assert is_cross_origin(page, frame) is expected


class TestSerialize:
    def test_text_is_escaped(self):
        document = parse_html("<p>a &lt; b</p>")
        assert "<p>a &lt; b</p>" in serialize(document)

    def test_attributes_and_void_elements(self):
        document = parse_html('<p><input placeholder="Say &quot;hi&quot;"><br></p>')
        output = serialize(document)
        assert '<input placeholder="Say &quot;hi&quot;">' in output
        assert "</input>" not in output
        assert "<br>" in output and "</br>" not in output

    def test_raw_text_elements_not_escaped(self):
        document = parse_html("<script>if (a < b) { run(); }</script>")
        assert "if (a < b) { run(); }" in serialize(document)

    def test_shadow_root_written_as_template(self):
        document = parse_html(
            "<div id='host'><template shadowrootmode='open'><span>Inside</span></template></div>"
        )
        output = serialize(document)
        assert '<template shadowrootmode="open"><span>Inside</span></template>' in output

    def test_srcdoc_reflects_nested_document(self):
        document = parse_html("<iframe id='f' srcdoc='<p>Framed</p>'></iframe>")
        nested = by_id(document, "f").content_document
        by_tag(nested, "p")[0].children[0].data = "Changed"
        assert "Changed" in serialize(document)

    def test_doctype_kept(self):
        document = parse_html("<!DOCTYPE html><html><body><p>x</p></body></html>")
        assert serialize(document).startswith("<!DOCTYPE html>")

    def test_no_doctype_invented(self):
        document = parse_html("<p>x</p>")
        assert serialize(document).startswith("<html>")


class TestHandlers:
    def test_load_and_save(self, tmp_path):
        source = tmp_path / "page.html"
        source.write_text("<html><body><p>Hello</p></body></html>", encoding="utf-8")
        handler = HtmlDocumentHandler(source)
        by_tag(handler.document, "p")[0].children[0].data = "你好"
        target = tmp_path / "out.html"
        handler.save(target)
        assert "<p>你好</p>" in target.read_text(encoding="utf-8")

    def test_relative_frame_read_from_disk(self, tmp_path):
        (tmp_path / "panel.html").write_text("<p>Panel</p>", encoding="utf-8")
        source = tmp_path / "page.html"
        source.write_text("<iframe id='f' src='panel.html'></iframe>", encoding="utf-8")
        handler = HtmlDocumentHandler(source)
        nested = by_id(handler.document, "f").content_document
        assert nested.body.text_content == "Panel"

    def test_detect_handler(self, tmp_path):
        source = tmp_path / "page.HTM"
        source.write_text("<p>x</p>", encoding="utf-8")
        kind, handler = detect_handler(source)
        assert kind == "html"
        assert isinstance(handler, HtmlDocumentHandler)

    def test_unsupported_type(self, tmp_path):
        with pytest.raises(UnsupportedFileTypeError):
            detect_handler(tmp_path / "report.docx")

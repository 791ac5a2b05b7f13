"""HTML loading and saving for the document model."""

from __future__ import annotations

import html
import logging
import pathlib
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple
from urllib.parse import unquote, urljoin, urlsplit

from lxml import etree
from lxml import html as lxml_html

from .dom import Comment, Document, Element, FrameElement, Node, ShadowRoot, Text
from .errors import LingoscanError, UnsupportedFileTypeError

log = logging.getLogger(__name__)

FrameLoader = Callable[[str], Optional[str]]

VOID_ELEMENTS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "link", "meta", "param", "source", "track", "wbr",
    }
)
RAW_TEXT_ELEMENTS = frozenset({"script", "style"})
SUPPORTED_SUFFIXES = (".html", ".htm", ".xhtml")

_PARSER = lxml_html.HTMLParser(default_doctype=False)


def _origin(url: Optional[str]) -> Optional[Tuple[str, str]]:
    if not url:
        return None
    parts = urlsplit(url)
    if not parts.scheme or parts.scheme in {"about", "data", "javascript"}:
        return None
    return parts.scheme.lower(), parts.netloc.lower()


def is_cross_origin(document_url: Optional[str], frame_url: str) -> bool:
    """Whether a frame at ``frame_url`` is inaccessible from the document."""

    resolved = urljoin(document_url or "", frame_url)
    frame_origin = _origin(resolved)
    if frame_origin is None:
        return False
    page_origin = _origin(document_url)
    if page_origin is None:
        # A page without a known origin can only reach relative frames.
        return bool(urlsplit(frame_url).scheme)
    return frame_origin != page_origin


def parse_html(
    markup: str,
    *,
    url: Optional[str] = None,
    frame_loader: Optional[FrameLoader] = None,
) -> Document:
    """Parse ``markup`` into a ``Document``.

    ``<template shadowrootmode>`` children become shadow roots, ``srcdoc``
    frames get a nested document, and same-origin ``src`` frames are read
    through ``frame_loader`` when one is given.
    """

    document = Document(url=url)
    if not markup or not markup.strip():
        root = document.append_child(document.create_element("html"))
        root.append_child(document.create_element("head"))
        root.append_child(document.create_element("body"))
        return document

    try:
        tree = lxml_html.document_fromstring(markup, parser=_PARSER)
    except (etree.ParserError, ValueError) as exc:
        raise LingoscanError(f"Could not parse HTML: {exc}") from exc

    document.doctype = tree.getroottree().docinfo.doctype or None
    _Builder(document, frame_loader).build(tree)
    return document


class _Builder:
    """Copies an lxml tree into the document model."""

    def __init__(self, document: Document, frame_loader: Optional[FrameLoader]) -> None:
        self.document = document
        self.frame_loader = frame_loader

    def build(self, root: etree._Element) -> None:
        self.document.append_child(self._convert(root))

    def _convert(self, source: etree._Element) -> Element:
        element = self.document.create_element(source.tag, dict(source.attrib))
        self._fill(element, source)
        if isinstance(element, FrameElement):
            self._load_frame(element)
        return element

    def _fill(self, target: Node, source: etree._Element) -> None:
        if source.text:
            target.append_child(self.document.create_text_node(source.text))
        for child in source:
            if child.tag is etree.Comment:
                target.append_child(Comment(child.text or ""))
            elif isinstance(child.tag, str):
                if self._is_shadow_template(target, child):
                    shadow = target.attach_shadow(child.get("shadowrootmode", "open"))
                    self._fill(shadow, child)
                else:
                    target.append_child(self._convert(child))
            if child.tail:
                target.append_child(self.document.create_text_node(child.tail))

    @staticmethod
    def _is_shadow_template(target: Node, child: etree._Element) -> bool:
        return (
            isinstance(target, Element)
            and target.shadow_root is None
            and child.tag == "template"
            and child.get("shadowrootmode") in {"open", "closed"}
        )

    def _load_frame(self, frame: FrameElement) -> None:
        srcdoc = frame.get_attribute("srcdoc")
        if srcdoc is not None:
            frame.load_document(
                parse_html(srcdoc, url=self.document.url, frame_loader=self.frame_loader)
            )
            return
        src = (frame.get_attribute("src") or "").strip()
        if not src:
            return
        if is_cross_origin(self.document.url, src):
            frame.cross_origin = True
            return
        if self.frame_loader is None:
            return
        resolved = urljoin(self.document.url or "", src)
        markup = self.frame_loader(resolved)
        if markup is not None:
            frame.load_document(
                parse_html(markup, url=resolved, frame_loader=self.frame_loader)
            )


def serialize(document: Document) -> str:
    """Write the document back to HTML text."""

    parts: List[str] = []
    if document.doctype:
        parts.append(document.doctype + "\n")
    for child in document.children:
        _serialize_node(child, parts, raw=False)
    return "".join(parts)


def _serialize_node(node: Node, parts: List[str], *, raw: bool) -> None:
    if isinstance(node, Text):
        parts.append(node.data if raw else html.escape(node.data, quote=False))
        return
    if isinstance(node, Comment):
        parts.append(f"<!--{node.data}-->")
        return
    if not isinstance(node, Element):
        return

    attributes = dict(node.attributes)
    if isinstance(node, FrameElement) and "srcdoc" in attributes:
        nested = node.loaded_document
        if nested is not None:
            attributes["srcdoc"] = serialize(nested)
    parts.append("<" + node.tag)
    for name, value in attributes.items():
        parts.append(f' {name}="{html.escape(value, quote=True)}"')
    parts.append(">")
    if node.tag in VOID_ELEMENTS:
        return

    if node.shadow_root is not None:
        _serialize_shadow(node.shadow_root, parts)
    child_raw = node.tag in RAW_TEXT_ELEMENTS
    for child in node.children:
        _serialize_node(child, parts, raw=child_raw)
    parts.append(f"</{node.tag}>")


def _serialize_shadow(root: ShadowRoot, parts: List[str]) -> None:
    parts.append(f'<template shadowrootmode="{root.mode}">')
    for child in root.children:
        _serialize_node(child, parts, raw=False)
    parts.append("</template>")


class BaseDocumentHandler(ABC):
    """Common base class for document handlers."""

    def __init__(self, source_path: pathlib.Path):
        self.source_path = source_path

    @property
    @abstractmethod
    def document(self) -> Document:
        """The parsed document."""

    @abstractmethod
    def save(self, destination: pathlib.Path) -> None:
        """Persist the (translated) document."""


class HtmlDocumentHandler(BaseDocumentHandler):
    """Loads a saved HTML page, resolving same-origin frames from disk."""

    def __init__(self, source_path: pathlib.Path, *, encoding: str = "utf-8"):
        super().__init__(source_path)
        self.encoding = encoding
        markup = source_path.read_text(encoding=encoding)
        self._document = parse_html(
            markup,
            url=source_path.resolve().as_uri(),
            frame_loader=self._read_frame,
        )

    @property
    def document(self) -> Document:
        return self._document

    def save(self, destination: pathlib.Path) -> None:
        destination.write_text(serialize(self._document), encoding=self.encoding)

    def _read_frame(self, url: str) -> Optional[str]:
        parts = urlsplit(url)
        if parts.scheme != "file":
            return None
        path = pathlib.Path(unquote(parts.path))
        if path.suffix.lower() not in SUPPORTED_SUFFIXES or not path.is_file():
            log.debug("Frame source %s is not a readable HTML file", path)
            return None
        return path.read_text(encoding=self.encoding)


def detect_handler(path: pathlib.Path) -> Tuple[str, BaseDocumentHandler]:
    """Select an appropriate handler for the provided file."""

    suffix = path.suffix.lower()
    if suffix in SUPPORTED_SUFFIXES:
        return "html", HtmlDocumentHandler(path)
    raise UnsupportedFileTypeError(
        "This file type isn't supported, please use .html or .htm."
    )

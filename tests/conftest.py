"""Shared fixtures for the lingoscan test suite."""

from typing import Callable, List, Optional

import pytest

from lingoscan.dictionary import DictionaryStore
from lingoscan.documents import parse_html
from lingoscan.dom import Document, Element, Node


def find_element(root: Node, predicate: Callable[[Element], bool]) -> Optional[Element]:
    for node in root.iter_descendants():
        if isinstance(node, Element) and predicate(node):
            return node
    return None


def by_id(root: Node, element_id: str) -> Element:
    element = find_element(root, lambda el: el.id == element_id)
    assert element is not None, f"no element with id {element_id!r}"
    return element


def by_tag(root: Node, tag: str) -> List[Element]:
    return [
        node
        for node in root.iter_descendants()
        if isinstance(node, Element) and node.tag == tag
    ]


@pytest.fixture
def page() -> Callable[..., Document]:
    """Parse markup into a live document."""

    def _page(markup: str, **kwargs) -> Document:
        return parse_html(markup, **kwargs)

    return _page


@pytest.fixture
def store() -> Callable[..., DictionaryStore]:
    """Build a store preloaded with a mapping."""

    def _store(entries=None, **kwargs) -> DictionaryStore:
        result = DictionaryStore(**kwargs)
        if entries:
            result.load_mapping(entries)
        return result

    return _store


@pytest.fixture
def zh_entries():
    return {
        "Hello": "你好",
        "Apply %d changes": "应用 %d 处修改",
        "Settings": "设置",
    }

"""Live document model with shadow roots, frames and mutation observers.

The model mirrors the subset of the browser DOM the engine relies on.
Mutations are queued on the observers registered on the changed node or
one of its ancestors and are delivered in batches by
``Document.flush_mutations``, the way a browser delivers them at the end of
a task.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .errors import FrameAccessError

ELEMENT_NODE = 1
TEXT_NODE = 3
COMMENT_NODE = 8
DOCUMENT_NODE = 9
DOCUMENT_FRAGMENT_NODE = 11

CHILD_LIST = "childList"
ATTRIBUTES = "attributes"
CHARACTER_DATA = "characterData"

FRAME_TAGS = frozenset({"iframe", "frame"})
# Elements a user agent stylesheet never renders.
NON_RENDERED_TAGS = frozenset(
    {"head", "script", "style", "template", "meta", "link", "title", "noscript"}
)

_DISPLAY_NONE = re.compile(r"(?:^|;)\s*display\s*:\s*none\s*(?:!important\s*)?(?:;|$)", re.I)
_VISIBILITY = re.compile(r"(?:^|;)\s*visibility\s*:\s*([a-z-]+)", re.I)


@dataclass
class MutationRecord:
    """A single change delivered to a ``MutationObserver`` callback."""

    type: str
    target: "Node"
    added_nodes: Tuple["Node", ...] = ()
    removed_nodes: Tuple["Node", ...] = ()
    attribute_name: Optional[str] = None
    old_value: Optional[str] = None


@dataclass
class _Registration:
    observer: "MutationObserver"
    child_list: bool = False
    attributes: bool = False
    character_data: bool = False
    subtree: bool = False
    attribute_filter: Optional[frozenset] = None

    def accepts(self, record: MutationRecord, *, is_target: bool) -> bool:
        if not is_target and not self.subtree:
            return False
        if record.type == CHILD_LIST:
            return self.child_list
        if record.type == CHARACTER_DATA:
            return self.character_data
        if record.type == ATTRIBUTES:
            if not self.attributes:
                return False
            if self.attribute_filter is None:
                return True
            return record.attribute_name in self.attribute_filter
        return False


class Node:
    """Base class for every node in the tree."""

    node_type = 0

    def __init__(self) -> None:
        self.parent: Optional[Node] = None
        self.children: List[Node] = []
        self.owner_document: Optional[Document] = None
        self._registrations: List[_Registration] = []

    # --- Tree access ------------------------------------------------------

    @property
    def parent_element(self) -> Optional["Element"]:
        parent = self.parent
        return parent if isinstance(parent, Element) else None

    @property
    def is_connected(self) -> bool:
        """True when the node hangs below a document (through shadow hosts too)."""

        node: Optional[Node] = self
        while node is not None:
            if isinstance(node, Document):
                return True
            if isinstance(node, ShadowRoot):
                node = node.host
                continue
            node = node.parent
        return False

    @property
    def text_content(self) -> str:
        return "".join(
            child.data for child in self.iter_descendants() if isinstance(child, Text)
        )

    def iter_descendants(self) -> Iterator["Node"]:
        """Yield descendants in document order without crossing shadow roots."""

        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    # --- Tree mutation ----------------------------------------------------

    def append_child(self, node: "Node") -> "Node":
        return self.insert_before(node, None)

    def insert_before(self, node: "Node", reference: Optional["Node"]) -> "Node":
        if isinstance(node, Document):
            raise ValueError("A document cannot be inserted into another node.")
        if node.parent is not None:
            node.parent.remove_child(node)
        if reference is None:
            self.children.append(node)
        else:
            self.children.insert(self.children.index(reference), node)
        node.parent = self
        node._adopt(self._context_document())
        self._queue_record(MutationRecord(type=CHILD_LIST, target=self, added_nodes=(node,)))
        return node

    def remove_child(self, node: "Node") -> "Node":
        self.children.remove(node)
        node.parent = None
        self._queue_record(MutationRecord(type=CHILD_LIST, target=self, removed_nodes=(node,)))
        return node

    def remove(self) -> None:
        if self.parent is not None:
            self.parent.remove_child(self)

    # --- Internals --------------------------------------------------------

    def _context_document(self) -> Optional["Document"]:
        return self.owner_document

    def _adopt(self, document: Optional["Document"]) -> None:
        if document is None or self.owner_document is document:
            return
        stack: List[Node] = [self]
        while stack:
            node = stack.pop()
            node.owner_document = document
            stack.extend(node.children)
            if isinstance(node, Element) and node.shadow_root is not None:
                stack.append(node.shadow_root)

    def _queue_record(self, record: MutationRecord) -> None:
        """Queue ``record`` on every interested observer, once per observer."""

        notified = set()
        node: Optional[Node] = record.target
        while node is not None:
            for registration in node._registrations:
                observer = registration.observer
                if id(observer) in notified:
                    continue
                if registration.accepts(record, is_target=node is record.target):
                    notified.add(id(observer))
                    observer._enqueue(record)
            node = node.parent


class Text(Node):
    """A character-data node."""

    node_type = TEXT_NODE

    def __init__(self, data: str = "") -> None:
        super().__init__()
        self._data = data

    @property
    def data(self) -> str:
        return self._data

    @data.setter
    def data(self, value: str) -> None:
        old_value = self._data
        self._data = value
        self._queue_record(
            MutationRecord(type=CHARACTER_DATA, target=self, old_value=old_value)
        )

    def __repr__(self) -> str:
        return f"Text({self._data!r})"


class Comment(Node):
    node_type = COMMENT_NODE

    def __init__(self, data: str = "") -> None:
        super().__init__()
        self.data = data


class Element(Node):
    """An element with ordered attributes and an optional shadow root."""

    node_type = ELEMENT_NODE

    def __init__(self, tag: str, attributes: Optional[Dict[str, str]] = None) -> None:
        super().__init__()
        self.tag = tag.lower()
        self.attributes: Dict[str, str] = dict(attributes or {})
        self.shadow_root: Optional[ShadowRoot] = None

    def __repr__(self) -> str:
        return f"<{self.tag} {self.attributes!r}>"

    @property
    def id(self) -> str:
        return self.attributes.get("id", "")

    @property
    def class_list(self) -> List[str]:
        return self.attributes.get("class", "").split()

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def set_attribute(self, name: str, value: str) -> None:
        old_value = self.attributes.get(name)
        self.attributes[name] = value
        self._queue_record(
            MutationRecord(
                type=ATTRIBUTES,
                target=self,
                attribute_name=name,
                old_value=old_value,
            )
        )

    def remove_attribute(self, name: str) -> None:
        if name not in self.attributes:
            return
        old_value = self.attributes.pop(name)
        self._queue_record(
            MutationRecord(
                type=ATTRIBUTES,
                target=self,
                attribute_name=name,
                old_value=old_value,
            )
        )

    def attach_shadow(self, mode: str = "open") -> "ShadowRoot":
        if self.shadow_root is not None:
            raise ValueError(f"<{self.tag}> already hosts a shadow root.")
        root = ShadowRoot(self, mode=mode)
        root.owner_document = self.owner_document
        self.shadow_root = root
        return root

    def closest(self, predicate: Callable[["Element"], bool]) -> Optional["Element"]:
        """Return the nearest inclusive ancestor matching ``predicate``."""

        node: Optional[Node] = self
        while isinstance(node, Element):
            if predicate(node):
                return node
            node = node.parent
        return None


class FrameElement(Element):
    """An ``iframe``/``frame`` element owning a nested document."""

    def __init__(
        self,
        tag: str = "iframe",
        attributes: Optional[Dict[str, str]] = None,
        *,
        cross_origin: bool = False,
    ) -> None:
        super().__init__(tag, attributes)
        self.cross_origin = cross_origin
        self._content_document: Optional[Document] = None

    @property
    def content_document(self) -> Optional["Document"]:
        if self.cross_origin:
            raise FrameAccessError(
                f"Blocked access to a cross-origin frame ({self.attributes.get('src', '')})."
            )
        return self._content_document

    @property
    def loaded_document(self) -> Optional["Document"]:
        """The nested document regardless of origin, for serialization."""

        return self._content_document

    def load_document(self, document: "Document") -> "Document":
        document.parent_frame = self
        self._content_document = document
        return document


class ShadowRoot(Node):
    """The root of a shadow tree attached to ``host``."""

    node_type = DOCUMENT_FRAGMENT_NODE

    def __init__(self, host: Element, *, mode: str = "open") -> None:
        super().__init__()
        self.host = host
        self.mode = mode

    def _context_document(self) -> Optional["Document"]:
        return self.host.owner_document


class Document(Node):
    """A document; frames hold nested documents linked by ``parent_frame``."""

    node_type = DOCUMENT_NODE

    def __init__(self, *, url: Optional[str] = None, doctype: Optional[str] = None) -> None:
        super().__init__()
        self.url = url
        self.doctype = doctype
        self.parent_frame: Optional[FrameElement] = None
        self._pending_observers: List[MutationObserver] = []

    def _context_document(self) -> Optional["Document"]:
        return self

    @property
    def top(self) -> "Document":
        document = self
        while document.parent_frame is not None and document.parent_frame.owner_document:
            document = document.parent_frame.owner_document
        return document

    @property
    def document_element(self) -> Optional[Element]:
        for child in self.children:
            if isinstance(child, Element):
                return child
        return None

    @property
    def body(self) -> Optional[Element]:
        root = self.document_element
        if root is None:
            return None
        for child in root.children:
            if isinstance(child, Element) and child.tag == "body":
                return child
        return None

    def create_element(
        self, tag: str, attributes: Optional[Dict[str, str]] = None
    ) -> Element:
        if tag.lower() in FRAME_TAGS:
            element: Element = FrameElement(tag, attributes)
        else:
            element = Element(tag, attributes)
        element.owner_document = self
        return element

    def create_text_node(self, data: str) -> Text:
        node = Text(data)
        node.owner_document = self
        return node

    def flush_mutations(self) -> int:
        """Deliver queued records until every observer is drained.

        Returns the number of callback invocations.
        """

        top = self.top
        deliveries = 0
        while top._pending_observers:
            observer = top._pending_observers.pop(0)
            records = observer.take_records()
            if records:
                deliveries += 1
                observer.callback(records, observer)
        return deliveries

    def _schedule(self, observer: "MutationObserver") -> None:
        pending = self.top._pending_observers
        if observer not in pending:
            pending.append(observer)


MutationCallback = Callable[[List[MutationRecord], "MutationObserver"], None]


class MutationObserver:
    """Collects mutation records for the nodes it observes."""

    def __init__(self, callback: MutationCallback) -> None:
        self.callback = callback
        self._records: List[MutationRecord] = []
        self._targets: List[Node] = []

    def observe(
        self,
        target: Node,
        *,
        child_list: bool = False,
        attributes: bool = False,
        character_data: bool = False,
        subtree: bool = False,
        attribute_filter: Optional[Sequence[str]] = None,
    ) -> None:
        if not (child_list or attributes or character_data):
            raise ValueError("At least one of child_list, attributes or character_data is required.")
        target._registrations = [
            reg for reg in target._registrations if reg.observer is not self
        ]
        target._registrations.append(
            _Registration(
                observer=self,
                child_list=child_list,
                attributes=attributes,
                character_data=character_data,
                subtree=subtree,
                attribute_filter=frozenset(attribute_filter) if attribute_filter is not None else None,
            )
        )
        if target not in self._targets:
            self._targets.append(target)

    def disconnect(self) -> None:
        for target in self._targets:
            target._registrations = [
                reg for reg in target._registrations if reg.observer is not self
            ]
        self._targets = []
        self._records = []

    def take_records(self) -> List[MutationRecord]:
        records, self._records = self._records, []
        return records

    def _enqueue(self, record: MutationRecord) -> None:
        self._records.append(record)
        for target in self._targets:
            document = target._context_document()
            if document is not None:
                document._schedule(self)
                break


# --- Computed style -------------------------------------------------------


def computed_display_none(element: Element) -> bool:
    """Whether the element's own computed ``display`` is ``none``."""

    if element.tag in NON_RENDERED_TAGS or element.has_attribute("hidden"):
        return True
    style = element.get_attribute("style") or ""
    return bool(_DISPLAY_NONE.search(style))


def computed_visibility_hidden(element: Element) -> bool:
    """Whether ``visibility`` (an inherited property) resolves to hidden."""

    node: Optional[Node] = element
    while node is not None:
        if isinstance(node, ShadowRoot):
            node = node.host
            continue
        if isinstance(node, Element):
            match = _VISIBILITY.search(node.get_attribute("style") or "")
            if match:
                return match.group(1).lower() in {"hidden", "collapse"}
        node = node.parent
    return False


def is_rendered_hidden(element: Element) -> bool:
    """True if the element or any flat-tree ancestor has ``display: none``."""

    node: Optional[Node] = element
    while node is not None:
        if isinstance(node, ShadowRoot):
            node = node.host
            continue
        if isinstance(node, Element) and computed_display_none(node):
            return True
        node = node.parent
    return False

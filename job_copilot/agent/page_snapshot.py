"""Per-pass document arena.

A ``PageSnapshot`` is a flat list of ``SnapshotNode`` records captured from the
page in one observation pass. Nodes refer to each other by index, and callers
hold ``NodeRef`` values (pass id + index) instead of live handles, so the whole
arena can be discarded when the next pass starts.

Scope roots are ``#document`` (the top document or a frame document) and
``#shadow-root`` nodes. Walking a scope never crosses into a hosted subtree;
hosts expose their subtree through ``open_subtree``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Optional, Tuple

DOCUMENT = "#document"
SHADOW_ROOT = "#shadow-root"
TEXT = "#text"

SCOPE_NODE_NAMES = frozenset({DOCUMENT, SHADOW_ROOT})


class SubtreeAccessError(Exception):
    """Raised when an embedded subtree refuses traversal (e.g. a cross-origin frame)."""


@dataclass(frozen=True)
class NodeRef:
    pass_id: str
    index: int


@dataclass
class SnapshotNode:
    index: int
    node_name: str
    attributes: dict[str, str] = field(default_factory=dict)
    text_snippet: Optional[str] = None
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    subtree: Optional[int] = None
    subtree_error: Optional[str] = None
    style: dict[str, str] = field(default_factory=dict)
    rect: Optional[Tuple[float, float, float, float]] = None
    props: dict[str, Any] = field(default_factory=dict)

    @property
    def tag(self) -> str:
        return self.node_name

    @property
    def is_element(self) -> bool:
        return not self.node_name.startswith("#")

    @property
    def is_scope_root(self) -> bool:
        return self.node_name in SCOPE_NODE_NAMES

    def attr(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def has_attr(self, name: str) -> bool:
        return name in self.attributes

    def prop(self, name: str, default: Any = None) -> Any:
        return self.props.get(name, default)

    @property
    def element_id(self) -> str:
        return self.attributes.get("id") or ""

    @property
    def class_name(self) -> str:
        return self.attributes.get("class") or ""

    @property
    def role(self) -> str:
        return (self.attributes.get("role") or "").lower()

    @property
    def input_type(self) -> str:
        """Declared ``type`` of an input, defaulting to ``text`` like the DOM does."""
        declared = self.props.get("type") or self.attributes.get("type") or "text"
        return str(declared).lower()

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"index": self.index, "node_name": self.node_name}
        if self.attributes:
            payload["attributes"] = dict(self.attributes)
        if self.text_snippet is not None:
            payload["text"] = self.text_snippet
        if self.parent is not None:
            payload["parent"] = self.parent
        if self.children:
            payload["children"] = list(self.children)
        if self.subtree is not None:
            payload["subtree"] = self.subtree
        if self.subtree_error:
            payload["subtree_error"] = self.subtree_error
        if self.style:
            payload["style"] = dict(self.style)
        if self.rect is not None:
            payload["rect"] = list(self.rect)
        if self.props:
            payload["props"] = dict(self.props)
        return payload

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> "SnapshotNode":
        rect = raw.get("rect")
        if isinstance(rect, dict):
            rect = (rect.get("x", 0.0), rect.get("y", 0.0), rect.get("width", 0.0), rect.get("height", 0.0))
        return cls(
            index=int(raw["index"]),
            node_name=str(raw.get("node_name") or "").lower(),
            attributes={str(k): "" if v is None else str(v) for k, v in (raw.get("attributes") or {}).items()},
            text_snippet=raw.get("text"),
            parent=raw.get("parent"),
            children=list(raw.get("children") or []),
            subtree=raw.get("subtree"),
            subtree_error=raw.get("subtree_error"),
            style=dict(raw.get("style") or {}),
            rect=tuple(float(v) for v in rect) if rect else None,
            props=dict(raw.get("props") or {}),
        )


class PageSnapshot:
    def __init__(self, dom_nodes: List[SnapshotNode], pass_id: Optional[str] = None, url: str = "") -> None:
        self.dom_nodes = dom_nodes
        self.pass_id = pass_id or uuid.uuid4().hex
        self.url = url
        self.by_dom_index: dict[int, SnapshotNode] = {node.index: node for node in dom_nodes}

    @classmethod
    def from_nodes(cls, dom_nodes: List[SnapshotNode], pass_id: Optional[str] = None, url: str = "") -> "PageSnapshot":
        return cls(dom_nodes=dom_nodes, pass_id=pass_id, url=url)

    @classmethod
    def from_payload(cls, payload: dict[str, Any], pass_id: Optional[str] = None) -> "PageSnapshot":
        nodes = [SnapshotNode.from_payload(raw) for raw in payload.get("nodes") or []]
        return cls(dom_nodes=nodes, pass_id=pass_id or payload.get("pass_id"), url=payload.get("url") or "")

    def to_payload(self) -> dict[str, Any]:
        return {
            "pass_id": self.pass_id,
            "url": self.url,
            "nodes": [node.to_payload() for node in self.dom_nodes],
        }

    def new_pass(self) -> "PageSnapshot":
        """Share the node records under a fresh pass id (in-memory documents)."""
        return PageSnapshot(self.dom_nodes, url=self.url)

    def __len__(self) -> int:
        return len(self.dom_nodes)

    @property
    def root(self) -> SnapshotNode:
        return self.dom_nodes[0]

    def node(self, index: int) -> SnapshotNode:
        return self.by_dom_index[index]

    def ref(self, node: SnapshotNode) -> NodeRef:
        return NodeRef(self.pass_id, node.index)

    # --- structure -------------------------------------------------------

    def parent_element(self, node: SnapshotNode) -> Optional[SnapshotNode]:
        if node.parent is None:
            return None
        parent = self.by_dom_index.get(node.parent)
        if parent is None or not parent.is_element:
            return None
        return parent

    def scope_root(self, node: SnapshotNode) -> SnapshotNode:
        current = node
        while not current.is_scope_root and current.parent is not None:
            parent = self.by_dom_index.get(current.parent)
            if parent is None:
                break
            current = parent
        return current

    def element_children(self, node: SnapshotNode) -> List[SnapshotNode]:
        return [self.by_dom_index[i] for i in node.children if self.by_dom_index[i].is_element]

    def previous_element_siblings(self, node: SnapshotNode) -> Iterator[SnapshotNode]:
        """Preceding element siblings, nearest first."""
        if node.parent is None:
            return
        siblings = self.by_dom_index[node.parent].children
        try:
            position = siblings.index(node.index)
        except ValueError:
            return
        for idx in reversed(siblings[:position]):
            sibling = self.by_dom_index[idx]
            if sibling.is_element:
                yield sibling

    def iter_descendants(
        self,
        node: SnapshotNode,
        prune: Optional[Callable[[SnapshotNode], bool]] = None,
    ) -> Iterator[SnapshotNode]:
        """Pre-order walk of the light tree below ``node`` (hosted subtrees excluded)."""
        stack = list(reversed(node.children))
        while stack:
            current = self.by_dom_index[stack.pop()]
            if prune is not None and prune(current):
                continue
            yield current
            stack.extend(reversed(current.children))

    def iter_scope(self, scope_root: SnapshotNode) -> Iterator[SnapshotNode]:
        for node in self.iter_descendants(scope_root):
            if node.is_element:
                yield node

    def find_first(
        self, node: SnapshotNode, predicate: Callable[[SnapshotNode], bool]
    ) -> Optional[SnapshotNode]:
        for candidate in self.iter_descendants(node):
            if candidate.is_element and predicate(candidate):
                return candidate
        return None

    def closest(
        self, node: SnapshotNode, predicate: Callable[[SnapshotNode], bool]
    ) -> Optional[SnapshotNode]:
        current: Optional[SnapshotNode] = node
        while current is not None:
            if current.is_element and predicate(current):
                return current
            current = self.parent_element(current)
        return None

    def get_element_by_id(self, scope_root: SnapshotNode, element_id: str) -> Optional[SnapshotNode]:
        if not element_id:
            return None
        return self.find_first(scope_root, lambda n: n.element_id == element_id)

    def open_subtree(self, host: SnapshotNode) -> Optional[SnapshotNode]:
        if host.subtree_error:
            raise SubtreeAccessError(host.subtree_error)
        if host.subtree is None:
            return None
        root = self.by_dom_index.get(host.subtree)
        if root is None:
            raise SubtreeAccessError(f"subtree {host.subtree} missing from snapshot")
        return root

    # --- text ------------------------------------------------------------

    def text_content(
        self,
        node: SnapshotNode,
        exclude: Optional[Callable[[SnapshotNode], bool]] = None,
    ) -> str:
        """DOM ``textContent``: descendant text in document order, optionally pruned."""
        if node.node_name == TEXT:
            return node.text_snippet or ""
        parts = [
            descendant.text_snippet or ""
            for descendant in self.iter_descendants(node, prune=exclude)
            if descendant.node_name == TEXT
        ]
        return "".join(parts)

    # --- form controls ---------------------------------------------------

    def options(self, select: SnapshotNode) -> List[SnapshotNode]:
        return [n for n in self.iter_descendants(select) if n.node_name == "option"]

    def option_text(self, option: SnapshotNode) -> str:
        text = option.prop("text")
        if text is None:
            text = " ".join(self.text_content(option).split())
        return str(text)

    def option_value(self, option: SnapshotNode) -> str:
        value = option.prop("value")
        if value is None:
            value = option.attr("value")
        if value is None:
            value = self.option_text(option)
        return str(value)

    def selected_index(self, select: SnapshotNode) -> int:
        explicit = select.prop("selectedIndex")
        if explicit is not None:
            return int(explicit)
        options = self.options(select)
        for position, option in enumerate(options):
            if option.prop("selected", option.has_attr("selected")):
                return position
        if options and not select.has_attr("multiple") and not select.prop("multiple"):
            return 0
        return -1

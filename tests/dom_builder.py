"""Tiny builder for PageSnapshot payloads used across the tests."""

from typing import Any, Optional, Tuple

from job_copilot.agent.page_snapshot import PageSnapshot

DEFAULT_RECT = (0.0, 0.0, 200.0, 30.0)


def _attr_name(key: str) -> str:
    return key.rstrip("_").replace("_", "-")


class DomBuilder:
    def __init__(self, url: str = "https://jobs.example.com/apply") -> None:
        self.url = url
        self.nodes: list[dict[str, Any]] = [{"index": 0, "node_name": "#document", "children": []}]

    def _add(self, record: dict[str, Any], parent: Optional[int]) -> int:
        record["index"] = len(self.nodes)
        record.setdefault("children", [])
        if parent is not None:
            record["parent"] = parent
            self.nodes[parent]["children"].append(record["index"])
        self.nodes.append(record)
        return record["index"]

    def el(
        self,
        tag: str,
        parent: int = 0,
        text: Optional[str] = None,
        rect: Optional[Tuple[float, float, float, float]] = DEFAULT_RECT,
        style: Optional[dict] = None,
        props: Optional[dict] = None,
        **attrs: str,
    ) -> int:
        record: dict[str, Any] = {
            "node_name": tag,
            "attributes": {_attr_name(k): v for k, v in attrs.items()},
            "style": style or {"display": "block", "visibility": "visible", "opacity": "1"},
            "props": dict(props or {}),
        }
        if rect is not None:
            record["rect"] = list(rect)
        index = self._add(record, parent)
        if text is not None:
            self.text(index, text)
        return index

    def text(self, parent: int, value: str) -> int:
        return self._add({"node_name": "#text", "text": value}, parent)

    def option(self, select: int, text: str, value: Optional[str] = None, selected: bool = False) -> int:
        attrs = {} if value is None else {"value": value}
        props = {"selected": True} if selected else {}
        return self.el("option", select, text=text, rect=None, props=props, **attrs)

    def shadow_root(self, host: int) -> int:
        root = self._add({"node_name": "#shadow-root"}, None)
        self.nodes[host]["subtree"] = root
        return root

    def frame_document(self, host: int) -> int:
        root = self._add({"node_name": "#document"}, None)
        self.nodes[host]["subtree"] = root
        return root

    def blocked_frame(self, host: int, reason: str = "cross-origin frame") -> None:
        self.nodes[host]["subtree_error"] = reason

    def payload(self) -> dict[str, Any]:
        return {"url": self.url, "nodes": self.nodes}

    def snapshot(self) -> PageSnapshot:
        return PageSnapshot.from_payload(self.payload())


def node_by_id(snapshot: PageSnapshot, element_id: str):
    for node in snapshot.dom_nodes:
        if node.element_id == element_id:
            return node
    raise KeyError(element_id)

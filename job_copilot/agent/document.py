"""Document drivers: the only seam through which the agent reads and writes a page."""

from __future__ import annotations

import abc
import logging
from typing import Callable, Optional, Tuple

from .page_snapshot import NodeRef, PageSnapshot, SnapshotNode

MutationCallback = Callable[[], None]


class StaleNodeError(Exception):
    """Raised when a NodeRef from an earlier observation pass is used."""


class DocumentDriver(abc.ABC):
    """Observe a document as a PageSnapshot and act on nodes by reference.

    Every write goes through the native setter of the underlying control so that
    frameworks which shadow the value property still see the change.
    """

    snapshot: Optional[PageSnapshot] = None

    def resolve(self, ref: NodeRef) -> SnapshotNode:
        if self.snapshot is None or ref.pass_id != self.snapshot.pass_id:
            raise StaleNodeError(f"node ref from pass {ref.pass_id} is stale")
        try:
            return self.snapshot.node(ref.index)
        except KeyError as exc:
            raise StaleNodeError(f"node {ref.index} not in pass {ref.pass_id}") from exc

    @abc.abstractmethod
    async def observe(self) -> PageSnapshot: ...

    @abc.abstractmethod
    async def set_value(self, ref: NodeRef, value: str) -> None: ...

    @abc.abstractmethod
    async def set_text(self, ref: NodeRef, text: str) -> None: ...

    @abc.abstractmethod
    async def select_index(self, ref: NodeRef, index: int) -> None: ...

    @abc.abstractmethod
    async def set_checked(self, ref: NodeRef, checked: bool) -> None: ...

    @abc.abstractmethod
    async def dispatch(self, ref: NodeRef, event_type: str) -> None: ...

    @abc.abstractmethod
    async def focus(self, ref: NodeRef) -> None: ...

    @abc.abstractmethod
    async def scroll_into_view(self, ref: NodeRef) -> None: ...

    @abc.abstractmethod
    async def click(self, ref: NodeRef) -> None: ...

    @abc.abstractmethod
    async def wait(self, ms: int) -> None: ...

    async def bounding_box(self, ref: NodeRef) -> Optional[Tuple[float, float, float, float]]:
        return self.resolve(ref).rect

    async def watch(self, callback: MutationCallback) -> None:
        """Register a callback fired when nodes are added to the document."""

    async def unwatch(self) -> None:
        return None


class InMemoryDriver(DocumentDriver):
    """Driver over a PageSnapshot held in memory.

    Used for offline dry runs and tests. Writes mutate the node props the same
    way a browser would update live properties, and every call is recorded.
    """

    def __init__(
        self,
        document: PageSnapshot,
        on_click: Optional[Callable[["InMemoryDriver", SnapshotNode], None]] = None,
    ) -> None:
        self.document = document
        self.snapshot = None
        self.on_click = on_click
        self.events: list[tuple[int, str]] = []
        self.clicks: list[int] = []
        self.waits: list[int] = []
        self.observe_count = 0
        self._mutation_callback: Optional[MutationCallback] = None

    def replace_document(self, document: PageSnapshot) -> None:
        """Swap the page contents, e.g. to simulate navigation to the next step."""
        self.document = document

    async def observe(self) -> PageSnapshot:
        self.observe_count += 1
        self.snapshot = self.document.new_pass()
        return self.snapshot

    async def set_value(self, ref: NodeRef, value: str) -> None:
        node = self.resolve(ref)
        node.props["value"] = value

    async def set_text(self, ref: NodeRef, text: str) -> None:
        node = self.resolve(ref)
        node.props["text"] = text

    async def select_index(self, ref: NodeRef, index: int) -> None:
        node = self.resolve(ref)
        options = self.snapshot.options(node)
        if not 0 <= index < len(options):
            raise IndexError(f"option {index} out of range")
        for position, option in enumerate(options):
            option.props["selected"] = position == index
        node.props["selectedIndex"] = index
        node.props["value"] = self.snapshot.option_value(options[index])

    async def set_checked(self, ref: NodeRef, checked: bool) -> None:
        node = self.resolve(ref)
        if checked and node.input_type == "radio":
            self._uncheck_group(node)
        node.props["checked"] = checked

    def _uncheck_group(self, radio: SnapshotNode) -> None:
        name = radio.attr("name")
        if not name:
            return
        scope = self.snapshot.scope_root(radio)
        for other in self.snapshot.iter_scope(scope):
            if other is radio or other.tag != "input" or other.input_type != "radio":
                continue
            if other.attr("name") == name:
                other.props["checked"] = False

    async def dispatch(self, ref: NodeRef, event_type: str) -> None:
        node = self.resolve(ref)
        self.events.append((node.index, event_type))

    async def focus(self, ref: NodeRef) -> None:
        self.resolve(ref)

    async def scroll_into_view(self, ref: NodeRef) -> None:
        self.resolve(ref)

    async def click(self, ref: NodeRef) -> None:
        node = self.resolve(ref)
        self.clicks.append(node.index)
        if node.tag == "input" and node.input_type == "checkbox":
            node.props["checked"] = not node.prop("checked", node.has_attr("checked"))
        elif node.tag == "input" and node.input_type == "radio":
            self._uncheck_group(node)
            node.props["checked"] = True
        elif node.role in {"checkbox", "switch"}:
            current = (node.attr("aria-checked") or "false").lower() == "true"
            node.attributes["aria-checked"] = "false" if current else "true"
        if self.on_click is not None:
            self.on_click(self, node)

    async def wait(self, ms: int) -> None:
        self.waits.append(ms)

    async def watch(self, callback: MutationCallback) -> None:
        self._mutation_callback = callback

    async def unwatch(self) -> None:
        self._mutation_callback = None

    def notify_mutation(self) -> None:
        if self._mutation_callback is None:
            logging.debug("mutation_ignored reason=no_watcher")
            return
        self._mutation_callback()

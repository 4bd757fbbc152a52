from __future__ import annotations

import logging
import os
import uuid
from typing import Any, Optional, Tuple

from playwright.async_api import (
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from ..config import settings
from .document import DocumentDriver, MutationCallback, StaleNodeError
from .page_snapshot import NodeRef, PageSnapshot

STALE_MARKER = "stale node reference"
MUTATION_BINDING = "__jobCopilotMutation"

# Walks the document, open shadow roots and same-origin frame documents with an
# explicit worklist. Element handles are parked in window.__jobCopilotArena so
# later node operations can be addressed by (pass id, index).
COLLECT_JS = r"""
(passId) => {
  const SKIP = new Set(["script", "style", "noscript", "template"]);
  const nodes = [];
  const handles = [];
  const push = (record, handle) => {
    record.index = nodes.length;
    nodes.push(record);
    handles.push(handle);
    return record.index;
  };
  const propsOf = (el, tag) => {
    const props = {};
    if (["input", "textarea", "select", "option", "button"].includes(tag)) {
      props.value = el.value;
      props.disabled = !!el.disabled;
    }
    if (tag === "input") {
      props.type = el.type;
      props.checked = !!el.checked;
      if (el.type === "file") props.files = Array.from(el.files || []).map((f) => f.name);
    }
    if (tag === "select") {
      props.selectedIndex = el.selectedIndex;
      props.multiple = !!el.multiple;
    }
    if (tag === "option") {
      props.text = el.text;
      props.selected = !!el.selected;
    }
    if (el.isContentEditable && tag !== "input" && tag !== "textarea") props.text = el.textContent;
    if (typeof el.onclick === "function") props.onclick = true;
    return props;
  };

  const work = [[document, push({ node_name: "#document", children: [] }, document)]];
  while (work.length) {
    const [container, containerIndex] = work.shift();
    const stack = [];
    for (let i = container.childNodes.length - 1; i >= 0; i--) stack.push([container.childNodes[i], containerIndex]);
    while (stack.length) {
      const [node, parentIndex] = stack.pop();
      if (node.nodeType === Node.TEXT_NODE) {
        if (!node.nodeValue || !node.nodeValue.trim()) continue;
        const textIndex = push({ node_name: "#text", text: node.nodeValue, parent: parentIndex }, node);
        nodes[parentIndex].children.push(textIndex);
        continue;
      }
      if (node.nodeType !== Node.ELEMENT_NODE) continue;
      const tag = node.tagName.toLowerCase();
      if (SKIP.has(tag)) continue;

      const view = node.ownerDocument.defaultView || window;
      const style = view.getComputedStyle(node);
      const rect = node.getBoundingClientRect();
      const record = {
        node_name: tag,
        attributes: {},
        parent: parentIndex,
        children: [],
        style: { display: style.display, visibility: style.visibility, opacity: style.opacity },
        rect: [rect.x, rect.y, rect.width, rect.height],
        props: propsOf(node, tag),
      };
      for (const attr of node.attributes) record.attributes[attr.name] = attr.value;
      const index = push(record, node);
      nodes[parentIndex].children.push(index);

      if (node.shadowRoot) {
        record.subtree = push({ node_name: "#shadow-root", children: [] }, node.shadowRoot);
        work.push([node.shadowRoot, record.subtree]);
      }
      if (tag === "iframe" || tag === "frame") {
        try {
          const frameDocument = node.contentDocument;
          if (!frameDocument) throw new Error("frame document is not accessible");
          record.subtree = push({ node_name: "#document", children: [] }, frameDocument);
          work.push([frameDocument, record.subtree]);
        } catch (err) {
          record.subtree_error = String((err && err.message) || err);
        }
      }
      for (let i = node.childNodes.length - 1; i >= 0; i--) stack.push([node.childNodes[i], index]);
    }
  }
  window.__jobCopilotArena = { pass: passId, nodes: handles };
  return { pass_id: passId, url: location.href, nodes };
}
"""

NODE_OP_JS = r"""
([passId, index, op, arg]) => {
  const arena = window.__jobCopilotArena;
  if (!arena || arena.pass !== passId) throw new Error("stale node reference");
  const el = arena.nodes[index];
  if (!el || !el.isConnected) throw new Error("stale node reference");
  const view = el.ownerDocument.defaultView || window;
  switch (op) {
    case "set_value": {
      const proto = el.tagName === "TEXTAREA" ? view.HTMLTextAreaElement.prototype : view.HTMLInputElement.prototype;
      const descriptor = Object.getOwnPropertyDescriptor(proto, "value");
      if (descriptor && descriptor.set) descriptor.set.call(el, arg);
      else el.value = arg;
      return null;
    }
    case "set_text":
      el.textContent = arg;
      return null;
    case "select_index":
      el.selectedIndex = arg;
      return null;
    case "set_checked":
      el.checked = arg;
      return null;
    case "dispatch":
      el.dispatchEvent(new view.Event(arg, { bubbles: true, cancelable: true }));
      return null;
    case "focus":
      el.focus();
      return null;
    case "scroll":
      el.scrollIntoView({ behavior: "smooth", block: "center" });
      return null;
    case "click":
      el.click();
      return null;
    case "rect": {
      const rect = el.getBoundingClientRect();
      return [rect.x, rect.y, rect.width, rect.height];
    }
    default:
      throw new Error("unknown node op " + op);
  }
}
"""

WATCH_JS = r"""
(binding) => {
  if (window.__jobCopilotObserver) return;
  const observer = new MutationObserver((records) => {
    if (records.some((r) => r.addedNodes && r.addedNodes.length) && window[binding]) window[binding]();
  });
  observer.observe(document.documentElement || document, { childList: true, subtree: true });
  window.__jobCopilotObserver = observer;
}
"""

UNWATCH_JS = r"""
() => {
  if (window.__jobCopilotObserver) window.__jobCopilotObserver.disconnect();
  window.__jobCopilotObserver = undefined;
}
"""


class BrowserSession:
    def __init__(self, user_data_dir: str | None = None) -> None:
        self.context: BrowserContext | None = None
        self.page: Page | None = None
        self._playwright: Playwright | None = None
        self.user_data_dir = os.path.expanduser(user_data_dir or settings.user_data_dir)

    async def __aenter__(self) -> "BrowserSession":
        self._playwright = await async_playwright().start()
        self.context = await self._playwright.chromium.launch_persistent_context(
            user_data_dir=self.user_data_dir,
            headless=settings.headless,
        )
        self.page = await self.context.new_page()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.context:
            await self.context.close()
        if self._playwright:
            await self._playwright.stop()

    async def goto(self, url: str, wait_ms: int = 1500) -> None:
        """
        Navigate to a URL and give the app a moment to hydrate.
        """
        if not self.page:
            raise RuntimeError("Browser page is not initialized. Use within an async context manager.")

        await self.page.goto(url, wait_until="domcontentloaded", timeout=30000)
        try:
            await self.page.wait_for_load_state("networkidle", timeout=5000)
        except PlaywrightTimeoutError:
            logging.info("browser_networkidle_timeout url=%s", url)

        if wait_ms > 0:
            await self.page.wait_for_timeout(wait_ms)

    def driver(self) -> "PlaywrightDriver":
        if not self.page:
            raise RuntimeError("Browser page is not initialized. Use within an async context manager.")
        return PlaywrightDriver(self.page)

    def __repr__(self) -> str:
        return f"BrowserSession(headless={settings.headless})"


class PlaywrightDriver(DocumentDriver):
    """DocumentDriver over a live Playwright page."""

    def __init__(self, page: Page) -> None:
        self.page = page
        self.snapshot: Optional[PageSnapshot] = None
        self._mutation_callback: Optional[MutationCallback] = None
        self._binding_exposed = False

    async def observe(self) -> PageSnapshot:
        pass_id = uuid.uuid4().hex
        payload: dict[str, Any] = await self.page.evaluate(COLLECT_JS, pass_id)
        self.snapshot = PageSnapshot.from_payload(payload, pass_id=pass_id)
        logging.debug("browser_observe pass=%s nodes=%s url=%s", pass_id, len(self.snapshot), self.snapshot.url)
        if self._mutation_callback is not None:
            # navigation drops the observer along with the old window
            await self._install_observer()
        return self.snapshot

    async def _node_op(self, ref: NodeRef, op: str, arg: Any = None) -> Any:
        self.resolve(ref)
        try:
            return await self.page.evaluate(NODE_OP_JS, [ref.pass_id, ref.index, op, arg])
        except PlaywrightError as exc:
            if STALE_MARKER in str(exc):
                raise StaleNodeError(str(exc)) from exc
            raise

    async def set_value(self, ref: NodeRef, value: str) -> None:
        await self._node_op(ref, "set_value", value)
        self.resolve(ref).props["value"] = value

    async def set_text(self, ref: NodeRef, text: str) -> None:
        await self._node_op(ref, "set_text", text)
        self.resolve(ref).props["text"] = text

    async def select_index(self, ref: NodeRef, index: int) -> None:
        await self._node_op(ref, "select_index", index)
        self.resolve(ref).props["selectedIndex"] = index

    async def set_checked(self, ref: NodeRef, checked: bool) -> None:
        await self._node_op(ref, "set_checked", checked)
        self.resolve(ref).props["checked"] = checked

    async def dispatch(self, ref: NodeRef, event_type: str) -> None:
        await self._node_op(ref, "dispatch", event_type)

    async def focus(self, ref: NodeRef) -> None:
        await self._node_op(ref, "focus")

    async def scroll_into_view(self, ref: NodeRef) -> None:
        await self._node_op(ref, "scroll")

    async def click(self, ref: NodeRef) -> None:
        await self._node_op(ref, "click")

    async def wait(self, ms: int) -> None:
        await self.page.wait_for_timeout(ms)

    async def bounding_box(self, ref: NodeRef) -> Optional[Tuple[float, float, float, float]]:
        rect = await self._node_op(ref, "rect")
        return tuple(rect) if rect else None

    async def watch(self, callback: MutationCallback) -> None:
        self._mutation_callback = callback
        if not self._binding_exposed:
            await self.page.expose_function(MUTATION_BINDING, self._on_mutation)
            self._binding_exposed = True
        await self._install_observer()

    async def unwatch(self) -> None:
        self._mutation_callback = None
        try:
            await self.page.evaluate(UNWATCH_JS)
        except PlaywrightError as exc:
            logging.debug("browser_unwatch_failed reason=%r", exc)

    async def _install_observer(self) -> None:
        try:
            await self.page.evaluate(WATCH_JS, MUTATION_BINDING)
        except PlaywrightError as exc:
            logging.warning("browser_watch_failed reason=%r", exc)

    def _on_mutation(self, *_args) -> None:
        if self._mutation_callback is not None:
            self._mutation_callback()

from __future__ import annotations

import logging
from typing import Optional

from ..config import settings
from .classifiers import is_editable
from .document import DocumentDriver
from .page_snapshot import NodeRef, PageSnapshot, SnapshotNode

AFFIRMATIVE_MARKERS = ("yes", "true", "check")


def is_affirmative(value: str) -> bool:
    lowered = value.lower()
    return value == "1" or any(marker in lowered for marker in AFFIRMATIVE_MARKERS)


def _loosely_equal(a: str, b: str) -> bool:
    """Equal, or one contains the other. Empty strings never match."""
    if not a or not b:
        return False
    return a == b or a in b or b in a


def match_option_index(snapshot: PageSnapshot, select: SnapshotNode, value: str) -> Optional[int]:
    """Exact (case-insensitive) value/text match first, then substring either way."""
    wanted = value.lower().strip()
    if not wanted:
        return None
    options = [
        (snapshot.option_value(option).lower().strip(), snapshot.option_text(option).lower().strip())
        for option in snapshot.options(select)
    ]
    for index, (option_value, option_text) in enumerate(options):
        if wanted in {option_value, option_text}:
            return index
    for index, (option_value, option_text) in enumerate(options):
        if _loosely_equal(option_text, wanted) or _loosely_equal(option_value, wanted):
            return index
    return None


def is_disabled(node: SnapshotNode) -> bool:
    if node.has_attr("disabled") or node.prop("disabled"):
        return True
    return (node.attr("aria-disabled") or "").lower() == "true"


class Injector:
    """Writes values into controls and activates clickables through a DocumentDriver.

    Every public method reports success as a bool and never raises.
    """

    def __init__(self, driver: DocumentDriver, click_settle_ms: Optional[int] = None) -> None:
        self.driver = driver
        self.click_settle_ms = settings.click_settle_ms if click_settle_ms is None else click_settle_ms

    async def click(self, ref: NodeRef) -> bool:
        try:
            node = self.driver.resolve(ref)
            if is_disabled(node):
                logging.debug("inject_click_skipped node=%s reason=disabled", ref.index)
                return False
            await self.driver.scroll_into_view(ref)
            await self.driver.wait(self.click_settle_ms)
            await self.driver.click(ref)
            return True
        except Exception as exc:
            logging.warning("inject_click_failed node=%s reason=%r", ref.index, exc)
            return False

    async def fill(self, ref: NodeRef, value: str) -> bool:
        try:
            return await self._fill(ref, value)
        except Exception as exc:
            logging.warning("inject_fill_failed node=%s reason=%r", ref.index, exc)
            return False

    async def _fill(self, ref: NodeRef, value: str) -> bool:
        node = self.driver.resolve(ref)
        if is_disabled(node):
            return False
        tag = node.tag
        await self.driver.focus(ref)

        if tag == "select":
            return await self._fill_select(ref, node, value)
        if tag == "input" and node.input_type == "checkbox":
            return await self._fill_checkbox(ref, node, value)
        if tag == "input" and node.input_type == "radio":
            return await self._fill_radio(ref, node, value)
        if tag == "input" and node.input_type == "file":
            return False
        if tag in {"input", "textarea"}:
            await self.driver.set_value(ref, value)
            await self._dispatch_all(ref, "input", "change", "blur")
            return True
        if node.role in {"checkbox", "switch"}:
            checked = (node.attr("aria-checked") or "").lower() == "true"
            if checked != is_affirmative(value):
                await self.driver.click(ref)
            return True
        if is_editable(node):
            await self.driver.set_text(ref, value)
            await self._dispatch_all(ref, "input", "change", "blur")
            return True
        logging.debug("inject_unsupported node=%s tag=%s role=%s", ref.index, tag, node.role)
        return False

    async def _fill_select(self, ref: NodeRef, node: SnapshotNode, value: str) -> bool:
        snapshot = self.driver.snapshot
        index = match_option_index(snapshot, node, value)
        if index is None:
            return False
        await self.driver.select_index(ref, index)
        await self._dispatch_all(ref, "input", "change")
        return True

    async def _fill_checkbox(self, ref: NodeRef, node: SnapshotNode, value: str) -> bool:
        should_check = is_affirmative(value)
        if bool(node.prop("checked", node.has_attr("checked"))) != should_check:
            await self.driver.set_checked(ref, should_check)
            await self._dispatch_all(ref, "change", "click")
        return True

    async def _fill_radio(self, ref: NodeRef, node: SnapshotNode, value: str) -> bool:
        # only the declared value attribute counts; the DOM default "on" is not a match
        radio_value = (node.attr("value") or "").lower().strip()
        if not _loosely_equal(radio_value, value.lower().strip()):
            return False
        await self.driver.set_checked(ref, True)
        await self._dispatch_all(ref, "change", "click")
        return True

    async def _dispatch_all(self, ref: NodeRef, *event_types: str) -> None:
        for event_type in event_types:
            await self.driver.dispatch(ref, event_type)

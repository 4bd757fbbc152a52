from __future__ import annotations

import logging

from .classifiers import is_clickable, is_editable
from .page_snapshot import PageSnapshot, SnapshotNode

NO_FILE_SELECTED = "no file selected"


def _checked_state(node: SnapshotNode) -> str:
    if node.tag == "input":
        checked = node.prop("checked", node.has_attr("checked"))
    else:
        checked = (node.attr("aria-checked") or "").lower() == "true"
    return "checked" if checked else "unchecked"


def _raw_value(node: SnapshotNode) -> str:
    value = node.prop("value")
    if value is None:
        value = node.attr("value")
    return "" if value is None else str(value)


def extract_value(snapshot: PageSnapshot, node: SnapshotNode) -> str:
    """Current value of a control as display text. Never raises."""
    try:
        return _extract(snapshot, node)
    except Exception as exc:  # pragma: no cover - malformed snapshot payloads
        logging.debug("value_extract_failed node=%s reason=%r", node.index, exc)
        return ""


def _extract(snapshot: PageSnapshot, node: SnapshotNode) -> str:
    tag = node.tag
    if tag == "select":
        options = snapshot.options(node)
        selected = snapshot.selected_index(node)
        if 0 <= selected < len(options):
            return snapshot.option_text(options[selected]) or _raw_value(node)
        return _raw_value(node)
    if tag == "textarea":
        value = node.prop("value")
        if value is None:
            value = snapshot.text_content(node)
        return str(value)
    if tag == "input":
        input_type = node.input_type
        if input_type in {"checkbox", "radio"}:
            return _checked_state(node)
        if input_type == "file":
            files = node.prop("files") or []
            return ", ".join(str(name) for name in files) if files else NO_FILE_SELECTED
        return _raw_value(node)
    if node.role in {"checkbox", "switch", "radio"}:
        return _checked_state(node)
    if is_editable(node):
        text = node.prop("text")
        return str(text) if text is not None else snapshot.text_content(node)
    if is_clickable(node):
        return snapshot.text_content(node).strip()
    return _raw_value(node)

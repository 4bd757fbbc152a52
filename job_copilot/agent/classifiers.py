"""Element classification: semantic field kinds, autofill-attention buttons and proceed controls."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from .page_snapshot import PageSnapshot, SnapshotNode


class FieldKind(str, Enum):
    TEXT = "text"
    CHOICE = "choice"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    MULTILINE = "multiline"
    UPLOAD = "upload"
    ADD = "add"
    BUTTON = "button"


@dataclass(frozen=True)
class Classification:
    kind: FieldKind
    sub_kind: str


NATIVE_CONTROL_TAGS = frozenset({"input", "select", "textarea"})
BUTTON_INPUT_TYPES = frozenset({"submit", "reset", "button", "image"})
EDITABLE_MARKERS = frozenset({"", "true", "plaintext-only"})

ROLE_KINDS: dict[str, FieldKind] = {
    "textbox": FieldKind.TEXT,
    "searchbox": FieldKind.TEXT,
    "spinbutton": FieldKind.TEXT,
    "combobox": FieldKind.CHOICE,
    "listbox": FieldKind.CHOICE,
    "checkbox": FieldKind.CHECKBOX,
    "switch": FieldKind.CHECKBOX,
    "radio": FieldKind.RADIO,
}
INTERACTIVE_ROLES = frozenset(ROLE_KINDS)

UPLOAD_KEYWORDS = ("upload", "browse", "choose file", "select file", "attach", "resume", "cv")
ADD_KEYWORDS = ("add", "new", "create", "insert", "append")
ADD_CLASS_PATTERN = re.compile(r"add|plus|insert|new|create", re.IGNORECASE)
LONE_PLUS_PATTERN = re.compile(r"^\s*\+\s*$")

NEXT_PATTERN = re.compile(r"\b(next|continue|proceed|review)\b")
SUBMIT_PATTERN = re.compile(r"\b(submit|apply|finish)\b")
BACKWARD_PATTERN = re.compile(r"\b(back|previous|prev|cancel|close|add another|sign in|log in)\b")
NEXT_AUTOMATION_IDS = ("pagefooternextbutton", "bottom-navigation-next-button")
BACK_AUTOMATION_IDS = ("pagefooterbackbutton", "backtojobposting")


def is_editable(node: SnapshotNode) -> bool:
    marker = node.attr("contenteditable")
    return marker is not None and marker.lower() in EDITABLE_MARKERS


def is_native_control(node: SnapshotNode) -> bool:
    if node.tag not in NATIVE_CONTROL_TAGS:
        return False
    return not (node.tag == "input" and node.input_type in BUTTON_INPUT_TYPES)


def is_candidate_control(node: SnapshotNode) -> bool:
    return is_native_control(node) or node.role in INTERACTIVE_ROLES or is_editable(node)


def is_clickable(node: SnapshotNode) -> bool:
    if node.tag == "button" or node.role == "button":
        return True
    return bool(node.prop("onclick")) or node.has_attr("onclick")


def _keyword_haystacks(snapshot: PageSnapshot, node: SnapshotNode) -> tuple[str, str, str, str]:
    return (
        snapshot.text_content(node).lower(),
        (node.attr("aria-label") or "").lower(),
        node.class_name.lower(),
        node.element_id.lower(),
    )


def is_upload_button(snapshot: PageSnapshot, node: SnapshotNode) -> bool:
    haystacks = _keyword_haystacks(snapshot, node)
    if any(keyword in hay for keyword in UPLOAD_KEYWORDS for hay in haystacks):
        return True
    label = snapshot.closest(node, lambda n: n.tag == "label")
    if label is None:
        return False
    return snapshot.find_first(label, lambda n: n.tag == "input" and n.input_type == "file") is not None


def is_add_button(snapshot: PageSnapshot, node: SnapshotNode) -> bool:
    raw_text = snapshot.text_content(node)
    haystacks = _keyword_haystacks(snapshot, node)
    if any(keyword in hay for keyword in ADD_KEYWORDS for hay in haystacks):
        return True
    if LONE_PLUS_PATTERN.match(raw_text) or "plus" in (node.attr("data-icon") or "").lower():
        return True
    return bool(ADD_CLASS_PATTERN.search(node.class_name) or ADD_CLASS_PATTERN.search(node.element_id))


def needs_attention(snapshot: PageSnapshot, node: SnapshotNode) -> bool:
    """Clickables that autofill must surface: upload and list-add triggers, never submit/reset."""
    if not is_clickable(node):
        return False
    if (node.attr("type") or "").lower() in {"submit", "reset"}:
        return False
    return is_upload_button(snapshot, node) or is_add_button(snapshot, node)


def classify(snapshot: PageSnapshot, node: SnapshotNode) -> Classification:
    tag = node.tag
    if tag == "input":
        input_type = node.input_type
        if input_type == "checkbox":
            return Classification(FieldKind.CHECKBOX, input_type)
        if input_type == "radio":
            return Classification(FieldKind.RADIO, input_type)
        if input_type == "file":
            return Classification(FieldKind.UPLOAD, input_type)
        if input_type in BUTTON_INPUT_TYPES:
            return Classification(FieldKind.BUTTON, input_type)
        return Classification(FieldKind.TEXT, input_type)
    if tag == "select":
        multiple = node.has_attr("multiple") or bool(node.prop("multiple"))
        return Classification(FieldKind.CHOICE, "select-multiple" if multiple else "select")
    if tag == "textarea":
        return Classification(FieldKind.MULTILINE, "textarea")

    # an input role or editable marker outranks an inline click handler
    if tag != "button":
        role_kind = ROLE_KINDS.get(node.role)
        if role_kind is not None:
            return Classification(role_kind, node.role)
        if is_editable(node):
            return Classification(FieldKind.MULTILINE, "contenteditable")

    if is_clickable(node):
        if is_upload_button(snapshot, node):
            return Classification(FieldKind.UPLOAD, "upload-button")
        if is_add_button(snapshot, node):
            return Classification(FieldKind.ADD, "add-button")
        return Classification(FieldKind.BUTTON, "button")
    return Classification(FieldKind.BUTTON, tag)


def is_proceed_candidate(node: SnapshotNode) -> bool:
    if node.tag == "input":
        return node.input_type in {"submit", "button"}
    return node.tag == "button" or node.role == "button"


def is_next_button(snapshot: PageSnapshot, node: SnapshotNode, allow_submit: bool = False) -> bool:
    """Recognize the control that advances a multi-step flow.

    Backward and cancel controls are rejected before anything else. Submit-like
    controls only count when the user enabled auto submit.
    """
    if not is_proceed_candidate(node):
        return False
    text = " ".join(snapshot.text_content(node).split())
    if node.tag == "input":
        text = text or node.prop("value") or node.attr("value") or ""
    text = f"{text} {node.attr('aria-label') or ''}".lower()
    markers = " ".join(
        filter(None, [node.attr("data-automation-id"), node.attr("data-testid"), node.element_id, node.class_name])
    ).lower()

    if any(marker in markers for marker in BACK_AUTOMATION_IDS) or BACKWARD_PATTERN.search(text):
        return False
    if any(marker in markers for marker in NEXT_AUTOMATION_IDS):
        return True
    if NEXT_PATTERN.search(text) or re.search(r"next|continue", markers):
        return True
    return allow_submit and bool(SUBMIT_PATTERN.search(text) or (node.tag == "input" and node.input_type == "submit"))

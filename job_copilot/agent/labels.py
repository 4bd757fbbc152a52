"""Label resolution.

Each strategy takes ``(snapshot, node)`` and returns a candidate string or
``None``. ``LABEL_STRATEGIES`` is tried in order and the first usable result
wins; the two structural strategies (siblings and ancestors) only accept
single-line text.
"""

from __future__ import annotations

import re
from typing import Callable, Optional, Tuple

from ..config import settings
from .classifiers import is_clickable
from .page_snapshot import PageSnapshot, SnapshotNode

LabelStrategy = Callable[[PageSnapshot, SnapshotNode], Optional[str]]

PLACEHOLDER_OPTION_PATTERN = re.compile(r"^(select|choose|pick|please|-)", re.IGNORECASE)
BOILERPLATE_PATTERN = re.compile(r"^(form|field|input|select|required|optional|\*)$", re.IGNORECASE)
CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
LABEL_LIKE_TAGS = frozenset({"label", "span", "div", "p", "h1", "h2", "h3", "h4", "h5", "h6"})
INTERACTIVE_TAGS = frozenset({"input", "select", "textarea", "button"})
FALLBACK_UPLOAD_LABEL = "File Upload"
FALLBACK_LABEL = "Unknown"


def humanize_identifier(identifier: str) -> str:
    """``firstName_input`` -> ``first Name input``."""
    spaced = CAMEL_BOUNDARY.sub(" ", identifier)
    return " ".join(part for part in re.split(r"[\s_\-]+", spaced) if part)


def _usable(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    if not text or len(text) >= settings.max_label_length:
        return None
    return text


def _single_line(text: Optional[str]) -> Optional[str]:
    text = _usable(text)
    if text is None or "\n" in text:
        return None
    return text


def _is_label_element(node: SnapshotNode) -> bool:
    # label, .label, [class*=label], [id*=label]
    return node.tag == "label" or "label" in node.class_name or "label" in node.element_id


def from_own_text(snapshot: PageSnapshot, node: SnapshotNode) -> Optional[str]:
    if not is_clickable(node):
        return None
    text = _usable(snapshot.text_content(node))
    if text is None:
        return None
    return " ".join(text.split())[: settings.button_label_length]


def from_label_for(snapshot: PageSnapshot, node: SnapshotNode) -> Optional[str]:
    element_id = node.element_id
    if not element_id:
        return None

    def matches(candidate: SnapshotNode) -> bool:
        return candidate.tag == "label" and candidate.attr("for") == element_id

    scopes = [snapshot.scope_root(node)]
    if scopes[0] is not snapshot.root:
        scopes.append(snapshot.root)
    for scope in scopes:
        label = snapshot.find_first(scope, matches)
        if label is not None:
            text = _usable(snapshot.text_content(label))
            if text:
                return text
    return None


def from_aria(snapshot: PageSnapshot, node: SnapshotNode) -> Optional[str]:
    aria_label = _usable(node.attr("aria-label"))
    if aria_label:
        return aria_label
    labelled_by = (node.attr("aria-labelledby") or "").split()
    if not labelled_by:
        return None
    scope = snapshot.scope_root(node)
    parts = []
    for target_id in labelled_by:
        target = snapshot.get_element_by_id(scope, target_id)
        if target is not None:
            parts.append(snapshot.text_content(target).strip())
    return _usable(" ".join(part for part in parts if part))


def from_placeholder(snapshot: PageSnapshot, node: SnapshotNode) -> Optional[str]:
    if node.tag not in {"input", "textarea"}:
        return None
    return _usable(node.attr("placeholder"))


def from_first_option(snapshot: PageSnapshot, node: SnapshotNode) -> Optional[str]:
    if node.tag != "select":
        return None
    options = snapshot.options(node)
    if not options:
        return None
    first = options[0]
    if snapshot.option_value(first) != "":
        return None
    text = _usable(snapshot.option_text(first))
    if text is None or PLACEHOLDER_OPTION_PATTERN.match(text):
        return None
    return text


def from_automation_id(snapshot: PageSnapshot, node: SnapshotNode) -> Optional[str]:
    automation_id = node.attr("data-automation-id")
    if not automation_id:
        return None
    return _usable(humanize_identifier(automation_id))


def from_data_attributes(snapshot: PageSnapshot, node: SnapshotNode) -> Optional[str]:
    for attribute in ("data-label", "data-name", "data-field-name"):
        text = _usable(node.attr(attribute))
        if text:
            return text
    return None


def from_previous_siblings(snapshot: PageSnapshot, node: SnapshotNode) -> Optional[str]:
    for depth, sibling in enumerate(snapshot.previous_element_siblings(node)):
        if depth >= settings.sibling_label_depth:
            break
        if sibling.tag not in LABEL_LIKE_TAGS:
            continue
        text = _single_line(snapshot.text_content(sibling))
        if text:
            return text
    return None


def _without_controls(candidate: SnapshotNode) -> bool:
    return candidate.tag in INTERACTIVE_TAGS


def from_ancestors(snapshot: PageSnapshot, node: SnapshotNode) -> Optional[str]:
    ancestor = snapshot.parent_element(node)
    attempts = 0
    while ancestor is not None and attempts < settings.ancestor_label_depth:
        label = snapshot.find_first(ancestor, _is_label_element)
        if label is not None:
            text = _usable(snapshot.text_content(label))
            if text:
                return text
        text = _single_line(snapshot.text_content(ancestor, exclude=_without_controls))
        if text and not BOILERPLATE_PATTERN.match(text):
            return text
        ancestor = snapshot.parent_element(ancestor)
        attempts += 1
    return None


def from_upload_name(snapshot: PageSnapshot, node: SnapshotNode) -> Optional[str]:
    if not (node.tag == "input" and node.input_type == "file"):
        return None
    name = node.attr("name")
    if name:
        readable = _usable(" ".join(part for part in re.split(r"[-_]", name) if part))
        if readable:
            return readable
    return FALLBACK_UPLOAD_LABEL


LABEL_STRATEGIES: Tuple[Tuple[str, LabelStrategy], ...] = (
    ("own_text", from_own_text),
    ("label_for", from_label_for),
    ("aria", from_aria),
    ("placeholder", from_placeholder),
    ("first_option", from_first_option),
    ("automation_id", from_automation_id),
    ("data_attribute", from_data_attributes),
    ("sibling", from_previous_siblings),
    ("ancestor", from_ancestors),
    ("upload_name", from_upload_name),
)


def resolve_label(snapshot: PageSnapshot, node: SnapshotNode) -> Tuple[str, str]:
    """Return ``(label, strategy_name)``; ``"fallback"`` when nothing matched."""
    for name, strategy in LABEL_STRATEGIES:
        label = strategy(snapshot, node)
        if label:
            return label, name
    return FALLBACK_LABEL, "fallback"


def find_label(snapshot: PageSnapshot, node: SnapshotNode) -> str:
    return resolve_label(snapshot, node)[0]

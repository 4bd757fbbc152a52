"""Field assembly: one ``ScannedField`` per visible control in an observation pass."""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..config import settings
from .classifiers import FieldKind, classify, is_next_button
from .labels import resolve_label
from .page_snapshot import NodeRef, PageSnapshot, SnapshotNode
from .traversal import collect_clickables, collect_controls
from .values import extract_value

SemanticKey = Tuple[str, str, str, str]


@dataclass
class ScannedField:
    id: str
    kind: FieldKind
    sub_kind: str
    label: str
    value: str
    ref: NodeRef
    rect: Optional[Tuple[float, float, float, float]] = None
    native_id: str = ""
    label_source: str = ""

    @property
    def type(self) -> str:
        return self.kind.value

    @property
    def semantic_key(self) -> SemanticKey:
        """Identity that survives re-observation (generated ids do not)."""
        return (self.kind.value, self.sub_kind, self.label, self.native_id)


def _is_small_target(node: SnapshotNode) -> bool:
    return node.tag in {"button", "a"} or node.role == "button"


def is_visible(node: SnapshotNode) -> bool:
    if node.tag == "input" and node.input_type == "hidden":
        return False
    style = node.style
    if style.get("display") == "none" or style.get("visibility") == "hidden":
        return False
    opacity = style.get("opacity")
    if opacity is not None:
        try:
            if float(opacity) == 0:
                return False
        except ValueError:
            pass
    if node.rect is None:
        return False
    _, _, width, height = node.rect
    min_size = settings.min_clickable_size_px if _is_small_target(node) else settings.min_control_size_px
    return width >= min_size and height >= min_size


def _field_id(node: SnapshotNode, id_counts: Counter) -> str:
    element_id = node.element_id
    if element_id and id_counts[element_id] == 1:
        return element_id
    return f"gen_{uuid.uuid4().hex[:9]}"


def scan_page_fields(snapshot: PageSnapshot) -> List[ScannedField]:
    """Assemble field records for every visible control in this pass."""
    controls = [node for node in collect_controls(snapshot) if is_visible(node)]
    id_counts = Counter(node.element_id for node in snapshot.dom_nodes if node.is_element and node.element_id)

    fields: List[ScannedField] = []
    for node in controls:
        classification = classify(snapshot, node)
        label, source = resolve_label(snapshot, node)
        fields.append(
            ScannedField(
                id=_field_id(node, id_counts),
                kind=classification.kind,
                sub_kind=classification.sub_kind,
                label=label,
                value=extract_value(snapshot, node),
                ref=snapshot.ref(node),
                rect=node.rect,
                native_id=node.element_id,
                label_source=source,
            )
        )

    if logging.getLogger().isEnabledFor(logging.DEBUG):
        stats = Counter(f.type for f in fields)
        logging.debug(
            "scan_stats pass=%s total=%s types=%s unknown_labels=%s",
            snapshot.pass_id,
            len(fields),
            dict(stats),
            sum(1 for f in fields if f.label_source == "fallback"),
        )
    return fields


def _group_has_selection(snapshot: PageSnapshot, radio: SnapshotNode) -> bool:
    name = radio.attr("name")
    if radio.tag != "input" or not name:
        return False
    for other in snapshot.iter_scope(snapshot.scope_root(radio)):
        if other.tag == "input" and other.input_type == "radio" and other.attr("name") == name:
            if other.prop("checked", other.has_attr("checked")):
                return True
    return False


def needs_value(field: ScannedField, snapshot: PageSnapshot) -> bool:
    """Whether the control is still empty and should be matched and filled."""
    kind = field.kind
    if kind in {FieldKind.TEXT, FieldKind.MULTILINE}:
        return field.value.strip() == ""
    if kind == FieldKind.CHECKBOX:
        return field.value == "unchecked"
    if kind == FieldKind.RADIO:
        return field.value == "unchecked" and not _group_has_selection(snapshot, snapshot.node(field.ref.index))
    if kind == FieldKind.CHOICE:
        node = snapshot.node(field.ref.index)
        if node.tag != "select":
            return field.value.strip() == ""
        options = snapshot.options(node)
        selected = snapshot.selected_index(node)
        if not 0 <= selected < len(options):
            return True
        return snapshot.option_value(options[selected]) == ""
    return False


def find_proceed_control(snapshot: PageSnapshot, allow_submit: bool = False) -> Optional[SnapshotNode]:
    for node in collect_clickables(snapshot):
        if is_visible(node) and is_next_button(snapshot, node, allow_submit=allow_submit):
            return node
    return None

from __future__ import annotations

import logging
from typing import Iterator, List

from .classifiers import is_candidate_control, is_clickable, needs_attention
from .page_snapshot import PageSnapshot, SnapshotNode, SubtreeAccessError


def iter_scopes(snapshot: PageSnapshot) -> Iterator[SnapshotNode]:
    """Yield the top document and every reachable isolated subtree root.

    Shadow roots and frame documents are discovered through their hosts with an
    explicit worklist. A subtree that refuses access is logged and skipped.
    """
    if not len(snapshot):
        return
    worklist: List[SnapshotNode] = [snapshot.root]
    seen_scopes: set[int] = set()
    while worklist:
        scope = worklist.pop(0)
        if scope.index in seen_scopes:
            continue
        seen_scopes.add(scope.index)
        yield scope

        for node in snapshot.iter_descendants(scope):
            if node.subtree is None and not node.subtree_error:
                continue
            try:
                subtree_root = snapshot.open_subtree(node)
            except SubtreeAccessError as exc:
                logging.debug("traversal_subtree_skipped host=%s tag=%s reason=%s", node.index, node.tag, exc)
                continue
            if subtree_root is not None and subtree_root.index not in seen_scopes:
                worklist.append(subtree_root)


def collect_controls(snapshot: PageSnapshot) -> List[SnapshotNode]:
    """Candidate interactive nodes plus clickables needing autofill attention, without duplicates."""
    seen: set[int] = set()
    found: List[SnapshotNode] = []
    for scope in iter_scopes(snapshot):
        elements = list(snapshot.iter_scope(scope))
        for node in elements:
            if node.index not in seen and is_candidate_control(node):
                seen.add(node.index)
                found.append(node)
        for node in elements:
            if node.index in seen or not is_clickable(node):
                continue
            if needs_attention(snapshot, node):
                seen.add(node.index)
                found.append(node)
    return found


def collect_clickables(snapshot: PageSnapshot) -> List[SnapshotNode]:
    """Every clickable in every scope, for the proceed search."""
    seen: set[int] = set()
    found: List[SnapshotNode] = []
    for scope in iter_scopes(snapshot):
        for node in snapshot.iter_scope(scope):
            if node.index in seen:
                continue
            if is_clickable(node) or (node.tag == "input" and node.input_type in {"submit", "button"}):
                seen.add(node.index)
                found.append(node)
    return found

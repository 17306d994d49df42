"""
Branch metrics for layout positioning.

Measures the subtree below a node: its depth in rows (how far the next
element after it has to move down) and its width in columns (how far
sibling branches have to move apart).

Both walks take a traversal boundary and a visited set. Sibling branches
each receive their own copy of the visited set, so two branches may pass
through the same downstream node, while a single branch still stops on a
loop back-edge or at its boundary. The set passed in is extended in place.
Linear chains are walked iteratively.
"""

from typing import List, Optional, Sequence, Set

from .graph import GraphIndex, classify_node, loop_edges, ordered_branch_edges
from .merge import merge_point_for
from .models import UNBOUNDED, Boundary, Edge, NodeShape


def branch_depth(
    index: GraphIndex,
    start_id: Optional[str],
    stop_at: Boundary = UNBOUNDED,
    visited: Optional[Set[str]] = None,
) -> int:
    """
    Calculate the depth (height in rows) of a branch.

    Args:
        index: Graph lookups.
        start_id: First node of the branch.
        stop_at: Boundary where the branch ends (merge point or loop node).
        visited: Nodes already on this branch's path.

    Returns:
        Number of rows the branch occupies.
    """
    if visited is None:
        visited = set()

    rows = 0
    node_id = start_id
    while True:
        if not node_id or node_id in visited or stop_at.reached(node_id):
            return rows
        node = index.node(node_id)
        if node is None:
            return rows
        visited.add(node_id)

        outs = index.primary_edges(node_id)
        shape = classify_node(node, outs)

        if shape is NodeShape.TERMINAL:
            return rows + 1

        if shape is NodeShape.BRANCHING:
            merge = merge_point_for(node_id, index)
            bounded = Boundary.at(merge) if merge else stop_at
            deepest = max(
                branch_depth(index, e.target, bounded, set(visited))
                for e in ordered_branch_edges(node, outs)
            )
            after_merge = (
                branch_depth(index, merge, stop_at, set(visited)) if merge else 0
            )
            return rows + 1 + deepest + after_merge

        if shape is NodeShape.LOOP:
            body, after = loop_edges(outs)
            body_depth = (
                branch_depth(index, body.target, Boundary(node_id), set(visited))
                if body
                else 0
            )
            after_depth = (
                branch_depth(index, after.target, stop_at, set(visited)) if after else 0
            )
            return rows + 1 + max(body_depth, 1) + after_depth

        rows += 1
        node_id = outs[0].target


def subtree_width(
    index: GraphIndex,
    start_id: Optional[str],
    stop_at: Boundary = UNBOUNDED,
    visited: Optional[Set[str]] = None,
) -> int:
    """
    Calculate the width of a subtree in columns.

    Branches sit side by side, so a branching node is as wide as the sum of
    its branches (or the part after the merge, if wider). A loop reserves
    one extra column for its body and never collapses below two columns.

    Args:
        index: Graph lookups.
        start_id: Root of the subtree.
        stop_at: Boundary where the subtree ends.
        visited: Nodes already on this branch's path.

    Returns:
        Number of columns the subtree occupies.
    """
    if visited is None:
        visited = set()

    node_id = start_id
    while True:
        if not node_id or node_id in visited:
            return 1
        if stop_at.reached(node_id):
            return 0
        node = index.node(node_id)
        if node is None:
            return 1
        visited.add(node_id)

        outs = index.primary_edges(node_id)
        shape = classify_node(node, outs)

        if shape is NodeShape.TERMINAL:
            return 1

        if shape is NodeShape.BRANCHING:
            merge = merge_point_for(node_id, index)
            widths = branch_widths(
                index, ordered_branch_edges(node, outs), merge, visited, stop_at
            )
            after_merge = (
                subtree_width(index, merge, stop_at, set(visited)) if merge else 0
            )
            return max(total_branch_width(widths), after_merge, 1)

        if shape is NodeShape.LOOP:
            body, after = loop_edges(outs)
            body_width = (
                subtree_width(index, body.target, Boundary(node_id), set(visited))
                if body
                else 1
            )
            after_width = (
                subtree_width(index, after.target, stop_at, set(visited))
                if after
                else 1
            )
            return max(body_width + 1, after_width, 2)

        node_id = outs[0].target


def branch_widths(
    index: GraphIndex,
    branch_edges: Sequence[Edge],
    merge_point: Optional[str] = None,
    visited: Optional[Set[str]] = None,
    stop_at: Boundary = UNBOUNDED,
) -> List[int]:
    """
    Calculate the width of every branch of a branching node.

    Each branch is bounded by the merge point, or by ``stop_at`` when the
    branches never meet, and is at least one column.
    """
    base = visited or set()
    bounded = Boundary.at(merge_point) if merge_point else stop_at
    return [
        max(subtree_width(index, e.target, bounded, set(base)), 1)
        for e in branch_edges
    ]


def total_branch_width(widths: Sequence[int]) -> int:
    return sum(widths)

"""
Graph module for flow layout.

Provides the lookup structures the layout engine works from (node by id,
outgoing and incoming connectors), branch ordering rules, node-shape
classification and helpers for walking the authored flow model.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import networkx as nx

from .models import Edge, EdgeType, Node, NodeShape, NodeType

logger = logging.getLogger(__name__)

# Labels used for the right-most decision branch
DEFAULT_BRANCH_LABELS = ("default", "other", "default outcome")

BRANCHING_NODE_TYPES = (NodeType.DECISION, NodeType.WAIT)


@dataclass
class GraphIndex:
    """
    Lookup structures over a flow's nodes and edges.

    Edge lists keep insertion order; that order drives every tie-break in
    the layout.

    Attributes:
        node_by_id: Node lookup.
        outgoing: Connectors leaving each node.
        incoming: Connectors entering each node.
        primary_graph: Directed graph of the non-fault connectors.
        skipped_edges: Connectors whose source or target is unknown.
        merge_cache: Merge point per branching node, filled on demand.
    """

    node_by_id: Dict[str, Node] = field(default_factory=dict)
    outgoing: Dict[str, List[Edge]] = field(default_factory=dict)
    incoming: Dict[str, List[Edge]] = field(default_factory=dict)
    primary_graph: nx.DiGraph = field(default_factory=nx.DiGraph)
    skipped_edges: List[Edge] = field(default_factory=list)
    merge_cache: Dict[str, Optional[str]] = field(default_factory=dict, repr=False)

    def node(self, node_id: Optional[str]) -> Optional[Node]:
        if not node_id:
            return None
        return self.node_by_id.get(node_id)

    def outgoing_edges(self, node_id: str) -> List[Edge]:
        """Get all connectors leaving a node."""
        return self.outgoing.get(node_id, [])

    def incoming_edges(self, node_id: str) -> List[Edge]:
        """Get all connectors entering a node."""
        return self.incoming.get(node_id, [])

    def primary_edges(self, node_id: str) -> List[Edge]:
        """Get the non-fault connectors leaving a node."""
        return [e for e in self.outgoing_edges(node_id) if not e.is_fault]

    def fault_edges(self, node_id: str) -> List[Edge]:
        """Get the fault connectors leaving a node."""
        return [e for e in self.outgoing_edges(node_id) if e.is_fault]


def create_index(nodes: Sequence[Node], edges: Sequence[Edge]) -> GraphIndex:
    """
    Create a GraphIndex from node and edge lists.

    Connectors referencing an unknown node are left out of every lookup.

    Args:
        nodes: Flow nodes in authored order.
        edges: Flow connectors in authored order.

    Returns:
        GraphIndex object
    """
    index = GraphIndex()
    outgoing: Dict[str, List[Edge]] = defaultdict(list)
    incoming: Dict[str, List[Edge]] = defaultdict(list)

    for node in nodes:
        index.node_by_id[node.id] = node
        index.primary_graph.add_node(node.id)

    for edge in edges:
        if edge.source not in index.node_by_id or edge.target not in index.node_by_id:
            logger.debug(
                "Skipping edge %s: %s -> %s references an unknown node",
                edge.id,
                edge.source,
                edge.target,
            )
            index.skipped_edges.append(edge)
            continue
        outgoing[edge.source].append(edge)
        incoming[edge.target].append(edge)
        if not edge.is_fault:
            index.primary_graph.add_edge(edge.source, edge.target)

    index.outgoing = dict(outgoing)
    index.incoming = dict(incoming)
    return index


# ---------------------------------------------------------------------------
# Branch ordering
# ---------------------------------------------------------------------------


def is_default_branch_edge(edge: Edge) -> bool:
    """Check whether a connector is a decision's default outcome."""
    label = (edge.label or "").lower()
    return any(token in label for token in DEFAULT_BRANCH_LABELS) or "-def" in edge.id


def is_async_start_edge(edge: Edge) -> bool:
    """Check whether a connector is an asynchronous or scheduled start path."""
    label = (edge.label or "").lower()
    return "async" in label or "scheduled" in label or "-sched" in edge.id


def get_branch_edges_for_node(node: Node, outgoing_edges: Sequence[Edge]) -> List[Edge]:
    """
    Select the connectors that spread horizontally below a node.

    Loops spread their For Each / After Last paths, decisions, waits and
    starts spread every non-fault connector. Other nodes have no branches.
    """
    if node.type == NodeType.LOOP:
        return [
            e
            for e in outgoing_edges
            if e.type in (EdgeType.LOOP_NEXT, EdgeType.LOOP_END)
        ]
    if node.type in BRANCHING_NODE_TYPES or node.type == NodeType.START:
        return [e for e in outgoing_edges if not e.is_fault]
    return []


def sort_branch_edges(node: Node, branch_edges: Sequence[Edge]) -> List[Edge]:
    """
    Order branches left to right.

    Default outcomes, asynchronous start paths and the loop's After Last
    path go to the right; everything else keeps its authored order.
    """
    if len(branch_edges) <= 1:
        return list(branch_edges)

    if node.type == NodeType.LOOP:
        return sorted(branch_edges, key=lambda e: e.type == EdgeType.LOOP_END)
    if node.type == NodeType.START:
        return sorted(branch_edges, key=is_async_start_edge)
    return sorted(branch_edges, key=is_default_branch_edge)


def ordered_branch_edges(node: Node, primary_outs: Sequence[Edge]) -> List[Edge]:
    """Branches of a node in left-to-right order."""
    return sort_branch_edges(node, get_branch_edges_for_node(node, primary_outs))


def loop_edges(primary_outs: Sequence[Edge]) -> Tuple[Optional[Edge], Optional[Edge]]:
    """Split a loop's connectors into its For Each and After Last paths."""
    body = next((e for e in primary_outs if e.type == EdgeType.LOOP_NEXT), None)
    after = next((e for e in primary_outs if e.type == EdgeType.LOOP_END), None)
    return body, after


def is_branching_node(node: Node, branch_count: int) -> bool:
    """Check whether a node behaves like a branching container."""
    if node.type in BRANCHING_NODE_TYPES + (NodeType.LOOP, NodeType.START):
        return branch_count > 1
    return False


def classify_node(node: Node, primary_outs: Sequence[Edge]) -> NodeShape:
    """
    Determine the layout shape of a node from its type and primary edges.

    A decision or wait with fewer than two branches lays out like a linear
    step, and so does a loop without loop connectors.
    """
    if not primary_outs:
        return NodeShape.TERMINAL
    if node.type in BRANCHING_NODE_TYPES and len(primary_outs) >= 2:
        return NodeShape.BRANCHING
    if node.type == NodeType.START and len(primary_outs) > 1:
        return NodeShape.BRANCHING
    if node.type == NodeType.LOOP and any(
        e.type in (EdgeType.LOOP_NEXT, EdgeType.LOOP_END) for e in primary_outs
    ):
        return NodeShape.LOOP
    return NodeShape.LINEAR


# ---------------------------------------------------------------------------
# Flow model navigation
# ---------------------------------------------------------------------------


def supports_children(node: Node) -> bool:
    """Check whether a node can own branches."""
    return node.type in BRANCHING_NODE_TYPES + (NodeType.LOOP, NodeType.START)


def get_child_count(node: Node) -> Optional[int]:
    """
    Number of branches a node owns, including the default connector.

    Returns None for nodes that cannot own branches.
    """
    if node.type == NodeType.LOOP:
        return 1
    if node.type in (NodeType.DECISION, NodeType.WAIT, NodeType.START):
        return len(node.children) + 1
    return None


def _follow(index: GraphIndex, node_id: str, attr: str) -> Optional[Node]:
    current = index.node(node_id)
    seen = set()
    while current is not None and getattr(current, attr) and current.id not in seen:
        seen.add(current.id)
        following = index.node(getattr(current, attr))
        if following is None:
            break
        current = following
    return current


def find_first_element(node_id: str, index: GraphIndex) -> Optional[Node]:
    """Walk ``prev`` links back to the first element of a branch."""
    return _follow(index, node_id, "prev")


def find_last_element(node_id: str, index: GraphIndex) -> Optional[Node]:
    """Walk ``next`` links forward to the last element of a branch."""
    return _follow(index, node_id, "next")


def find_parent_element(node: Node, index: GraphIndex) -> Optional[Node]:
    if node.parent:
        return index.node(node.parent)
    if node.prev:
        return index.node(node.prev)
    return None


def are_all_branches_terminals(node: Node, index: GraphIndex) -> bool:
    """Check whether every branch of a node ends its flow."""
    if not node.children:
        return False
    for child_id in node.children:
        if not child_id:
            continue
        last = find_last_element(child_id, index)
        if last is None or not (last.is_terminal or last.type == NodeType.END):
            return False
    return True


def is_going_back_to_ancestor_loop(
    target_id: str, source: Node, index: GraphIndex
) -> bool:
    """Check whether a connector from ``source`` jumps back to an enclosing loop."""
    current: Optional[Node] = source
    seen = set()
    while current is not None and current.id not in seen:
        if current.type == NodeType.LOOP and current.id == target_id:
            return True
        seen.add(current.id)
        current = find_parent_element(current, index)
    return False


def has_goto_on_next(node: Node, index: GraphIndex) -> bool:
    """Check whether the connector to ``node.next`` is a goto jump."""
    if not node.next:
        return False
    for edge in index.outgoing_edges(node.id):
        if edge.target == node.next and edge.type != EdgeType.FAULT:
            return edge.is_goto
    return False


def has_goto_on_branch_head(node_id: str, child_index: int, index: GraphIndex) -> bool:
    """Check whether the connector to a branch head is a goto jump."""
    node = index.node(node_id)
    if node is None or not 0 <= child_index < len(node.children):
        return False
    child_id = node.children[child_index]
    if not child_id:
        return False
    for edge in index.outgoing_edges(node_id):
        if edge.target == child_id:
            return edge.is_goto
    return False

"""
Merge point detection.

Finds where the branches of a decision, wait or scheduled start converge
again. Fault connectors are ignored: error paths never define a merge.
"""

import logging
from typing import Dict, Optional, Sequence

import networkx as nx

from .graph import GraphIndex, classify_node, ordered_branch_edges
from .models import NodeShape

logger = logging.getLogger(__name__)


def _reach(index: GraphIndex, target: str) -> Dict[str, int]:
    """BFS depth of every node reachable from ``target`` over primary edges."""
    if target not in index.primary_graph:
        return {target: 0}
    return nx.single_source_shortest_path_length(index.primary_graph, target)


def find_merge_point(branch_targets: Sequence[str], index: GraphIndex) -> Optional[str]:
    """
    Find the node where a set of branches converges.

    A candidate is any node reachable from every branch head. The winner is
    the candidate with the lowest summed BFS depth across all branches, so
    the merge sits centred between them rather than close to one branch.
    Equal sums keep the candidate met first in BFS order from the first
    branch head.

    Args:
        branch_targets: Branch head node ids, left to right.
        index: Graph lookups.

    Returns:
        The merge node id, or None with fewer than two branches or when the
        branches never converge.
    """
    if len(branch_targets) < 2:
        return None

    reachable = [_reach(index, target) for target in branch_targets]

    best_merge: Optional[str] = None
    best_total = float("inf")
    for node_id, first_depth in reachable[0].items():
        total = first_depth
        for reach in reachable[1:]:
            depth = reach.get(node_id)
            if depth is None:
                break
            total += depth
        else:
            if total < best_total:
                best_total = total
                best_merge = node_id

    return best_merge


def find_all_merge_points(index: GraphIndex) -> Dict[str, str]:
    """
    Find the merge point of every branching node in a flow.

    Returns:
        Mapping of branching node id to merge node id, for nodes whose
        branches converge.
    """
    merge_points: Dict[str, str] = {}
    for node_id, node in index.node_by_id.items():
        outs = index.primary_edges(node_id)
        if classify_node(node, outs) is not NodeShape.BRANCHING:
            continue
        merge = merge_point_for(node_id, index)
        if merge is not None:
            merge_points[node_id] = merge

    logger.debug("Found %d merge points", len(merge_points))
    return merge_points


def merge_point_for(node_id: str, index: GraphIndex) -> Optional[str]:
    """
    Merge point of a branching node's ordered branches, cached on the index.
    """
    if node_id in index.merge_cache:
        return index.merge_cache[node_id]
    node = index.node(node_id)
    merge = None
    if node is not None:
        branches = ordered_branch_edges(node, index.primary_edges(node_id))
        merge = find_merge_point([e.target for e in branches], index)
    index.merge_cache[node_id] = merge
    return merge

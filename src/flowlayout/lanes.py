"""
Fault lane allocation.

Fault connectors are routed in vertical lanes to the right of the main
content. Lanes are assigned before any node is placed, by walking the
primary flow in the order the layout engine will visit it:

1. Every visited node gets a strictly increasing traversal index, and its
   fault connectors are collected in the order they are met.
2. Each fault connector spans ``[min(src, tgt), max(src, tgt)]`` in
   traversal indices. Targets outside the primary flow span to infinity.
3. Connectors are taken in flow order and greedily put in the first lane
   whose last span ended before this one starts, opening a new lane when
   none is free (greedy interval colouring).

Faults met earlier in the flow end up in lanes closer to the content, and
two faults whose spans overlap never share a lane.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .graph import GraphIndex, classify_node, loop_edges, ordered_branch_edges
from .models import Edge, EdgeType, FaultLaneInfo, NodeShape

logger = logging.getLogger(__name__)

DEFAULT_LANE_SPACING = 40


@dataclass
class FlowOrder:
    """
    Result of walking the primary flow.

    Attributes:
        index_of: Traversal index per visited node.
        fault_edges: Fault connectors of visited nodes, in traversal order.
    """

    index_of: Dict[str, int] = field(default_factory=dict)
    fault_edges: List[Edge] = field(default_factory=list)


def _next_in_flow(index: GraphIndex, node_id: str) -> List[str]:
    """Successors of a node in the order the layout engine visits them."""
    node = index.node(node_id)
    outs = index.primary_edges(node_id)
    if node is None:
        return [e.target for e in outs]

    shape = classify_node(node, outs)
    if shape is NodeShape.BRANCHING:
        return [e.target for e in ordered_branch_edges(node, outs)]
    if shape is NodeShape.LOOP:
        body, _ = loop_edges(outs)
        continuation = next(
            (
                e
                for e in outs
                if e.type == EdgeType.LOOP_END or e.type != EdgeType.LOOP_NEXT
            ),
            None,
        )
        return [e.target for e in (body, continuation) if e is not None]
    return [e.target for e in outs]


def flow_order(index: GraphIndex, entry_id: str) -> FlowOrder:
    """
    Walk the primary flow depth-first from the entry node.

    Args:
        index: Graph lookups.
        entry_id: Node the flow starts at.

    Returns:
        FlowOrder with traversal indices and fault connectors.
    """
    order = FlowOrder()
    stack: List[Optional[str]] = [entry_id]

    while stack:
        node_id = stack.pop()
        if not node_id or node_id in order.index_of or index.node(node_id) is None:
            continue
        order.index_of[node_id] = len(order.index_of)
        order.fault_edges.extend(index.fault_edges(node_id))
        stack.extend(reversed(_next_in_flow(index, node_id)))

    return order


class FaultLaneAllocator:
    """
    Assigns every fault connector a lane.

    Attributes:
        base_x: Left edge of lane 0.
        lane_spacing: Distance between neighbouring lanes.
        lane_ends: Latest traversal index occupying each lane after a call
            to ``allocate``.
    """

    def __init__(self, base_x: float, lane_spacing: float = DEFAULT_LANE_SPACING):
        self.base_x = base_x
        self.lane_spacing = lane_spacing
        self.lane_ends: List[float] = []

    def allocate(self, index: GraphIndex, entry_id: str) -> Dict[str, FaultLaneInfo]:
        """
        Compute lane assignments for the flow reachable from ``entry_id``.

        Returns:
            Mapping of fault connector id to its FaultLaneInfo. Row
            coordinates are left at zero until the flow has been placed.
        """
        self.lane_ends = []
        order = flow_order(index, entry_id)
        if not order.fault_edges:
            return {}

        spans = []
        for edge in order.fault_edges:
            source_index = order.index_of.get(edge.source, 0)
            target_index = order.index_of.get(edge.target, float("inf"))
            spans.append(
                (
                    source_index,
                    min(source_index, target_index),
                    max(source_index, target_index),
                    edge,
                )
            )
        spans.sort(key=lambda span: span[0])

        lanes: Dict[str, FaultLaneInfo] = {}
        for _, min_index, max_index, edge in spans:
            lane = self._first_free_lane(min_index)
            if lane is None:
                lane = len(self.lane_ends)
                self.lane_ends.append(max_index)
            else:
                self.lane_ends[lane] = max_index

            lanes[edge.id] = FaultLaneInfo(
                edge_id=edge.id,
                source_id=edge.source,
                target_id=edge.target,
                global_fault_index=lane,
                lane_x=self.base_x + lane * self.lane_spacing,
                min_index=min_index,
                max_index=max_index,
            )

        logger.debug(
            "Allocated %d fault connectors to %d lanes", len(lanes), len(self.lane_ends)
        )
        return lanes

    def _first_free_lane(self, min_index: float) -> Optional[int]:
        for lane, end in enumerate(self.lane_ends):
            if min_index > end:
                return lane
        return None

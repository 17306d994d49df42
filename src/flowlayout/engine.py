"""
Tree layout engine.

Positions flow nodes by treating the flow as a tree:

- Decisions, waits and scheduled starts spread their branches symmetrically
  below them and continue at the merge point, centred under the branches.
- Loops put their body one column to the left and continue below it.
- Fault connectors route into pre-allocated lanes to the right of the main
  content.
- Nodes the entry never reaches are stacked below everything else.

Positions are computed as (centre x, top y) and converted to top-left corners
by ``auto_layout``.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .config import (
    DEFAULT_ENTRY_ID,
    DEFAULT_LAYOUT_CONFIG,
    FAULT_LANE_CLEARANCE,
    ORPHAN_COLUMN_OFFSET,
    START_FANOUT_GAP,
    LayoutConfig,
)
from .graph import (
    GraphIndex,
    classify_node,
    create_index,
    loop_edges,
    ordered_branch_edges,
)
from .lanes import FaultLaneAllocator
from .merge import merge_point_for
from .metrics import branch_depth, branch_widths, subtree_width, total_branch_width
from .models import (
    UNBOUNDED,
    Boundary,
    Edge,
    EdgeType,
    FaultLaneInfo,
    Node,
    NodeShape,
    NodeType,
)
from .tracer import LayoutTrace

logger = logging.getLogger(__name__)

Position = Tuple[float, float]

# Where a walk continues after a branching node or loop: (node, x, y, reason)
Continuation = Tuple[str, float, float, str]


@dataclass
class LayoutResult:
    """Result of the layout algorithm."""

    positions: Dict[str, Position] = field(default_factory=dict)
    fault_lanes: Dict[str, FaultLaneInfo] = field(default_factory=dict)
    merge_points: Dict[str, str] = field(default_factory=dict)
    orphans: List[str] = field(default_factory=list)
    skipped_edges: List[Edge] = field(default_factory=list)


@dataclass
class LayoutContext:
    """
    Mutable state of one layout call.

    Attributes:
        config: Grid geometry.
        index: Graph lookups.
        fault_lanes: Lane per fault connector.
        fault_only: Nodes reachable only through fault connectors.
        positions: Placed nodes (centre x, top y).
        fault_placed: Nodes whose current position came from a fault path.
        fault_targets: Fault targets already routed.
        content_max_right: Right edge of the main content so far.
        max_fault_x: Right edge of the fault lanes so far.
        trace: Debug trace, when enabled.
    """

    config: LayoutConfig
    index: GraphIndex
    fault_lanes: Dict[str, FaultLaneInfo]
    fault_only: Set[str]
    positions: Dict[str, Position] = field(default_factory=dict)
    fault_placed: Set[str] = field(default_factory=set)
    fault_targets: Set[str] = field(default_factory=set)
    content_max_right: float = 0
    max_fault_x: float = 0
    trace: Optional[LayoutTrace] = None


class TreeLayoutEngine:
    """
    Tree-based auto-layout for process flows.

    The engine only holds configuration; every call to ``layout`` works on
    its own LayoutContext.

    Example:
        >>> engine = TreeLayoutEngine()
        >>> result = engine.layout(nodes, edges)
        >>> result.positions["START_NODE"]
        (800, 80)
    """

    def __init__(self, config: Optional[LayoutConfig] = None, debug: bool = False):
        """
        Initialize the layout engine.

        Args:
            config: Grid geometry; defaults to DEFAULT_LAYOUT_CONFIG.
            debug: Record a LayoutTrace for every call.

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = (config or DEFAULT_LAYOUT_CONFIG).validate()
        self.debug = debug
        self._trace: Optional[LayoutTrace] = None

    def get_trace(self) -> Optional[LayoutTrace]:
        """Trace of the last layout call, when debug is enabled."""
        return self._trace

    def layout(
        self,
        nodes: Sequence[Node],
        edges: Sequence[Edge],
        entry_id: str = DEFAULT_ENTRY_ID,
    ) -> LayoutResult:
        """
        Compute positions for every node.

        Args:
            nodes: Flow nodes in authored order.
            edges: Flow connectors in authored order.
            entry_id: Node the flow starts at.

        Returns:
            LayoutResult with a (centre x, top y) position for every node.
        """
        ctx = self._create_context(nodes, edges, entry_id)
        cfg = self.config

        if ctx.index.node(entry_id) is None:
            logger.warning(
                "Entry node %r not found; placing all nodes as orphans", entry_id
            )

        self._layout_node(
            ctx, entry_id, cfg.start_x, cfg.start_y, UNBOUNDED, set(), False, "entry"
        )
        if ctx.trace is not None:
            ctx.trace.add_stage(
                "main_flow",
                {
                    "placed": len(ctx.positions),
                    "content_max_right": ctx.content_max_right,
                    "max_fault_x": ctx.max_fault_x,
                },
            )

        orphans = self._layout_orphans(ctx)
        self._trace = ctx.trace

        return LayoutResult(
            positions=ctx.positions,
            fault_lanes=ctx.fault_lanes,
            merge_points={k: v for k, v in ctx.index.merge_cache.items() if v},
            orphans=orphans,
            skipped_edges=list(ctx.index.skipped_edges),
        )

    def _create_context(
        self, nodes: Sequence[Node], edges: Sequence[Edge], entry_id: str
    ) -> LayoutContext:
        cfg = self.config
        index = create_index(nodes, edges)
        trace = LayoutTrace(entry_id=entry_id) if self.debug else None
        if trace is not None:
            trace.add_stage(
                "index",
                {
                    "nodes": len(index.node_by_id),
                    "edges": len(edges) - len(index.skipped_edges),
                    "skipped_edges": [e.id for e in index.skipped_edges],
                },
            )

        allocator = FaultLaneAllocator(
            base_x=cfg.start_x + cfg.node_width / 2 + FAULT_LANE_CLEARANCE,
            lane_spacing=cfg.fault_lane_spacing,
        )
        lanes = allocator.allocate(index, entry_id)
        if trace is not None:
            trace.add_stage(
                "fault_lanes",
                {
                    "lane_count": len(allocator.lane_ends),
                    "lanes": {k: v.global_fault_index for k, v in lanes.items()},
                },
            )

        return LayoutContext(
            config=cfg,
            index=index,
            fault_lanes=lanes,
            fault_only=self._identify_fault_only_nodes(index),
            content_max_right=cfg.start_x + cfg.node_width / 2,
            max_fault_x=cfg.start_x + cfg.col_width,
            trace=trace,
        )

    @staticmethod
    def _identify_fault_only_nodes(index: GraphIndex) -> Set[str]:
        """Nodes entered only through fault connectors (or flagged as such)."""
        result = set()
        for node_id, node in index.node_by_id.items():
            if node.type == NodeType.START:
                continue
            incoming = index.incoming_edges(node_id)
            if incoming and all(e.is_fault for e in incoming):
                result.add(node_id)
            elif not incoming and (
                node.data.get("is_fault_path") or node.data.get("isFaultPath")
            ):
                result.add(node_id)
        return result

    def _node_width(self, ctx: LayoutContext, node_id: str) -> float:
        node = ctx.index.node(node_id)
        if node is not None and node.width:
            return node.width
        return ctx.config.node_width

    def _node_height(self, ctx: LayoutContext, node_id: str) -> float:
        node = ctx.index.node(node_id)
        if node is not None and node.height:
            return node.height
        return ctx.config.node_height

    def _place(
        self,
        ctx: LayoutContext,
        node_id: str,
        center_x: float,
        top_y: float,
        via_fault: bool,
        reason: str,
        source: str,
    ) -> bool:
        """
        Record a node position.

        The first placement wins, except that a main-flow placement takes
        over a node a fault path placed first.

        Returns:
            True if the node was placed.
        """
        replaced = ctx.positions.get(node_id)
        if replaced is not None:
            if via_fault or node_id not in ctx.fault_placed:
                return False
            ctx.fault_placed.discard(node_id)

        ctx.positions[node_id] = (center_x, top_y)
        if via_fault:
            ctx.fault_placed.add(node_id)
        if node_id not in ctx.fault_only:
            half_width = self._node_width(ctx, node_id) / 2
            ctx.content_max_right = max(ctx.content_max_right, center_x + half_width)

        if ctx.trace is not None:
            ctx.trace.add_placement(node_id, center_x, top_y, reason, source, replaced)
        return True

    def _layout_node(
        self,
        ctx: LayoutContext,
        node_id: Optional[str],
        center_x: float,
        current_y: float,
        stop_at: Boundary,
        visited: Set[str],
        via_fault: bool,
        reason: str,
    ) -> None:
        """
        Place a node and everything below it, up to ``stop_at``.

        Linear successors, merge points and loop continuations share the
        caller's visited set and are walked in this loop; branches, loop
        bodies and fault paths recurse with their own copy.
        """
        while True:
            if not node_id or node_id in visited or stop_at.reached(node_id):
                return
            node = ctx.index.node(node_id)
            if node is None:
                return
            if not self._place(
                ctx, node_id, center_x, current_y, via_fault, reason,
                "TreeLayoutEngine._layout_node",
            ):
                return
            visited.add(node_id)

            height = self._node_height(ctx, node_id)
            outs = ctx.index.primary_edges(node_id)
            next_y = current_y + height + ctx.config.v_gap
            if node.type == NodeType.START and len(outs) > 1:
                next_y += START_FANOUT_GAP

            self._layout_fault_paths(ctx, node_id, center_x, current_y, height, visited)

            shape = classify_node(node, outs)
            if shape is NodeShape.TERMINAL:
                return

            if shape is NodeShape.BRANCHING:
                follow = self._layout_branching(
                    ctx, node, outs, center_x, next_y, stop_at, visited, via_fault
                )
            elif shape is NodeShape.LOOP:
                follow = self._layout_loop(
                    ctx, node, outs, center_x, next_y, visited, via_fault
                )
            else:
                targets = [e.target for e in outs]
                for target in targets[:-1]:
                    if target not in visited:
                        self._layout_node(
                            ctx, target, center_x, next_y, stop_at, visited,
                            via_fault, "linear",
                        )
                follow = (targets[-1], center_x, next_y, "linear")

            if follow is None:
                return
            node_id, center_x, current_y, reason = follow

    def _layout_branching(
        self,
        ctx: LayoutContext,
        node: Node,
        outs: List[Edge],
        center_x: float,
        next_y: float,
        stop_at: Boundary,
        visited: Set[str],
        via_fault: bool,
    ) -> Optional[Continuation]:
        """
        Spread a branching node's branches symmetrically below it.

        Returns:
            The merge point to continue at, centred between the first and
            last branch and below the deepest branch.
        """
        index = ctx.index
        branches = ordered_branch_edges(node, outs)
        merge = merge_point_for(node.id, index)
        # Branches that never meet stay inside the enclosing branch
        bounded = Boundary.at(merge) if merge else stop_at

        widths = branch_widths(index, branches, merge, visited, stop_at)
        total_width = total_branch_width(widths)

        col_width = ctx.config.col_width
        current_x = center_x - (total_width * col_width) / 2 + col_width / 2
        max_depth = 0
        first_x = last_x = center_x

        for i, (edge, width) in enumerate(zip(branches, widths)):
            branch_x = current_x + ((width - 1) * col_width) / 2
            if i == 0:
                first_x = branch_x
            last_x = branch_x

            if edge.target != merge and edge.target not in visited:
                self._layout_node(
                    ctx, edge.target, branch_x, next_y, bounded, set(visited),
                    via_fault, "branch",
                )

            max_depth = max(
                max_depth, branch_depth(index, edge.target, bounded, set(visited))
            )
            current_x += width * col_width

        if merge and merge not in visited:
            merge_y = next_y + max_depth * ctx.config.row_height
            return merge, (first_x + last_x) / 2, merge_y, "merge"
        return None

    def _layout_loop(
        self,
        ctx: LayoutContext,
        node: Node,
        outs: List[Edge],
        center_x: float,
        next_y: float,
        visited: Set[str],
        via_fault: bool,
    ) -> Optional[Continuation]:
        """
        Put the loop body to the left of the loop node.

        Returns:
            The After Last path to continue at, below the loop body.
        """
        index = ctx.index
        body, after = loop_edges(outs)
        loop_boundary = Boundary(node.id)
        col_width = ctx.config.col_width

        body_width = 1
        if body is not None:
            body_width = subtree_width(index, body.target, loop_boundary, set(visited))
        if body is not None and body.target not in visited:
            body_x = center_x - col_width * (body_width / 2 + 0.5)
            self._layout_node(
                ctx, body.target, body_x, next_y, loop_boundary, set(visited),
                via_fault, "loop_body",
            )

        body_depth = 1
        if body is not None:
            body_depth = branch_depth(index, body.target, loop_boundary, set(visited))

        if after is not None and after.target not in visited:
            after_y = next_y + body_depth * ctx.config.row_height
            return after.target, center_x, after_y, "after_loop"
        return None

    def _layout_fault_paths(
        self,
        ctx: LayoutContext,
        node_id: str,
        center_x: float,
        current_y: float,
        node_height: float,
        visited: Set[str],
    ) -> None:
        """Route a node's fault connectors into their lanes."""
        fault_outs = ctx.index.fault_edges(node_id)
        if not fault_outs:
            return

        cfg = ctx.config
        source_right = center_x + self._node_width(ctx, node_id) / 2

        for edge in fault_outs:
            target = ctx.index.node(edge.target)
            if target is None:
                continue
            target_width = self._node_width(ctx, edge.target)
            is_fault_end = (
                edge.type == EdgeType.FAULT_END or target.type == NodeType.END
            )

            # GoTo faults into the main flow are placed by the main flow
            if edge.is_goto and any(
                not e.is_fault for e in ctx.index.incoming_edges(edge.target)
            ):
                continue
            if edge.target in ctx.fault_targets and not is_fault_end:
                continue
            if edge.target in visited:
                continue

            lane = ctx.fault_lanes.get(edge.id)
            if lane is not None:
                min_lane_x = max(
                    source_right + FAULT_LANE_CLEARANCE + target_width / 2,
                    ctx.content_max_right + FAULT_LANE_CLEARANCE + target_width / 2,
                )
                lane_center = max(lane.lane_x + target_width / 2, min_lane_x)
                lane.lane_x = lane_center - target_width / 2
            else:
                gap = cfg.fault_lane_gap
                lane_center = max(
                    source_right + gap + target_width / 2,
                    ctx.content_max_right + gap + target_width / 2,
                    ctx.max_fault_x,
                )

            ctx.fault_targets.add(edge.target)
            if is_fault_end:
                # Same vertical centre as the source: the connector is a straight line
                source_center_y = current_y + node_height / 2
                end_y = source_center_y - self._node_height(ctx, edge.target) / 2
                if not self._place(
                    ctx, edge.target, lane_center, end_y, True, "fault_end",
                    "TreeLayoutEngine._layout_fault_paths",
                ):
                    continue
                visited.add(edge.target)
            else:
                drop = node_height + cfg.v_gap if edge.target in ctx.fault_only else 0
                self._layout_node(
                    ctx, edge.target, lane_center, current_y + drop, UNBOUNDED,
                    set(visited), True, "fault_lane",
                )

            ctx.max_fault_x = max(ctx.max_fault_x, lane_center + target_width / 2)

    def _layout_orphans(self, ctx: LayoutContext) -> List[str]:
        """Stack nodes the entry never reached below everything else."""
        cfg = ctx.config
        max_y = max([cfg.start_y] + [y for _, y in ctx.positions.values()])
        orphan_x = cfg.start_x + ORPHAN_COLUMN_OFFSET

        orphans = []
        for node_id in ctx.index.node_by_id:
            if node_id in ctx.positions:
                continue
            max_y += cfg.row_height
            self._place(
                ctx, node_id, orphan_x, max_y, False, "orphan",
                "TreeLayoutEngine._layout_orphans",
            )
            orphans.append(node_id)

        if orphans:
            logger.debug("Placed %d disconnected nodes", len(orphans))
        if ctx.trace is not None:
            ctx.trace.add_stage("orphans", {"orphans": orphans})
        return orphans


def _apply_positions(
    nodes: Sequence[Node], positions: Dict[str, Position], config: LayoutConfig
) -> List[Node]:
    """Copy nodes with top-left corner coordinates."""
    placed = []
    for node in nodes:
        center_x, top_y = positions.get(node.id, (config.start_x, config.start_y))
        width = node.width or config.node_width
        placed.append(replace(node, x=center_x - width / 2, y=top_y))
    return placed


def auto_layout(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    config: Optional[LayoutConfig] = None,
    entry_id: Optional[str] = None,
) -> List[Node]:
    """
    Auto-layout flow nodes.

    Args:
        nodes: Flow nodes in authored order.
        edges: Flow connectors in authored order.
        config: Grid geometry; defaults to DEFAULT_LAYOUT_CONFIG.
        entry_id: Node the flow starts at; defaults to DEFAULT_ENTRY_ID.

    Returns:
        Copies of the nodes with ``x, y`` set to their top-left corner.
    """
    if not nodes:
        return list(nodes)
    config = config or DEFAULT_LAYOUT_CONFIG
    engine = TreeLayoutEngine(config)
    result = engine.layout(nodes, edges, entry_id or DEFAULT_ENTRY_ID)
    return _apply_positions(nodes, result.positions, config)


def auto_layout_with_fault_lanes(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    config: Optional[LayoutConfig] = None,
    entry_id: Optional[str] = None,
) -> Tuple[List[Node], Dict[str, FaultLaneInfo]]:
    """
    Auto-layout flow nodes and report fault lane routing.

    Lane ``source_y``/``target_y`` are the vertical centres of the placed
    source and target nodes.

    Returns:
        Tuple of (placed node copies, lane info per fault connector id).
    """
    if not nodes:
        return list(nodes), {}
    config = config or DEFAULT_LAYOUT_CONFIG
    engine = TreeLayoutEngine(config)
    result = engine.layout(nodes, edges, entry_id or DEFAULT_ENTRY_ID)
    placed = _apply_positions(nodes, result.positions, config)

    by_id: Dict[str, Node] = {}
    for node in placed:
        by_id.setdefault(node.id, node)

    for lane in result.fault_lanes.values():
        source = by_id.get(lane.source_id)
        target = by_id.get(lane.target_id)
        if source is not None:
            lane.source_y = source.y + (source.height or config.node_height) / 2
        if target is not None:
            lane.target_y = target.y + (target.height or config.node_height) / 2

    return placed, result.fault_lanes

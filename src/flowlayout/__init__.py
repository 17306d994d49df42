"""
flowlayout - Tree-based auto-layout for process flow diagrams

Positions the elements of a declarative process flow (decisions, loops,
waits, fault paths) on an orthogonal grid, deterministically.

Example:
    >>> from flowlayout import Edge, Node, NodeType, auto_layout
    >>> nodes = [
    ...     Node("START_NODE", NodeType.START),
    ...     Node("Check", NodeType.DECISION),
    ...     Node("Approve", NodeType.ASSIGNMENT),
    ...     Node("Reject", NodeType.ASSIGNMENT),
    ... ]
    >>> edges = [
    ...     Edge("e1", "START_NODE", "Check"),
    ...     Edge("e2", "Check", "Approve", label="Yes"),
    ...     Edge("e3", "Check", "Reject", label="Default Outcome"),
    ... ]
    >>> placed = auto_layout(nodes, edges)

Debug Mode Example:
    >>> engine = TreeLayoutEngine(debug=True)
    >>> result = engine.layout(nodes, edges)
    >>> print(engine.get_trace().summary())
"""

from .config import (
    CARD_LAYOUT_CONFIG,
    DEFAULT_ENTRY_ID,
    DEFAULT_LAYOUT_CONFIG,
    LayoutConfig,
)
from .engine import (
    LayoutResult,
    TreeLayoutEngine,
    auto_layout,
    auto_layout_with_fault_lanes,
)
from .graph import (
    GraphIndex,
    are_all_branches_terminals,
    classify_node,
    create_index,
    find_first_element,
    find_last_element,
    find_parent_element,
    get_branch_edges_for_node,
    get_child_count,
    has_goto_on_branch_head,
    has_goto_on_next,
    is_branching_node,
    is_going_back_to_ancestor_loop,
    sort_branch_edges,
    supports_children,
)
from .lanes import FaultLaneAllocator, flow_order
from .merge import find_all_merge_points, find_merge_point
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
from .tracer import LayoutTrace, NodePlacement, PipelineStage

__version__ = "0.1.0"

__all__ = [
    # Main API
    "auto_layout",
    "auto_layout_with_fault_lanes",
    "TreeLayoutEngine",
    "LayoutResult",
    # Models
    "Node",
    "Edge",
    "NodeType",
    "EdgeType",
    "NodeShape",
    "Boundary",
    "UNBOUNDED",
    "FaultLaneInfo",
    # Configuration
    "LayoutConfig",
    "DEFAULT_LAYOUT_CONFIG",
    "CARD_LAYOUT_CONFIG",
    "DEFAULT_ENTRY_ID",
    # Graph
    "GraphIndex",
    "create_index",
    "classify_node",
    "get_branch_edges_for_node",
    "sort_branch_edges",
    "is_branching_node",
    "supports_children",
    "get_child_count",
    "find_first_element",
    "find_last_element",
    "find_parent_element",
    "are_all_branches_terminals",
    "is_going_back_to_ancestor_loop",
    "has_goto_on_next",
    "has_goto_on_branch_head",
    # Merge points and metrics
    "find_merge_point",
    "find_all_merge_points",
    "branch_depth",
    "subtree_width",
    "branch_widths",
    "total_branch_width",
    # Fault lanes
    "FaultLaneAllocator",
    "flow_order",
    # Debug/Tracing (for development and debugging)
    "LayoutTrace",
    "NodePlacement",
    "PipelineStage",
]

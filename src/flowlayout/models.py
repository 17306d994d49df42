"""
Data models for flow layout.

This module contains the records exchanged with the parsing and rendering
collaborators (nodes and edges) together with the small value types used
while laying a flow out.

Classes:
    NodeType: Closed set of flow element kinds.
    EdgeType: Kind of control-flow transition between two nodes.
    NodeShape: Layout-relevant shape of a node (drives placement dispatch).
    Node: A single flow element.
    Edge: A connector between two flow elements.
    Boundary: Traversal boundary that stops a walk at a given node.
    FaultLaneInfo: Lane assignment for a fault connector.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class NodeType(str, Enum):
    """Flow element kinds understood by the layout engine."""

    START = "START"
    SCREEN = "SCREEN"
    DECISION = "DECISION"
    ASSIGNMENT = "ASSIGNMENT"
    LOOP = "LOOP"
    RECORD_CREATE = "RECORD_CREATE"
    RECORD_UPDATE = "RECORD_UPDATE"
    RECORD_LOOKUP = "RECORD_LOOKUP"
    RECORD_DELETE = "RECORD_DELETE"
    ACTION = "ACTION"
    SUBFLOW = "SUBFLOW"
    WAIT = "WAIT"
    CUSTOM_ERROR = "CUSTOM_ERROR"
    END = "END"
    ROOT = "ROOT"
    BRANCH = "BRANCH"
    GROUP = "GROUP"
    ORCHESTRATED_STAGE = "ORCHESTRATED_STAGE"
    APEX_CALL = "APEX_CALL"
    EMAIL_ALERT = "EMAIL_ALERT"
    TRANSFORM = "TRANSFORM"
    COLLECTION_PROCESSOR = "COLLECTION_PROCESSOR"
    STEP = "STEP"
    SEND_EMAIL = "SEND_EMAIL"
    POST_TO_CHATTER = "POST_TO_CHATTER"
    SUBMIT_FOR_APPROVAL = "SUBMIT_FOR_APPROVAL"
    CREATE_APPROVAL_REQUEST = "CREATE_APPROVAL_REQUEST"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE"
    QUICK_ACTION = "QUICK_ACTION"


class EdgeType(str, Enum):
    """Connector kinds."""

    NORMAL = "normal"
    FAULT = "fault"
    FAULT_END = "fault-end"
    LOOP_NEXT = "loop-next"  # "For Each" path into the loop body
    LOOP_END = "loop-end"  # "After Last" path out of the loop
    GOTO = "goto"


class NodeShape(Enum):
    """How a node shapes the layout below it."""

    TERMINAL = "terminal"
    BRANCHING = "branching"
    LOOP = "loop"
    LINEAR = "linear"


@dataclass
class Node:
    """
    A single element of a flow.

    Attributes:
        id: Unique identifier of the element.
        type: Element kind.
        label: Display label.
        x: Left edge on the canvas, set by layout.
        y: Top edge on the canvas, set by layout.
        width: Box width; falls back to the layout configuration when unset.
        height: Box height; falls back to the layout configuration when unset.
        next: Id of the following element in the authored model.
        prev: Id of the preceding element in the authored model.
        parent: Id of the branching element owning this branch.
        children: Branch heads of a branching element (None marks an empty
            branch).
        fault: Id of the element on this element's fault path.
        is_terminal: Whether the element ends its branch.
        data: Extra attributes carried through from the parser.
    """

    id: str
    type: NodeType
    label: str = ""
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    next: Optional[str] = None
    prev: Optional[str] = None
    parent: Optional[str] = None
    children: List[Optional[str]] = field(default_factory=list)
    fault: Optional[str] = None
    is_terminal: bool = False
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Node":
        """
        Build a node from a parser record.

        Accepts both snake_case and the camelCase keys emitted by the
        flow parser (``isTerminal``).

        Raises:
            ValueError: If the node type is not a known NodeType.
        """
        return cls(
            id=raw["id"],
            type=NodeType(raw["type"]),
            label=raw.get("label", ""),
            x=raw.get("x"),
            y=raw.get("y"),
            width=raw.get("width"),
            height=raw.get("height"),
            next=raw.get("next"),
            prev=raw.get("prev"),
            parent=raw.get("parent"),
            children=list(raw.get("children") or []),
            fault=raw.get("fault"),
            is_terminal=bool(raw.get("is_terminal", raw.get("isTerminal", False))),
            data=dict(raw.get("data") or {}),
        )


@dataclass
class Edge:
    """
    A connector between two flow elements.

    Attributes:
        id: Unique identifier of the connector.
        source: Id of the element the connector leaves.
        target: Id of the element the connector enters.
        type: Connector kind.
        label: Optional label (branch name, "Fault", ...).
        is_goto: Whether the connector is a jump rather than a structural link.
    """

    id: str
    source: str
    target: str
    type: EdgeType = EdgeType.NORMAL
    label: Optional[str] = None
    is_goto: bool = False

    @property
    def is_fault(self) -> bool:
        """True for error-path connectors."""
        return self.type in (EdgeType.FAULT, EdgeType.FAULT_END)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Edge":
        """
        Build an edge from a parser record.

        Raises:
            ValueError: If the edge type is not a known EdgeType.
        """
        return cls(
            id=raw["id"],
            source=raw["source"],
            target=raw["target"],
            type=EdgeType(raw.get("type", EdgeType.NORMAL.value)),
            label=raw.get("label"),
            is_goto=bool(raw.get("is_goto", raw.get("isGoTo", False))),
        )


@dataclass(frozen=True)
class Boundary:
    """
    A traversal boundary.

    Walks over the flow stop when they reach the boundary node. Branches are
    bounded by their merge point, loop bodies by the loop node itself.
    """

    node_id: Optional[str] = None

    def reached(self, node_id: str) -> bool:
        return self.node_id is not None and node_id == self.node_id

    @classmethod
    def at(cls, node_id: Optional[str]) -> "Boundary":
        return cls(node_id) if node_id else UNBOUNDED


UNBOUNDED = Boundary()


@dataclass
class FaultLaneInfo:
    """
    Lane assignment for one fault connector.

    Attributes:
        edge_id: Id of the fault connector.
        source_id: Element raising the fault.
        target_id: Element handling the fault.
        source_y: Vertical centre of the source, filled after layout.
        target_y: Vertical centre of the target, filled after layout.
        global_fault_index: Lane index (0 is closest to the main content).
        lane_x: Left edge of the lane.
        min_index: Earlier traversal index of source and target.
        max_index: Later traversal index (infinite when the target is only
            reachable through fault paths).
    """

    edge_id: str
    source_id: str
    target_id: str
    source_y: float = 0
    target_y: float = 0
    global_fault_index: int = 0
    lane_x: float = 0
    min_index: float = 0
    max_index: float = 0

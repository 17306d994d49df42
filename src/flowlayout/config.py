"""
Layout configuration.

Holds the grid geometry used by the layout engine (node size, gaps between
rows and columns, canvas origin) and the fixed offsets applied to fault
lanes, scheduled-path fan-outs and disconnected nodes.
"""

from dataclasses import dataclass, replace

# Entry element id emitted by the flow parser
DEFAULT_ENTRY_ID = "START_NODE"

# Minimum horizontal clearance between main content and a fault lane
FAULT_LANE_CLEARANCE = 40

# Extra vertical gap below a START element that fans out into several paths
START_FANOUT_GAP = 30

# Horizontal offset (from start_x) of the column holding disconnected nodes
ORPHAN_COLUMN_OFFSET = 400


@dataclass(frozen=True)
class LayoutConfig:
    """
    Grid geometry for auto-layout.

    Attributes:
        node_width: Default node width (used when a node has none).
        node_height: Default node height, also the row pitch.
        h_gap: Horizontal gap between adjacent columns.
        v_gap: Vertical gap between rows.
        start_x: Canvas x of the entry node's centre.
        start_y: Canvas y of the entry node's top edge.
        fault_lane_spacing: Distance between neighbouring fault lanes.
    """

    node_width: float = 240
    node_height: float = 56
    h_gap: float = 60
    v_gap: float = 70
    start_x: float = 800
    start_y: float = 80
    fault_lane_spacing: float = 40

    @property
    def col_width(self) -> float:
        """Width of one layout column."""
        return self.node_width + self.h_gap

    @property
    def row_height(self) -> float:
        """Height of one layout row."""
        return self.node_height + self.v_gap

    @property
    def fault_lane_gap(self) -> float:
        """Gap used for fault targets that have no pre-computed lane."""
        return max(FAULT_LANE_CLEARANCE, self.h_gap * 2)

    def validate(self) -> "LayoutConfig":
        """
        Check the geometry is usable.

        Returns:
            The configuration itself, so calls can be chained.

        Raises:
            ValueError: If a size is not positive or a gap is negative.
        """
        if self.node_width <= 0 or self.node_height <= 0:
            raise ValueError("node_width and node_height must be positive")
        if self.h_gap < 0 or self.v_gap < 0:
            raise ValueError("h_gap and v_gap must not be negative")
        if self.fault_lane_spacing < 0:
            raise ValueError("fault_lane_spacing must not be negative")
        return self


DEFAULT_LAYOUT_CONFIG = LayoutConfig()

# Element-card mode uses wider nodes
CARD_LAYOUT_CONFIG = replace(DEFAULT_LAYOUT_CONFIG, node_width=285)

"""
Debug tracing infrastructure for flowlayout.

This module provides data structures for capturing detailed traces of a
layout run. When debug mode is enabled, the engine records a snapshot after
each stage of the pipeline and every node placement it makes.

This is primarily useful for:
1. Debugging placement issues (understanding why a node ended up where it did)
2. Understanding the pipeline flow (seeing intermediate states)
3. Writing targeted tests (verifying specific placement decisions)

Usage:
    >>> engine = TreeLayoutEngine(debug=True)
    >>> positions = engine.layout(nodes, edges)
    >>> trace = engine.get_trace()
    >>> print(trace.summary())
    >>> trace.dump_to_file("layout_trace.txt")

The trace captures:
- Pipeline stages (index, fault_lanes, main_flow, orphans)
- Every node placement with coordinates, reason and placing method
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class NodePlacement:
    """
    Record of a single node placement.

    Attributes:
        node_id: The node that was placed
        x: Centre x coordinate
        y: Top y coordinate
        reason: Why the node was placed here (e.g., "entry", "branch",
                "merge", "loop_body", "fault_lane", "orphan")
        source: The method that placed the node
                (e.g., "TreeLayoutEngine._layout_branching")
        replaced: Previous position, when a main-flow placement overrides a
                  fault-path placement
    """

    node_id: str
    x: float
    y: float
    reason: str
    source: str
    replaced: Optional[tuple] = None

    def __str__(self) -> str:
        text = (
            f"{self.node_id} @ ({self.x:g},{self.y:g}) "
            f"[{self.reason}] from {self.source}"
        )
        if self.replaced is not None:
            text += f" (was ({self.replaced[0]:g},{self.replaced[1]:g}))"
        return text


@dataclass
class PipelineStage:
    """
    Snapshot of state at a pipeline stage.

    The layout pipeline has these stages:
    1. index - Graph lookups built, dangling connectors skipped
    2. fault_lanes - Fault connectors assigned to lanes
    3. main_flow - Nodes reachable from the entry placed
    4. orphans - Disconnected nodes appended

    Attributes:
        name: Name of this pipeline stage
        data: Dictionary of relevant data at this stage
    """

    name: str
    data: Dict[str, Any]

    def __str__(self) -> str:
        lines = [f"=== Stage: {self.name} ==="]
        for key, value in self.data.items():
            str_val = str(value)
            if len(str_val) > 100:
                str_val = str_val[:100] + "..."
            lines.append(f"  {key}: {str_val}")
        return "\n".join(lines)


@dataclass
class LayoutTrace:
    """
    Complete trace of a layout run.

    Attributes:
        stages: List of pipeline stages with their data
        placements: List of all node placements, in placement order
        entry_id: The entry node the layout started from
    """

    stages: List[PipelineStage] = field(default_factory=list)
    placements: List[NodePlacement] = field(default_factory=list)
    entry_id: str = ""

    def add_stage(self, name: str, data: Dict[str, Any]) -> None:
        """
        Add a pipeline stage snapshot.

        Args:
            name: Name of the stage (e.g., "fault_lanes")
            data: Dictionary of relevant data at this stage
        """
        self.stages.append(PipelineStage(name, data.copy()))

    def add_placement(
        self,
        node_id: str,
        x: float,
        y: float,
        reason: str,
        source: str,
        replaced: Optional[tuple] = None,
    ) -> None:
        """Record a node placement."""
        self.placements.append(NodePlacement(node_id, x, y, reason, source, replaced))

    def get_stage(self, name: str) -> Optional[PipelineStage]:
        """Get a specific pipeline stage by name."""
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def get_placements_for(self, node_id: str) -> List[NodePlacement]:
        """Get all placements of a node."""
        return [p for p in self.placements if p.node_id == node_id]

    def get_placements_by_reason(self, reason: str) -> List[NodePlacement]:
        return [p for p in self.placements if p.reason == reason]

    def get_overrides(self) -> List[NodePlacement]:
        """
        Get all placements that moved an already placed node.

        Only a main-flow placement can move a node that a fault path placed
        first; anything else in this list points at a layout bug.
        """
        return [p for p in self.placements if p.replaced is not None]

    def summary(self) -> str:
        """
        Generate a human-readable summary of the trace.

        Returns a string with:
        - Entry node
        - Pipeline stages overview
        - Placement statistics
        """
        lines = [
            "=" * 60,
            "LAYOUT TRACE SUMMARY",
            "=" * 60,
            "",
            f"Entry: {self.entry_id}",
            "",
            f"Pipeline stages: {len(self.stages)}",
        ]
        for stage in self.stages:
            lines.append(f"  {stage.name}")

        lines.extend(
            [
                "",
                f"Total placements: {len(self.placements)}",
                f"Overrides: {len(self.get_overrides())}",
                "",
            ]
        )

        reason_counts: Dict[str, int] = {}
        for p in self.placements:
            reason_counts[p.reason] = reason_counts.get(p.reason, 0) + 1

        lines.append("Placements by reason:")
        for reason, count in sorted(reason_counts.items(), key=lambda x: -x[1]):
            lines.append(f"  {reason}: {count}")

        return "\n".join(lines)

    def dump(self) -> str:
        """Generate a complete human-readable dump of the trace."""
        lines = [self.summary(), "", "=" * 60, "DETAILED TRACE", "=" * 60, ""]

        lines.append("PIPELINE STAGES:")
        lines.append("-" * 40)
        for stage in self.stages:
            lines.append(str(stage))
            lines.append("")

        lines.append("NODE PLACEMENTS:")
        lines.append("-" * 40)
        for p in self.placements:
            lines.append(str(p))

        return "\n".join(lines)

    def dump_to_file(self, filename: str) -> None:
        """Write the complete trace dump to a file."""
        with open(filename, "w", encoding="utf-8") as f:
            f.write(self.dump())

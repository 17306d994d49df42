"""
Integration tests for laying out complete flows.

These build flows from parser-style records, run the full pipeline and
check properties that must hold for any flow.
"""

import pytest

from flowlayout import (
    DEFAULT_LAYOUT_CONFIG,
    Edge,
    Node,
    TreeLayoutEngine,
    auto_layout,
    auto_layout_with_fault_lanes,
)


def _records(node_records, edge_records):
    return (
        [Node.from_dict(r) for r in node_records],
        [Edge.from_dict(r) for r in edge_records],
    )


@pytest.fixture
def order_flow():
    """Record-triggered flow with a loop, a decision and fault handling."""
    return _records(
        [
            {"id": "START_NODE", "type": "START", "label": "Order Created"},
            {"id": "Get_Items", "type": "RECORD_LOOKUP"},
            {"id": "Each_Item", "type": "LOOP"},
            {"id": "In_Stock", "type": "DECISION"},
            {"id": "Reserve", "type": "RECORD_UPDATE"},
            {"id": "Backorder", "type": "RECORD_CREATE"},
            {"id": "Notify", "type": "SEND_EMAIL"},
            {"id": "Log_Failure", "type": "ACTION"},
            {"id": "Failure_End", "type": "END"},
            {"id": "Done", "type": "END"},
        ],
        [
            {"id": "c1", "source": "START_NODE", "target": "Get_Items"},
            {"id": "c2", "source": "Get_Items", "target": "Each_Item"},
            {"id": "c3", "source": "Each_Item", "target": "In_Stock",
             "type": "loop-next", "label": "For Each"},
            {"id": "c4", "source": "In_Stock", "target": "Backorder",
             "label": "Default Outcome"},
            {"id": "c5", "source": "In_Stock", "target": "Reserve", "label": "Yes"},
            {"id": "c6", "source": "Reserve", "target": "Each_Item"},
            {"id": "c7", "source": "Backorder", "target": "Each_Item"},
            {"id": "c8", "source": "Each_Item", "target": "Notify",
             "type": "loop-end", "label": "After Last"},
            {"id": "c9", "source": "Notify", "target": "Done"},
            {"id": "f1", "source": "Get_Items", "target": "Log_Failure",
             "type": "fault", "label": "Fault"},
            {"id": "c10", "source": "Log_Failure", "target": "Failure_End"},
            {"id": "f2", "source": "Reserve", "target": "Log_Failure",
             "type": "fault", "label": "Fault"},
            {"id": "f3", "source": "Notify", "target": "Failure_End",
             "type": "fault-end", "label": "Fault"},
        ],
    )


def _boxes_overlap(a, b):
    return (
        a.x < b.x + b.width
        and b.x < a.x + a.width
        and a.y < b.y + b.height
        and b.y < a.y + a.height
    )


def _with_size(placed):
    cfg = DEFAULT_LAYOUT_CONFIG
    for node in placed:
        node.width = node.width or cfg.node_width
        node.height = node.height or cfg.node_height
    return placed


class TestOrderFlow:
    """End-to-end layout of a realistic flow."""

    def test_every_node_placed(self, order_flow):
        """Every node gets coordinates."""
        placed = auto_layout(*order_flow)
        assert len(placed) == 10
        assert all(n.x is not None and n.y is not None for n in placed)

    def test_no_overlaps(self, order_flow):
        """No two nodes share space."""
        placed = _with_size(auto_layout(*order_flow))
        for i, a in enumerate(placed):
            for b in placed[i + 1:]:
                assert not _boxes_overlap(a, b), f"{a.id} overlaps {b.id}"

    def test_main_column(self, order_flow):
        """The spine of the flow stays in the entry column."""
        result = TreeLayoutEngine().layout(*order_flow)
        for node_id in ("START_NODE", "Get_Items", "Each_Item", "Notify", "Done"):
            assert result.positions[node_id][0] == 800

    def test_loop_body_left_of_loop(self, order_flow):
        """The loop body sits left of the loop."""
        positions = TreeLayoutEngine().layout(*order_flow).positions
        assert positions["In_Stock"][0] < positions["Each_Item"][0]
        assert positions["Reserve"][0] < positions["Backorder"][0]

    def test_rows_increase_along_flow(self, order_flow):
        """Primary successors are placed below their source, except loop back-edges."""
        nodes, edges = order_flow
        positions = TreeLayoutEngine().layout(nodes, edges).positions
        for edge in edges:
            if edge.is_fault or edge.target == "Each_Item":
                continue
            assert positions[edge.target][1] > positions[edge.source][1], edge.id

    def test_fault_targets_right_of_content(self, order_flow):
        """Fault handlers sit right of every main-flow node."""
        placed = _with_size(auto_layout(*order_flow))
        by_id = {n.id: n for n in placed}
        main_right = max(
            n.x + n.width for n in placed if n.id not in ("Log_Failure", "Failure_End")
        )
        assert by_id["Log_Failure"].x >= main_right
        assert by_id["Failure_End"].x >= main_right

    def test_fault_lanes(self, order_flow):
        """Every fault connector is routed."""
        _, lanes = auto_layout_with_fault_lanes(*order_flow)
        assert set(lanes) == {"f1", "f2", "f3"}
        assert all(lane.source_y > 0 for lane in lanes.values())

    def test_deterministic(self, order_flow):
        """Repeated layout gives identical coordinates."""
        runs = [auto_layout(*order_flow) for _ in range(3)]
        coords = [[(n.x, n.y) for n in run] for run in runs]
        assert coords[0] == coords[1] == coords[2]


class TestLargeFlows:
    """Scaling behaviour."""

    def test_long_chain(self, make_flow):
        """Thousands of linear steps lay out without recursion errors."""
        count = 3000
        node_specs = [("START_NODE", "START")] + [
            (f"Step_{i}", "ASSIGNMENT") for i in range(1, count)
        ]
        ids = [spec[0] for spec in node_specs]
        edge_specs = [(f"e{i}", ids[i], ids[i + 1]) for i in range(count - 1)]
        nodes, edges = make_flow(node_specs, edge_specs)

        positions = TreeLayoutEngine().layout(nodes, edges).positions
        assert positions[ids[-1]] == (800, 80 + (count - 1) * 126)

    def test_many_decisions(self, make_flow):
        """A chain of decisions merging back each time stays in one column."""
        node_specs = [("START_NODE", "START")]
        edge_specs = []
        previous = "START_NODE"
        for i in range(50):
            node_specs += [
                (f"D{i}", "DECISION"),
                (f"Y{i}", "ASSIGNMENT"),
                (f"N{i}", "ASSIGNMENT"),
                (f"M{i}", "ASSIGNMENT"),
            ]
            edge_specs += [
                (f"in{i}", previous, f"D{i}"),
                (f"y{i}", f"D{i}", f"Y{i}", "normal", "Yes"),
                (f"n{i}", f"D{i}", f"N{i}", "normal", "Default Outcome"),
                (f"ym{i}", f"Y{i}", f"M{i}"),
                (f"nm{i}", f"N{i}", f"M{i}"),
            ]
            previous = f"M{i}"
        nodes, edges = make_flow(node_specs, edge_specs)

        result = TreeLayoutEngine().layout(nodes, edges)
        assert result.orphans == []
        for i in range(50):
            assert result.positions[f"M{i}"][0] == 800
            assert result.positions[f"Y{i}"][0] == 650
            assert result.positions[f"N{i}"][0] == 950


class TestDegenerateFlows:
    """Edge cases of the input."""

    def test_single_node(self, make_flow):
        """A lone entry sits at the origin."""
        nodes, edges = make_flow([("START_NODE", "START")], [])
        placed = auto_layout(nodes, edges)
        assert (placed[0].x, placed[0].y) == (680, 80)

    def test_dangling_connectors_ignored(self, make_flow):
        """Connectors to unknown nodes do not break layout."""
        nodes, edges = make_flow(
            [("START_NODE", "START"), ("A", "END")],
            [("e1", "START_NODE", "A"), ("e2", "A", "Ghost"), ("e3", "Ghost", "A")],
        )
        placed = auto_layout(nodes, edges)
        assert [(n.x, n.y) for n in placed] == [(680, 80), (680, 206)]

    def test_self_loop(self, make_flow):
        """A step pointing at itself is placed once."""
        nodes, edges = make_flow(
            [("START_NODE", "START"), ("A", "ASSIGNMENT")],
            [("e1", "START_NODE", "A"), ("e2", "A", "A")],
        )
        positions = TreeLayoutEngine().layout(nodes, edges).positions
        assert positions["A"] == (800, 206)

    def test_entry_id_override(self, make_flow):
        """A different entry id can be given."""
        nodes, edges = make_flow(
            [("Begin", "START"), ("A", "END")],
            [("e1", "Begin", "A")],
        )
        placed = auto_layout(nodes, edges, entry_id="Begin")
        assert [(n.x, n.y) for n in placed] == [(680, 80), (680, 206)]

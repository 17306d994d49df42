"""Pytest configuration and shared fixtures for flowlayout tests."""

import pytest

from flowlayout import Edge, EdgeType, Node, NodeType, TreeLayoutEngine, create_index


def _build(node_specs, edge_specs):
    """
    Build nodes and edges from compact tuples.

    Nodes are ``(id, type)`` or ``(id, type, width, height)``; edges are
    ``(id, source, target)`` optionally followed by type, label and goto flag.
    """
    nodes = []
    for spec in node_specs:
        node_id, node_type = spec[0], spec[1]
        width = spec[2] if len(spec) > 2 else None
        height = spec[3] if len(spec) > 3 else None
        nodes.append(
            Node(id=node_id, type=NodeType(node_type), label=node_id, width=width, height=height)
        )

    edges = []
    for spec in edge_specs:
        edge_id, source, target = spec[0], spec[1], spec[2]
        edge_type = EdgeType(spec[3]) if len(spec) > 3 else EdgeType.NORMAL
        label = spec[4] if len(spec) > 4 else None
        is_goto = spec[5] if len(spec) > 5 else False
        edges.append(
            Edge(id=edge_id, source=source, target=target, type=edge_type, label=label, is_goto=is_goto)
        )
    return nodes, edges


@pytest.fixture
def make_flow():
    """Factory building (nodes, edges) from compact tuples."""
    return _build


@pytest.fixture
def make_index():
    """Factory building a GraphIndex from compact tuples."""

    def factory(node_specs, edge_specs):
        return create_index(*_build(node_specs, edge_specs))

    return factory


@pytest.fixture
def linear_flow():
    """START -> A -> B -> End."""
    return _build(
        [
            ("START_NODE", "START"),
            ("A", "ASSIGNMENT"),
            ("B", "RECORD_UPDATE"),
            ("End", "END"),
        ],
        [
            ("e1", "START_NODE", "A"),
            ("e2", "A", "B"),
            ("e3", "B", "End"),
        ],
    )


@pytest.fixture
def independent_branches_flow():
    """Decision whose two branches each end on their own."""
    return _build(
        [
            ("START_NODE", "START"),
            ("Check", "DECISION"),
            ("A", "ASSIGNMENT"),
            ("B", "ASSIGNMENT"),
            ("End_A", "END"),
            ("End_B", "END"),
        ],
        [
            ("e1", "START_NODE", "Check"),
            ("e2", "Check", "A", "normal", "Yes"),
            ("e3", "Check", "B", "normal", "No"),
            ("e4", "A", "End_A"),
            ("e5", "B", "End_B"),
        ],
    )


@pytest.fixture
def merging_branches_flow():
    """Decision whose two branches both feed into Send_Email."""
    return _build(
        [
            ("START_NODE", "START"),
            ("Check", "DECISION"),
            ("A", "ASSIGNMENT"),
            ("B", "ASSIGNMENT"),
            ("Send_Email", "SEND_EMAIL"),
            ("End", "END"),
        ],
        [
            ("e1", "START_NODE", "Check"),
            ("e2", "Check", "A", "normal", "Yes"),
            ("e3", "Check", "B", "normal", "No"),
            ("e4", "A", "Send_Email"),
            ("e5", "B", "Send_Email"),
            ("e6", "Send_Email", "End"),
        ],
    )


@pytest.fixture
def loop_flow():
    """Loop over Process_Item, then Finish."""
    return _build(
        [
            ("START_NODE", "START"),
            ("Loop", "LOOP"),
            ("Process_Item", "ASSIGNMENT"),
            ("Finish", "END"),
        ],
        [
            ("e1", "START_NODE", "Loop"),
            ("e2", "Loop", "Process_Item", "loop-next", "For Each"),
            ("e3", "Process_Item", "Loop"),
            ("e4", "Loop", "Finish", "loop-end", "After Last"),
        ],
    )


@pytest.fixture
def fault_flow():
    """Record operations with a fault handler and a fault-to-end path."""
    return _build(
        [
            ("START_NODE", "START"),
            ("Create", "RECORD_CREATE"),
            ("Update", "RECORD_UPDATE"),
            ("End", "END"),
            ("Log_Error", "ACTION"),
            ("Error_End", "END"),
            ("Fault_End", "END"),
        ],
        [
            ("e1", "START_NODE", "Create"),
            ("e2", "Create", "Update"),
            ("e3", "Update", "End"),
            ("f1", "Create", "Log_Error", "fault", "Fault"),
            ("e4", "Log_Error", "Error_End"),
            ("f2", "Update", "Fault_End", "fault-end", "Fault"),
        ],
    )


@pytest.fixture
def engine():
    """Default TreeLayoutEngine instance."""
    return TreeLayoutEngine()

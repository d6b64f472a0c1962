"""Shared fixtures for loop walk tests."""

import sys
from pathlib import Path

# Scripts are plain modules importing each other by name
_SCRIPTS_DIR = Path(__file__).parent.parent / "scripts"
if str(_SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(_SCRIPTS_DIR))

import pytest

from models import Edge, Graph, Node


def build_path_graph(num_nodes, loop_target=None):
    """Path 0 -> 1 -> ... -> n-1, optionally closed by n-1 -> loop_target."""
    nodes = [Node(id=i, label=f"N{i}") for i in range(num_nodes)]
    edges = [Edge(i, i + 1) for i in range(num_nodes - 1)]
    if loop_target is not None:
        edges.append(Edge(num_nodes - 1, loop_target))
    return Graph(nodes=nodes, edges=edges)


@pytest.fixture
def path_graph():
    """Factory for pure path or single-loop graphs."""
    return build_path_graph


@pytest.fixture
def five_path(path_graph):
    return path_graph(5)


@pytest.fixture
def loop_graph(path_graph):
    """Six nodes, back edge 5 -> 2."""
    return path_graph(6, loop_target=2)

#!/usr/bin/env python3
"""
Loop Walk Graph Text Format

Serialize a graph to the human-readable listing and parse it back:

    Graph with 4 node(s)

    Nodes:
      N0 (ID: 0)
      ...

    Edges:
      N0 -> N1
      N3 -> N1 [LOOP]

    Graph contains a loop.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from models import Edge, Graph, Node

logger = logging.getLogger("loopwalk")

NODE_WITH_ID_PATTERN = re.compile(r"(\w+)\s*\(ID:\s*(\d+)\)")
NODE_LABEL_PATTERN = re.compile(r"(\w+)")
EDGE_PATTERN = re.compile(r"(\w+)\s*->\s*(\w+)(?:\s*\[LOOP\])?")

NO_EDGES = "(no edges)"
LOOP_SUMMARY = "Graph contains a loop."
NO_LOOP_SUMMARY = "Graph does not contain a loop."


class GraphFormatError(ValueError):
    """Raised when graph text cannot be parsed."""


def serialize_graph(graph: Graph) -> str:
    """Render a graph in the text listing format."""
    lines = [f"Graph with {graph.node_count} node(s)", ""]

    lines.append("Nodes:")
    for node in graph.nodes:
        lines.append(f"  {node.label} (ID: {node.id})")
    lines.append("")

    lines.append("Edges:")
    if not graph.edges:
        lines.append(f"  {NO_EDGES}")
    for edge in graph.edges:
        text = f"  {graph.label_of(edge.source)} -> {graph.label_of(edge.target)}"
        if graph.has_loop and edge == graph.loop_edge:
            text += " [LOOP]"
        lines.append(text)
    lines.append("")

    lines.append(LOOP_SUMMARY if graph.has_loop else NO_LOOP_SUMMARY)
    return "\n".join(lines)


def parse_graph(text: str) -> Graph:
    """Parse the text listing into a Graph.

    Raises:
        GraphFormatError: If a section marker is missing, an edge names an
            unknown label, node ids do not run 0 to N-1, or the edges violate
            the one-successor rule.
    """
    lines = [ln.strip() for ln in text.splitlines()]
    lines = [ln for ln in lines if ln]

    nodes_start: Optional[int] = None
    edges_start: Optional[int] = None
    for i, line in enumerate(lines):
        if line.startswith("Nodes:"):
            nodes_start = i + 1
        if line.startswith("Edges:"):
            edges_start = i + 1
            break

    if nodes_start is None or edges_start is None:
        missing = "Nodes" if nodes_start is None else "Edges"
        raise GraphFormatError(f"Invalid format: missing {missing} section")

    nodes: List[Node] = []
    ids_by_label: Dict[str, int] = {}
    for line in lines[nodes_start:edges_start - 1]:
        match = NODE_WITH_ID_PATTERN.search(line) or NODE_LABEL_PATTERN.search(line)
        if not match:
            continue
        label = match.group(1)
        node_id = int(match.group(2)) if match.lastindex and match.lastindex >= 2 else len(nodes)
        nodes.append(Node(id=node_id, label=label))
        ids_by_label[label] = node_id

    edges: List[Edge] = []
    loop_edge: Optional[Edge] = None
    for line in lines[edges_start:]:
        if line == NO_EDGES:
            continue
        if line.startswith("Graph contains") or line.startswith("Graph does not"):
            break
        match = EDGE_PATTERN.search(line)
        if not match:
            continue
        source_label, target_label = match.group(1), match.group(2)
        if source_label not in ids_by_label or target_label not in ids_by_label:
            raise GraphFormatError(
                f"Invalid edge: node not found ({source_label} or {target_label})"
            )
        edge = Edge(ids_by_label[source_label], ids_by_label[target_label])
        edges.append(edge)
        if "[LOOP]" in line:
            loop_edge = edge

    has_loop = loop_edge is not None or any(LOOP_SUMMARY[:-1] in ln for ln in lines)

    try:
        graph = Graph(nodes=nodes, edges=edges, has_loop=has_loop, loop_edge=loop_edge)
    except ValueError as e:
        raise GraphFormatError(f"Invalid graph: {e}") from e

    logger.debug(
        f"Parsed graph: {graph.node_count} nodes, {len(edges)} edges, has_loop={has_loop}"
    )
    return graph

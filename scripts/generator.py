#!/usr/bin/env python3
"""
Loop Walk Graph Generator

Builds random functional graphs: a simple path 0 -> 1 -> ... -> M-1,
optionally closed into a single cycle by one back edge from the last node.
"""
from __future__ import annotations

import logging
import random
from typing import Optional

from models import Edge, Graph, Node

logger = logging.getLogger("loopwalk")

DEFAULT_MAX_NODES = 33
DEFAULT_LOOP_PROBABILITY = 0.5


def min_loop_length(num_nodes: int) -> int:
    return max(2, num_nodes // 4)


def generate_graph(
    rng: Optional[random.Random] = None,
    num_nodes: Optional[int] = None,
    loop_probability: float = DEFAULT_LOOP_PROBABILITY,
    max_nodes: int = DEFAULT_MAX_NODES,
) -> Graph:
    """Generate a random path graph with at most one loop.

    Args:
        rng: Random source (a fresh unseeded one if omitted)
        num_nodes: Fixed node count; drawn from [1, max_nodes] when None
        loop_probability: Chance of adding the back edge (only for >= 3 nodes)
        max_nodes: Upper bound for a drawn node count

    Returns:
        Graph whose ground truth reflects whether the back edge was added
    """
    rng = rng or random.Random()
    if num_nodes is None:
        num_nodes = rng.randint(1, max_nodes)
    if num_nodes < 1:
        raise ValueError(f"Graph needs at least one node, got {num_nodes}")

    nodes = [Node(id=i, label=f"N{i}") for i in range(num_nodes)]
    edges = [Edge(i, i + 1) for i in range(num_nodes - 1)]

    wants_loop = rng.random() < loop_probability
    if wants_loop and num_nodes >= 3:
        max_target = num_nodes - min_loop_length(num_nodes) - 1
        if max_target >= 0:
            target = rng.randint(0, max_target)
            edges.append(Edge(num_nodes - 1, target))

    graph = Graph(nodes=nodes, edges=edges)
    logger.info(f"Generated graph with {graph.node_count} node(s)")
    # Ground truth stays out of INFO output
    logger.debug(
        f"Loop edge: N{graph.loop_edge.source} -> N{graph.loop_edge.target}"
        if graph.loop_edge else "No loop edge"
    )
    return graph

#!/usr/bin/env python3
"""
Loop Walk Data Models

Data classes for the simulation: nodes, edges, the functional graph,
agents, and round outcomes.
"""
from __future__ import annotations

import dataclasses
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Set

logger = logging.getLogger("loopwalk")

# Agents always start on this node
START_NODE = 0

# Allowed range for the number of agents in a session
MIN_AGENTS = 1
MAX_AGENTS = 5


@dataclasses.dataclass(frozen=True)
class Node:
    """A graph node. The label is for display only."""
    id: int
    label: str


@dataclasses.dataclass(frozen=True)
class Edge:
    """A directed edge between two node ids."""
    source: int
    target: int

    @property
    def is_backward(self) -> bool:
        return self.source > self.target


@dataclasses.dataclass
class Graph:
    """Directed functional graph: every node has at most one outgoing edge.

    Ground truth (``has_loop``) is fixed at construction. When it is not
    given explicitly it is derived from the back edge (source > target),
    which also becomes ``loop_edge``.
    """
    nodes: List[Node]
    edges: List[Edge]
    has_loop: Optional[bool] = None
    loop_edge: Optional[Edge] = None
    _successor: Dict[int, int] = dataclasses.field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        node_ids = {n.id for n in self.nodes}
        if len(node_ids) != len(self.nodes):
            raise ValueError("Duplicate node id in graph")
        if not self.nodes:
            raise ValueError("Graph needs at least one node")
        if node_ids != set(range(len(self.nodes))):
            raise ValueError(
                f"Node ids must run 0 to {len(self.nodes) - 1}, got {sorted(node_ids)}"
            )

        for edge in self.edges:
            if edge.source not in node_ids or edge.target not in node_ids:
                raise ValueError(
                    f"Edge {edge.source} -> {edge.target} references an unknown node"
                )
            if edge.source in self._successor:
                raise ValueError(
                    f"Node {edge.source} has more than one outgoing edge"
                )
            self._successor[edge.source] = edge.target

        if self.loop_edge is not None and self.loop_edge not in self.edges:
            raise ValueError("Loop edge is not part of the graph")

        if self.has_loop is None:
            if self.loop_edge is None:
                self.loop_edge = next((e for e in self.edges if e.is_backward), None)
            self.has_loop = self.loop_edge is not None

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def node(self, node_id: int) -> Node:
        for n in self.nodes:
            if n.id == node_id:
                return n
        raise KeyError(node_id)

    def label_of(self, node_id: int) -> str:
        return self.node(node_id).label

    def successors(self, node_id: int) -> Set[int]:
        """Return the successor set of a node (zero or one element)."""
        target = self._successor.get(node_id)
        return set() if target is None else {target}

    def successor(self, node_id: int) -> Optional[int]:
        return self._successor.get(node_id)

    def is_terminal(self, node_id: int) -> bool:
        return node_id not in self._successor

    def ground_truth_has_loop(self) -> bool:
        return bool(self.has_loop)


@dataclasses.dataclass
class Agent:
    """Per-agent simulation state.

    ``current_node`` and ``instruction_pointer`` are mutated only by the
    step scheduler. ``path`` is an append-only history for diagnostics.
    """
    id: int
    current_node: int = START_NODE
    instruction_pointer: int = 0
    finished: bool = False
    path: List[int] = dataclasses.field(default_factory=lambda: [START_NODE])

    @property
    def name(self) -> str:
        return f"Agent {self.id + 1}"

    def move_to(self, node_id: int) -> None:
        if node_id != self.current_node:
            self.current_node = node_id
            self.path.append(node_id)


def make_agents(count: int, start_node: int = START_NODE) -> List[Agent]:
    """Create a fresh agent set, all on the start node."""
    return [
        Agent(id=i, current_node=start_node, path=[start_node])
        for i in range(count)
    ]


class Outcome(Enum):
    """Outcome signal of a single round."""
    CONTINUE = "continue"
    LOOP_CORRECT = "loop_correct"                  # Loop declared, graph has one
    LOOP_FALSE_POSITIVE = "loop_false_positive"    # Loop declared, graph has none
    ALL_FINISHED_CORRECT = "all_finished_correct"  # Every agent reached a terminal node

    @property
    def is_terminal(self) -> bool:
        return self is not Outcome.CONTINUE

    @property
    def is_success(self) -> bool:
        return self in (Outcome.LOOP_CORRECT, Outcome.ALL_FINISHED_CORRECT)


@dataclasses.dataclass
class RoundResult:
    """Result of one scheduler round."""
    outcome: Outcome
    iterations: int
    positions: List[int]
    declared_by: Optional[int] = None
    trigger: Optional[str] = None  # instruction | overlap
    capped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "outcome": self.outcome.value,
            "iterations": self.iterations,
            "positions": self.positions,
        }
        if self.declared_by is not None:
            d["declared_by"] = self.declared_by
            d["trigger"] = self.trigger
        if self.capped:
            d["capped"] = True
        return d

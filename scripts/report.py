#!/usr/bin/env python3
"""
Loop Walk Reporting

Console presentation of round outcomes and agent positions, and the final
resolution artifact written at the end of a command line run.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

from models import Agent, Graph, Outcome, RoundResult
from utils import save_json_atomic, utc_now_iso, write_live

# Outcome -> (title, message)
OUTCOME_MESSAGES: Dict[Outcome, Tuple[str, str]] = {
    Outcome.LOOP_CORRECT: (
        "Success!",
        "The graph contains a loop! Well done!",
    ),
    Outcome.ALL_FINISHED_CORRECT: (
        "Well Done!",
        "All agents reached terminating nodes. The graph has no loop, which is correct!",
    ),
    Outcome.LOOP_FALSE_POSITIVE: (
        "Failure",
        "The graph does not contain a loop. Try again!",
    ),
}


def describe_outcome(outcome: Outcome) -> Tuple[str, str]:
    return OUTCOME_MESSAGES.get(outcome, ("Continue", "No conclusion yet."))


def format_positions(graph: Graph, agents: List[Agent]) -> List[str]:
    """One line per agent: label of the current node, plus a finished marker."""
    lines = []
    for agent in agents:
        label = graph.label_of(agent.current_node)
        marker = " (finished)" if agent.finished else ""
        lines.append(f"  {agent.name}: {label}{marker}")
    return lines


def print_round(round_no: int, result: RoundResult, graph: Graph, agents: List[Agent]) -> None:
    """Print a short round summary."""
    print(f"Round {round_no}: {result.iterations} iteration(s)")
    for line in format_positions(graph, agents):
        print(line)


def print_outcome(result: RoundResult) -> None:
    """Display a terminal outcome prominently."""
    title, message = describe_outcome(result.outcome)

    print("\n" + "=" * 60)
    print(title.upper())
    print("=" * 60)
    write_live("=" * 50)
    write_live(title.upper())
    write_live("=" * 50)

    print(message)
    write_live(message)
    if result.declared_by is not None:
        detail = f"Loop declared by Agent {result.declared_by + 1} ({result.trigger})"
        print(detail)
        write_live(detail)
    print("=" * 60 + "\n")
    write_live("=" * 50)


def write_resolution(
    path: Path,
    result: Optional[RoundResult],
    rounds: int,
    graph: Graph,
    reason: str,
) -> None:
    """Write final resolution artifact."""
    save_json_atomic(
        path,
        {
            "timestamp": utc_now_iso(),
            "reason": reason,
            "rounds": rounds,
            "nodes": graph.node_count,
            "has_loop": graph.ground_truth_has_loop(),
            "result": result.to_dict() if result else None,
        },
    )

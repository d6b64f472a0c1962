#!/usr/bin/env python3
"""
Loop Walk Step Scheduler

Executes one round: all agents' programs advance in lockstep, one
instruction position per iteration, until every program is exhausted,
an agent declares a loop, or the iteration cap is reached.

Each iteration runs in phases so that the order in which agents are
visited never changes where they end up:

1. finished check      - agents on a terminal node stop for the rest of the run
2. conditional phase   - every COND is evaluated against the positions held
                         before anyone moves in this iteration
3. instruction phase   - each active agent gets a plan (move count, pointer
                         delta, loop declaration)
4. loop check          - the first declaring agent ends the round
5. move commit         - queued moves are applied
6. overlap scan        - co-located agents with a reachable LOOP end the round
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Dict, List, Optional, Sequence

from models import Agent, Graph, Outcome, RoundResult
from program import Opcode, Program

logger = logging.getLogger("loopwalk")

# Safety valve: a round never runs more iterations than this
MAX_ITERATIONS = 20

TRIGGER_INSTRUCTION = "instruction"
TRIGGER_OVERLAP = "overlap"


@dataclasses.dataclass
class Plan:
    """What one agent does in one iteration."""
    delta: int
    steps: int = 0
    declares_loop: bool = False


def has_other_agent_at(agents: Sequence[Agent], node_id: int, agent_id: int) -> bool:
    """True if a different, non-finished agent currently occupies node_id."""
    return any(
        a.id != agent_id and a.current_node == node_id and not a.finished
        for a in agents
    )


def walk(graph: Graph, start: int, steps: int) -> int:
    """Follow up to `steps` edges from start, stopping early at a terminal node."""
    node = start
    for _ in range(steps):
        nxt = graph.successor(node)
        if nxt is None:
            break
        node = nxt
    return node


class StepScheduler:
    """Runs synchronized rounds over a set of agents."""

    def __init__(self, max_iterations: int = MAX_ITERATIONS):
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        self.max_iterations = max_iterations

    def run_round(
        self,
        graph: Graph,
        agents: List[Agent],
        programs: Sequence[Program],
    ) -> RoundResult:
        """Execute one full round and return its outcome.

        `programs[i]` belongs to `agents[i]`; missing entries are empty programs.
        """
        progs: Dict[int, Program] = {
            a.id: programs[i] if i < len(programs) else Program()
            for i, a in enumerate(agents)
        }
        for agent in agents:
            agent.instruction_pointer = 0

        iterations = 0
        while iterations < self.max_iterations:
            self._mark_finished(graph, agents)
            active = [
                a for a in agents
                if not a.finished and a.instruction_pointer < len(progs[a.id])
            ]
            if not active:
                break
            iterations += 1

            conditionals = {
                a.id: self._resolve_conditional(a, progs[a.id], agents)
                for a in active
                if progs[a.id].at(a.instruction_pointer) is Opcode.COND
            }
            plans = [
                (a, conditionals.get(a.id) or self._plan_instruction(a, progs[a.id]))
                for a in active
            ]
            logger.debug(
                f"Iteration {iterations}: "
                + ", ".join(
                    f"{a.name}@{a.current_node} ip={a.instruction_pointer} "
                    f"steps={p.steps} delta={p.delta}{' LOOP' if p.declares_loop else ''}"
                    for a, p in plans
                )
            )

            declarer = next((a for a, p in plans if p.declares_loop), None)
            if declarer is not None:
                # Moves queued before the declaring agent are kept, later ones dropped
                for agent, plan in plans:
                    if agent is declarer:
                        agent.instruction_pointer += plan.delta
                        break
                    self._commit(graph, agent, plan)
                return self._declare(graph, agents, declarer, TRIGGER_INSTRUCTION, iterations)

            for agent, plan in plans:
                self._commit(graph, agent, plan)

            overlap = self._scan_overlaps(agents, progs)
            if overlap is not None:
                return self._declare(graph, agents, overlap, TRIGGER_OVERLAP, iterations)

        self._mark_finished(graph, agents)
        capped = iterations >= self.max_iterations and any(
            not a.finished and a.instruction_pointer < len(progs[a.id]) for a in agents
        )
        if capped:
            logger.debug(f"Round stopped at iteration cap ({self.max_iterations})")

        if agents and all(a.finished for a in agents):
            outcome = Outcome.ALL_FINISHED_CORRECT
        else:
            outcome = Outcome.CONTINUE
        return RoundResult(
            outcome=outcome,
            iterations=iterations,
            positions=[a.current_node for a in agents],
            capped=capped,
        )

    @staticmethod
    def _mark_finished(graph: Graph, agents: Sequence[Agent]) -> None:
        for agent in agents:
            if not agent.finished and graph.is_terminal(agent.current_node):
                agent.finished = True
                logger.debug(f"{agent.name} finished at node {agent.current_node}")

    @staticmethod
    def _resolve_conditional(agent: Agent, program: Program, agents: Sequence[Agent]) -> Plan:
        """Evaluate a COND against the pre-move snapshot of positions."""
        ip = agent.instruction_pointer
        if not program.has(ip + 1):
            # Trailing COND has no payload: skip only itself
            return Plan(delta=1)

        if not has_other_agent_at(agents, agent.current_node, agent.id):
            return Plan(delta=2)

        payload = program.at(ip + 1)
        if payload is Opcode.STEP:
            return Plan(delta=2, steps=1)
        if payload is Opcode.LOOP:
            return Plan(delta=2, declares_loop=True)
        return Plan(delta=2)

    @staticmethod
    def _plan_instruction(agent: Agent, program: Program) -> Plan:
        op = program.at(agent.instruction_pointer)
        if op is Opcode.LOOP:
            return Plan(delta=1, declares_loop=True)
        if op is Opcode.STEP:
            run = program.step_run(agent.instruction_pointer)
            return Plan(delta=run, steps=run)
        # NOP and unrecognized characters
        return Plan(delta=1)

    @staticmethod
    def _commit(graph: Graph, agent: Agent, plan: Plan) -> None:
        if plan.steps:
            agent.move_to(walk(graph, agent.current_node, plan.steps))
        agent.instruction_pointer += plan.delta

    @staticmethod
    def _scan_overlaps(agents: Sequence[Agent], programs: Dict[int, Program]) -> Optional[Agent]:
        """Return the first co-located agent whose remaining program reaches a LOOP."""
        occupancy: Dict[int, int] = {}
        for agent in agents:
            if not agent.finished:
                occupancy[agent.current_node] = occupancy.get(agent.current_node, 0) + 1

        for agent in agents:
            if agent.finished or occupancy.get(agent.current_node, 0) < 2:
                continue
            program = programs[agent.id]
            pos = agent.instruction_pointer
            while program.has(pos):
                op = program.at(pos)
                if op is Opcode.LOOP:
                    agent.instruction_pointer = pos + 1
                    return agent
                if op is Opcode.COND:
                    if not program.has(pos + 1):
                        pos += 1
                        continue
                    if program.at(pos + 1) is Opcode.LOOP and has_other_agent_at(
                        agents, agent.current_node, agent.id
                    ):
                        agent.instruction_pointer = pos + 2
                        return agent
                    pos += 2
                    continue
                pos += 1
        return None

    @staticmethod
    def _declare(
        graph: Graph,
        agents: Sequence[Agent],
        declarer: Agent,
        trigger: str,
        iterations: int,
    ) -> RoundResult:
        outcome = Outcome.LOOP_CORRECT if graph.ground_truth_has_loop() else Outcome.LOOP_FALSE_POSITIVE
        logger.info(
            f"{declarer.name} declared a loop at node {declarer.current_node} "
            f"({trigger}): {outcome.value}"
        )
        return RoundResult(
            outcome=outcome,
            iterations=iterations,
            positions=[a.current_node for a in agents],
            declared_by=declarer.id,
            trigger=trigger,
        )

#!/usr/bin/env python3
"""
Loop Walk Run Controller

Owns the simulation session (graph, agents, program texts) and drives the
step scheduler, either one round at a time or on a timer.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Callable, Dict, List, Optional

from models import (
    Agent, Graph, Outcome, RoundResult,
    MAX_AGENTS, MIN_AGENTS, START_NODE, make_agents,
)
from parsers import parse_graph
from program import Program, parse_program, sanitize_program_text
from scheduler import MAX_ITERATIONS, StepScheduler
from utils import clamp, write_live

logger = logging.getLogger("loopwalk")

DEFAULT_INTERVAL_MS = 1000

RoundListener = Callable[[RoundResult], None]


@dataclasses.dataclass
class Session:
    """Simulation state for one graph and one agent set."""
    graph: Graph
    agents: List[Agent]
    program_texts: Dict[int, str] = dataclasses.field(default_factory=dict)
    rounds: int = 0
    result: Optional[RoundResult] = None  # Terminal result once the run has concluded

    @property
    def concluded(self) -> bool:
        return self.result is not None

    def programs(self) -> List[Program]:
        """Parse the current program texts, one per agent."""
        return [parse_program(self.program_texts.get(a.id, "")) for a in self.agents]


class AutoProgressHandle:
    """Handle for a running auto-progress task. Cancelling twice is harmless."""

    def __init__(self, task: "asyncio.Task[Optional[RoundResult]]"):
        self._task = task

    @property
    def running(self) -> bool:
        return not self._task.done()

    def is_current(self) -> bool:
        """True when called from inside the auto-progress task itself."""
        try:
            return asyncio.current_task() is self._task
        except RuntimeError:
            return False

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()

    async def wait(self) -> Optional[RoundResult]:
        """Wait for the task; returns the terminal result, or None if cancelled."""
        try:
            return await self._task
        except asyncio.CancelledError:
            return None


class RunController:
    """Drives rounds for a session and reports their outcomes."""

    def __init__(
        self,
        graph: Graph,
        num_agents: int = MIN_AGENTS,
        programs: Optional[List[str]] = None,
        max_iterations: int = MAX_ITERATIONS,
        on_round: Optional[RoundListener] = None,
    ):
        self.scheduler = StepScheduler(max_iterations=max_iterations)
        self.on_round = on_round
        count = clamp(num_agents, MIN_AGENTS, MAX_AGENTS)
        self.session = Session(graph=graph, agents=make_agents(count))
        for i, text in enumerate(programs or []):
            self.set_program(i, text)
        self._auto: Optional[AutoProgressHandle] = None
        self._in_round = False

    @property
    def graph(self) -> Graph:
        return self.session.graph

    @property
    def agents(self) -> List[Agent]:
        return self.session.agents

    @property
    def is_progressing(self) -> bool:
        return self._auto is not None and self._auto.running

    def set_program(self, agent_id: int, raw: str) -> str:
        """Store sanitized program text for an agent; takes effect next round."""
        text = sanitize_program_text(raw)
        self.session.program_texts[agent_id] = text
        logger.debug(f"Agent {agent_id + 1} program set to {text!r}")
        return text

    def program_text(self, agent_id: int) -> str:
        return self.session.program_texts.get(agent_id, "")

    def set_agent_count(self, count: int) -> int:
        """Replace the agent set with `count` fresh agents (clamped to 1-5)."""
        count = clamp(count, MIN_AGENTS, MAX_AGENTS)
        self.session.agents = make_agents(count)
        self.reset()
        return count

    def set_graph(self, graph: Graph) -> None:
        self.session.graph = graph
        self.reset()

    def load_graph_text(self, text: str) -> Graph:
        """Parse graph text and swap it in. A parse error leaves the session untouched."""
        graph = parse_graph(text)
        self.set_graph(graph)
        logger.info(f"Loaded graph with {graph.node_count} node(s)")
        return graph

    def reset(self) -> None:
        """Put every agent back on the start node and cancel auto progress."""
        self.stop()
        self.session.agents = make_agents(len(self.session.agents), START_NODE)
        self.session.rounds = 0
        self.session.result = None
        write_live("Agents reset")
        logger.info(f"Reset {len(self.session.agents)} agent(s) to node {START_NODE}")

    def step_once(self) -> RoundResult:
        """Execute exactly one round and report it.

        Once a run has concluded the stored terminal result is returned
        without moving any agent, until reset().
        """
        if self._in_round:
            raise RuntimeError("A round is already in progress")
        if self.session.result is not None:
            logger.debug("Run already concluded; reset to continue")
            return self.session.result

        self._in_round = True
        try:
            programs = self.session.programs()
            result = self.scheduler.run_round(self.session.graph, self.session.agents, programs)
            self.session.rounds += 1
            if result.outcome.is_terminal:
                self.session.result = result
        finally:
            self._in_round = False

        write_live(
            f"Round {self.session.rounds}: {result.outcome.value} "
            f"positions={result.positions} iterations={result.iterations}"
        )
        if result.outcome.is_terminal:
            logger.info(f"Round {self.session.rounds} ended the run: {result.outcome.value}")
            if self._auto is not None and self._auto.is_current():
                # The task returns this result on its own
                self._auto = None
            else:
                self.stop()
        if self.on_round:
            self.on_round(result)
        return result

    def start_auto_progress(self, interval_ms: int = DEFAULT_INTERVAL_MS) -> AutoProgressHandle:
        """Run step_once() every interval_ms until stopped or a terminal outcome.

        Must be called from a running event loop. If auto progress is already
        running the existing handle is returned.
        """
        if self._auto is not None and self._auto.running:
            logger.debug("Auto progress already running")
            return self._auto
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        task = asyncio.get_running_loop().create_task(self._auto_progress(interval_ms / 1000.0))
        self._auto = AutoProgressHandle(task)
        logger.info(f"Auto progress started ({interval_ms} ms)")
        return self._auto

    def stop(self) -> None:
        """Cancel pending auto progress. Safe to call at any time."""
        if self._auto is not None:
            if self._auto.running:
                logger.info("Auto progress stopped")
            self._auto.cancel()
            self._auto = None

    async def _auto_progress(self, interval_s: float) -> Optional[RoundResult]:
        while True:
            await asyncio.sleep(interval_s)
            result = self.step_once()
            if result.outcome.is_terminal:
                return result

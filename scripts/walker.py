#!/usr/bin/env python3
"""
Loop Walk

Programmable agents walk a hidden functional graph; declare a loop when
you think there is one. Runs rounds in batch, on a timer, or from an
interactive console.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path
from typing import Callable, List, Optional

import yaml

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("loopwalk")

SCRIPT_DIR = Path(__file__).parent.resolve()

# Add script directory to path for sibling imports (enables running from any directory)
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

from config import WalkerConfig, load_config, merge_overrides
from controller import RunController
from generator import generate_graph
from models import Graph, Outcome, RoundResult
from parsers import GraphFormatError, parse_graph, serialize_graph
from report import print_outcome, print_round, write_resolution
from utils import read_text, set_live_log, write_text_atomic

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_MAX_ROUNDS = 11
EXIT_FALSE_POSITIVE = 12

INTERACTIVE_HELP = """\
Commands:
  <Enter> | s            run one round
  r                      reset agents to the start node
  p <agent> <program>    set an agent's program (S, N, C, L; max 10)
  a <count>              set the number of agents (1-5)
  g                      show the graph listing
  q                      quit"""


def build_graph(cfg: WalkerConfig) -> Graph:
    """Load the configured graph file, or generate a random graph."""
    if cfg.graph_file:
        path = Path(cfg.graph_file)
        if not path.exists():
            raise FileNotFoundError(f"Graph file not found: {path}")
        graph = parse_graph(read_text(path))
        logger.info(f"Loaded graph with {graph.node_count} node(s) from {path}")
        return graph

    rng = random.Random(cfg.seed)
    return generate_graph(
        rng,
        num_nodes=cfg.nodes,
        loop_probability=cfg.loop_probability,
        max_nodes=cfg.max_nodes,
    )


def exit_code_for(result: Optional[RoundResult]) -> int:
    if result is None or result.outcome is Outcome.CONTINUE:
        return EXIT_MAX_ROUNDS
    if result.outcome is Outcome.LOOP_FALSE_POSITIVE:
        return EXIT_FALSE_POSITIVE
    return EXIT_OK


def make_round_printer(controller: RunController) -> Callable[[RoundResult], None]:
    """Listener printing each round and any terminal outcome."""
    def on_round(result: RoundResult) -> None:
        print_round(controller.session.rounds, result, controller.graph, controller.agents)
        if result.outcome.is_terminal:
            print_outcome(result)
    return on_round


def run_rounds(controller: RunController, max_rounds: int) -> Optional[RoundResult]:
    """Step rounds synchronously until a terminal outcome or max_rounds."""
    result: Optional[RoundResult] = None
    for _ in range(max_rounds):
        result = controller.step_once()
        if result.outcome.is_terminal:
            break
    return result


async def run_auto(
    controller: RunController, interval_ms: int, max_rounds: int
) -> Optional[RoundResult]:
    """Auto-progress on a timer until a terminal outcome or max_rounds."""
    printer = controller.on_round

    def on_round(result: RoundResult) -> None:
        if printer:
            printer(result)
        if not result.outcome.is_terminal and controller.session.rounds >= max_rounds:
            logger.info(f"Round limit reached ({max_rounds})")
            controller.stop()

    controller.on_round = on_round
    try:
        handle = controller.start_auto_progress(interval_ms)
        await handle.wait()
    finally:
        controller.on_round = printer
    return controller.session.result


def run_interactive(
    controller: RunController, input_fn: Callable[[str], str] = input
) -> Optional[RoundResult]:
    """Console loop for single stepping and editing programs between rounds."""
    print(INTERACTIVE_HELP)
    while True:
        try:
            line = input_fn("> ")
        except EOFError:
            break
        cmd = line.strip()
        if cmd in ("", "s"):
            if controller.session.concluded:
                print("Run concluded. Use 'r' to reset.")
                continue
            controller.step_once()
        elif cmd == "q":
            break
        elif cmd == "r":
            controller.reset()
            print("Agents reset.")
        elif cmd == "g":
            print(serialize_graph(controller.graph))
        elif cmd.startswith("p "):
            parts = cmd.split(maxsplit=2)
            try:
                agent_no = int(parts[1])
            except ValueError:
                print(f"Invalid agent number: {parts[1]}")
                continue
            if not 1 <= agent_no <= len(controller.agents):
                print(f"Agent must be between 1 and {len(controller.agents)}")
                continue
            text = controller.set_program(agent_no - 1, parts[2] if len(parts) > 2 else "")
            print(f"Agent {agent_no} program: {text or '(empty)'}")
        elif cmd.startswith("a "):
            try:
                count = controller.set_agent_count(int(cmd.split()[1]))
            except ValueError:
                print(f"Invalid agent count: {cmd.split()[1]}")
                continue
            print(f"{count} agent(s) ready.")
        else:
            print(f"Unknown command: {cmd}")
            print(INTERACTIVE_HELP)
    return controller.session.result


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Loop Walk: find the loop with programmable agents")
    ap.add_argument("--config", "-c", help="Walker config file (YAML)")
    ap.add_argument("--graph", "-g", dest="graph_file", help="Load graph listing from file")
    ap.add_argument("--seed", type=int, default=None, help="Seed for graph generation")
    ap.add_argument("--nodes", type=int, default=None, help="Node count for a generated graph")
    ap.add_argument("--agents", "-a", type=int, default=None, help="Number of agents (1-5)")
    ap.add_argument(
        "--program", "-P", action="append", dest="programs", default=None,
        help="Program for the next agent (repeatable), e.g. -P SSL -P S"
    )
    ap.add_argument("--rounds", type=int, default=None, dest="max_rounds", help="Round limit")
    ap.add_argument("--max-iterations", type=int, default=None, help="Iteration cap per round")
    ap.add_argument("--auto", action="store_true", help="Auto-progress on a timer")
    ap.add_argument("--interval-ms", type=int, default=None, help="Auto-progress period")
    ap.add_argument("--interactive", "-i", action="store_true", help="Interactive console")
    ap.add_argument("--show-graph", action="store_true", help="Print the graph listing")
    ap.add_argument("--save-graph", help="Write the graph listing to a file")
    ap.add_argument("--result", help="Write the final resolution JSON to a file")
    ap.add_argument("--live-log", default=None, help="Live log file (tail -f)")
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = ap.parse_args(argv)

    if args.verbose:
        logger.setLevel(logging.DEBUG)

    try:
        cfg = load_config(Path(args.config)) if args.config else WalkerConfig()
        overrides = vars(args).copy()
        if args.programs and args.agents is None and len(args.programs) > cfg.agents:
            overrides["agents"] = len(args.programs)
        cfg = merge_overrides(cfg, overrides)
        graph = build_graph(cfg)
    except (FileNotFoundError, yaml.YAMLError, GraphFormatError, ValueError) as e:
        logger.error(str(e))
        return EXIT_ERROR

    if args.show_graph:
        print(serialize_graph(graph))
    if args.save_graph:
        write_text_atomic(Path(args.save_graph), serialize_graph(graph) + "\n")
        logger.info(f"Graph written to {args.save_graph}")

    live_file = None
    if cfg.live_log:
        live_path = Path(cfg.live_log)
        live_path.parent.mkdir(parents=True, exist_ok=True)
        live_file = live_path.open("a", encoding="utf-8")
        set_live_log(live_file)

    try:
        controller = RunController(
            graph,
            num_agents=cfg.agents,
            programs=cfg.programs,
            max_iterations=cfg.max_iterations,
        )
        controller.on_round = make_round_printer(controller)

        if args.interactive:
            result = run_interactive(controller)
            code = exit_code_for(result) if result else EXIT_OK
        elif args.auto:
            result = asyncio.run(run_auto(controller, cfg.interval_ms, cfg.max_rounds))
            code = exit_code_for(result)
        else:
            result = run_rounds(controller, cfg.max_rounds)
            code = exit_code_for(result)

        if args.result:
            reason = result.outcome.value if result else "no_conclusion"
            write_resolution(Path(args.result), result, controller.session.rounds, graph, reason)
        return code
    finally:
        if live_file:
            set_live_log(None)
            live_file.close()


if __name__ == "__main__":
    raise SystemExit(main())

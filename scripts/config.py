#!/usr/bin/env python3
"""
Loop Walk Configuration Loading

Load and validate walker configuration files (YAML) and merge command
line overrides on top of them.
"""
from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from controller import DEFAULT_INTERVAL_MS
from models import MAX_AGENTS, MIN_AGENTS
from program import sanitize_program_text
from generator import DEFAULT_LOOP_PROBABILITY, DEFAULT_MAX_NODES
from scheduler import MAX_ITERATIONS
from utils import clamp

logger = logging.getLogger("loopwalk")

# Default values
DEFAULT_MAX_ROUNDS = 100


@dataclasses.dataclass
class WalkerConfig:
    """Walker configuration.

    Attributes:
        agents: Number of agents (clamped to 1-5)
        programs: Program text per agent, sanitized on load
        interval_ms: Auto-progress period
        max_iterations: Iteration cap per round
        max_rounds: Round limit for command line runs
        graph_file: Graph listing to load instead of generating one
        seed: Seed for graph generation
        nodes: Fixed node count for generation
        loop_probability: Chance that a generated graph gets a loop
        max_nodes: Upper bound for a generated node count
        live_log: Path of the live log file
    """
    agents: int = MIN_AGENTS
    programs: List[str] = dataclasses.field(default_factory=list)
    interval_ms: int = DEFAULT_INTERVAL_MS
    max_iterations: int = MAX_ITERATIONS
    max_rounds: int = DEFAULT_MAX_ROUNDS
    graph_file: Optional[str] = None
    seed: Optional[int] = None
    nodes: Optional[int] = None
    loop_probability: float = DEFAULT_LOOP_PROBABILITY
    max_nodes: int = DEFAULT_MAX_NODES
    live_log: Optional[str] = None
    source_path: Optional[Path] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any], source_path: Optional[Path] = None) -> "WalkerConfig":
        programs = d.get("programs") or []
        if not isinstance(programs, list):
            raise ValueError(f"'programs' must be a list, got: {type(programs).__name__}")

        agents = int(d.get("agents", MIN_AGENTS))
        if agents != clamp(agents, MIN_AGENTS, MAX_AGENTS):
            logger.warning(f"Agent count {agents} out of range, clamping to {MIN_AGENTS}-{MAX_AGENTS}")

        interval_ms = int(d.get("interval_ms", DEFAULT_INTERVAL_MS))
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        max_iterations = int(d.get("max_iterations", MAX_ITERATIONS))
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")

        loop_probability = float(d.get("loop_probability", DEFAULT_LOOP_PROBABILITY))
        if not 0.0 <= loop_probability <= 1.0:
            raise ValueError(f"loop_probability must be within [0, 1], got {loop_probability}")

        return cls(
            agents=clamp(agents, MIN_AGENTS, MAX_AGENTS),
            programs=[sanitize_program_text(str(p)) for p in programs],
            interval_ms=interval_ms,
            max_iterations=max_iterations,
            max_rounds=int(d.get("max_rounds", DEFAULT_MAX_ROUNDS)),
            graph_file=d.get("graph_file"),
            seed=d.get("seed"),
            nodes=d.get("nodes"),
            loop_probability=loop_probability,
            max_nodes=int(d.get("max_nodes", DEFAULT_MAX_NODES)),
            live_log=d.get("live_log"),
            source_path=source_path,
        )


def load_config(config_path: Path) -> WalkerConfig:
    """Load walker configuration from a YAML file.

    Args:
        config_path: Path to the walker config YAML file

    Returns:
        WalkerConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file has invalid YAML
        ValueError: If config file has invalid structure
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Walker config not found: {config_path}")

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Invalid YAML in walker config: {e}")

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Walker config must be a YAML dict, got: {type(raw).__name__}")

    config = WalkerConfig.from_dict(raw, source_path=config_path)
    logger.info(f"Loaded walker config from {config_path}")
    logger.debug(f"  agents: {config.agents}")
    logger.debug(f"  interval_ms: {config.interval_ms}")
    logger.debug(f"  graph_file: {config.graph_file}")

    return config


def merge_overrides(cfg: WalkerConfig, overrides: Dict[str, Any]) -> WalkerConfig:
    """Merge command line overrides into config. Override values win; None is ignored."""
    merged = dataclasses.asdict(cfg)
    merged.pop("source_path", None)

    simple_keys = [
        "agents", "interval_ms", "max_iterations", "max_rounds",
        "graph_file", "seed", "nodes", "loop_probability", "max_nodes", "live_log",
    ]
    for key in simple_keys:
        if overrides.get(key) is not None:
            merged[key] = overrides[key]

    # Per-agent programs replace the configured ones position by position
    programs = list(merged.get("programs", []))
    for i, text in enumerate(overrides.get("programs") or []):
        if i < len(programs):
            programs[i] = text
        else:
            programs.append(text)
    merged["programs"] = programs

    return WalkerConfig.from_dict(merged, source_path=cfg.source_path)

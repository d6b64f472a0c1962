#!/usr/bin/env python3
"""
Loop Walk Instruction Programs

Agent programs are short strings over a four-letter alphabet:

    S  STEP  advance one node along the outgoing edge
    N  NOP   do nothing
    C  COND  run the next opcode only if another active agent shares the node
    L  LOOP  declare that the graph contains a loop

Input text is upper-cased, filtered to the alphabet, and truncated before
it becomes a Program.
"""
from __future__ import annotations

import dataclasses
import logging
import re
from enum import Enum
from typing import Optional

logger = logging.getLogger("loopwalk")

MAX_PROGRAM_LENGTH = 10

DISALLOWED_PATTERN = re.compile(r"[^SNCL]")


class Opcode(Enum):
    STEP = "S"
    NOP = "N"
    COND = "C"
    LOOP = "L"


_OPCODES = {op.value: op for op in Opcode}


def sanitize_program_text(raw: Optional[str]) -> str:
    """Upper-case, strip characters outside S/N/C/L, and truncate."""
    if not raw:
        return ""
    filtered = DISALLOWED_PATTERN.sub("", raw.upper())
    return filtered[:MAX_PROGRAM_LENGTH]


@dataclasses.dataclass(frozen=True)
class Program:
    """An immutable instruction sequence.

    Characters outside the alphabet can only appear when a Program is built
    directly; ``at`` returns None for them and the scheduler runs them as NOP.
    """
    text: str = ""

    def __post_init__(self) -> None:
        if len(self.text) > MAX_PROGRAM_LENGTH:
            raise ValueError(
                f"Program too long ({len(self.text)} > {MAX_PROGRAM_LENGTH}): {self.text!r}"
            )

    def __len__(self) -> int:
        return len(self.text)

    def __str__(self) -> str:
        return self.text

    def at(self, index: int) -> Optional[Opcode]:
        """Return the opcode at index, or None for an unrecognized character."""
        return _OPCODES.get(self.text[index])

    def has(self, index: int) -> bool:
        return 0 <= index < len(self.text)

    def step_run(self, index: int) -> int:
        """Length of the run of consecutive STEP opcodes starting at index."""
        count = 0
        while self.has(index + count) and self.at(index + count) is Opcode.STEP:
            count += 1
        return count


def parse_program(raw: Optional[str]) -> Program:
    """Parse raw instruction text into a Program, re-validating the input."""
    text = sanitize_program_text(raw)
    if raw and text != raw.strip().upper():
        logger.debug(f"Program text {raw!r} sanitized to {text!r}")
    return Program(text)

"""Tests for outcome reporting and the live log."""

import io
import json

from models import Agent, Outcome, RoundResult
from report import describe_outcome, format_positions, print_outcome, write_resolution
from utils import clamp, set_live_log, write_live


def test_describe_outcome():
    assert describe_outcome(Outcome.LOOP_CORRECT)[0] == "Success!"
    assert describe_outcome(Outcome.ALL_FINISHED_CORRECT)[0] == "Well Done!"
    assert describe_outcome(Outcome.LOOP_FALSE_POSITIVE) == (
        "Failure", "The graph does not contain a loop. Try again!"
    )
    assert describe_outcome(Outcome.CONTINUE)[0] == "Continue"


def test_format_positions(five_path):
    agents = [Agent(id=0, current_node=4, finished=True), Agent(id=1, current_node=2)]
    assert format_positions(five_path, agents) == [
        "  Agent 1: N4 (finished)",
        "  Agent 2: N2",
    ]


def test_print_outcome_names_declarer(capsys):
    result = RoundResult(
        outcome=Outcome.LOOP_CORRECT, iterations=1, positions=[1, 1],
        declared_by=1, trigger="overlap",
    )
    print_outcome(result)
    out = capsys.readouterr().out
    assert "SUCCESS!" in out
    assert "Loop declared by Agent 2 (overlap)" in out


def test_write_resolution(tmp_path, loop_graph):
    path = tmp_path / "out" / "resolution.json"
    result = RoundResult(outcome=Outcome.LOOP_CORRECT, iterations=2, positions=[3],
                         declared_by=0, trigger="instruction")
    write_resolution(path, result, rounds=5, graph=loop_graph, reason="loop_correct")
    data = json.loads(path.read_text())
    assert data["rounds"] == 5
    assert data["has_loop"] is True
    assert data["result"] == {
        "outcome": "loop_correct", "iterations": 2, "positions": [3],
        "declared_by": 0, "trigger": "instruction",
    }
    assert "timestamp" in data


def test_write_live_only_when_set():
    write_live("dropped")
    buf = io.StringIO()
    set_live_log(buf)
    try:
        write_live("hello", prefix="> ")
    finally:
        set_live_log(None)
    assert buf.getvalue().endswith("> hello\n")
    assert "dropped" not in buf.getvalue()


def test_clamp():
    assert clamp(0, 1, 5) == 1
    assert clamp(9, 1, 5) == 5
    assert clamp(3, 1, 5) == 3

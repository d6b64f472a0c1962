"""Tests for the run controller."""

import asyncio

import pytest

from controller import RunController, Session
from models import Outcome
from parsers import GraphFormatError, serialize_graph


class TestStepOnce:
    def test_step_runs_one_round(self, five_path):
        controller = RunController(five_path, num_agents=1, programs=["SS"])
        result = controller.step_once()
        assert result.outcome is Outcome.CONTINUE
        assert controller.agents[0].current_node == 2
        assert controller.session.rounds == 1

    def test_programs_reread_each_round(self, five_path):
        controller = RunController(five_path, num_agents=1, programs=["S"])
        controller.step_once()
        controller.set_program(0, "ss")
        controller.step_once()
        assert controller.agents[0].current_node == 3

    def test_program_text_is_sanitized(self, five_path):
        controller = RunController(five_path)
        assert controller.set_program(0, "s-x-l and more") == "SLN"
        assert controller.program_text(0) == "SLN"

    def test_terminal_result_concludes_run(self, loop_graph):
        controller = RunController(loop_graph, num_agents=2, programs=["SL", "S"])
        first = controller.step_once()
        assert first.outcome is Outcome.LOOP_CORRECT
        assert controller.session.concluded

        again = controller.step_once()
        assert again is first
        assert controller.session.rounds == 1
        assert [a.current_node for a in controller.agents] == [1, 1]

    def test_all_finished_reported(self, path_graph):
        controller = RunController(path_graph(3), programs=["SSSSSSSSSS"])
        assert controller.step_once().outcome is Outcome.ALL_FINISHED_CORRECT

    def test_listener_receives_rounds(self, five_path):
        seen = []
        controller = RunController(five_path, programs=["S"], on_round=seen.append)
        controller.step_once()
        controller.step_once()
        assert [r.positions for r in seen] == [[1], [2]]

    def test_reentrant_step_rejected(self, five_path):
        controller = RunController(five_path, programs=["S"])
        controller._in_round = True
        with pytest.raises(RuntimeError, match="already in progress"):
            controller.step_once()
        assert controller.agents[0].current_node == 0


class TestReset:
    def test_reset_restores_start(self, five_path):
        controller = RunController(five_path, num_agents=2, programs=["SS", "S"])
        controller.step_once()
        controller.reset()
        assert all(a.current_node == 0 for a in controller.agents)
        assert all(a.path == [0] for a in controller.agents)
        assert not any(a.finished for a in controller.agents)
        assert controller.session.rounds == 0

    def test_reset_clears_conclusion(self, loop_graph):
        controller = RunController(loop_graph, programs=["L"])
        controller.step_once()
        controller.reset()
        assert not controller.session.concluded
        assert controller.step_once().outcome is Outcome.LOOP_CORRECT

    def test_ground_truth_stable_across_resets(self, loop_graph):
        controller = RunController(loop_graph)
        for _ in range(3):
            controller.reset()
            assert controller.graph.ground_truth_has_loop()

    def test_reset_keeps_programs(self, five_path):
        controller = RunController(five_path, programs=["SS"])
        controller.reset()
        assert controller.program_text(0) == "SS"


class TestAgentCount:
    def test_set_agent_count_replaces_agents(self, five_path):
        controller = RunController(five_path, num_agents=1, programs=["S"])
        controller.step_once()
        assert controller.set_agent_count(3) == 3
        assert len(controller.agents) == 3
        assert all(a.current_node == 0 for a in controller.agents)

    def test_agent_count_is_clamped(self, five_path):
        controller = RunController(five_path, num_agents=9)
        assert len(controller.agents) == 5
        assert controller.set_agent_count(0) == 1


class TestGraphLoading:
    def test_load_graph_text_swaps_and_resets(self, five_path, loop_graph):
        controller = RunController(five_path, programs=["SS"])
        controller.step_once()
        controller.load_graph_text(serialize_graph(loop_graph))
        assert controller.graph == loop_graph
        assert controller.agents[0].current_node == 0

    def test_bad_graph_text_leaves_graph_untouched(self, five_path):
        controller = RunController(five_path, programs=["S"])
        controller.step_once()
        with pytest.raises(GraphFormatError):
            controller.load_graph_text("not a graph")
        assert controller.graph is five_path
        assert controller.agents[0].current_node == 1


class TestSession:
    def test_programs_parsed_per_agent(self, five_path):
        controller = RunController(five_path, num_agents=3, programs=["SN", "L"])
        programs = controller.session.programs()
        assert [str(p) for p in programs] == ["SN", "L", ""]

    def test_session_defaults(self, five_path):
        session = Session(graph=five_path, agents=[])
        assert session.rounds == 0
        assert not session.concluded


class TestAutoProgress:
    @pytest.mark.asyncio
    async def test_runs_until_terminal(self, path_graph):
        controller = RunController(path_graph(4), programs=["S"])
        handle = controller.start_auto_progress(interval_ms=1)
        result = await asyncio.wait_for(handle.wait(), timeout=5)
        assert result.outcome is Outcome.ALL_FINISHED_CORRECT
        assert controller.session.rounds == 3
        assert not controller.is_progressing

    @pytest.mark.asyncio
    async def test_stop_cancels(self, five_path):
        controller = RunController(five_path, programs=[""])
        handle = controller.start_auto_progress(interval_ms=1000)
        assert controller.is_progressing
        controller.stop()
        controller.stop()
        assert await handle.wait() is None
        assert not controller.is_progressing
        assert controller.session.rounds == 0

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, five_path):
        controller = RunController(five_path)
        handle = controller.start_auto_progress(interval_ms=1000)
        handle.cancel()
        handle.cancel()
        assert await handle.wait() is None

    @pytest.mark.asyncio
    async def test_reset_cancels_auto_progress(self, five_path):
        controller = RunController(five_path, programs=["S"])
        handle = controller.start_auto_progress(interval_ms=1000)
        controller.reset()
        assert await handle.wait() is None
        assert not controller.is_progressing

    @pytest.mark.asyncio
    async def test_second_start_returns_same_handle(self, five_path):
        controller = RunController(five_path)
        first = controller.start_auto_progress(interval_ms=1000)
        second = controller.start_auto_progress(interval_ms=1000)
        assert first is second
        controller.stop()

    @pytest.mark.asyncio
    async def test_rejects_non_positive_interval(self, five_path):
        controller = RunController(five_path)
        with pytest.raises(ValueError):
            controller.start_auto_progress(interval_ms=0)

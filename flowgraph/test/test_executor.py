import os
import sys

# Adjust path to find modules
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../../')))

from flowgraph.core.Config import FlowgraphSettings
from flowgraph.core.Evaluator import evaluate
from flowgraph.core.Executor import ExecutionEngine, ExecutionListener
from flowgraph.core.GraphPrimitives import Graph, Program
from flowgraph.core.Types import BlockKind, BranchTag, EngineState
from flowgraph.examples.Flowcharts import (counting_loop, do_while_countdown, for_loop_sum, nested_conditional,
                                           simple_conditional)


# --- Helpers ---

class RecordingListener(ExecutionListener):
    """Records callbacks. Answers input requests from `inputs` when given, otherwise leaves them pending."""

    def __init__(self, inputs=None):
        self.inputs = list(inputs or [])
        self.steps = []
        self.errors = []
        self.requests = []
        self.completed = 0

    def on_step(self, block, variables, output):
        self.steps.append((block.id, dict(variables), output))

    def on_complete(self):
        self.completed += 1

    def on_error(self, message):
        self.errors.append(message)

    def on_input_required(self, variable, resolve):
        self.requests.append(variable)
        if self.inputs:
            resolve(self.inputs.pop(0))


def linear_program(*labels):
    """Start -> one block per (kind, label) -> End"""
    g = Graph("main")
    previous = g.add_block(BlockKind.START, "Start", "start")
    for index, (kind, label) in enumerate(labels):
        block = g.add_block(kind, label, f"b{index}")
        g.add_edge(previous, block)
        previous = block
    g.add_edge(previous, g.add_block(BlockKind.END, "End", "end"))
    return Program(g)


def run(program, inputs=None):
    listener = RecordingListener(inputs)
    engine = ExecutionEngine(program, listener, FlowgraphSettings())
    engine.start()
    return engine, listener


class TestRun:

    def test_conditional_true_branch(self):
        engine, listener = run(simple_conditional(), ["4"])
        assert engine.output == "8\n"
        assert listener.requests == ["n"]
        assert listener.completed == 1
        assert engine.state == EngineState.IDLE

    def test_conditional_false_branch(self):
        engine, _ = run(simple_conditional(), ["-1"])
        assert engine.output == "0\n"

    def test_loop(self):
        engine, listener = run(counting_loop(3))
        assert engine.output == "0\n1\n2\n"
        assert engine.variables["i"] == 3
        assert listener.errors == []

    def test_loop_exit_continues(self):
        engine, _ = run(counting_loop(2, done_message="done"))
        assert engine.output == "0\n1\ndone\n"

    def test_for_loop(self):
        engine, _ = run(for_loop_sum(5))
        assert engine.output == "15\n"

    def test_do_while_runs_body_first(self):
        engine, _ = run(do_while_countdown(3))
        assert engine.output == "3\n2\n1\n"
        engine, _ = run(do_while_countdown(0))
        assert engine.output == "0\n"

    def test_nested_conditional(self):
        assert run(nested_conditional(), ["-5"])[0].output == "negative\n"
        assert run(nested_conditional(), ["0"])[0].output == "zero\n"
        assert run(nested_conditional(), ["7"])[0].output == "positive\n"

    def test_repeatable(self):
        program = counting_loop(4)
        first, _ = run(program)
        second, _ = run(program)
        assert first.output == second.output
        assert first.variables == second.variables

    def test_assignment_round_trip(self):
        engine, _ = run(linear_program((BlockKind.ASSIGNMENT, "x = 2 + 3")))
        assert engine.variables == {"x": 5}
        value = evaluate("x", engine.scope)
        assert value == 5
        assert type(value) is int

    def test_output_prefixes_and_literals(self):
        engine, _ = run(linear_program(
            (BlockKind.ASSIGNMENT, "x = 1.5"),
            (BlockKind.OUTPUT, "O: x * 2"),
            (BlockKind.OUTPUT, 'output: "hello"'),
            (BlockKind.OUTPUT, "Output x"),
        ))
        assert engine.output == "3.0\nhello\n1.5\n"

    def test_steps_report_executed_block(self):
        _, listener = run(linear_program((BlockKind.ASSIGNMENT, "x = 1"), (BlockKind.OUTPUT, "x")))
        assert [s[0] for s in listener.steps] == ["start", "b0", "b1"]
        assert listener.steps[1][1] == {"x": 1}
        assert listener.steps[2][2] == "1\n"

    def test_start_while_running_is_ignored(self):
        engine = ExecutionEngine(simple_conditional(), RecordingListener(), FlowgraphSettings())
        engine.start()
        assert engine.is_paused
        engine.start()
        assert engine.is_paused


class TestInput:

    def test_pause_and_resume(self):
        engine = ExecutionEngine(simple_conditional(), RecordingListener(), FlowgraphSettings())
        engine.start()
        assert engine.state == EngineState.PAUSED
        assert engine.current_block.id == "input_n"

        engine.resume("4")
        assert engine.state == EngineState.IDLE
        assert engine.output == "8\n"
        assert engine.variables["n"] == 4

    def test_input_value_parsing(self):
        program = linear_program((BlockKind.INPUT, "I: a, b, c"))
        engine, listener = run(program, ["3", "2.5", "text"])
        assert listener.requests == ["a", "b", "c"]
        assert engine.variables == {"a": 3, "b": 2.5, "c": "text"}

    def test_resume_without_request_is_ignored(self):
        engine = ExecutionEngine(counting_loop(), RecordingListener(), FlowgraphSettings())
        engine.resume("1")
        assert engine.state == EngineState.IDLE
        assert engine.output == ""

    def test_stop_while_paused(self):
        listener = RecordingListener()
        engine = ExecutionEngine(simple_conditional(), listener, FlowgraphSettings())
        engine.start()
        engine.stop()
        assert engine.state == EngineState.IDLE
        assert listener.completed == 1

        engine.resume("4")
        assert engine.output == ""


class TestStepping:

    def test_step_executes_one_block(self):
        listener = RecordingListener()
        engine = ExecutionEngine(counting_loop(1), listener, FlowgraphSettings())

        engine.step()
        assert engine.state == EngineState.STEPPING
        assert engine.current_block.id == "init"

        engine.step()
        assert engine.variables == {"i": 0}
        assert engine.current_block.id == "loop"

        while engine.state != EngineState.IDLE:
            engine.step()
        assert engine.output == "0\n"
        assert listener.completed == 1

    def test_step_ignored_while_paused(self):
        engine = ExecutionEngine(simple_conditional(), RecordingListener(), FlowgraphSettings())
        engine.step()
        engine.step()
        assert engine.is_paused
        engine.step()
        assert engine.current_block.id == "input_n"

        engine.resume("2")
        assert engine.state == EngineState.STEPPING
        assert engine.current_block.id == "cond"

    def test_reentrant_step_is_ignored(self):
        class Reentrant(RecordingListener):
            def on_step(self, block, variables, output):
                super().on_step(block, variables, output)
                engine.step()

        listener = Reentrant()
        engine = ExecutionEngine(counting_loop(2), listener, FlowgraphSettings())
        engine.start()
        assert engine.output == "0\n1\n"
        assert listener.errors == []


class TestBranching:

    def _branching(self, true_label, false_label, tagged):
        g = Graph("main")
        start = g.add_block(BlockKind.START, "Start", "start")
        cond = g.add_block(BlockKind.CONDITIONAL, "1 > 2", "cond")
        yes = g.add_block(BlockKind.OUTPUT, '"yes"', "yes")
        no = g.add_block(BlockKind.OUTPUT, '"no"', "no")
        end = g.add_block(BlockKind.END, "End", "end")
        g.add_edge(start, cond)
        g.add_edge(cond, yes, true_label, BranchTag.TRUE if tagged else None)
        g.add_edge(cond, no, false_label, BranchTag.FALSE if tagged else None)
        g.add_edge(yes, end)
        g.add_edge(no, end)
        return Program(g)

    def test_tags_win_over_labels(self):
        engine, _ = run(self._branching("No", "Yes", tagged=True))
        assert engine.output == "no\n"

    def test_label_fallback(self):
        engine, _ = run(self._branching("Sì", "No", tagged=False))
        assert engine.output == "no\n"

    def test_first_edge_fallback(self):
        engine, listener = run(self._branching("a", "b", tagged=False))
        assert engine.output == "yes\n"
        assert listener.errors == []

    def test_dead_end_is_treated_as_end(self):
        g = Graph("main")
        start = g.add_block(BlockKind.START, "Start", "start")
        out = g.add_block(BlockKind.OUTPUT, '"only"', "out")
        g.add_block(BlockKind.END, "End", "end")
        g.add_edge(start, out)
        engine, listener = run(Program(g))
        assert engine.output == "only\n"
        assert listener.completed == 1


class TestErrors:

    def test_undefined_variable_stops_run(self):
        engine, listener = run(linear_program(
            (BlockKind.OUTPUT, '"before"'),
            (BlockKind.OUTPUT, "missing"),
            (BlockKind.OUTPUT, '"after"'),
        ))
        assert listener.errors == ["Undefined variable 'missing'"]
        assert listener.completed == 1
        assert engine.output == "before\n"
        assert engine.state == EngineState.IDLE

    def test_invalid_assignment(self):
        _, listener = run(linear_program((BlockKind.ASSIGNMENT, "just text")))
        assert listener.errors == ["Invalid assignment 'just text'"]

    def test_missing_start(self):
        g = Graph("main")
        g.add_block(BlockKind.END, "End", "end")
        engine, listener = run(Program(g))
        assert len(listener.errors) == 1
        assert "missing Start or End" in listener.errors[0]
        assert engine.state == EngineState.IDLE

    def test_run_again_after_error(self):
        program = linear_program((BlockKind.OUTPUT, "x"))
        engine, listener = run(program)
        assert listener.errors

        program.main.add_block(BlockKind.ASSIGNMENT, "x = 1", "set_x")
        program.main.delete_block("b0")
        program.main.add_edge("start", "set_x")
        program.main.add_edge("set_x", "end")
        engine.start()
        assert engine.variables == {"x": 1}
        assert engine.output == ""

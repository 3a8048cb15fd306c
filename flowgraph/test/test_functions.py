import os
import sys
import pytest

# Adjust path to find modules
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../../')))

from flowgraph.core.Config import FlowgraphSettings
from flowgraph.core.Errors import ArgumentCountError
from flowgraph.core.Executor import ExecutionEngine, ExecutionListener
from flowgraph.core.GraphPrimitives import FunctionDefinition, Graph, Parameter, Program
from flowgraph.core.Types import BlockKind, BranchTag, EngineState, ValueType
from flowgraph.examples.Flowcharts import add_function_program


class Recorder(ExecutionListener):
    def __init__(self, inputs=None):
        self.inputs = list(inputs or [])
        self.errors = []
        self.completed = 0

    def on_error(self, message):
        self.errors.append(message)

    def on_complete(self):
        self.completed += 1

    def on_input_required(self, variable, resolve):
        if self.inputs:
            resolve(self.inputs.pop(0))


def body(name, *labels):
    """Start -> one block per (kind, label) -> End"""
    g = Graph(name)
    previous = g.add_block(BlockKind.START, "Start", f"{name}_start")
    for index, (kind, label) in enumerate(labels):
        block = g.add_block(kind, label, f"{name}_{index}")
        g.add_edge(previous, block)
        previous = block
    g.add_edge(previous, g.add_block(BlockKind.END, "End", f"{name}_end"))
    return g


def program_with(main_labels, *functions):
    program = Program(body("main", *main_labels))
    for definition in functions:
        program.add_function(definition)
    return program


def run(program, inputs=None, settings=None):
    listener = Recorder(inputs)
    engine = ExecutionEngine(program, listener, settings or FlowgraphSettings())
    engine.start()
    return engine, listener


class TestFunctionCalls:

    def test_add(self):
        engine, listener = run(add_function_program(2, 3))
        assert listener.errors == []
        assert engine.variables == {"result": 5}
        assert engine.output == "5\n"

    def test_callee_bindings_do_not_leak(self):
        engine, _ = run(add_function_program())
        assert "a" not in engine.variables
        assert "b" not in engine.variables
        assert "sum" not in engine.variables
        assert engine.scope.depth == 1

    def test_call_inside_expression(self):
        program = add_function_program()
        program.main.blocks["call"].kind = BlockKind.ASSIGNMENT
        program.main.blocks["call"].label = "result = add(2, 3) * 2 + add(1, 1)"
        engine, listener = run(program)
        assert listener.errors == []
        assert engine.variables["result"] == 12

    def test_call_as_statement(self):
        shout = FunctionDefinition("shout", body("shout", (BlockKind.OUTPUT, "word")),
                                   [Parameter("word", ValueType.STRING)])
        engine, listener = run(program_with([(BlockKind.FUNCTION_CALL, 'shout("hey")')], shout))
        assert listener.errors == []
        assert engine.output == "hey\n"

    def test_arguments_are_coerced(self):
        half = FunctionDefinition("half", body("half", (BlockKind.ASSIGNMENT, "r = x / 2")),
                                  [Parameter("x", ValueType.DOUBLE)], ValueType.DOUBLE, "r")
        label = FunctionDefinition("label", body("label", (BlockKind.ASSIGNMENT, "r = v")),
                                   [Parameter("v", ValueType.STRING)], ValueType.STRING, "r")
        engine, _ = run(program_with([(BlockKind.FUNCTION_CALL, "h = half(5)"),
                                      (BlockKind.FUNCTION_CALL, "s = label(7)")], half, label))
        assert engine.variables == {"h": 2.5, "s": "7"}

    def test_missing_return_variable_defaults_to_zero(self):
        noop = FunctionDefinition("noop", body("noop"), [], ValueType.INT, "never_set")
        engine, _ = run(program_with([(BlockKind.FUNCTION_CALL, "r = noop()")], noop))
        assert engine.variables == {"r": 0}

    def test_functions_update_globals(self):
        bump = FunctionDefinition("bump", body("bump", (BlockKind.ASSIGNMENT, "counter = counter + 1")))
        engine, _ = run(program_with([(BlockKind.ASSIGNMENT, "counter = 1"),
                                      (BlockKind.FUNCTION_CALL, "bump()"),
                                      (BlockKind.FUNCTION_CALL, "bump()")], bump))
        assert engine.variables == {"counter": 3}

    def test_recursion(self):
        # fact(n) = n <= 1 ? 1 : n * fact(n - 1)
        g = Graph("fact")
        start = g.add_block(BlockKind.START, "Start", "f_start")
        cond = g.add_block(BlockKind.CONDITIONAL, "n <= 1", "f_cond")
        base = g.add_block(BlockKind.ASSIGNMENT, "r = 1", "f_base")
        rec = g.add_block(BlockKind.ASSIGNMENT, "r = n * fact(n - 1)", "f_rec")
        merge = g.add_block(BlockKind.MERGE, "", "f_merge")
        end = g.add_block(BlockKind.END, "End", "f_end")
        g.add_edge(start, cond)
        g.add_edge(cond, base, "Yes", BranchTag.TRUE)
        g.add_edge(cond, rec, "No", BranchTag.FALSE)
        g.add_edge(base, merge)
        g.add_edge(rec, merge)
        g.add_edge(merge, end)
        fact = FunctionDefinition("fact", g, [Parameter("n")], ValueType.INT, "r")

        engine, listener = run(program_with([(BlockKind.FUNCTION_CALL, "x = fact(5)")], fact))
        assert listener.errors == []
        assert engine.variables == {"x": 120}

        # the return variable also lives in main: every level writes through to it
        engine, listener = run(program_with([(BlockKind.ASSIGNMENT, "r = 7"),
                                             (BlockKind.FUNCTION_CALL, "x = fact(5)")], fact))
        assert listener.errors == []
        assert engine.variables == {"r": 120, "x": 120}

    def test_return_variable_named_like_a_global(self):
        add = FunctionDefinition("add", body("add", (BlockKind.ASSIGNMENT, "result = a + b")),
                                 [Parameter("a"), Parameter("b")], ValueType.INT, "result")
        engine, listener = run(program_with([(BlockKind.ASSIGNMENT, "result = 0"),
                                             (BlockKind.FUNCTION_CALL, "result = add(2, 3)"),
                                             (BlockKind.OUTPUT, "result")], add))
        assert listener.errors == []
        assert engine.variables == {"result": 5}
        assert engine.output == "5\n"

    def test_parameters_shadow_globals(self):
        scale = FunctionDefinition("scale", body("scale", (BlockKind.ASSIGNMENT, "a = a * 100"),
                                                 (BlockKind.ASSIGNMENT, "r = a + 1")),
                                   [Parameter("a")], ValueType.INT, "r")
        engine, listener = run(program_with([(BlockKind.ASSIGNMENT, "a = 10"),
                                             (BlockKind.FUNCTION_CALL, "x = scale(2)")], scale))
        assert listener.errors == []
        assert engine.variables == {"a": 10, "x": 201}


class TestFunctionErrors:

    def test_wrong_argument_count(self):
        engine, listener = run(program_with([(BlockKind.FUNCTION_CALL, "r = add(1)")],
                                            add_function_program().get_function("add")))
        assert listener.errors == ["Function 'add' expects 2 argument(s) but was called with 1"]
        assert engine.state == EngineState.IDLE

    def test_argument_count_error_type(self):
        program = add_function_program()
        engine = ExecutionEngine(program, settings=FlowgraphSettings())
        with pytest.raises(ArgumentCountError) as info:
            engine.call_function("add", [1, 2, 3])
        assert info.value.expected == 2
        assert info.value.actual == 3

    def test_unknown_function(self):
        _, listener = run(program_with([(BlockKind.FUNCTION_CALL, "nope(1)")]))
        assert listener.errors == ["Unknown function 'nope'"]

    def test_void_result_cannot_be_bound(self):
        void = FunctionDefinition("void_fn", body("void_fn"))
        _, listener = run(program_with([(BlockKind.FUNCTION_CALL, "x = void_fn()")], void))
        assert len(listener.errors) == 1
        assert "returns void" in listener.errors[0]

    def test_incomplete_function(self):
        broken = FunctionDefinition("broken", Graph("broken"))
        _, listener = run(program_with([(BlockKind.FUNCTION_CALL, "broken()")], broken))
        assert "incomplete" in listener.errors[0]

    def test_call_depth_limit(self):
        forever = FunctionDefinition("forever", body("forever", (BlockKind.FUNCTION_CALL, "forever()")))
        engine, listener = run(program_with([(BlockKind.FUNCTION_CALL, "forever()")], forever),
                               settings=FlowgraphSettings(max_call_depth=5))
        assert listener.errors == ["Maximum call depth (5) exceeded calling 'forever'"]
        assert engine.scope.depth == 1


class TestFunctionInput:

    def _reader(self):
        return FunctionDefinition("read", body("read", (BlockKind.INPUT, "v")), [], ValueType.INT, "v")

    def test_input_resolved_synchronously(self):
        engine, listener = run(program_with([(BlockKind.FUNCTION_CALL, "x = read()")], self._reader()), ["9"])
        assert listener.errors == []
        assert engine.variables == {"x": 9}

    def test_input_must_be_synchronous(self):
        engine, listener = run(program_with([(BlockKind.FUNCTION_CALL, "x = read()")], self._reader()))
        assert listener.errors == ["Input 'v' inside a function must be resolved synchronously"]
        assert engine.state == EngineState.IDLE


class TestCancellation:

    def test_stop_inside_function_body(self):
        engine = None

        class StopOnInput(Recorder):
            def on_input_required(self, variable, resolve):
                engine.stop()
                resolve("1")

        reader = FunctionDefinition(
            "read", body("read", (BlockKind.INPUT, "v"), (BlockKind.OUTPUT, '"unreachable"')),
            [], ValueType.INT, "v")
        listener = StopOnInput()
        engine = ExecutionEngine(program_with([(BlockKind.FUNCTION_CALL, "x = read()"),
                                               (BlockKind.OUTPUT, '"after"')], reader),
                                 listener, FlowgraphSettings())
        engine.start()
        assert engine.output == ""
        assert listener.errors == []
        assert listener.completed == 1
        assert engine.state == EngineState.IDLE
        assert engine.scope.depth == 1

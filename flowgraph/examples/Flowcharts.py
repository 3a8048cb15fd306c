"""
Example flowcharts, built the way the editor lays them out.

Run as a module to execute each one and print its generated C:

    python -m flowgraph.examples.Flowcharts
"""
from typing import Optional

from flowgraph.core.GraphPrimitives import FunctionDefinition, Graph, Parameter, Program
from flowgraph.core.Types import BlockKind, BranchTag, ValueType

TRUE, FALSE = BranchTag.TRUE, BranchTag.FALSE


def simple_conditional() -> Program:
    """
        Start -> I: n -> n > 0? -T-> result = n * 2 -> merge -> O: result -> End
                                 -F-> result = 0     -^
    """
    g = Graph("main")
    start = g.add_block(BlockKind.START, "Start", "start")
    read = g.add_block(BlockKind.INPUT, "n", "input_n")
    cond = g.add_block(BlockKind.CONDITIONAL, "n > 0?", "cond")
    double = g.add_block(BlockKind.ASSIGNMENT, "result = n * 2", "double")
    zero = g.add_block(BlockKind.ASSIGNMENT, "result = 0", "zero")
    merge = g.add_block(BlockKind.MERGE, "", "merge")
    show = g.add_block(BlockKind.OUTPUT, "result", "output")
    end = g.add_block(BlockKind.END, "End", "end")

    g.add_edge(start, read)
    g.add_edge(read, cond)
    g.add_edge(cond, double, "Sì", TRUE)
    g.add_edge(cond, zero, "No", FALSE)
    g.add_edge(double, merge)
    g.add_edge(zero, merge)
    g.add_edge(merge, show)
    g.add_edge(show, end)
    return Program(g)


def counting_loop(limit: int = 3, done_message: Optional[str] = None) -> Program:
    """
        Start -> i = 0 -> i < limit -T-> O: i -> i = i + 1 -> body merge -> (back to the loop)
                                    -F-> [O: "done"] -> End
    """
    g = Graph("main")
    start = g.add_block(BlockKind.START, "Start", "start")
    init = g.add_block(BlockKind.ASSIGNMENT, "i = 0", "init")
    loop = g.add_block(BlockKind.LOOP, f"i < {limit}", "loop")
    show = g.add_block(BlockKind.OUTPUT, "i", "show")
    incr = g.add_block(BlockKind.ASSIGNMENT, "i = i + 1", "incr")
    body_merge = g.add_block(BlockKind.MERGE, "", "body_merge")
    end = g.add_block(BlockKind.END, "End", "end")

    g.add_edge(start, init)
    g.add_edge(init, loop)
    g.add_edge(loop, show, "Yes", TRUE)
    g.add_edge(show, incr)
    g.add_edge(incr, body_merge)
    g.add_edge(body_merge, loop)
    if done_message is None:
        g.add_edge(loop, end, "No", FALSE)
    else:
        done = g.add_block(BlockKind.OUTPUT, f'"{done_message}"', "done")
        g.add_edge(loop, done, "No", FALSE)
        g.add_edge(done, end)
    return Program(g)


def for_loop_sum(limit: int = 5) -> Program:
    """sum = 0; for (i = 1; i <= limit; i = i + 1) sum = sum + i; output sum"""
    g = Graph("main")
    start = g.add_block(BlockKind.START, "Start", "start")
    init = g.add_block(BlockKind.ASSIGNMENT, "sum = 0", "init")
    loop = g.add_block(BlockKind.FOR_LOOP, f"i = 1; i <= {limit}; i = i + 1", "for")
    add = g.add_block(BlockKind.ASSIGNMENT, "sum = sum + i", "add")
    body_merge = g.add_block(BlockKind.MERGE, "", "body_merge")
    show = g.add_block(BlockKind.OUTPUT, "sum", "show")
    end = g.add_block(BlockKind.END, "End", "end")

    g.add_edge(start, init)
    g.add_edge(init, loop)
    g.add_edge(loop, add, "Yes", TRUE)
    g.add_edge(add, body_merge)
    g.add_edge(body_merge, loop)
    g.add_edge(loop, show, "No", FALSE)
    g.add_edge(show, end)
    return Program(g)


def do_while_countdown(start_value: int = 3) -> Program:
    """
        Start -> n = start_value -> body merge -> O: n -> n = n - 1 -> n > 0 -T-> body merge
                                                                          -F-> End
    """
    g = Graph("main")
    start = g.add_block(BlockKind.START, "Start", "start")
    init = g.add_block(BlockKind.ASSIGNMENT, f"n = {start_value}", "init")
    body_merge = g.add_block(BlockKind.MERGE, "", "body_merge")
    show = g.add_block(BlockKind.OUTPUT, "n", "show")
    decr = g.add_block(BlockKind.ASSIGNMENT, "n = n - 1", "decr")
    cond = g.add_block(BlockKind.DO_WHILE, "n > 0", "do_while")
    end = g.add_block(BlockKind.END, "End", "end")

    g.add_edge(start, init)
    g.add_edge(init, body_merge)
    g.add_edge(body_merge, show)
    g.add_edge(show, decr)
    g.add_edge(decr, cond)
    g.add_edge(cond, body_merge, "Yes", TRUE)
    g.add_edge(cond, end, "No", FALSE)
    return Program(g)


def nested_conditional() -> Program:
    """Classify x as "negative", "zero" or "positive"."""
    g = Graph("main")
    start = g.add_block(BlockKind.START, "Start", "start")
    read = g.add_block(BlockKind.INPUT, "x", "input_x")
    outer = g.add_block(BlockKind.CONDITIONAL, "x < 0?", "outer")
    negative = g.add_block(BlockKind.ASSIGNMENT, 'label = "negative"', "negative")
    inner = g.add_block(BlockKind.CONDITIONAL, "x == 0?", "inner")
    zero = g.add_block(BlockKind.ASSIGNMENT, 'label = "zero"', "zero")
    positive = g.add_block(BlockKind.ASSIGNMENT, 'label = "positive"', "positive")
    inner_merge = g.add_block(BlockKind.MERGE, "", "inner_merge")
    outer_merge = g.add_block(BlockKind.MERGE, "", "outer_merge")
    show = g.add_block(BlockKind.OUTPUT, "label", "show")
    end = g.add_block(BlockKind.END, "End", "end")

    g.add_edge(start, read)
    g.add_edge(read, outer)
    g.add_edge(outer, negative, "Sì", TRUE)
    g.add_edge(outer, inner, "No", FALSE)
    g.add_edge(negative, outer_merge)
    g.add_edge(inner, zero, "Sì", TRUE)
    g.add_edge(inner, positive, "No", FALSE)
    g.add_edge(zero, inner_merge)
    g.add_edge(positive, inner_merge)
    g.add_edge(inner_merge, outer_merge)
    g.add_edge(outer_merge, show)
    g.add_edge(show, end)
    return Program(g)


def add_function_program(a: int = 2, b: int = 3) -> Program:
    """int add(int a, int b) { sum = a + b; return sum; }   result = add(a, b); output result"""
    body = Graph("add")
    f_start = body.add_block(BlockKind.START, "Start", "add_start")
    f_sum = body.add_block(BlockKind.ASSIGNMENT, "sum = a + b", "add_sum")
    f_end = body.add_block(BlockKind.END, "End", "add_end")
    body.add_edge(f_start, f_sum)
    body.add_edge(f_sum, f_end)

    add = FunctionDefinition(
        name="add",
        graph=body,
        parameters=[Parameter("a", ValueType.INT), Parameter("b", ValueType.INT)],
        return_type=ValueType.INT,
        return_variable="sum",
    )

    g = Graph("main")
    start = g.add_block(BlockKind.START, "Start", "start")
    call = g.add_block(BlockKind.FUNCTION_CALL, f"result = add({a}, {b})", "call")
    show = g.add_block(BlockKind.OUTPUT, "result", "show")
    end = g.add_block(BlockKind.END, "End", "end")
    g.add_edge(start, call)
    g.add_edge(call, show)
    g.add_edge(show, end)

    program = Program(g)
    program.add_function(add)
    return program


if __name__ == "__main__":
    from flowgraph.compiler import generate_c
    from flowgraph.core.Config import configure_logging
    from flowgraph.core.Executor import ExecutionEngine, ExecutionListener

    configure_logging()

    class AnswerFive(ExecutionListener):
        def on_input_required(self, variable, resolve):
            resolve("5")

    for build in (simple_conditional, counting_loop, for_loop_sum, do_while_countdown,
                  nested_conditional, add_function_program):
        program = build()
        engine = ExecutionEngine(program, AnswerFive())
        engine.start()
        print(f"── {build.__name__} ──")
        print(engine.output, end="")
        print(generate_c(program))

import threading
from typing import Callable, Dict, List, Optional
from logging import getLogger

from .Config import FlowgraphSettings, get_settings
from .Errors import ArgumentCountError, ExecutionCancelled, ExecutionError, FlowchartError
from .Evaluator import Evaluator, parse_input_value
from .GraphPrimitives import Block, FunctionDefinition, Graph, Program
from .Interface import IExecutionListener, IFunctionInvoker
from .Scope import Frame, LoopContext, Scope
from .Statements import (parse_assignment, parse_call, parse_for_header, parse_input_targets,
                         parse_output_expression)
from .Types import BlockKind, BranchTag, EngineState, Value, format_value

logger = getLogger(__name__)

# Human-readable edge labels accepted when an edge carries no branch tag.
TRUE_LABELS = ("true", "yes", "sì", "si")
FALSE_LABELS = ("false", "no")

# Returned by a block handler that advances the engine itself (Input).
_SUSPENDED = object()


class ExecutionListener(IExecutionListener):
    """Listener with empty callbacks. Hosts override the ones they care about."""

    def on_step(self, block: Block, variables: Dict[str, Value], output: str):
        pass

    def on_complete(self):
        pass

    def on_error(self, message: str):
        pass

    def on_input_required(self, variable: str, resolve: Callable[[str], None]):
        pass


class ExecutionEngine(IFunctionInvoker):
    """
    Step-wise interpreter for a flowchart Program.

    State machine:

        IDLE --start()--> RUNNING --(Input)--> PAUSED --resume()--> RUNNING
        IDLE --step()---> STEPPING --(Input)--> PAUSED --resume()--> STEPPING
        any  --stop() / End reached / error--> IDLE

    In RUNNING mode the engine loops internally until End, an input request,
    or stop(). In STEPPING mode the driver calls step() once per block. The
    only suspension point is the Input block: the engine asks the listener
    for a value and returns; resume(value) binds it and advances.

    Function bodies run to their End inside the step that calls them.
    """

    def __init__(self, program: Program, listener: Optional[IExecutionListener] = None,
                 settings: Optional[FlowgraphSettings] = None):
        self.program = program
        self.listener = listener if listener is not None else ExecutionListener()
        self.settings = settings if settings is not None else get_settings()

        self.scope = Scope()
        self.evaluator = Evaluator(self.scope, self)

        self._output: List[str] = []
        self._current: Optional[str] = None
        self._state = EngineState.IDLE
        self._cancelled = False

        # Input suspension
        self._resume_state = EngineState.IDLE
        self._pending_inputs: List[str] = []
        self._input_block: Optional[str] = None
        self._input_next: Optional[str] = None

        self._step_guard = threading.Lock()
        self._executing = False

    # --- Properties -----------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def variables(self) -> Dict[str, Value]:
        return self.scope.snapshot()

    @property
    def output(self) -> str:
        return "".join(self._output)

    @property
    def current_block(self) -> Optional[Block]:
        return self.program.main.get_block(self._current)

    @property
    def is_running(self) -> bool:
        return self._state != EngineState.IDLE

    @property
    def is_paused(self) -> bool:
        return self._state == EngineState.PAUSED

    # --- Driver API -----------------------------------------------------------

    def start(self):
        """Run continuously from the Start block."""
        if self._state != EngineState.IDLE:
            logger.warning("start() ignored: engine is already %s", self._state.name)
            return
        if not self._reset():
            return
        self._state = EngineState.RUNNING
        self._run_loop()

    def step(self):
        """Execute exactly one block. The first call from IDLE enters stepping mode."""
        if self._state == EngineState.PAUSED:
            logger.debug("step() ignored while waiting for input")
            return
        if self._state == EngineState.IDLE:
            if not self._reset():
                return
            self._state = EngineState.STEPPING
        self._step_once()

    def stop(self):
        """Cancel the run. Nested function bodies are abandoned at their next block."""
        was_active = self._state != EngineState.IDLE
        self._state = EngineState.IDLE
        self._cancelled = True
        self._pending_inputs = []
        self._input_block = None
        self._input_next = None
        if was_active:
            logger.debug("Execution finished; output=%r", self.output)
            self.listener.on_complete()

    def resume(self, value):
        """Bind the value for the pending Input variable and continue."""
        if self._state != EngineState.PAUSED or not self._pending_inputs:
            logger.warning("resume(%r) ignored: no input was requested", value)
            return

        name = self._pending_inputs.pop(0)
        self.scope.set(name, parse_input_value(value))
        if self._pending_inputs:
            self._request_input()
            return

        block = self.program.main.get_block(self._input_block)
        self._current = self._input_next
        self._input_block = None
        self._input_next = None
        self._state = self._resume_state

        try:
            self._notify_step(block)
        except Exception as e:
            logger.exception("Listener failed after input for %r", block)
            self._fail(str(e))
            return

        if self._at_end():
            self.stop()
        elif self._state == EngineState.RUNNING and not self._executing:
            self._run_loop()

    # --- Run loop -------------------------------------------------------------

    def _reset(self) -> bool:
        self.scope.reset()
        self._output = []
        self._cancelled = False
        self._pending_inputs = []
        self._input_block = None
        self._input_next = None

        start = self.program.main.start_block
        if start is None or self.program.main.end_block is None:
            self._current = None
            self.listener.on_error("Flowchart is incomplete: missing Start or End block")
            return False
        self._current = start.id
        return True

    def _run_loop(self):
        self._executing = True
        try:
            while self._state == EngineState.RUNNING:
                self._step_once()
        finally:
            self._executing = False

    def _step_once(self):
        if not self._step_guard.acquire(blocking=False):
            logger.warning("step() ignored: another step is in progress")
            return
        try:
            block = self.program.main.get_block(self._current)
            if block is None or block.kind == BlockKind.END:
                self.stop()
                return

            try:
                next_id = self._execute_block(self.program.main, block, nested=False)
                if next_id is _SUSPENDED or self._state == EngineState.IDLE:
                    return
                self._current = next_id
                self._notify_step(block)
            except ExecutionCancelled:
                logger.debug("Execution cancelled inside %r", block)
                return
            except FlowchartError as e:
                logger.info("Execution failed at %r: %s", block, e)
                self._fail(str(e))
                return
            except Exception as e:
                logger.exception("Unexpected error executing %r", block)
                self._fail(str(e))
                return

            if self._at_end():
                self.stop()
        finally:
            self._step_guard.release()

    def _fail(self, message: str):
        self.listener.on_error(message)
        self.stop()

    def _at_end(self) -> bool:
        block = self.program.main.get_block(self._current)
        return block is None or block.kind == BlockKind.END

    def _notify_step(self, block: Block):
        self.listener.on_step(block, self.scope.snapshot(), self.output)

    # --- Block execution ------------------------------------------------------

    def _execute_block(self, graph: Graph, block: Block, nested: bool):
        logger.debug("Executing %r in %s", block, graph.name)
        kind = block.kind

        if kind in (BlockKind.START, BlockKind.MERGE):
            return self._successor(graph, block)

        if kind == BlockKind.END:
            return None

        if kind == BlockKind.ASSIGNMENT:
            self._run_statement(block.label)
            return self._successor(graph, block)

        if kind == BlockKind.INPUT:
            return self._execute_input(graph, block, nested)

        if kind == BlockKind.OUTPUT:
            expression = parse_output_expression(block.label)
            self._output.append(format_value(self.evaluator.evaluate(expression)) + "\n")
            return self._successor(graph, block)

        if kind in (BlockKind.CONDITIONAL, BlockKind.DO_WHILE):
            return self._branch_target(graph, block, self.evaluator.evaluate_condition(block.label))

        if kind == BlockKind.LOOP:
            taken = self.evaluator.evaluate_condition(block.label)
            target = self._branch_target(graph, block, taken)
            self._track_loop(block, taken, target)
            return target

        if kind == BlockKind.FOR_LOOP:
            header = parse_for_header(block.label)
            if header is None:
                raise ExecutionError(f"Invalid for loop header '{block.label}'")

            if self.scope.top.find_loop(block.id) is None:
                self._run_statement(header.init)
            else:
                self._run_statement(header.increment)
            taken = self.evaluator.evaluate_condition(header.condition)
            target = self._branch_target(graph, block, taken)
            self._track_loop(block, taken, target)
            return target

        if kind == BlockKind.FUNCTION_CALL:
            self._execute_call(block.label)
            return self._successor(graph, block)

        raise ExecutionError(f"Unsupported block kind {kind.name}")

    def _run_statement(self, text: str):
        assignment = parse_assignment(text)
        if assignment is not None:
            name, expression = assignment
            self.scope.set(name, self.evaluator.evaluate(expression))
            return
        if parse_call(text) is not None:
            self._execute_call(text)
            return
        raise ExecutionError(f"Invalid assignment '{text}'")

    def _execute_input(self, graph: Graph, block: Block, nested: bool):
        names = parse_input_targets(block.label)
        if not names:
            raise ExecutionError(f"Input block '{block.id}' names no variable")

        if nested:
            for name in names:
                self.scope.set(name, self._request_input_now(name))
            return self._successor(graph, block)

        self._pending_inputs = names
        self._input_block = block.id
        self._input_next = self._successor(graph, block)
        self._resume_state = self._state
        self._state = EngineState.PAUSED
        self._request_input()
        return _SUSPENDED

    def _request_input(self):
        name = self._pending_inputs[0]
        logger.debug("Requesting input for '%s'", name)
        self.listener.on_input_required(name, self.resume)

    def _request_input_now(self, name: str) -> Value:
        values: List[Value] = []
        self.listener.on_input_required(name, lambda value: values.append(parse_input_value(value)))
        if not values:
            raise ExecutionError(f"Input '{name}' inside a function must be resolved synchronously")
        return values[0]

    def _track_loop(self, block: Block, taken: bool, target: Optional[str]):
        frame = self.scope.top
        context = frame.find_loop(block.id)
        if taken:
            if context is None:
                frame.loop_stack.append(LoopContext(block.id, target))
            else:
                context.body_entry = target
        elif context is not None:
            frame.loop_stack.remove(context)

    def _successor(self, graph: Graph, block: Block) -> Optional[str]:
        outgoing = graph.get_outgoing_edges(block)
        if not outgoing:
            logger.debug("%r has no successor; treating it as the end", block)
            return None
        return outgoing[0].target

    def _branch_target(self, graph: Graph, block: Block, taken: bool) -> Optional[str]:
        edge = graph.edge_with_branch(block, BranchTag.of(taken))
        if edge is not None:
            return edge.target

        wanted = TRUE_LABELS if taken else FALSE_LABELS
        outgoing = graph.get_outgoing_edges(block)
        for edge in outgoing:
            if edge.label is not None and edge.label.strip().lower() in wanted:
                return edge.target

        if not outgoing:
            return None
        logger.warning("%r has no %s edge; following the first outgoing edge", block, BranchTag.of(taken).name)
        return outgoing[0].target

    # --- Functions ------------------------------------------------------------

    def _execute_call(self, text: str):
        call = parse_call(text)
        if call is None:
            raise ExecutionError(f"Invalid function call '{text}'")

        definition = self.program.get_function(call.name)
        if definition is not None and call.target and not definition.returnsValue():
            raise ExecutionError(f"Function '{call.name}' returns void; cannot assign it to '{call.target}'")

        arguments = [self.evaluator.evaluate(argument) for argument in call.arguments]
        result = self.call_function(call.name, arguments)
        if call.target:
            self.scope.set(call.target, result)

    def has_function(self, name: str) -> bool:
        return self.program.get_function(name) is not None

    def call_function(self, name: str, args: List[Value]) -> Optional[Value]:
        definition = self.program.get_function(name)
        if definition is None:
            raise ExecutionError(f"Unknown function '{name}'")
        if len(args) != len(definition.parameters):
            raise ArgumentCountError(name, len(definition.parameters), len(args))
        if not definition.isComplete():
            raise ExecutionError(f"Function '{name}' is incomplete: missing Start or End block")
        if self.scope.depth - 1 >= self.settings.max_call_depth:
            raise ExecutionError(f"Maximum call depth ({self.settings.max_call_depth}) exceeded calling '{name}'")

        try:
            bindings = {p.name: p.type.coerce(a) for p, a in zip(definition.parameters, args)}
        except ValueError as e:
            raise ExecutionError(f"Bad argument for '{name}': {e}") from e

        frame = Frame(name, bindings)
        logger.debug("Calling %s(%s)", name, ", ".join(format_value(a) for a in args))
        self.scope.push(frame)
        try:
            self._run_body(definition)
            # read before the pop; the callee may have written the name through to a global
            rv = definition.return_variable
            value = self.scope.get(rv) if rv and self.scope.has(rv) else 0
        finally:
            self.scope.pop()

        if not definition.returnsValue():
            return None
        try:
            return definition.return_type.coerce(value)
        except ValueError as e:
            raise ExecutionError(f"Bad return value from '{name}': {e}") from e

    def _run_body(self, definition: FunctionDefinition):
        graph = definition.graph
        current = definition.start_block
        while current is not None and current != definition.end_block:
            if self._cancelled:
                raise ExecutionCancelled(current)
            block = graph.get_block(current)
            if block is None or block.kind == BlockKind.END:
                break
            current = self._execute_block(graph, block, nested=True)

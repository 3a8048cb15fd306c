"""
Flowchart C Generator: Emitter
==============================
Walks a Program and recovers structured C from its block/edge shape.

Output structure
----------------
    #include <stdio.h>
    #include <stdlib.h>
    #include <string.h>

    // ── prototypes, then one definition per function ──
    int add(int a, int b) {
        int sum = 0;
        sum = a + b;
        return sum;
    }

    int main() {
        <hoisted, initialised locals>
        <body>
        return 0;
    }

Shapes recognised
-----------------
    Conditional   C -T-> ... -> M,  C -F-> ... -> M,  M -> next
                  if (c) { T M next ... } else { F }   then continue after M
    Loop / For    L -T-> body ... -> L,  L -F-> exit
                  while (c) { body } / for (init; c; incr) { body }   then exit
    DoWhile       head -> body ... -> D,  D -T-> head,  D -F-> exit
                  do { head body } while (c);   then exit

Each block is emitted at most once per pass. A shared Merge is expanded by
the first branch that reaches it, so the code after an if/else usually lands
in its True body. Generation then resumes after the nearest Merge (breadth
first from the Conditional), which emits nothing when that Merge was already
expanded.

With `structured_conditionals` enabled, the join is the nearest Merge
reachable from both branches instead. Both branches stop there and the
trailing code follows the if/else.
"""

from __future__ import annotations

import contextlib
from collections import deque
from dataclasses import dataclass, field
from logging import getLogger
from typing import Dict, FrozenSet, Iterator, List, Optional, Set

from ..core.Config import FlowgraphSettings, get_settings
from ..core.GraphPrimitives import Block, FunctionDefinition, Graph, Program
from ..core.Statements import (STRING_LITERAL_PATTERN, parse_assignment, parse_call, parse_for_header,
                               parse_input_targets, parse_output_expression)
from ..core.Types import BlockKind, BranchTag, ValueType
from .templates import (PREAMBLE, CodeWriter, declaration, format_specifier, param_type,
                        translate_condition, zero_value)
from .typeinfer import TypeInferencer

logger = getLogger(__name__)

INCOMPLETE_MAIN = "// Incomplete flowchart: missing Start or End block\n"


@dataclass
class _Pass:
    """Per-body generation state, swapped when emitting a function."""
    graph: Graph
    types: Dict[str, ValueType]
    visited: Set[str] = field(default_factory=set)
    do_heads: Dict[str, str] = field(default_factory=dict)   # head block id -> DoWhile id
    open_do: Set[str] = field(default_factory=set)


class CGenerator:
    def __init__(self, program: Program, settings: Optional[FlowgraphSettings] = None):
        self.program = program
        self.settings = settings if settings is not None else get_settings()
        self.inferencer = TypeInferencer(program)
        self._pass: Optional[_Pass] = None
        self._writer: Optional[CodeWriter] = None

    def generate(self) -> str:
        main = self.program.main
        if main.start_block is None or main.end_block is None:
            return INCOMPLETE_MAIN

        self._writer = CodeWriter(width=self.settings.indent_width)
        for line in PREAMBLE:
            self._writer.writeln(line)
        self._writer.blank()

        functions = list(self.program.functions.values())
        complete = [d for d in functions if d.isComplete()]
        if len(complete) > 1:
            for definition in complete:
                self._writer.writeln(self._signature(definition) + ";")
            self._writer.blank()

        for definition in functions:
            self._emit_function(definition)
            self._writer.blank()

        self._emit_main(main)
        return self._writer.result()

    # ── Bodies ────────────────────────────────────────────────────────────────

    def _emit_main(self, main: Graph):
        writer = self._writer
        types = self.inferencer.infer(main, main.start_block.id)
        writer.open_block("int main()")
        self._emit_locals(types)
        with self._body(main, types):
            self._emit_guarded(main.start_block.id)
        writer.writeln("return 0;")
        writer.close_block()

    def _emit_function(self, definition: FunctionDefinition):
        writer = self._writer
        if not definition.isComplete():
            writer.comment(f"Incomplete function '{definition.name}': missing Start or End block")
            return

        types = self.inferencer.infer(definition.graph, definition.start_block, definition.parameters)
        writer.open_block(self._signature(definition))
        self._emit_locals(types)
        with self._body(definition.graph, types, definition.parameters):
            self._emit_guarded(definition.start_block)

        if definition.returnsValue():
            if definition.return_variable:
                writer.writeln(f"return {definition.return_variable};")
            else:
                writer.writeln(f"return {zero_value(definition.return_type)};")
        writer.close_block()

    def _signature(self, definition: FunctionDefinition) -> str:
        params = ", ".join(f"{param_type(p.type)} {p.name}" for p in definition.parameters) or "void"
        return f"{param_type(definition.return_type)} {definition.name}({params})"

    def _emit_locals(self, types: Dict[str, ValueType]):
        for name, value_type in types.items():
            self._writer.writeln(declaration(name, value_type, self.settings.string_buffer_size))
        if types:
            self._writer.blank()

    def _emit_guarded(self, start: str):
        level = self._writer.indent
        try:
            self._emit_sequence(start, frozenset())
        except Exception as e:
            logger.exception("C generation failed in %s", self._pass.graph.name)
            self._writer.dedent_to(level).comment(f"Error during generation: {e}")

    @contextlib.contextmanager
    def _body(self, graph: Graph, types: Dict[str, ValueType], parameters=()) -> Iterator[_Pass]:
        known = {p.name: p.type for p in parameters}
        known.update(types)
        saved = self._pass
        self._pass = _Pass(graph, known, do_heads=self._find_do_heads(graph))
        logger.debug("Generating body of %s", graph.name)
        try:
            yield self._pass
        finally:
            self._pass = saved

    # ── Walk ──────────────────────────────────────────────────────────────────

    def _emit_sequence(self, block_id: Optional[str], stops: FrozenSet[str]):
        """Emit blocks from `block_id` until End, a stop, or an already emitted block."""
        state = self._pass
        while block_id is not None and block_id not in stops and block_id not in state.visited:
            block = state.graph.get_block(block_id)
            if block is None:
                return

            loop_id = state.do_heads.get(block_id)
            if loop_id is not None and loop_id not in state.open_do and loop_id not in state.visited:
                block_id = self._emit_do_while(block_id, state.graph.get_block(loop_id), stops)
                continue

            block_id = self._emit_block(block, stops)

    def _emit_block(self, block: Block, stops: FrozenSet[str]) -> Optional[str]:
        state = self._pass
        state.visited.add(block.id)
        kind = block.kind

        if kind == BlockKind.END:
            return None
        if kind == BlockKind.CONDITIONAL:
            return self._emit_conditional(block, stops)
        if kind in (BlockKind.LOOP, BlockKind.FOR_LOOP):
            return self._emit_loop(block, stops)
        if kind == BlockKind.DO_WHILE:
            # reached without its body head: emit the loop around nothing
            self._writer.writeln(f"do {{ }} while ({translate_condition(block.label)});")
            return self._branch(block, BranchTag.FALSE)

        if kind == BlockKind.ASSIGNMENT:
            self._emit_assignment(block.label)
        elif kind == BlockKind.INPUT:
            self._emit_input(block.label)
        elif kind == BlockKind.OUTPUT:
            self._emit_output(block.label)
        elif kind == BlockKind.FUNCTION_CALL:
            self._emit_call(block.label)

        successors = state.graph.successors(block)
        return successors[0] if successors else None

    # ── Control flow ──────────────────────────────────────────────────────────

    def _emit_conditional(self, block: Block, stops: FrozenSet[str]) -> Optional[str]:
        writer = self._writer
        structured = self.settings.structured_conditionals
        true_target = self._branch(block, BranchTag.TRUE)
        false_target = self._branch(block, BranchTag.FALSE)
        join = self._find_join(block, true_target, false_target, structured)
        inner = stops | {join} if structured and join is not None else stops

        writer.open_block(f"if ({translate_condition(block.label)})")
        self._emit_sequence(true_target, inner)
        writer.pop()
        writer.open_block("} else")
        self._emit_sequence(false_target, inner)
        writer.close_block()

        if join is None or join in stops:
            return None
        if structured:
            if join in self._pass.visited:
                return None
            self._pass.visited.add(join)
        # the first branch to reach the join has usually emitted what follows it
        successors = self._pass.graph.successors(join)
        return successors[0] if successors else None

    def _emit_loop(self, block: Block, stops: FrozenSet[str]) -> Optional[str]:
        if block.kind == BlockKind.FOR_LOOP:
            header = parse_for_header(block.label)
            if header is None:
                raise ValueError(f"Invalid for loop header '{block.label}'")
            opener = f"for ({header.init}; {translate_condition(header.condition)}; {header.increment})"
        else:
            opener = f"while ({translate_condition(block.label)})"

        self._writer.open_block(opener)
        self._emit_sequence(self._branch(block, BranchTag.TRUE), stops)
        self._writer.close_block()
        return self._branch(block, BranchTag.FALSE)

    def _emit_do_while(self, head: str, loop: Block, stops: FrozenSet[str]) -> Optional[str]:
        state = self._pass
        state.open_do.add(loop.id)
        self._writer.open_block("do")
        self._emit_sequence(head, stops | {loop.id})
        self._writer.close_block(f" while ({translate_condition(loop.label)});")
        state.visited.add(loop.id)
        return self._branch(loop, BranchTag.FALSE)

    def _branch(self, block: Block, tag: BranchTag) -> Optional[str]:
        graph = self._pass.graph
        edge = graph.edge_with_branch(block, tag)
        if edge is not None:
            return edge.target
        wanted = ("true", "yes", "sì", "si") if tag == BranchTag.TRUE else ("false", "no")
        for edge in graph.get_outgoing_edges(block):
            if edge.label is not None and edge.label.strip().lower() in wanted:
                return edge.target
        return None

    def _find_join(self, block: Block, true_target: Optional[str], false_target: Optional[str],
                   shared: bool) -> Optional[str]:
        """
        Nearest Merge breadth-first from the Conditional. With `shared`, prefer
        the nearest one reachable from both branches.
        """
        graph = self._pass.graph
        from_true = self._reachable(true_target) if shared else set()
        from_false = self._reachable(false_target) if shared else set()

        fallback = None
        for block_id in self._breadth_first(block.id):
            if graph.blocks[block_id].kind != BlockKind.MERGE:
                continue
            if not shared or (block_id in from_true and block_id in from_false):
                return block_id
            if fallback is None:
                fallback = block_id
        return fallback

    def _reachable(self, start: Optional[str]) -> Set[str]:
        return set(self._breadth_first(start, include_start=True)) if start is not None else set()

    def _breadth_first(self, start: str, include_start: bool = False) -> List[str]:
        graph = self._pass.graph
        order: List[str] = []
        seen = {start}
        queue = deque([start])
        if include_start and start in graph.blocks:
            order.append(start)
        while queue:
            for successor in graph.successors(queue.popleft()):
                if successor not in seen and successor in graph.blocks:
                    seen.add(successor)
                    order.append(successor)
                    queue.append(successor)
        return order

    def _find_do_heads(self, graph: Graph) -> Dict[str, str]:
        heads: Dict[str, str] = {}
        for loop in graph.blocks_of_kind(BlockKind.DO_WHILE):
            edge = graph.edge_with_branch(loop, BranchTag.TRUE)
            head = edge.target if edge is not None else self._walk_back(graph, loop)
            if head is not None and head != loop.id:
                heads[head] = loop.id
        return heads

    @staticmethod
    def _walk_back(graph: Graph, loop: Block) -> Optional[str]:
        """Follow single predecessors back from the condition to the Merge opening its body."""
        current, head = loop.id, None
        seen = {loop.id}
        while True:
            predecessors = [p for p in graph.predecessors(current) if p not in seen]
            if len(predecessors) != 1:
                return head
            candidate = graph.blocks[predecessors[0]]
            if candidate.kind in (BlockKind.START, BlockKind.CONDITIONAL, BlockKind.LOOP, BlockKind.FOR_LOOP):
                return head
            head = candidate.id
            if candidate.kind == BlockKind.MERGE:
                return head
            seen.add(candidate.id)
            current = candidate.id

    # ── Statements ────────────────────────────────────────────────────────────

    def _type_of(self, expression: str) -> ValueType:
        return self.inferencer.infer_expression(expression, self._pass.types)

    def _emit_assignment(self, label: str):
        assignment = parse_assignment(label)
        if assignment is None:
            text = label.strip()
            self._writer.writeln(text if text.endswith(";") else text + ";")
            return
        name, expression = assignment
        if self._pass.types.get(name) == ValueType.STRING:
            self._writer.writeln(f"strcpy({name}, {expression});")
        else:
            self._writer.writeln(f"{name} = {expression};")

    def _emit_input(self, label: str):
        for name in parse_input_targets(label):
            value_type = self._pass.types.get(name, ValueType.INT)
            target = name if value_type == ValueType.STRING else f"&{name}"
            self._writer.writeln(f'scanf("{format_specifier(value_type)}", {target});')

    def _emit_output(self, label: str):
        expression = parse_output_expression(label)
        if STRING_LITERAL_PATTERN.match(expression):
            self._writer.writeln(f'printf("{expression[1:-1]}\\n");')
            return
        specifier = format_specifier(self._type_of(expression))
        self._writer.writeln(f'printf("{specifier}\\n", {expression});')

    def _emit_call(self, label: str):
        call = parse_call(label)
        if call is None:
            self._writer.comment(f"Invalid function call: {label.strip()}")
            return
        invocation = f"{call.name}({', '.join(call.arguments)})"
        if not call.target:
            self._writer.writeln(f"{invocation};")
        elif self._pass.types.get(call.target) == ValueType.STRING:
            self._writer.writeln(f"strcpy({call.target}, {invocation});")
        else:
            self._writer.writeln(f"{call.target} = {invocation};")

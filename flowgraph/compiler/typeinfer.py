"""
Best-effort type inference for C generation.

One cycle-guarded walk over a body graph collects every variable the body
writes (Assignment targets, Input targets, for-loop init/increment targets,
FunctionCall result targets). The first write to a name decides its type:

    "text"                      -> string
    literal with a decimal      -> double
    call to a typed function    -> the function's return type
    a known variable            -> that variable's type
    anything else               -> int

Parameters are already typed and are never redeclared.
"""

from __future__ import annotations

import re
from logging import getLogger
from typing import Dict, Iterable, Mapping, Optional, Set

from ..core.GraphPrimitives import Block, Graph, Parameter, Program
from ..core.Statements import (IDENTIFIER, is_identifier, parse_assignment, parse_call, parse_for_header,
                               parse_input_targets)
from ..core.Types import BlockKind, ValueType

logger = getLogger(__name__)

_STRING_LITERAL = re.compile(r'^"[^"]*"$')
_DECIMAL_LITERAL = re.compile(r"(?<![\w.])\d+\.\d+")
_IDENTIFIERS = re.compile(rf"\b{IDENTIFIER}")


class TypeInferencer:
    def __init__(self, program: Program):
        self.program = program

    def infer(self, graph: Graph, start: Optional[str],
              parameters: Iterable[Parameter] = ()) -> Dict[str, ValueType]:
        """Local variable types in first-write order, parameters excluded."""
        params = {p.name: p.type for p in parameters}
        types: Dict[str, ValueType] = {}
        visited: Set[str] = set()

        stack = [start] if start is not None else []
        while stack:
            block_id = stack.pop()
            if block_id in visited:
                continue
            visited.add(block_id)
            block = graph.get_block(block_id)
            if block is None:
                continue
            self._collect(block, types, params)
            # reversed so the first outgoing edge is walked first
            stack.extend(reversed(graph.successors(block)))

        logger.debug("Inferred types for %s: %s", graph.name, {k: v.value for k, v in types.items()})
        return types

    def _collect(self, block: Block, types: Dict[str, ValueType], params: Mapping[str, ValueType]):
        def declare(name: str, value_type: ValueType):
            if name not in types and name not in params:
                types[name] = value_type

        known = {**params, **types}

        if block.kind == BlockKind.ASSIGNMENT:
            self._declare_assignment(block.label, declare, known)

        elif block.kind == BlockKind.INPUT:
            for name in parse_input_targets(block.label):
                declare(name, ValueType.INT)

        elif block.kind == BlockKind.FOR_LOOP:
            header = parse_for_header(block.label)
            if header is not None:
                self._declare_assignment(header.init, declare, known)
                self._declare_assignment(header.increment, declare, known)

        elif block.kind == BlockKind.FUNCTION_CALL:
            call = parse_call(block.label)
            if call is not None and call.target:
                definition = self.program.get_function(call.name)
                if definition is not None and definition.returnsValue():
                    declare(call.target, definition.return_type)
                else:
                    declare(call.target, ValueType.INT)

    def _declare_assignment(self, text: str, declare, known: Mapping[str, ValueType]):
        assignment = parse_assignment(text)
        if assignment is not None:
            name, expression = assignment
            declare(name, self.infer_expression(expression, known))

    def infer_expression(self, expression: str, known: Mapping[str, ValueType]) -> ValueType:
        text = expression.strip()
        if _STRING_LITERAL.match(text):
            return ValueType.STRING

        call = parse_call(text)
        if call is not None and call.target is None:
            definition = self.program.get_function(call.name)
            if definition is not None and definition.returnsValue():
                return definition.return_type
            return ValueType.INT

        if is_identifier(text):
            return known.get(text, ValueType.INT)

        if _DECIMAL_LITERAL.search(text):
            return ValueType.DOUBLE
        for name in _IDENTIFIERS.findall(text):
            if known.get(name) == ValueType.DOUBLE:
                return ValueType.DOUBLE
            definition = self.program.get_function(name)
            if definition is not None and definition.return_type == ValueType.DOUBLE:
                return ValueType.DOUBLE
        return ValueType.INT

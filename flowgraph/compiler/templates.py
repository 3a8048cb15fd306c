"""
Flowchart C Generator: Code Templates
=====================================
Helpers shared by the emitter:

  CodeWriter
      Indented line accumulator with C block helpers.

  c_type / param_type / declaration
      Map a ValueType onto C declarations. Strings are fixed-size char
      buffers locally and `char*` across function boundaries.

  format_specifier
      printf / scanf conversion for a ValueType.

  translate_condition
      Rewrites a flowchart condition into C syntax:
          AND, &   -> &&
          OR,  |   -> ||
          NOT      -> !
          =        -> ==
          trailing ?  removed
      Quoted text is left alone.
"""

from __future__ import annotations

import re
from typing import List

from ..core.Statements import strip_condition
from ..core.Types import ValueType


# ── Code writer ───────────────────────────────────────────────────────────────

class CodeWriter:
    """Indented string accumulator for C source."""

    def __init__(self, indent: int = 0, width: int = 4):
        self._lines: List[str] = []
        self._indent = indent
        self._width = width

    def writeln(self, line: str = "") -> "CodeWriter":
        if line:
            self._lines.append(" " * (self._width * self._indent) + line)
        else:
            self._lines.append("")
        return self

    def blank(self) -> "CodeWriter":
        return self.writeln()

    def comment(self, text: str) -> "CodeWriter":
        return self.writeln(f"// {text}")

    def push(self) -> "CodeWriter":
        self._indent += 1
        return self

    def pop(self) -> "CodeWriter":
        self._indent = max(0, self._indent - 1)
        return self

    def open_block(self, header: str) -> "CodeWriter":
        self.writeln(f"{header} {{")
        return self.push()

    def close_block(self, suffix: str = "") -> "CodeWriter":
        self.pop()
        return self.writeln("}" + suffix)

    def dedent_to(self, level: int) -> "CodeWriter":
        self._indent = max(0, level)
        return self

    @property
    def indent(self) -> int:
        return self._indent

    def lines(self) -> List[str]:
        return self._lines

    def result(self) -> str:
        return "\n".join(self._lines) + "\n"


# ── Types ─────────────────────────────────────────────────────────────────────

PREAMBLE = [
    "#include <stdio.h>",
    "#include <stdlib.h>",
    "#include <string.h>",
]


def param_type(value_type: ValueType) -> str:
    if value_type == ValueType.STRING:
        return "char*"
    return value_type.value


def declaration(name: str, value_type: ValueType, buffer_size: int = 256) -> str:
    if value_type == ValueType.DOUBLE:
        return f"double {name} = 0.0;"
    if value_type == ValueType.STRING:
        return f'char {name}[{buffer_size}] = "";'
    return f"int {name} = 0;"


def zero_value(value_type: ValueType) -> str:
    if value_type == ValueType.DOUBLE:
        return "0.0"
    if value_type == ValueType.STRING:
        return '""'
    return "0"


def format_specifier(value_type: ValueType) -> str:
    if value_type == ValueType.DOUBLE:
        return "%lf"
    if value_type == ValueType.STRING:
        return "%s"
    return "%d"


# ── Conditions ────────────────────────────────────────────────────────────────

_QUOTED = re.compile(r'("[^"]*")')
_REWRITES = [
    (re.compile(r"\bAND\b", re.I), "&&"),
    (re.compile(r"\bOR\b", re.I), "||"),
    (re.compile(r"\bNOT\b\s*", re.I), "!"),
    (re.compile(r"(?<!&)&(?!&)"), "&&"),
    (re.compile(r"(?<!\|)\|(?!\|)"), "||"),
    (re.compile(r"(?<![=<>!])=(?!=)"), "=="),
    (re.compile(r"\btrue\b", re.I), "1"),
    (re.compile(r"\bfalse\b", re.I), "0"),
]


def translate_condition(text: str) -> str:
    pieces = _QUOTED.split(strip_condition(text))
    for index in range(0, len(pieces), 2):
        for pattern, replacement in _REWRITES:
            pieces[index] = pattern.sub(replacement, pieces[index])
    return "".join(pieces)

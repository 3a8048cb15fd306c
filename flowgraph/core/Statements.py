"""
Block label parsing
===================
Labels are the raw text a user typed into a block. The execution engine and
the code generator both need to pull them apart the same way:

    Assignment      "x = x + 1"
    Input           "n"   |  "I: a, b"  |  "input: n"
    Output          "result"  |  "O: \"Done\""
    ForLoop         "i = 0; i < n; i = i + 1"
    FunctionCall    "add(2, 3)"  |  "result = add(2, 3)"

Quoted text and parentheses are respected when splitting.
"""

import re
from typing import List, NamedTuple, Optional, Tuple

IDENTIFIER = r"[A-Za-z_]\w*"

IDENTIFIER_PATTERN = re.compile(rf"^{IDENTIFIER}$")
STRING_LITERAL_PATTERN = re.compile(r'^"([^"]*)"$')
# "x = expr" but not "x == expr"
ASSIGNMENT_PATTERN = re.compile(rf"^\s*({IDENTIFIER})\s*=(?!=)\s*(.+?)\s*;?\s*$", re.S)
CALL_STATEMENT_PATTERN = re.compile(rf"^\s*(?:({IDENTIFIER})\s*=(?!=)\s*)?({IDENTIFIER})\s*\((.*)\)\s*;?\s*$", re.S)
INPUT_PREFIX = re.compile(r"^\s*(?:I\s*:|input\s*:|input\s+)\s*", re.I)
OUTPUT_PREFIX = re.compile(r"^\s*(?:O\s*:|output\s*:|output\s+)\s*", re.I)


class CallStatement(NamedTuple):
    target: Optional[str]
    name: str
    arguments: List[str]


class ForHeader(NamedTuple):
    init: str
    condition: str
    increment: str


def matching_paren(text: str, start: int) -> int:
    """Index of the ')' closing the '(' at `start`, or -1. Quoted text is skipped."""
    depth = 0
    in_quote = False
    for index in range(start, len(text)):
        char = text[index]
        if char == '"':
            in_quote = not in_quote
        elif in_quote:
            continue
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
    return -1


def split_top_level(text: str, separator: str) -> List[str]:
    """Split on a single-character separator outside quotes and parentheses."""
    parts: List[str] = []
    depth = 0
    in_quote = False
    current = []
    for char in text:
        if char == '"':
            in_quote = not in_quote
        elif not in_quote:
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
            elif char == separator and depth == 0:
                parts.append("".join(current))
                current = []
                continue
        current.append(char)
    parts.append("".join(current))
    return parts


def split_arguments(text: str) -> List[str]:
    if not text.strip():
        return []
    return [part.strip() for part in split_top_level(text, ",")]


def is_identifier(text: str) -> bool:
    return IDENTIFIER_PATTERN.match(text) is not None


def parse_assignment(text: str) -> Optional[Tuple[str, str]]:
    match = ASSIGNMENT_PATTERN.match(text)
    if not match:
        return None
    return match.group(1), match.group(2).strip()


def parse_call(text: str) -> Optional[CallStatement]:
    match = CALL_STATEMENT_PATTERN.match(text)
    if not match:
        return None

    # "f(a) + g(b)" is not a single call: the first '(' must close at the end
    if matching_paren(text, match.start(3) - 1) != match.end(3):
        return None

    return CallStatement(match.group(1), match.group(2), split_arguments(match.group(3)))


def parse_input_targets(text: str) -> List[str]:
    body = INPUT_PREFIX.sub("", text, count=1).strip()
    if not body:
        return []
    return [re.sub(r"\s+", "_", name.strip()) for name in body.split(",") if name.strip()]


def parse_output_expression(text: str) -> str:
    return OUTPUT_PREFIX.sub("", text, count=1).strip()


def parse_for_header(text: str) -> Optional[ForHeader]:
    parts = [part.strip() for part in split_top_level(text, ";")]
    if len(parts) == 4 and parts[3] == "":
        parts = parts[:3]
    if len(parts) != 3:
        return None
    return ForHeader(parts[0], parts[1], parts[2])


def strip_condition(text: str) -> str:
    condition = text.strip()
    if condition.endswith("?"):
        condition = condition[:-1].rstrip()
    return condition

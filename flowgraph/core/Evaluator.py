"""
Expression / Condition Evaluator
================================
Evaluates assignment right-hand sides, output expressions and boolean
conditions against a Scope.

Expression resolution order (first match wins):

    1. integer literal          42, -7
    2. floating literal         3.14  (a decimal point is required)
    3. quoted string literal    "hello"
    4. function call            name(args...)   dispatched through IFunctionInvoker
    5. arithmetic folding       x * 2 + 1
    6. variable lookup          x
    otherwise                   UndefinedVariable

Arithmetic folding is a deliberate simplification, not a precedence parser:
numeric variables are substituted in place, whitespace is removed, then the
first `number (*|/) number` pair is replaced by its value until none is left,
then the same for `+` and `-`. Parentheses are not supported, and an
expression that does not reduce to a single number comes back as text.

Condition evaluation is a linear scan: AND (`AND`, `&&`, `&`) is split on
before OR (`OR`, `||`, `|`) no matter where each appears, so `a OR b AND c`
evaluates as `(a OR b) AND c`. Existing flowcharts rely on that order.
"""

import math
import re
from logging import getLogger
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from .Errors import EvaluationError, UndefinedVariable
from .Interface import IFunctionInvoker
from .Scope import Scope
from .Statements import IDENTIFIER, STRING_LITERAL_PATTERN, is_identifier, matching_paren, parse_call, split_arguments, strip_condition
from .Types import Value, format_number, format_value

logger = getLogger(__name__)

INT_PATTERN = re.compile(r"^-?\d+$")
FLOAT_PATTERN = re.compile(r"^-?\d+\.\d+$")
BOOL_PATTERN = re.compile(r"^(?:true|false)$", re.I)

_NUMBER = r"-?\d+(?:\.\d+)?"
MUL_DIV_PATTERN = re.compile(rf"({_NUMBER})([*/])({_NUMBER})")
ADD_SUB_PATTERN = re.compile(rf"({_NUMBER})([+\-])({_NUMBER})")
ARITHMETIC_OPERATOR = re.compile(r"[+\-*/]")

QUOTED_SEGMENT = re.compile(r'("[^"]*")')
IDENTIFIER_SEARCH = re.compile(rf"\b{IDENTIFIER}")
CALL_START = re.compile(rf"\b({IDENTIFIER})\s*\(")

COMPARISON_PATTERN = re.compile(r"^(.+?)\s*(<=|>=|==|!=|<|>|=)\s*(.+)$", re.S)
NOT_PATTERN = re.compile(r"^(?:NOT\b|!(?!=))\s*(.*)$", re.I | re.S)

AND_TOKENS = ("AND", ("&&", "&"))
OR_TOKENS = ("OR", ("||", "|"))


# --- Value helpers ------------------------------------------------------------

def is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_input_value(text) -> Value:
    """Host-provided input: Int, then Float, else the raw string."""
    if not isinstance(text, str):
        return text
    stripped = text.strip()
    if INT_PATTERN.match(stripped):
        return int(stripped)
    if FLOAT_PATTERN.match(stripped):
        return float(stripped)
    return text


def _parse_number(text: str) -> Optional[Union[int, float]]:
    if INT_PATTERN.match(text):
        return int(text)
    if FLOAT_PATTERN.match(text):
        return float(text)
    if text in ("inf", "-inf", "nan"):
        return float(text)
    return None


def _divide(left, right) -> float:
    # Division by zero is not an error: it yields inf / -inf / nan.
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left)
    return left / right


def _apply(left_text: str, operator: str, right_text: str) -> Union[int, float]:
    left = _parse_number(left_text)
    right = _parse_number(right_text)
    if operator == "*":
        return left * right
    if operator == "/":
        return _divide(left, right)
    if operator == "+":
        return left + right
    return left - right


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def _find_connective(text: str, tokens: Tuple[str, Sequence[str]]) -> Optional[Tuple[int, int]]:
    """Span of the first top-level connective (outside quotes and parentheses)."""
    word, symbols = tokens
    depth = 0
    in_quote = False
    for index, char in enumerate(text):
        if char == '"':
            in_quote = not in_quote
            continue
        if in_quote:
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif depth == 0:
            for symbol in symbols:
                if text.startswith(symbol, index):
                    return index, index + len(symbol)
            end = index + len(word)
            if (text[index:end].upper() == word
                    and (index == 0 or not _is_word_char(text[index - 1]))
                    and (end == len(text) or not _is_word_char(text[end]))):
                return index, end
    return None


def compare(left: Value, operator: str, right: Value) -> bool:
    if is_number(left) and is_number(right):
        if operator == "<":
            return left < right
        if operator == ">":
            return left > right
        if operator == "<=":
            return left <= right
        if operator == ">=":
            return left >= right
        if operator in ("==", "="):
            return left == right
        if operator == "!=":
            return left != right
        return False

    # Non-numeric operands only support equality.
    left_text, right_text = format_value(left), format_value(right)
    if operator in ("==", "="):
        return left_text == right_text
    if operator == "!=":
        return left_text != right_text
    return False


# --- Evaluator ----------------------------------------------------------------

class Evaluator:
    def __init__(self, scope: Scope, invoker: Optional[IFunctionInvoker] = None):
        self.scope = scope
        self.invoker = invoker

    def evaluate(self, text: str) -> Value:
        expression = text.strip()
        if not expression:
            raise EvaluationError("Empty expression")

        if INT_PATTERN.match(expression):
            return int(expression)
        if FLOAT_PATTERN.match(expression):
            return float(expression)
        match = STRING_LITERAL_PATTERN.match(expression)
        if match:
            return match.group(1)

        call = parse_call(expression)
        if call is not None and call.target is None:
            if not self._is_function(call.name):
                raise EvaluationError(f"Unknown function '{call.name}'")
            return self._call(call.name, call.arguments)

        if ARITHMETIC_OPERATOR.search(expression):
            return self.fold_arithmetic(expression)

        if self.scope.has(expression):
            return self.scope.get(expression)
        if BOOL_PATTERN.match(expression):
            return expression.lower() == "true"

        if is_identifier(expression):
            raise UndefinedVariable(expression)
        for identifier in IDENTIFIER_SEARCH.findall(expression):
            if not self.scope.has(identifier):
                raise UndefinedVariable(identifier)
        raise EvaluationError(f"Cannot evaluate expression '{expression}'")

    def fold_arithmetic(self, expression: str) -> Value:
        text = self._substitute_calls(expression)
        text, resolved = self._substitute_variables(text)
        if not resolved:
            logger.debug("Expression %r mixes non-numeric values; left unevaluated", expression)
            return expression

        text = re.sub(r"\s+", "", text)
        text = self._reduce(text, MUL_DIV_PATTERN)
        text = self._reduce(text, ADD_SUB_PATTERN)

        number = _parse_number(text)
        if number is None:
            logger.debug("Expression %r did not fold to a number (%r); left unevaluated", expression, text)
            return expression
        return number

    def evaluate_condition(self, text: str) -> bool:
        condition = strip_condition(text)
        if not condition:
            raise EvaluationError("Empty condition")

        span = _find_connective(condition, AND_TOKENS)
        if span:
            left, right = condition[:span[0]], condition[span[1]:]
            return self.evaluate_condition(left) and self.evaluate_condition(right)

        span = _find_connective(condition, OR_TOKENS)
        if span:
            left, right = condition[:span[0]], condition[span[1]:]
            return self.evaluate_condition(left) or self.evaluate_condition(right)

        match = NOT_PATTERN.match(condition)
        if match:
            return not self.evaluate_condition(match.group(1))

        if condition.startswith("(") and matching_paren(condition, 0) == len(condition) - 1:
            return self.evaluate_condition(condition[1:-1])

        match = COMPARISON_PATTERN.match(condition)
        if match:
            left = self.evaluate(match.group(1))
            right = self.evaluate(match.group(3))
            return compare(left, match.group(2), right)

        value = self.evaluate(condition)
        if isinstance(value, bool):
            return value
        if is_number(value):
            return value != 0
        logger.warning("Condition %r evaluated to non-boolean %r; treating it as false", text, value)
        return False

    # --- internals ---

    def _is_function(self, name: str) -> bool:
        return self.invoker is not None and self.invoker.has_function(name)

    def _call(self, name: str, raw_arguments: List[str]) -> Value:
        arguments = [self.evaluate(argument) for argument in raw_arguments]
        return self.invoker.call_function(name, arguments)

    def _substitute_calls(self, text: str) -> str:
        if self.invoker is None:
            return text

        pieces: List[str] = []
        position = 0
        while True:
            match = CALL_START.search(text, position)
            if not match:
                break
            open_index = match.end() - 1
            close_index = matching_paren(text, open_index)
            if close_index < 0 or not self._is_function(match.group(1)):
                pieces.append(text[position:match.end()])
                position = match.end()
                continue

            value = self._call(match.group(1), split_arguments(text[open_index + 1:close_index]))
            pieces.append(text[position:match.start()])
            pieces.append(format_number(value) if is_number(value) else text[match.start():close_index + 1])
            position = close_index + 1

        pieces.append(text[position:])
        return "".join(pieces)

    def _substitute_variables(self, text: str) -> Tuple[str, bool]:
        """Replace numeric variables by their literal value. Returns (text, fully_numeric)."""
        resolved = True

        def replace(match) -> str:
            nonlocal resolved
            name = match.group(0)
            if self.scope.has(name):
                value = self.scope.get(name)
                if is_number(value):
                    return format_number(value)
            elif not (self._is_function(name) or BOOL_PATTERN.match(name)):
                raise UndefinedVariable(name)
            resolved = False
            return name

        pieces = QUOTED_SEGMENT.split(text)
        for index in range(0, len(pieces), 2):
            pieces[index] = IDENTIFIER_SEARCH.sub(replace, pieces[index])
        if len(pieces) > 1:
            resolved = False
        return "".join(pieces), resolved

    @staticmethod
    def _reduce(text: str, pattern) -> str:
        while True:
            match = pattern.search(text)
            if not match:
                return text
            result = _apply(match.group(1), match.group(2), match.group(3))
            text = text[:match.start()] + format_number(result) + text[match.end():]


# --- Module level entry points -------------------------------------------------

def _as_scope(scope: Union[Scope, Mapping[str, Value], None]) -> Scope:
    if isinstance(scope, Scope):
        return scope
    return Scope.from_dict(scope or {})


def evaluate(text: str, scope: Union[Scope, Mapping[str, Value], None] = None,
             invoker: Optional[IFunctionInvoker] = None) -> Value:
    return Evaluator(_as_scope(scope), invoker).evaluate(text)


def evaluate_condition(text: str, scope: Union[Scope, Mapping[str, Value], None] = None,
                       invoker: Optional[IFunctionInvoker] = None) -> bool:
    return Evaluator(_as_scope(scope), invoker).evaluate_condition(text)

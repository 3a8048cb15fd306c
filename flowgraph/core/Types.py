import math
from enum import Enum, auto
from typing import Any, Union

# Runtime values produced by the evaluator.
Value = Union[int, float, bool, str]


def format_number(value: Union[int, float]) -> str:
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = repr(value)
    if "e" in text or "E" in text:
        text = format(value, ".17f").rstrip("0")
        if text.endswith("."):
            text += "0"
    return text


def format_value(value: Value) -> str:
    """Render a value the way Output blocks print it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format_number(value)
    return str(value)


class BlockKind(Enum):
    START = "start"
    END = "end"
    ASSIGNMENT = "assignment"
    INPUT = "input"
    OUTPUT = "output"
    CONDITIONAL = "conditional"
    LOOP = "loop"
    FOR_LOOP = "for_loop"
    DO_WHILE = "do_while"
    MERGE = "merge"
    FUNCTION_CALL = "function_call"

    def isBranching(self) -> bool:
        return self in (BlockKind.CONDITIONAL, BlockKind.LOOP, BlockKind.FOR_LOOP, BlockKind.DO_WHILE)

    def isLoop(self) -> bool:
        return self in (BlockKind.LOOP, BlockKind.FOR_LOOP, BlockKind.DO_WHILE)


class BranchTag(Enum):
    TRUE = auto()
    FALSE = auto()

    @staticmethod
    def of(flag: bool) -> 'BranchTag':
        return BranchTag.TRUE if flag else BranchTag.FALSE


class ValueType(Enum):
    INT = "int"
    DOUBLE = "double"
    STRING = "string"
    VOID = "void"

    @staticmethod
    def parse(name: str) -> 'ValueType':
        try:
            return ValueType(name.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown value type '{name}'") from None

    def coerce(self, value: Any) -> Any:
        """Convert a runtime value to this declared type (used for call arguments)."""
        if value is None or self == ValueType.VOID:
            return value

        if self == ValueType.INT:
            if isinstance(value, bool):
                return int(value)
            if isinstance(value, float):
                return int(value)
            if isinstance(value, str):
                try:
                    return int(value.strip())
                except ValueError:
                    raise ValueError(f"Cannot convert '{value}' to int") from None
            return value
        elif self == ValueType.DOUBLE:
            if isinstance(value, str):
                try:
                    return float(value.strip())
                except ValueError:
                    raise ValueError(f"Cannot convert '{value}' to double") from None
            return float(value)
        elif self == ValueType.STRING:
            if isinstance(value, str):
                return value
            return format_value(value)

        return value


class EngineState(Enum):
    IDLE = auto()
    RUNNING = auto()    # driver loops internally until End, an input request, or stop()
    PAUSED = auto()     # waiting for the host to resolve an input request
    STEPPING = auto()   # driver calls step() once per user action

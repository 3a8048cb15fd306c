from typing import Optional


class FlowchartError(Exception):
    """Base class for every error raised by the flowchart core."""


class EvaluationError(FlowchartError):
    pass


class UndefinedVariable(EvaluationError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Undefined variable '{name}'")


class ExecutionError(FlowchartError):
    pass


class ArgumentCountError(ExecutionError):
    def __init__(self, function: str, expected: int, actual: int):
        self.function = function
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Function '{function}' expects {expected} argument(s) but was called with {actual}"
        )


class ExecutionCancelled(FlowchartError):
    """Raised inside a nested function body when the run was stopped."""

    def __init__(self, block_id: Optional[str] = None):
        self.block_id = block_id
        super().__init__("Execution cancelled")

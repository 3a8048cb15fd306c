from .core.Errors import (ArgumentCountError, EvaluationError, ExecutionCancelled, ExecutionError,
                          FlowchartError, UndefinedVariable)
from .core.Evaluator import evaluate, evaluate_condition
from .core.Executor import ExecutionEngine, ExecutionListener
from .core.GraphPrimitives import Block, Edge, FunctionDefinition, Graph, Parameter, Program
from .core.Runner import AsyncRunner
from .core.Scope import Scope
from .core.Types import BlockKind, BranchTag, EngineState, ValueType, format_value
from .core.Config import FlowgraphSettings, configure_logging, get_settings
from .compiler import CGenerator, generate_c
from .trace import TraceEmitter

__all__ = [
    "ArgumentCountError",
    "AsyncRunner",
    "Block",
    "BlockKind",
    "BranchTag",
    "CGenerator",
    "Edge",
    "EngineState",
    "EvaluationError",
    "ExecutionCancelled",
    "ExecutionEngine",
    "ExecutionError",
    "ExecutionListener",
    "FlowchartError",
    "FlowgraphSettings",
    "FunctionDefinition",
    "Graph",
    "Parameter",
    "Program",
    "Scope",
    "TraceEmitter",
    "UndefinedVariable",
    "ValueType",
    "configure_logging",
    "evaluate",
    "evaluate_condition",
    "format_value",
    "generate_c",
    "get_settings",
]

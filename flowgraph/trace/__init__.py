from .trace_emitter import TraceEmitter
from .trace_types import ExecDoneEvent, ExecErrorEvent, InputRequiredEvent, StepEvent, TraceEvent

__all__ = [
    "TraceEmitter",
    "TraceEvent",
    "StepEvent",
    "InputRequiredEvent",
    "ExecDoneEvent",
    "ExecErrorEvent",
]

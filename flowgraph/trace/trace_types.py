"""
Trace event definitions emitted by TraceEmitter.
All events are plain dicts so a host can forward them over any transport as JSON.
"""
from typing import Any, Dict, Literal, TypedDict, Union


class StepEvent(TypedDict):
    type: Literal["STEP"]
    blockId: str
    kind: str
    label: str
    variables: Dict[str, Any]
    output: str
    ts: int


class InputRequiredEvent(TypedDict):
    type: Literal["INPUT_REQUIRED"]
    variable: str
    ts: int


class ExecDoneEvent(TypedDict):
    type: Literal["EXEC_DONE"]
    output: str
    ts: int


class ExecErrorEvent(TypedDict):
    type: Literal["EXEC_ERROR"]
    error: str
    ts: int


TraceEvent = Union[
    StepEvent,
    InputRequiredEvent,
    ExecDoneEvent,
    ExecErrorEvent,
]

"""
TraceEmitter turns ExecutionEngine callbacks into trace events.

Every callback becomes a plain-dict event (see trace_types) stamped with a
millisecond timestamp and fanned out to the registered callbacks (a socket,
a logger, a test collecting events ...). A callback that raises is logged and
skipped; it never interrupts the run.

Input requests are announced as INPUT_REQUIRED events. When an
`input_provider` is given the emitter also answers them synchronously,
which is what Input blocks inside function bodies require.
"""
from __future__ import annotations

import time
from logging import getLogger
from typing import Any, Callable, Dict, List, Optional

from ..core.Executor import ExecutionListener
from ..core.GraphPrimitives import Block
from ..core.Types import Value, format_value

logger = getLogger(__name__)


class TraceEmitter(ExecutionListener):
    def __init__(self, input_provider: Optional[Callable[[str], Any]] = None) -> None:
        self.input_provider = input_provider
        self._listeners: List[Callable[[Dict[str, Any]], None]] = []
        self._last_output = ""

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def on_trace(self, callback: Callable[[Dict[str, Any]], None]) -> None:
        """Register a callback that receives every emitted trace event."""
        self._listeners.append(callback)

    # ------------------------------------------------------------------
    # Emit
    # ------------------------------------------------------------------

    def fire(self, payload: Dict[str, Any]) -> None:
        """Stamp the payload with a millisecond timestamp and broadcast it."""
        if "ts" not in payload:
            payload["ts"] = _now_ms()
        for cb in self._listeners:
            try:
                cb(payload)
            except Exception:
                logger.exception("Trace listener failed on %s event", payload.get("type"))

    # ------------------------------------------------------------------
    # ExecutionListener
    # ------------------------------------------------------------------

    def on_step(self, block: Block, variables: Dict[str, Value], output: str):
        self._last_output = output
        self.fire({
            "type": "STEP",
            "blockId": block.id,
            "kind": block.kind.value,
            "label": block.label,
            "variables": {name: _jsonable(value) for name, value in variables.items()},
            "output": output,
        })

    def on_complete(self):
        self.fire({"type": "EXEC_DONE", "output": self._last_output})
        self._last_output = ""

    def on_error(self, message: str):
        self.fire({"type": "EXEC_ERROR", "error": message})

    def on_input_required(self, variable: str, resolve: Callable[[str], None]):
        self.fire({"type": "INPUT_REQUIRED", "variable": variable})
        if self.input_provider is not None:
            resolve(self.input_provider(variable))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _jsonable(value: Value) -> Any:
    # inf / nan are not valid JSON numbers
    if isinstance(value, float) and (value != value or value in (float("inf"), float("-inf"))):
        return format_value(value)
    return value


def _now_ms() -> int:
    return int(time.time() * 1000)

"""
AsyncRunner drives an ExecutionEngine from an asyncio event loop.

The engine itself never schedules anything: the runner steps it one block at
a time, yields to the loop between blocks, and answers Input requests by
awaiting an input provider. pause()/resume() gate the stepping with an
asyncio.Event so a UI can hold execution between blocks.

    runner = AsyncRunner(engine, input_provider=ask_user)
    output = await runner.run()
"""
import asyncio
import inspect
from logging import getLogger
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from .Errors import ExecutionError
from .Executor import ExecutionEngine, ExecutionListener
from .GraphPrimitives import Block
from .Interface import IExecutionListener
from .Types import EngineState, Value

logger = getLogger(__name__)

InputProvider = Callable[[str], Union[Any, Awaitable[Any]]]


class _ForwardingListener(ExecutionListener):
    """Captures input requests for the runner and forwards everything else to the host listener."""

    def __init__(self, runner: 'AsyncRunner', host: IExecutionListener):
        self.runner = runner
        self.host = host

    def on_step(self, block: Block, variables: Dict[str, Value], output: str):
        self.host.on_step(block, variables, output)

    def on_complete(self):
        self.host.on_complete()

    def on_error(self, message: str):
        self.runner.error = message
        self.host.on_error(message)

    def on_input_required(self, variable: str, resolve: Callable[[str], None]):
        self.runner._requests.append((variable, resolve))


class AsyncRunner:
    def __init__(self, engine: ExecutionEngine, input_provider: Optional[InputProvider] = None,
                 step_delay: float = 0.0):
        self.engine = engine
        self.input_provider = input_provider
        self.step_delay = step_delay
        self.error: Optional[str] = None

        self._requests: List[Tuple[str, Callable[[str], None]]] = []
        self._gate: Optional[asyncio.Event] = None
        self._paused = False

    async def run(self) -> str:
        """Step the engine until it is idle again and return its output text."""
        self.error = None
        self._requests = []
        self._gate = asyncio.Event()
        if not self._paused:
            self._gate.set()

        host = self.engine.listener
        self.engine.listener = _ForwardingListener(self, host)
        try:
            self.engine.step()
            while self.engine.state != EngineState.IDLE:
                await self._gate.wait()
                if self._requests:
                    variable, resolve = self._requests.pop(0)
                    resolve(await self._provide(variable))
                elif self.engine.is_paused:
                    # a resolve() was handed out somewhere else; nothing this runner can do
                    self.engine.stop()
                    raise ExecutionError("Engine is waiting for input that was not requested through the runner")
                else:
                    self.engine.step()
                await asyncio.sleep(self.step_delay)
        finally:
            self.engine.listener = host

        return self.engine.output

    async def _provide(self, variable: str):
        if self.input_provider is None:
            self.engine.stop()
            raise ExecutionError(f"Input '{variable}' was requested but no input provider is configured")

        value = self.input_provider(variable)
        if inspect.isawaitable(value):
            value = await value
        logger.debug("Input '%s' resolved to %r", variable, value)
        return value

    def pause(self):
        self._paused = True
        if self._gate is not None:
            self._gate.clear()

    def resume(self):
        self._paused = False
        if self._gate is not None:
            self._gate.set()

    def stop(self):
        self.engine.stop()
        self.resume()

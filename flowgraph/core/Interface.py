from __future__ import annotations
from typing import Callable, Dict, List, TYPE_CHECKING

from abc import ABC, abstractmethod

from .Types import Value

if TYPE_CHECKING:
    from .GraphPrimitives import Block


# Implemented by the execution engine. The evaluator dispatches `name(args)`
# patterns through it; code generation never evaluates, so it needs none.
class IFunctionInvoker(ABC):
    @abstractmethod
    def has_function(self, name: str) -> bool:
        pass

    @abstractmethod
    def call_function(self, name: str, args: List[Value]) -> Value:
        pass


# Callback surface consumed by the host UI.
class IExecutionListener(ABC):
    @abstractmethod
    def on_step(self, block: 'Block', variables: Dict[str, Value], output: str):
        pass

    @abstractmethod
    def on_complete(self):
        pass

    @abstractmethod
    def on_error(self, message: str):
        pass

    @abstractmethod
    def on_input_required(self, variable: str, resolve: Callable[[str], None]):
        pass

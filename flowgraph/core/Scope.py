from typing import Dict, List, Mapping, Optional
from dataclasses import dataclass, field

from .Errors import ExecutionError, UndefinedVariable
from .Types import Value


@dataclass
class LoopContext:
    block_id: str
    body_entry: Optional[str] = None


@dataclass
class Frame:
    name: str
    variables: Dict[str, Value] = field(default_factory=dict)
    # Active while/for loops of this frame, innermost last.
    loop_stack: List[LoopContext] = field(default_factory=list)

    def find_loop(self, block_id: str) -> Optional[LoopContext]:
        for context in self.loop_stack:
            if context.block_id == block_id:
                return context
        return None


class Scope:
    """
    Call stack of frames over a single global frame.

    Lookups check the top frame first and fall back to the global frame.
    Assignments update the top frame when it already holds the name, then the
    global frame when it holds the name, and otherwise create it in the top frame.
    """

    GLOBAL = "<global>"

    def __init__(self):
        self.global_frame = Frame(Scope.GLOBAL)
        self._frames: List[Frame] = [self.global_frame]

    @classmethod
    def from_dict(cls, variables: Mapping[str, Value]) -> 'Scope':
        scope = cls()
        scope.global_frame.variables.update(variables)
        return scope

    @property
    def top(self) -> Frame:
        return self._frames[-1]

    @property
    def depth(self) -> int:
        return len(self._frames)

    def push(self, frame: Frame):
        self._frames.append(frame)

    def pop(self) -> Frame:
        if len(self._frames) == 1:
            raise ExecutionError("Cannot pop the global frame")
        return self._frames.pop()

    def has(self, name: str) -> bool:
        return name in self.top.variables or name in self.global_frame.variables

    def get(self, name: str) -> Value:
        if name in self.top.variables:
            return self.top.variables[name]
        if name in self.global_frame.variables:
            return self.global_frame.variables[name]
        raise UndefinedVariable(name)

    def set(self, name: str, value: Value):
        if name in self.top.variables:
            self.top.variables[name] = value
        elif name in self.global_frame.variables:
            self.global_frame.variables[name] = value
        else:
            self.top.variables[name] = value

    def snapshot(self) -> Dict[str, Value]:
        """Every visible variable, top frame shadowing globals."""
        visible = dict(self.global_frame.variables)
        if self.top is not self.global_frame:
            visible.update(self.top.variables)
        return visible

    def reset(self):
        self.global_frame = Frame(Scope.GLOBAL)
        self._frames = [self.global_frame]

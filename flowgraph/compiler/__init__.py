"""
Flowchart C Generator
=====================
Translates a flowchart Program into structured C source.

Pipeline:
    Program   →  [typeinfer]  →  hoisted declarations per body
    Program   →  [emitter]    →  C source str

Public API
----------
    from flowgraph.compiler import generate_c

    source = generate_c(program)
    with open("flowchart.c", "w") as f:
        f.write(source)
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

from .emitter import CGenerator

if TYPE_CHECKING:
    from flowgraph.core.Config import FlowgraphSettings
    from flowgraph.core.GraphPrimitives import Program


def generate_c(program: "Program", settings: Optional["FlowgraphSettings"] = None) -> str:
    """
    Generate C source for a Program.

    The output has an #include preamble, one definition per function in
    table order, then main(). Generation never raises for malformed graphs:
    a missing Start or End block, or a failure while emitting, shows up as a
    comment in the returned text.

    Args:
        program:   The Program to translate (main graph plus function table).
        settings:  Buffer size, indentation and conditional join style.
                   Defaults to get_settings().

    Returns:
        Complete C source as a single string.
    """
    return CGenerator(program, settings).generate()


__all__ = ["generate_c", "CGenerator"]

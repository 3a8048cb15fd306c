from typing import Dict, List, NamedTuple, Optional, Union
from collections import defaultdict
from dataclasses import dataclass, field
from logging import getLogger

import uuid

from .Types import BlockKind, BranchTag, ValueType

logger = getLogger(__name__)


# Edges are plain immutable records stored in the graph arena.
# Branch tags are structural; the label is only what the user sees ("Yes", "Sì", ...).
class Edge(NamedTuple):
    source: str
    target: str
    label: Optional[str] = None
    branch: Optional[BranchTag] = None

    def __repr__(self):
        tag = f" [{self.branch.name}]" if self.branch else ""
        return f"Edge({self.source} -> {self.target}{tag})"


@dataclass
class Block:
    id: str
    kind: BlockKind
    label: str = ""

    def isBranching(self) -> bool:
        return self.kind.isBranching()

    def isLoop(self) -> bool:
        return self.kind.isLoop()

    def __repr__(self):
        return f"Block({self.id}, {self.kind.name}, {self.label!r})"


BlockRef = Union[Block, str]


def _block_id(block: BlockRef) -> str:
    return block.id if isinstance(block, Block) else block


class Graph:
    """
    Arena of blocks and edges addressed by string ids.

    The editor builds and mutates the graph; the execution engine and the code
    generator only read it, and treat it as a snapshot for one pass.
    """

    def __init__(self, name: str = "main"):
        self.name = name
        self.blocks: Dict[str, Block] = {}
        self.edges: List[Edge] = []

        self._incoming: Dict[str, List[Edge]] = defaultdict(list)
        self._outgoing: Dict[str, List[Edge]] = defaultdict(list)

    # --- Construction -------------------------------------------------------

    def add_block(self, kind: BlockKind, label: str = "", block_id: Optional[str] = None) -> Block:
        if block_id is None:
            block_id = uuid.uuid4().hex
        if block_id in self.blocks:
            raise ValueError(f"Block with id '{block_id}' already exists in graph '{self.name}'")

        block = Block(block_id, kind, label)
        self.blocks[block_id] = block
        logger.debug("Graph %s: added %r", self.name, block)
        return block

    def add_edge(self, source: BlockRef, target: BlockRef,
                 label: Optional[str] = None, branch: Optional[BranchTag] = None) -> Edge:
        source_id, target_id = _block_id(source), _block_id(target)
        if source_id not in self.blocks:
            raise ValueError(f"Unknown source block '{source_id}'")
        if target_id not in self.blocks:
            raise ValueError(f"Unknown target block '{target_id}'")

        edge = Edge(source_id, target_id, label, branch)
        self.edges.append(edge)
        self._outgoing[source_id].append(edge)
        self._incoming[target_id].append(edge)
        return edge

    def delete_block(self, block: BlockRef):
        block_id = _block_id(block)
        if block_id not in self.blocks:
            raise ValueError(f"Block with id '{block_id}' does not exist in graph '{self.name}'")

        # Arena cleanup: drop every edge touching the block before the block itself
        self.edges = [e for e in self.edges if e.source != block_id and e.target != block_id]
        self._outgoing.pop(block_id, None)
        self._incoming.pop(block_id, None)
        for edges in self._outgoing.values():
            edges[:] = [e for e in edges if e.target != block_id]
        for edges in self._incoming.values():
            edges[:] = [e for e in edges if e.source != block_id]

        del self.blocks[block_id]

    # --- Queries ------------------------------------------------------------

    def get_block(self, block_id: Optional[str]) -> Optional[Block]:
        if block_id is None:
            return None
        return self.blocks.get(block_id)

    def get_outgoing_edges(self, block: BlockRef) -> List[Edge]:
        return list(self._outgoing.get(_block_id(block), []))

    def get_incoming_edges(self, block: BlockRef) -> List[Edge]:
        return list(self._incoming.get(_block_id(block), []))

    def edge_with_branch(self, block: BlockRef, branch: BranchTag) -> Optional[Edge]:
        for edge in self._outgoing.get(_block_id(block), []):
            if edge.branch == branch:
                return edge
        return None

    def edge_with_label(self, block: BlockRef, text: str) -> Optional[Edge]:
        wanted = text.strip()
        for edge in self._outgoing.get(_block_id(block), []):
            if edge.label is not None and edge.label.strip() == wanted:
                return edge
        return None

    def successors(self, block: BlockRef) -> List[str]:
        return [e.target for e in self._outgoing.get(_block_id(block), [])]

    def predecessors(self, block: BlockRef) -> List[str]:
        return [e.source for e in self._incoming.get(_block_id(block), [])]

    def blocks_of_kind(self, kind: BlockKind) -> List[Block]:
        return [b for b in self.blocks.values() if b.kind == kind]

    @property
    def start_block(self) -> Optional[Block]:
        starts = self.blocks_of_kind(BlockKind.START)
        return starts[0] if starts else None

    @property
    def end_block(self) -> Optional[Block]:
        ends = self.blocks_of_kind(BlockKind.END)
        return ends[0] if ends else None

    def validate(self) -> List[str]:
        """Return a list of structural problems. An empty list means well-formed."""
        problems: List[str] = []

        for kind in (BlockKind.START, BlockKind.END):
            count = len(self.blocks_of_kind(kind))
            if count == 0:
                problems.append(f"Graph '{self.name}' has no {kind.name} block")
            elif count > 1:
                problems.append(f"Graph '{self.name}' has {count} {kind.name} blocks")

        for block in self.blocks.values():
            outgoing = self._outgoing.get(block.id, [])
            if block.kind == BlockKind.END:
                if outgoing:
                    problems.append(f"END block '{block.id}' has outgoing edges")
                continue

            if not outgoing:
                problems.append(f"Block '{block.id}' ({block.kind.name}) has no outgoing edge")
                continue

            if block.isBranching():
                true_count = sum(1 for e in outgoing if e.branch == BranchTag.TRUE)
                false_count = sum(1 for e in outgoing if e.branch == BranchTag.FALSE)
                if true_count != 1 or false_count != 1:
                    problems.append(
                        f"{block.kind.name} block '{block.id}' needs exactly one True and one False edge "
                        f"(found {true_count} True, {false_count} False)"
                    )
            elif len(outgoing) > 1:
                problems.append(f"Block '{block.id}' ({block.kind.name}) has {len(outgoing)} outgoing edges")

            if block.kind == BlockKind.MERGE:
                if block.label.strip():
                    problems.append(f"MERGE block '{block.id}' carries a label")
                if not self._incoming.get(block.id):
                    problems.append(f"MERGE block '{block.id}' has no incoming edge")

        return problems

    def __repr__(self):
        return f"Graph({self.name}, blocks={len(self.blocks)}, edges={len(self.edges)})"


@dataclass
class Parameter:
    name: str
    type: ValueType = ValueType.INT


@dataclass
class FunctionDefinition:
    name: str
    graph: Graph
    parameters: List[Parameter] = field(default_factory=list)
    return_type: ValueType = ValueType.VOID
    return_variable: Optional[str] = None
    start_block: Optional[str] = None
    end_block: Optional[str] = None

    def __post_init__(self):
        if self.start_block is None and self.graph.start_block is not None:
            self.start_block = self.graph.start_block.id
        if self.end_block is None and self.graph.end_block is not None:
            self.end_block = self.graph.end_block.id

    def returnsValue(self) -> bool:
        return self.return_type != ValueType.VOID

    def isComplete(self) -> bool:
        return self.start_block in self.graph.blocks and self.end_block in self.graph.blocks


class Program:
    """The main graph plus an insertion-ordered function table."""

    def __init__(self, main: Optional[Graph] = None,
                 functions: Optional[Dict[str, FunctionDefinition]] = None):
        self.main = main if main is not None else Graph("main")
        self.functions: Dict[str, FunctionDefinition] = {}
        for definition in (functions or {}).values():
            self.add_function(definition)

    def add_function(self, definition: FunctionDefinition) -> FunctionDefinition:
        if definition.name in self.functions:
            raise ValueError(f"Function '{definition.name}' is already defined")
        self.functions[definition.name] = definition
        return definition

    def get_function(self, name: str) -> Optional[FunctionDefinition]:
        return self.functions.get(name)

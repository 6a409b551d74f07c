"""Control flow graph construction for Python functions.

Block shape:
- block 0 is an empty entry block, the last block an empty exit block
- a block that ends in a test carries the test as its branch condition with
  kind WHEN_FALSE: the conditional successor is taken when the test fails,
  the fallthrough successor when it holds
- `return` falls through to the exit block, `raise` leaves the graph
- `except` handlers are separate chains that rejoin after the `try`
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from tree_sitter import Node

from ...core.models import (
    EXIT,
    BasicBlock,
    BlockRef,
    BranchCondition,
    ConditionKind,
    ControlFlowGraph,
    Operation,
    Successor,
)
from . import node_text, span_text

FALLTHROUGH = "fallthrough"
CONDITIONAL = "conditional"

# (block index, slot) of an edge whose destination is not known yet
_Edge = Tuple[int, str]


@dataclass
class _Block:
    ops: List[str] = field(default_factory=list)
    branch: Optional[BranchCondition] = None
    fallthrough: Optional[Successor] = None
    conditional: Optional[Successor] = None

    def freeze(self) -> BasicBlock:
        return BasicBlock(
            operations=tuple(Operation(text=t) for t in self.ops),
            branch=self.branch,
            fallthrough=self.fallthrough,
            conditional=self.conditional,
        )


@dataclass
class _Loop:
    header: int
    breaks: List[_Edge] = field(default_factory=list)


def _child_block(node: Node) -> Optional[Node]:
    for child in node.named_children:
        if child.type == "block":
            return child
    return None


class CfgBuilder:
    """Builds one ControlFlowGraph from a function definition node.

    Invariant between statements: either `current` is the open block and
    `pending` is empty, or `current` is None and `pending` holds the edges
    that the next block must receive.
    """

    def __init__(self, src: bytes):
        self.src = src
        self.blocks: List[_Block] = []
        self.current: Optional[int] = None
        self.pending: List[_Edge] = []
        self.returns: List[_Edge] = []
        self.loops: List[_Loop] = []
        self._handlers: Dict[str, Callable[[Node], None]] = {
            "if_statement": self._if,
            "while_statement": self._while,
            "for_statement": self._for,
            "try_statement": self._try,
            "with_statement": self._with,
            "match_statement": self._match,
            "return_statement": self._return,
            "raise_statement": self._raise,
            "break_statement": self._break,
            "continue_statement": self._continue,
            "function_definition": self._definition,
            "class_definition": self._definition,
            "decorated_definition": self._definition,
        }

    # ------------------------------------------------------------------
    # Block bookkeeping
    # ------------------------------------------------------------------

    def _new_block(self) -> int:
        self.blocks.append(_Block())
        return len(self.blocks) - 1

    def _patch(self, edges: List[_Edge], target: Successor) -> None:
        for idx, slot in edges:
            setattr(self.blocks[idx], slot, target)

    def _ensure_current(self) -> int:
        if self.current is None:
            idx = self._new_block()
            self._patch(self.pending, BlockRef(idx))
            self.pending = []
            self.current = idx
        return self.current

    def _close(self) -> List[_Edge]:
        """Detach every live edge (open block + pending) and return them."""
        edges = list(self.pending)
        if self.current is not None:
            edges.append((self.current, FALLTHROUGH))
        self.current = None
        self.pending = []
        return edges

    def _fresh_block(self) -> int:
        """Start a new block that every live edge flows into (loop headers)."""
        edges = self._close()
        idx = self._new_block()
        self._patch(edges, BlockRef(idx))
        self.current = idx
        return idx

    def _branch_on(self, idx: int, text: str) -> None:
        self.blocks[idx].branch = BranchCondition(text=text, kind=ConditionKind.WHEN_FALSE)
        self.current = None
        self.pending = [(idx, FALLTHROUGH)]

    def _text(self, node: Optional[Node]) -> str:
        return node_text(self.src, node).strip() if node is not None else ""

    def _header(self, node: Node, body: Optional[Node]) -> str:
        """Source text from `node` up to its body, without the trailing colon."""
        if body is None:
            return self._text(node)
        return span_text(self.src, node.start_byte, body.start_byte).strip().rstrip(":").strip()

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def build(self, func: Node) -> ControlFlowGraph:
        entry = self._new_block()
        self.pending = [(entry, FALLTHROUGH)]
        self._statements(func.child_by_field_name("body"))

        live = self._close() + self.returns
        exit_idx = self._new_block()
        self._patch(live, BlockRef(exit_idx))
        return ControlFlowGraph(blocks=tuple(b.freeze() for b in self.blocks))

    def _statements(self, block: Optional[Node]) -> None:
        if block is None:
            return
        for stmt in block.named_children:
            if stmt.type == "comment":
                continue
            handler = self._handlers.get(stmt.type, self._simple)
            handler(stmt)

    def _simple(self, node: Node) -> None:
        idx = self._ensure_current()
        self.blocks[idx].ops.append(self._text(node))

    def _return(self, node: Node) -> None:
        idx = self._ensure_current()
        self.blocks[idx].ops.append(self._text(node))
        self.returns.append((idx, FALLTHROUGH))
        self.current = None

    def _raise(self, node: Node) -> None:
        idx = self._ensure_current()
        self.blocks[idx].ops.append(self._text(node))
        self.blocks[idx].fallthrough = EXIT
        self.current = None

    def _break(self, node: Node) -> None:
        if not self.loops:
            self._simple(node)
            return
        idx = self._ensure_current()
        self.loops[-1].breaks.append((idx, FALLTHROUGH))
        self.current = None

    def _continue(self, node: Node) -> None:
        if not self.loops:
            self._simple(node)
            return
        idx = self._ensure_current()
        self.blocks[idx].fallthrough = BlockRef(self.loops[-1].header)
        self.current = None

    def _definition(self, node: Node) -> None:
        target = node.child_by_field_name("definition") if node.type == "decorated_definition" else node
        body = target.child_by_field_name("body") if target is not None else None
        idx = self._ensure_current()
        self.blocks[idx].ops.append(self._header(node, body))

    def _if(self, node: Node) -> None:
        test = self._ensure_current()
        self._branch_on(test, self._text(node.child_by_field_name("condition")))
        self._statements(node.child_by_field_name("consequence"))
        exits = self._close()

        self.pending = [(test, CONDITIONAL)]
        for alt in node.children_by_field_name("alternative"):
            if alt.type == "elif_clause":
                test = self._ensure_current()
                self._branch_on(test, self._text(alt.child_by_field_name("condition")))
                self._statements(alt.child_by_field_name("consequence"))
                exits += self._close()
                self.pending = [(test, CONDITIONAL)]
            elif alt.type == "else_clause":
                self._statements(alt.child_by_field_name("body") or _child_block(alt))

        self.pending = exits + self._close()

    def _loop(self, node: Node, condition: str) -> None:
        header = self._fresh_block()
        self._branch_on(header, condition)

        loop = _Loop(header=header)
        self.loops.append(loop)
        self._statements(node.child_by_field_name("body"))
        self._patch(self._close(), BlockRef(header))
        self.loops.pop()

        self.pending = [(header, CONDITIONAL)]
        alt = node.child_by_field_name("alternative")
        if alt is not None:
            self._statements(alt.child_by_field_name("body") or _child_block(alt))
        self.pending = self._close() + loop.breaks

    def _while(self, node: Node) -> None:
        self._loop(node, self._text(node.child_by_field_name("condition")))

    def _for(self, node: Node) -> None:
        left = self._text(node.child_by_field_name("left"))
        right = self._text(node.child_by_field_name("right"))
        self._loop(node, f"{left} in {right}")

    def _try(self, node: Node) -> None:
        handlers: List[Node] = []
        else_clause: Optional[Node] = None
        finally_clause: Optional[Node] = None
        for child in node.named_children:
            if child.type in {"except_clause", "except_group_clause"}:
                handlers.append(child)
            elif child.type == "else_clause":
                else_clause = child
            elif child.type == "finally_clause":
                finally_clause = child

        self._statements(node.child_by_field_name("body"))
        if else_clause is not None:
            self._statements(else_clause.child_by_field_name("body") or _child_block(else_clause))
        exits = self._close()

        for handler in handlers:
            body = _child_block(handler)
            idx = self._ensure_current()
            self.blocks[idx].ops.append(self._header(handler, body))
            self._statements(body)
            exits += self._close()

        self.pending = exits
        if finally_clause is not None:
            self._statements(_child_block(finally_clause))

    def _with(self, node: Node) -> None:
        body = node.child_by_field_name("body")
        self._simple_text(self._header(node, body))
        self._statements(body)

    def _match(self, node: Node) -> None:
        body = node.child_by_field_name("body")
        self._simple_text(self._header(node, body))

        exits: List[_Edge] = []
        cases = [c for c in (body or node).named_children if c.type == "case_clause"]
        for case in cases:
            consequence = case.child_by_field_name("consequence")
            test = self._ensure_current()
            self._branch_on(test, self._header(case, consequence))
            self._statements(consequence)
            exits += self._close()
            self.pending = [(test, CONDITIONAL)]

        self.pending = exits + self._close()

    def _simple_text(self, text: str) -> None:
        idx = self._ensure_current()
        self.blocks[idx].ops.append(text)


def build_cfg(src: bytes, func: Node) -> ControlFlowGraph:
    """Build the control flow graph of one function definition node."""
    return CfgBuilder(src).build(func)

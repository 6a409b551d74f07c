"""CFG -> Mermaid flowchart translation.

One node `B{i}` per basic block, plus a decision node `D{i}` for every block
that carries a branch condition. Edges into the exit sentinel are not drawn.
Output depends only on block order and content, so regenerating an unchanged
method yields byte-identical markup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .escape import LINE_BREAK, escape
from .models import BasicBlock, BlockRef, ConditionKind, ControlFlowGraph, Successor

GENERATOR_MARKER = "%% Diagram generated automatically (CFG -> Mermaid)"
END = "END"


@dataclass(frozen=True)
class DiagramHeader:
    """Traceability labels written as comments above the flowchart."""

    project: str
    document: str
    method: str

    def comment(self) -> str:
        return f"%% Project: {self.project} | File: {self.document} | Method: {self.method}"


def node_id(index: int) -> str:
    return f"B{index}"


def decision_id(index: int) -> str:
    return f"D{index}"


def resolve(cfg: ControlFlowGraph, dest: Optional[Successor]) -> str:
    """Return `B{j}` for a block successor, `END` for anything leaving the graph."""
    if isinstance(dest, BlockRef) and 0 <= dest.index < len(cfg.blocks):
        return node_id(dest.index)
    return END


def block_label(block: BasicBlock, index: int) -> str:
    texts = [op.text.strip() for op in block.operations if op.text and op.text.strip()]
    if not texts:
        return f"Block {index}"
    return escape(LINE_BREAK.join(texts))


def _edge(src: str, dst: str, label: Optional[str] = None) -> Optional[str]:
    if dst == END:
        return None
    if label is None:
        return f"{src} --> {dst}"
    return f'{src} -- "{label}" --> {dst}'


def block_statements(cfg: ControlFlowGraph, index: int) -> List[str]:
    """Node and edge statements for one block, node statements first."""
    block = cfg.blocks[index]
    bid = node_id(index)
    out: List[Optional[str]] = [f'{bid}["{block_label(block, index)}"]']

    if block.branch is not None:
        did = decision_id(index)
        cond_text = escape(block.branch.text) or "cond"
        out.append(f'{did}["{cond_text}"]')
        out.append(f"{bid} --> {did}")

        cond_dest = resolve(cfg, block.conditional)
        fall_dest = resolve(cfg, block.fallthrough)

        kind = block.branch.kind
        if kind == ConditionKind.WHEN_TRUE:
            out.append(_edge(did, cond_dest, "true"))
            out.append(_edge(did, fall_dest, "false"))
        elif kind == ConditionKind.WHEN_FALSE:
            out.append(_edge(did, fall_dest, "true"))
            out.append(_edge(did, cond_dest, "false"))
        else:
            out.append(_edge(did, fall_dest))
    elif block.fallthrough is not None:
        out.append(_edge(bid, resolve(cfg, block.fallthrough)))

    return [s for s in out if s is not None]


def translate(cfg: ControlFlowGraph, header: Optional[DiagramHeader] = None) -> str:
    """Render a control flow graph as a Mermaid `flowchart TD` document."""
    lines: List[str] = []
    if header is not None:
        lines.append(GENERATOR_MARKER)
        lines.append(header.comment())
    lines.append("flowchart TD")

    for i in range(len(cfg.blocks)):
        lines.extend(block_statements(cfg, i))

    return "\n".join(lines) + "\n"

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union


class ConditionKind(str, Enum):
    """Which outcome of a branch condition takes the conditional successor."""

    NONE = "none"
    WHEN_TRUE = "when_true"
    WHEN_FALSE = "when_false"


# =============================================================================
# Control Flow Graph
# =============================================================================


@dataclass(frozen=True)
class BlockRef:
    """Successor pointing at another block of the same graph."""

    index: int


@dataclass(frozen=True)
class ExitSentinel:
    """Successor that leaves the graph (no destination block)."""


EXIT = ExitSentinel()

Successor = Union[BlockRef, ExitSentinel]


@dataclass(frozen=True)
class Operation:
    text: Optional[str] = None


@dataclass(frozen=True)
class BranchCondition:
    text: Optional[str]
    kind: ConditionKind = ConditionKind.WHEN_FALSE


@dataclass(frozen=True)
class BasicBlock:
    """
    A straight-line run of operations.

    `fallthrough` and `conditional` are None when the edge does not exist.
    A conditional edge is only meaningful when `branch` is set.
    """

    operations: Tuple[Operation, ...] = ()
    branch: Optional[BranchCondition] = None
    fallthrough: Optional[Successor] = None
    conditional: Optional[Successor] = None


@dataclass(frozen=True)
class ControlFlowGraph:
    blocks: Tuple[BasicBlock, ...] = ()

    def __len__(self) -> int:
        return len(self.blocks)


# =============================================================================
# Code Hierarchy
# =============================================================================


@dataclass(frozen=True)
class MethodDecl:
    name: str
    line: int = 0
    has_body: bool = True


@dataclass(frozen=True)
class TypeDecl:
    name: str
    methods: Tuple[MethodDecl, ...] = ()
    line: int = 0


@dataclass(frozen=True)
class Document:
    """A source file: its type declarations plus methods owned by no type."""

    name: str
    path: Path
    types: Tuple[TypeDecl, ...] = ()
    functions: Tuple[MethodDecl, ...] = ()

    @property
    def stem(self) -> str:
        return Path(self.name).stem

    def methods(self) -> Iterator[MethodDecl]:
        """All methods (type-owned and top-level) in source order."""
        all_methods = [m for t in self.types for m in t.methods] + list(self.functions)
        return iter(sorted(all_methods, key=lambda m: m.line))


@dataclass(frozen=True)
class Project:
    name: str
    root: Path
    documents: Tuple[Document, ...] = ()
    error: Optional[str] = None


@dataclass(frozen=True)
class Solution:
    name: str
    root: Path
    projects: Tuple[Project, ...] = field(default_factory=tuple)

    def select(self, only_project: Optional[str] = None) -> Iterator[Project]:
        """Projects in order, optionally restricted to one exact name."""
        for project in self.projects:
            if only_project is None or project.name == only_project:
                yield project

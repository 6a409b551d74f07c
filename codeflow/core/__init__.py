"""Core domain types and algorithms."""

from .aggregate import ArchitectureDiagram, ArchitectureLimits, aggregate
from .errors import CodeflowError, ConfigError, HierarchyOpenError
from .escape import LINE_BREAK, escape, safe_identifier
from .models import (
    EXIT,
    BasicBlock,
    BlockRef,
    BranchCondition,
    ConditionKind,
    ControlFlowGraph,
    Document,
    ExitSentinel,
    MethodDecl,
    Operation,
    Project,
    Solution,
    Successor,
    TypeDecl,
)
from .pipeline import GraphProvider, Pipeline, Renderer, RunStats
from .translate import DiagramHeader, translate

__all__ = [
    # models
    "EXIT",
    "BasicBlock",
    "BlockRef",
    "BranchCondition",
    "ConditionKind",
    "ControlFlowGraph",
    "Document",
    "ExitSentinel",
    "MethodDecl",
    "Operation",
    "Project",
    "Solution",
    "Successor",
    "TypeDecl",
    # errors
    "CodeflowError",
    "ConfigError",
    "HierarchyOpenError",
    # text
    "LINE_BREAK",
    "escape",
    "safe_identifier",
    # translation / aggregation
    "DiagramHeader",
    "translate",
    "ArchitectureDiagram",
    "ArchitectureLimits",
    "aggregate",
    # pipeline
    "GraphProvider",
    "Pipeline",
    "Renderer",
    "RunStats",
]

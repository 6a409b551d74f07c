"""Architecture View - bounded solution overview.

Walks solution -> projects -> documents -> types -> methods (plus top-level
methods) and emits one Mermaid flowchart. Every level is capped, and caps are
applied silently: the diagram is a sample, not an inventory.

Caps:
- documents per project (prefix of the project's documents)
- types per project (shared across that project's documents)
- methods per type (reset for every type)
- top-level methods per project (shared across that project's documents)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .escape import escape
from .models import Document, Project, Solution

SUMMARY_TITLE = "# Architecture - codeflow"


@dataclass(frozen=True)
class ArchitectureLimits:
    max_docs_per_project: int = 8
    max_types_per_project: int = 10
    max_methods_per_type: int = 10
    max_top_level_methods: int = 10


@dataclass(frozen=True)
class ArchitectureDiagram:
    markup: str
    summary: str


@dataclass
class _ProjectTally:
    """Running counts for one project; owned by a single `_project_lines` call."""

    types: int = 0
    top_level: int = 0


def _document_lines(
    doc: Document,
    pid: str,
    doc_group: str,
    limits: ArchitectureLimits,
    tally: _ProjectTally,
) -> List[str]:
    out: List[str] = []

    for type_decl in doc.types:
        if tally.types >= limits.max_types_per_project:
            break
        type_node = f"{pid}C{tally.types}"
        out.append(f'  {pid} --> {type_node}["Class: {escape(type_decl.name)}"]')
        out.append(f"  {type_node} --> {doc_group}")

        methods = [m for m in type_decl.methods if m.has_body][: limits.max_methods_per_type]
        for mi, method in enumerate(methods):
            out.append(f'  {type_node} --> {type_node}M{mi}["Method: {escape(method.name)}()"]')

        tally.types += 1

    for func in doc.functions[: limits.max_top_level_methods]:
        if tally.top_level >= limits.max_top_level_methods:
            break
        out.append(f'  {pid} --> {pid}FM{tally.top_level}["TopMethod: {escape(func.name)}()"]')
        tally.top_level += 1

    return out


def _processing_chain(p_idx: int, project_name: str) -> List[str]:
    return [
        f'  PRJ{p_idx} --> CFG{p_idx}["ControlFlowGraph (per-method)"]',
        f'  CFG{p_idx} --> BM{p_idx}["translate()"]',
        f'  BM{p_idx} --> MMD{p_idx}["{escape(project_name)}.mmd"]',
        f'  MMD{p_idx} --> MMDC{p_idx}["Mermaid CLI (mmdc)"]',
        f'  MMDC{p_idx} --> OUT{p_idx}[".svg / .png"]',
    ]


def _project_lines(project: Project, p_idx: int, limits: ArchitectureLimits) -> List[str]:
    pid = f"PRJ{p_idx}"
    doc_group = f"DOC{p_idx}"
    safe_name = escape(project.name).replace(" ", "_")

    out = [
        f'  SOL --> {pid}["Project: {safe_name}"]',
        f'  {pid} --> {doc_group}["Documents (.py)"]',
    ]

    docs = list(project.documents[: limits.max_docs_per_project])
    for d, doc in enumerate(docs):
        out.append(f'  {doc_group} --> {pid}D{d}["{escape(Path(doc.name).name)}"]')

    if project.error is None:
        tally = _ProjectTally()
        for doc in docs:
            out.extend(_document_lines(doc, pid, doc_group, limits, tally))

    out.extend(_processing_chain(p_idx, project.name))
    return out


def build_markup(
    solution: Solution,
    limits: ArchitectureLimits,
    only_project: Optional[str] = None,
) -> str:
    lines = [
        "flowchart TD",
        '  P["codeflow (entry)"] --> GP["GraphProvider"]',
        '  GP --> SOL["Solution"]',
    ]
    for p_idx, project in enumerate(solution.select(only_project)):
        lines.extend(_project_lines(project, p_idx, limits))
    lines.append('  P --> DEL["delete_if_exists() (cleanup)"]')
    lines.append('  P --> GEN["render() (calls mmdc)"]')
    return "\n".join(lines) + "\n"


def build_summary(project_names: Sequence[str], markup: str) -> str:
    lines = [
        SUMMARY_TITLE,
        "",
        "This file describes the processing chain and the projects/documents scanned by the tool.",
        "",
        "## Projects scanned",
    ]
    lines.extend(f"- {name}" for name in project_names)
    lines.extend(
        [
            "",
            "## Flow diagram (Mermaid)",
            "",
            "```mermaid",
            markup,
            "```",
            "",
            "*Generated automatically by the tool.*",
        ]
    )
    return "\n".join(lines) + "\n"


def aggregate(
    solution: Solution,
    limits: Optional[ArchitectureLimits] = None,
    only_project: Optional[str] = None,
) -> ArchitectureDiagram:
    """Build the architecture flowchart and its markdown summary."""
    limits = limits or ArchitectureLimits()
    markup = build_markup(solution, limits, only_project)
    summary = build_summary([p.name for p in solution.projects], markup)
    return ArchitectureDiagram(markup=markup, summary=summary)

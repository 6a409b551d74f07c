"""codeflow parser - tree-sitter backed GraphProvider.

Usage:
    from codeflow.parser import TreeSitterProvider
    provider = TreeSitterProvider()
    solution = provider.open_solution(Path("/path/to/repos"))
    cfg = provider.build_cfg(project, document, method)
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Set

from ..core.errors import HierarchyOpenError
from ..core.models import ControlFlowGraph, Document, MethodDecl, Project, Solution
from ..core.paths import IGNORE_DIRS, iter_walk_files, top_level_project_roots
from .config import EXTENSION_TO_LANG
from .treesitter import TsParsed, parse_source
from .treesitter.cfg import build_cfg
from .treesitter.python import extract_declarations, find_function


class TreeSitterProvider:
    """Reads a directory of Python projects.

    Immediate children of the root that carry a project marker are projects;
    without any, the root itself is the only project.
    """

    def __init__(self, ignore_dirs: Optional[Set[str]] = None):
        self.ignore_dirs = set(IGNORE_DIRS if ignore_dirs is None else ignore_dirs)
        self._parsed: Dict[Path, TsParsed] = {}

    def open_solution(self, root: Path) -> Solution:
        root = Path(root)
        if not root.exists():
            raise HierarchyOpenError(f"Hierarchy root not found: {root}")
        if not root.is_dir():
            raise HierarchyOpenError(f"Hierarchy root is not a directory: {root}")

        project_roots = top_level_project_roots(root) or [root]
        projects = tuple(self._load_project(p) for p in project_roots)
        return Solution(name=root.absolute().name, root=root, projects=projects)

    def _load_project(self, project_root: Path) -> Project:
        documents: List[Document] = []
        errors: List[str] = []
        files = iter_walk_files(
            roots=[project_root],
            ignore_dirs=self.ignore_dirs,
            suffixes=set(EXTENSION_TO_LANG),
        )
        for file_path in files:
            try:
                text = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                errors.append(f"{file_path}: {e}")
                continue

            parsed = parse_source(text, file_path=file_path)
            if parsed is None:
                continue
            self._parsed[file_path] = parsed

            types, functions = extract_declarations(parsed.src, parsed.root)
            documents.append(
                Document(
                    name=file_path.name,
                    path=file_path,
                    types=tuple(types),
                    functions=tuple(functions),
                )
            )

        return Project(
            name=project_root.absolute().name,
            root=project_root,
            documents=tuple(documents),
            error=errors[0] if errors else None,
        )

    def build_cfg(self, project: Project, document: Document, method: MethodDecl) -> Optional[ControlFlowGraph]:
        parsed = self._parsed.get(document.path)
        if parsed is None:
            parsed = parse_source(document.path.read_text(encoding="utf-8"), file_path=document.path)
            if parsed is None:
                return None
            self._parsed[document.path] = parsed

        func = find_function(parsed.src, parsed.root, method.name, method.line)
        if func is None:
            return None
        return build_cfg(parsed.src, func)


__all__ = ["TreeSitterProvider"]
